"""
In-memory session store keyed by chat identity.

Sessions do not survive a restart. Each chat has its own asyncio lock so a
handler can hold read-modify-write consistency across awaited I/O while
other chats keep going. A chat's lock only exists while some event of that
chat holds it or waits for it.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable, Optional

from strukbot.agent.conversation_state import Session

logger = logging.getLogger(__name__)


class SessionStore:

    def __init__(self):
        self._sessions: Dict[Hashable, Session] = {}
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._lock_users: Dict[Hashable, int] = {}

    def get(self, chat_id: Hashable) -> Optional[Session]:
        return self._sessions.get(chat_id)

    def set(self, chat_id: Hashable, session: Session) -> None:
        self._sessions[chat_id] = session
        logger.debug(f"[Session] chat_id={chat_id} flow={session.flow} step={session.step.value}")

    def delete(self, chat_id: Hashable) -> None:
        if self._sessions.pop(chat_id, None) is not None:
            logger.debug(f"[Session] chat_id={chat_id} cleared")

    @asynccontextmanager
    async def lock(self, chat_id: Hashable) -> AsyncIterator[None]:
        """Per-chat lock; hold it for the whole handling of one event."""
        chat_lock = self._locks.setdefault(chat_id, asyncio.Lock())
        self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with chat_lock:
                yield
        finally:
            self._lock_users[chat_id] -= 1
            if not self._lock_users[chat_id]:
                del self._lock_users[chat_id]
                del self._locks[chat_id]

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    def __contains__(self, chat_id: Hashable) -> bool:
        return chat_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
