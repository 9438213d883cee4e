"""
Per-chat debounce guard against double submission.

An event is accepted only if at least `interval` seconds passed since the
previous *accepted* event of the same chat. Dropped events do not move the
window. In-memory only; a restart forgets all timestamps.
"""
import time
import logging
from typing import Callable, Dict, Hashable

from strukbot.core.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """In-memory debounce keyed by chat identity."""

    def __init__(self, interval: float = 1.0, clock: Callable[[], float] = time.monotonic):
        """
        Args:
            interval: Minimum seconds between two accepted events of one chat
            clock: Monotonic time source (injectable for tests)
        """
        self.interval = interval
        self.clock = clock
        self.last_accepted: Dict[Hashable, float] = {}
        self.last_cleanup = clock()

    def is_allowed(self, client_id: Hashable) -> bool:
        """Record and accept the event, or report it as too fast."""
        now = self.clock()

        # Cleanup old entries every 5 minutes
        if now - self.last_cleanup > 300:
            self._cleanup(now)
            self.last_cleanup = now

        previous = self.last_accepted.get(client_id)
        if previous is not None and now - previous < self.interval:
            logger.debug(f"[Debounce] dropped event from {client_id} ({now - previous:.3f}s)")
            return False

        self.last_accepted[client_id] = now
        return True

    def _cleanup(self, now: float):
        """Remove expired entries to prevent memory bloat."""
        for client_id in list(self.last_accepted.keys()):
            if now - self.last_accepted[client_id] >= self.interval:
                del self.last_accepted[client_id]

        logger.info(f"Rate limiter cleanup: {len(self.last_accepted)} active chats")


def build_rate_limiter() -> RateLimiter:
    return RateLimiter(interval=settings.DEBOUNCE_SECONDS)
