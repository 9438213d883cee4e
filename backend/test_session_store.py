"""Per-chat session storage and locking."""
import asyncio

from strukbot.agent.conversation_state import ReceiptSession
from strukbot.agent.session_store import SessionStore


def test_same_chat_events_run_one_at_a_time():
    store = SessionStore()
    order = []

    async def handle(name):
        async with store.lock(1):
            order.append(f"{name} start")
            await asyncio.sleep(0)
            order.append(f"{name} end")

    async def scenario():
        await asyncio.gather(handle("a"), handle("b"), handle("c"))

    asyncio.run(scenario())

    assert order == ["a start", "a end", "b start", "b end", "c start", "c end"]


def test_idle_locks_are_dropped():
    store = SessionStore()

    async def handle(chat_id):
        async with store.lock(chat_id):
            store.set(chat_id, ReceiptSession())
            await asyncio.sleep(0)

    async def scenario():
        await asyncio.gather(*(handle(chat_id) for chat_id in range(50)))
        assert store.lock_count == 0

        async with store.lock(7):
            assert store.lock_count == 1

    asyncio.run(scenario())

    assert store.lock_count == 0
    assert len(store) == 50


def test_delete_forgets_session():
    store = SessionStore()
    store.set(3, ReceiptSession())

    store.delete(3)
    store.delete(3)

    assert 3 not in store
    assert store.get(3) is None
