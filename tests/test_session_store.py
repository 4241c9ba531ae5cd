from __future__ import annotations

from app.chat.contracts import ConversationContext, HistoryEntry, IntentType, PendingAction
from app.chat.state_store import InMemorySessionStore, SqlSessionStore, build_session_store
from app.config import Settings
from db.session import SessionLocal


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _context(session_id: str = "s-1", **kwargs) -> ConversationContext:
    return ConversationContext(session_id=session_id, **kwargs)


def test_in_memory_put_bumps_version_and_returns_copies():
    store = InMemorySessionStore(ttl_seconds=60)

    first = store.put(_context(last_intent="greeting"))
    second = store.put(_context(last_intent="balance"))

    assert first.version == 1
    assert second.version == 2
    loaded = store.get("s-1")
    loaded.history.append(HistoryEntry(role="user", message="hi", timestamp=1))
    assert store.get("s-1").history == []


def test_in_memory_entries_expire_after_ttl():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    store.put(_context())

    clock.now += 59
    assert store.get("s-1") is not None

    clock.now += 60
    assert store.get("s-1") is None


def test_in_memory_cleanup_counts_expired_sessions():
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=10, clock=clock)
    store.put(_context("a"))
    store.put(_context("b"))
    clock.now += 11
    store.put(_context("c"))

    assert store.cleanup() == 2
    assert store.get("c") is not None


def test_in_memory_compare_and_swap_rejects_stale_writers():
    store = InMemorySessionStore(ttl_seconds=60)

    assert store.compare_and_swap(_context(last_intent="send"), expected_version=0) is True
    assert store.compare_and_swap(_context(last_intent="bridge"), expected_version=0) is False

    current = store.get("s-1")
    assert current.version == 1
    assert current.last_intent == "send"
    assert store.compare_and_swap(_context(last_intent="bridge"), expected_version=1) is True
    assert store.get("s-1").version == 2


def test_sql_store_round_trips_pending_action_and_history():
    store = SqlSessionStore(SessionLocal, ttl_seconds=60)
    pending = PendingAction(type=IntentType.SCHEDULE, data={"amount": "50"}, timestamp=123)
    context = _context(
        user_id="user-1",
        pending_action=pending,
        last_intent="schedule",
        history=[HistoryEntry(role="user", message="schedule $50", timestamp=123)],
    )

    assert store.compare_and_swap(context, expected_version=0) is True

    loaded = store.get("s-1")
    assert loaded.version == 1
    assert loaded.user_id == "user-1"
    assert loaded.pending_action == pending
    assert loaded.history[0].message == "schedule $50"


def test_sql_store_compare_and_swap_detects_conflicts():
    store = SqlSessionStore(SessionLocal, ttl_seconds=60)
    store.put(_context(last_intent="greeting"))

    assert store.compare_and_swap(_context(last_intent="send"), expected_version=0) is False
    assert store.compare_and_swap(_context(last_intent="send"), expected_version=1) is True
    assert store.compare_and_swap(_context(last_intent="bridge"), expected_version=1) is False
    assert store.get("s-1").last_intent == "send"


def test_sql_store_expired_sessions_are_gone():
    store = SqlSessionStore(SessionLocal, ttl_seconds=-1)
    store.put(_context("old"))

    assert store.get("old") is None

    store.put(_context("older"))
    assert store.cleanup() == 1


def test_sql_store_delete():
    store = SqlSessionStore(SessionLocal, ttl_seconds=60)
    store.put(_context())
    store.delete("s-1")
    assert store.get("s-1") is None


def test_build_session_store_follows_settings():
    assert isinstance(build_session_store(Settings(session_store="memory")), InMemorySessionStore)
    assert isinstance(build_session_store(Settings(session_store="database"), SessionLocal), SqlSessionStore)
