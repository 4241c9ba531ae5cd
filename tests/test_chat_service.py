from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.chat.contracts import ConversationContext, HistoryEntry, IntentType, WalletContext
from app.chat.handlers.registry import SAFE_FALLBACK_MESSAGE
from app.chat.handlers.transfers import ZERO_ADDRESS_BLOCK_MESSAGE
from app.chat.llm import PassthroughEnhancer, RuleBasedClassifier
from app.chat.service import MAX_COMMIT_ATTEMPTS, ChatService, SessionWriteConflictError
from app.chat.state_store import InMemorySessionStore
from app.config import get_settings
from app.core.context import get_session_id, set_session_id
from db.session import SessionLocal

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
WALLET = WalletContext(wallet_id="wallet-1", wallet_address="0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", balance="125.50")
FIXED_NOW = datetime(2030, 3, 4, 10, 0, tzinfo=timezone.utc)


class ShoutingEnhancer:
    def __init__(self):
        self.calls = 0

    def enhance(self, base_message, **kwargs):
        self.calls += 1
        return base_message.upper()


class RacingStore(InMemorySessionStore):
    """Another writer lands between this turn's read and its first write."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.raced = False
        self.cas_calls = 0

    def compare_and_swap(self, context, *, expected_version):
        self.cas_calls += 1
        if not self.raced:
            self.raced = True
            other = self.get(context.session_id) or ConversationContext(session_id=context.session_id)
            other.history.append(HistoryEntry(role="user", message="from another tab", timestamp=1))
            self.put(other)
        return super().compare_and_swap(context, expected_version=expected_version)


class AlwaysConflictingStore(InMemorySessionStore):
    def compare_and_swap(self, context, *, expected_version):
        return False


def _service(store=None, enhancer=None, fake_wallet=None, fake_fx=None):
    return ChatService(
        settings=get_settings(),
        store=store or InMemorySessionStore(),
        classifier=RuleBasedClassifier(),
        enhancer=enhancer or PassthroughEnhancer(),
        wallet_provider=fake_wallet,
        fx=fake_fx,
        session_factory=SessionLocal,
        clock=lambda: FIXED_NOW,
    )


def test_session_id_is_generated_when_missing(chat_service):
    response = chat_service.process_message("hello")

    assert len(response.session_id) == 32
    assert chat_service.get_session(response.session_id) is not None


def test_generated_session_id_reaches_log_context(chat_service):
    set_session_id(None)
    try:
        response = chat_service.process_message("hello")
        assert get_session_id() == response.session_id
    finally:
        set_session_id(None)


def test_turn_appends_user_and_assistant_history(chat_service):
    response = chat_service.process_message("hello", session_id="s-1", wallet=WALLET)

    context = chat_service.get_session("s-1")
    assert [(h.role, h.message) for h in context.history] == [("user", "hello"), ("assistant", response.message)]
    assert context.last_intent == "greeting"
    assert context.version == 1


def test_history_is_bounded(chat_service):
    for _ in range(12):
        chat_service.process_message("hello", session_id="s-1", wallet=WALLET)

    context = chat_service.get_session("s-1")
    assert len(context.history) == get_settings().chat_history_limit == 20
    assert context.history[-1].role == "assistant"
    assert context.version == 12


def test_send_then_confirm_executes_once(chat_service, fake_wallet):
    preview = chat_service.process_message(f"send $50 to {GOOD_ADDRESS}", session_id="s-1", wallet=WALLET)

    assert preview.requires_confirmation is True
    assert preview.pending_action.type == IntentType.SEND
    assert preview.transaction_preview.to == GOOD_ADDRESS

    done = chat_service.process_message("yes", session_id="s-1", wallet=WALLET)

    assert done.intent.intent == IntentType.CONFIRM
    assert done.pending_action is None
    assert [name for name, _ in fake_wallet.calls] == ["send"]

    again = chat_service.process_message("yes", session_id="s-1", wallet=WALLET)
    assert again.requires_confirmation is False
    assert [name for name, _ in fake_wallet.calls] == ["send"]


def test_unrelated_question_keeps_pending_action(chat_service):
    chat_service.process_message(f"send $50 to {GOOD_ADDRESS}", session_id="s-1", wallet=WALLET)

    balance = chat_service.process_message("what's my balance?", session_id="s-1", wallet=WALLET)

    assert balance.intent.intent == IntentType.BALANCE
    assert "125.50" in balance.message
    assert balance.pending_action.type == IntentType.SEND


def test_multi_turn_schedule_flow(chat_service):
    first = chat_service.process_message("schedule a payment of $50", session_id="s-1", wallet=WALLET)
    assert first.pending_action.type == IntentType.SCHEDULE

    second = chat_service.process_message(GOOD_ADDRESS, session_id="s-1", wallet=WALLET)
    assert second.pending_action.data["address"] == GOOD_ADDRESS

    third = chat_service.process_message("tomorrow at 3pm", session_id="s-1", wallet=WALLET)
    assert third.data["scheduled_for"].startswith("2030-03-05T15:00")
    assert third.pending_action is None


def test_blocked_transfer_is_never_enhanced(fake_wallet, fake_fx):
    enhancer = ShoutingEnhancer()
    service = _service(enhancer=enhancer, fake_wallet=fake_wallet, fake_fx=fake_fx)

    blocked = service.process_message(f"send $5 to {ZERO_ADDRESS}", session_id="s-1", wallet=WALLET)
    greeting = service.process_message("hello", session_id="s-1", wallet=WALLET)

    assert blocked.message == ZERO_ADDRESS_BLOCK_MESSAGE
    assert blocked.requires_confirmation is False
    assert greeting.message == greeting.message.upper()
    assert enhancer.calls == 1


def test_handler_crash_becomes_safe_reply(fake_wallet, fake_fx):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    fake_wallet.get_balance = explode
    service = _service(fake_wallet=fake_wallet, fake_fx=fake_fx)

    response = service.process_message("what's my balance?", session_id="s-1", wallet=WALLET)

    assert response.message == SAFE_FALLBACK_MESSAGE
    assert service.get_session("s-1").version == 1


def test_lost_race_replays_turn_on_top_of_winner():
    store = RacingStore()
    service = _service(store=store)

    service.process_message("hello", session_id="s-1")

    context = store.get("s-1")
    assert store.cas_calls == 2
    assert [h.message for h in context.history][0] == "from another tab"
    assert [h.role for h in context.history] == ["user", "user", "assistant"]
    assert context.version == 2


def test_persistent_conflict_raises():
    service = _service(store=AlwaysConflictingStore())
    with pytest.raises(SessionWriteConflictError):
        service.process_message("hello", session_id="s-1")
    assert MAX_COMMIT_ATTEMPTS == 3


def test_clear_pending(chat_service):
    chat_service.process_message(f"send $50 to {GOOD_ADDRESS}", session_id="s-1", wallet=WALLET)

    cleared = chat_service.clear_pending("s-1")

    assert cleared.pending_action is None
    assert chat_service.get_session("s-1").pending_action is None
    assert chat_service.clear_pending("missing") is None


def test_lost_race_on_confirm_does_not_repeat_the_transfer(fake_wallet, fake_fx):
    store = RacingStore()
    store.raced = True
    service = _service(store=store, fake_wallet=fake_wallet, fake_fx=fake_fx)
    service.process_message(f"send $50 to {GOOD_ADDRESS}", session_id="s-1", wallet=WALLET)

    store.raced = False
    done = service.process_message("yes", session_id="s-1", wallet=WALLET)

    context = store.get("s-1")
    assert [name for name, _ in fake_wallet.calls] == ["send"]
    assert done.pending_action is None
    assert context.pending_action is None
    assert "from another tab" in [h.message for h in context.history]
