from __future__ import annotations

from app.chat.contracts import IntentType, ParsedIntent, PendingAction, PendingStage
from app.chat.intents import classify
from app.chat.resolver import resolve_pending_intent


def _pending(intent_type: IntentType, data: dict, stage: PendingStage = PendingStage.COLLECTING) -> PendingAction:
    return PendingAction(type=intent_type, data=data, timestamp=1, stage=stage)


def test_no_pending_action_leaves_intent_untouched():
    parsed = classify("tomorrow at 3pm")
    assert resolve_pending_intent(parsed, None) == parsed


def test_unknown_follow_up_is_coerced_into_schedule():
    pending = _pending(IntentType.SCHEDULE, {"amount": "50"})
    parsed = classify("tomorrow at 3pm")
    assert parsed.intent == IntentType.UNKNOWN

    resolved = resolve_pending_intent(parsed, pending)

    assert resolved.intent == IntentType.SCHEDULE
    assert resolved.entities == {"amount": "50", "date": "tomorrow", "time": "3pm"}
    assert resolved.raw_command == "tomorrow at 3pm"


def test_subscription_stays_sticky_even_when_confirming():
    pending = _pending(IntentType.SUBSCRIPTION, {"amount": "15"}, stage=PendingStage.CONFIRMING)
    resolved = resolve_pending_intent(classify("spotify"), pending)
    assert resolved.intent == IntentType.SUBSCRIPTION
    assert resolved.entities["amount"] == "15"


def test_unknown_while_confirming_a_send_is_not_coerced():
    pending = _pending(IntentType.SEND, {"amount": "5", "address": "0xabc"}, stage=PendingStage.CONFIRMING)
    parsed = classify("asdfgh")
    assert resolve_pending_intent(parsed, pending).intent == IntentType.UNKNOWN


def test_confirm_and_cancel_are_never_rewritten():
    pending = _pending(IntentType.BRIDGE, {"amount": "10", "chain": "base"}, stage=PendingStage.CONFIRMING)
    assert resolve_pending_intent(classify("yes"), pending).intent == IntentType.CONFIRM
    assert resolve_pending_intent(classify("cancel"), pending).intent == IntentType.CANCEL


def test_draft_values_win_over_fresh_extraction():
    pending = _pending(IntentType.SEND, {"amount": "50", "currency": "USDC"})
    parsed = ParsedIntent(
        intent=IntentType.SEND,
        confidence=0.9,
        entities={"amount": "75", "recipient": "jake"},
        raw_command="send 75 to jake",
    )

    resolved = resolve_pending_intent(parsed, pending)

    assert resolved.entities == {"amount": "50", "currency": "USDC", "recipient": "jake"}


def test_answers_to_the_last_prompt_replace_draft_values():
    pending = PendingAction(
        type=IntentType.SCHEDULE,
        data={"amount": "50", "date": "tomorrow"},
        timestamp=1,
        awaiting=["date", "time"],
    )

    resolved = resolve_pending_intent(classify("next friday at 3pm"), pending)

    assert resolved.intent == IntentType.SCHEDULE
    assert resolved.entities["amount"] == "50"
    assert resolved.entities["date"] == "next friday"
    assert resolved.entities["time"] == "3pm"


def test_different_intent_replaces_the_flow():
    pending = _pending(IntentType.SCHEDULE, {"amount": "50"})
    resolved = resolve_pending_intent(classify("what's my balance"), pending)
    assert resolved.intent == IntentType.BALANCE
    assert resolved.entities == {}
