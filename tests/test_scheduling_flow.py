from __future__ import annotations

from decimal import Decimal

from app.chat.contracts import IntentType, PendingAction, PendingStage
from app.chat.handlers import dispatch
from app.chat.intents import classify
from app.chat.resolver import resolve_pending_intent
from db.models.scheduled_payment import ScheduledPaymentStatus
from db.repos.scheduled_payments_repo import list_scheduled_payments
from db.repos.subscriptions_repo import list_subscriptions
from db.session import SessionLocal

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _turn(text, ctx):
    intent = resolve_pending_intent(classify(text), ctx.pending)
    return dispatch(intent, ctx)


def _draft(intent_type: IntentType, data: dict) -> PendingAction:
    return PendingAction(type=intent_type, data=data, timestamp=1, stage=PendingStage.COLLECTING)


def test_one_shot_schedule_creates_row(make_ctx):
    result = _turn(f"Schedule $50 to {GOOD_ADDRESS} tomorrow at 3pm", make_ctx())

    assert result.action == "schedule_created"
    assert result.clear_pending is True
    assert result.data["scheduled_for"].startswith("2030-03-05T15:00")

    with SessionLocal() as db:
        rows = list_scheduled_payments(db, user_id="user-1")
    assert len(rows) == 1
    assert rows[0].amount == Decimal("50")
    assert rows[0].to_address == GOOD_ADDRESS
    assert rows[0].status == ScheduledPaymentStatus.PENDING.value
    assert rows[0].wallet_id == "wallet-1"


def test_time_follow_up_completes_the_draft(make_ctx):
    pending = _draft(
        IntentType.SCHEDULE,
        {"amount": "50", "currency": "USDC", "address": GOOD_ADDRESS, "date": "tomorrow"},
    )

    result = _turn("3pm", make_ctx(pending=pending))

    assert result.action == "schedule_created"
    with SessionLocal() as db:
        assert len(list_scheduled_payments(db, user_id="user-1")) == 1


def test_unparseable_time_keeps_the_rest_of_the_draft(make_ctx):
    pending = _draft(
        IntentType.SCHEDULE,
        {"amount": "50", "currency": "USDC", "address": GOOD_ADDRESS, "date": "tomorrow"},
    )

    result = _turn("whenever", make_ctx(pending=pending))

    assert result.action == "schedule_invalid_time"
    assert result.pending.type == IntentType.SCHEDULE
    assert result.pending.data["amount"] == "50"
    assert result.pending.data["address"] == GOOD_ADDRESS
    assert result.pending.data["date"] == "tomorrow"
    assert "time" not in result.pending.data
    with SessionLocal() as db:
        assert list_scheduled_payments(db, user_id="user-1") == []


def test_new_date_after_invalid_time_replaces_the_old_one(make_ctx):
    pending = _draft(
        IntentType.SCHEDULE,
        {"amount": "50", "currency": "USDC", "address": GOOD_ADDRESS, "date": "tomorrow"},
    )
    first = _turn("whenever", make_ctx(pending=pending))
    assert first.action == "schedule_invalid_time"
    assert first.pending.awaiting == ["date", "time"]

    second = _turn("next friday at 3pm", make_ctx(pending=first.pending))

    assert second.action == "schedule_created"
    assert second.data["scheduled_for"].startswith("2030-03-08T15:00")
    with SessionLocal() as db:
        assert len(list_scheduled_payments(db, user_id="user-1")) == 1


def test_past_date_is_rejected(make_ctx):
    result = _turn(f"Schedule $50 to {GOOD_ADDRESS} 2029-01-01 at 3pm", make_ctx())

    assert result.action == "schedule_invalid_time"
    with SessionLocal() as db:
        assert list_scheduled_payments(db, user_id="user-1") == []


def test_date_and_time_fragment_asks_for_the_address(make_ctx):
    result = _turn("tomorrow at 3pm", make_ctx(pending=_draft(IntentType.SCHEDULE, {"amount": "50"})))

    assert result.action == "schedule_missing_address"
    assert result.pending.data["amount"] == "50"
    assert result.pending.data["date"] == "tomorrow"
    assert result.pending.data["time"] == "3pm"


def test_schedule_without_amount_asks_for_it(make_ctx):
    result = _turn("schedule a payment", make_ctx())
    assert result.action == "schedule_missing_amount"
    assert result.pending.type == IntentType.SCHEDULE


def test_schedule_to_zero_address_drops_only_the_address(make_ctx):
    result = _turn(f"Schedule $50 to {ZERO_ADDRESS} tomorrow at 3pm", make_ctx())

    assert result.action == "schedule_zero_address"
    assert "address" not in result.pending.data
    assert result.pending.data["date"] == "tomorrow"
    assert result.pending.data["time"] == "3pm"


def test_subscription_is_created_with_reminder(make_ctx):
    result = _turn("Pay $15 monthly for Netflix", make_ctx())

    assert result.action == "subscription_created"
    assert result.data["next_charge_at"].startswith("2030-04-03")
    with SessionLocal() as db:
        rows = list_subscriptions(db, user_id="user-1")
    assert len(rows) == 1
    assert rows[0].merchant == "Netflix"
    assert rows[0].frequency == "monthly"
    assert rows[0].auto_renew is True
    assert rows[0].remind_before_seconds == 2 * 24 * 3600


def test_subscription_merchant_can_arrive_as_a_bare_reply(make_ctx):
    first = _turn("subscribe $15 monthly", make_ctx())
    assert first.action == "subscription_missing_merchant"

    second = _turn("Spotify", make_ctx(pending=first.pending))

    assert second.action == "subscription_created"
    with SessionLocal() as db:
        assert [s.merchant for s in list_subscriptions(db, user_id="user-1")] == ["Spotify"]


def test_renew_without_subscriptions(make_ctx):
    assert _turn("turn on auto renew", make_ctx()).action == "renew_none"
