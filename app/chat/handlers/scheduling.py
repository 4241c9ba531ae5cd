from __future__ import annotations

import logging
from datetime import timedelta

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent
from app.chat.handlers.common import (
    STORAGE_UNAVAILABLE_MESSAGE,
    HandlerContext,
    collect,
    fmt_amount,
    needs_wallet,
    parse_amount,
    reply,
)
from app.chat.handlers.registry import register
from app.services.schedule_time import combine_schedule, parse_schedule_date
from db.models.subscription import SubscriptionFrequency
from db.repos.scheduled_payments_repo import create_scheduled_payment
from db.repos.subscriptions_repo import create_subscription, enable_auto_renew
from security.address import is_zero_address, short_address, validate_address

logger = logging.getLogger(__name__)

REMINDER_LEAD = timedelta(days=2)

_FREQUENCY_STEP = {
    SubscriptionFrequency.DAILY: timedelta(days=1),
    SubscriptionFrequency.WEEKLY: timedelta(days=7),
    SubscriptionFrequency.MONTHLY: timedelta(days=30),
}

_WHEN_EXAMPLES = 'For example, "tomorrow at 3pm" or "next Monday at 9am".'


def _answer_to(ctx: HandlerContext, intent_type: IntentType, *, has: str, lacks: str) -> bool:
    """True when this turn answers the question the stored draft asked."""
    pending = ctx.pending
    return (
        pending is not None
        and pending.type == intent_type
        and bool(pending.data.get(has))
        and not pending.data.get(lacks)
    )


@register(IntentType.SCHEDULE)
def handle_schedule(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    """
    Collect amount, address, date and time one question at a time.

    Every prompt stores the draft again so the next turn can fill the gap.
    A field that fails validation is dropped from the draft; the others stay.
    """
    blocked = needs_wallet(ctx, "Please create a wallet first to schedule payments.")
    if blocked:
        return blocked

    draft = dict(intent.entities)
    draft.setdefault("currency", "USDC")

    amount = draft.get("amount")
    if parse_amount(amount) is None:
        draft.pop("amount", None)
        return collect(
            IntentType.SCHEDULE,
            draft,
            "I can schedule a payment for you! How much would you like to send?",
            action="schedule_missing_amount",
            missing=["amount"],
        )

    address = draft.get("address")
    if not address:
        return collect(
            IntentType.SCHEDULE,
            draft,
            f"Got it, ${amount}. What address should I send it to?",
            action="schedule_missing_address",
            missing=["address"],
        )
    if is_zero_address(address):
        draft.pop("address", None)
        return collect(
            IntentType.SCHEDULE,
            draft,
            "🚫 That's the zero address. Funds sent there are burned forever. What address should I send it to instead?",
            action="schedule_zero_address",
            missing=["address"],
        )
    validation = validate_address(address)
    if not validation.is_valid:
        draft.pop("address", None)
        return collect(
            IntentType.SCHEDULE,
            draft,
            f"That address doesn't look right ({validation.error}). "
            'It should start with "0x" and be 42 characters long. What address should I send it to?',
            action="schedule_invalid_address",
            missing=["address"],
        )
    draft["address"] = validation.normalized_address

    date_text = draft.get("date")
    if not date_text:
        return collect(
            IntentType.SCHEDULE,
            draft,
            f"When should I send the ${amount}? {_WHEN_EXAMPLES}",
            action="schedule_missing_date",
            missing=["date", "time"] if not draft.get("time") else ["date"],
        )
    if parse_schedule_date(date_text, today=ctx.now().date()) is None:
        draft.pop("date", None)
        return collect(
            IntentType.SCHEDULE,
            draft,
            f"I couldn't understand the date \"{date_text}\". What date would you like? {_WHEN_EXAMPLES}",
            action="schedule_invalid_date",
            missing=["date"],
        )

    time_text = draft.get("time")
    if not time_text and _answer_to(ctx, IntentType.SCHEDULE, has="date", lacks="time"):
        # the whole reply is the time, even when it doesn't look like one
        time_text = intent.raw_command.strip()
    if not time_text:
        return collect(
            IntentType.SCHEDULE,
            draft,
            f"What time {date_text}? For example, \"3pm\" or \"9:30am\".",
            action="schedule_missing_time",
            missing=["time"],
        )

    scheduled_for = combine_schedule(date_text, time_text, now=ctx.now())
    if scheduled_for is None:
        draft.pop("time", None)
        return collect(
            IntentType.SCHEDULE,
            draft,
            f"I have the amount (${amount}) and address, but I need to know when to schedule this. "
            f"What date and time would you like? {_WHEN_EXAMPLES}",
            action="schedule_invalid_time",
            missing=["date", "time"],
        )

    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="schedule_unavailable")
        payment = create_scheduled_payment(
            db,
            user_id=ctx.owner_id,
            amount=str(parse_amount(amount)),
            to_address=draft["address"],
            scheduled_for=scheduled_for,
            currency=draft["currency"],
            wallet_id=ctx.wallet.wallet_id,
            wallet_address=ctx.wallet.wallet_address,
        )
        payment_id = str(payment.id)

    logger.info("Scheduled payment created id=%s session_id=%s", payment_id, ctx.session_id)
    when = scheduled_for.strftime("%A, %B %d at %I:%M %p UTC")
    return reply(
        "✅ Payment Scheduled!\n\n"
        f"💰 Amount: ${fmt_amount(amount)} {draft['currency']}\n"
        f"📍 To: {short_address(draft['address'])}\n"
        f"📅 When: {when}\n\n"
        "I'll send it automatically at that time. You can cancel it any time before then.",
        action="schedule_created",
        data={"scheduled_payment_id": payment_id, "scheduled_for": scheduled_for.isoformat()},
        clear_pending=True,
    )


@register(IntentType.SUBSCRIPTION)
def handle_subscription(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to set up subscriptions.")
    if blocked:
        return blocked

    draft = dict(intent.entities)
    draft.setdefault("currency", "USDC")

    amount = draft.get("amount")
    if parse_amount(amount) is None:
        draft.pop("amount", None)
        return collect(
            IntentType.SUBSCRIPTION,
            draft,
            "I can set up a recurring payment! How much is it each time?",
            action="subscription_missing_amount",
            missing=["amount"],
        )

    merchant = draft.get("merchant")
    if not merchant and _answer_to(ctx, IntentType.SUBSCRIPTION, has="amount", lacks="merchant"):
        candidate = intent.raw_command.strip()
        if 0 < len(candidate) <= 40 and not any(ch.isdigit() for ch in candidate):
            merchant = draft["merchant"] = candidate
    if not merchant:
        return collect(
            IntentType.SUBSCRIPTION,
            draft,
            f"Got it, ${amount}. Who is the subscription for? (e.g., Netflix, Spotify)",
            action="subscription_missing_merchant",
            missing=["merchant"],
        )

    frequency = SubscriptionFrequency(draft.get("frequency") or SubscriptionFrequency.MONTHLY.value)
    next_charge_at = ctx.now() + _FREQUENCY_STEP[frequency]

    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="subscription_unavailable")
        subscription = create_subscription(
            db,
            user_id=ctx.owner_id,
            merchant=merchant,
            amount=str(parse_amount(amount)),
            frequency=frequency,
            next_charge_at=next_charge_at,
            currency=draft["currency"],
            auto_renew=True,
            remind_before_seconds=int(REMINDER_LEAD.total_seconds()),
        )
        subscription_id = str(subscription.id)

    logger.info("Subscription created id=%s session_id=%s", subscription_id, ctx.session_id)
    return reply(
        f"✅ Subscription set up! ${fmt_amount(amount)} {draft['currency']} to {merchant}, {frequency.value}.\n\n"
        f"📅 Next charge: {next_charge_at.strftime('%B %d, %Y')}\n"
        "🔔 I'll remind you 2 days before each charge.",
        action="subscription_created",
        data={"subscription_id": subscription_id, "next_charge_at": next_charge_at.isoformat()},
        clear_pending=True,
    )


@register(IntentType.RENEW)
def handle_renew(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="renew_unavailable")
        updated = enable_auto_renew(db, user_id=ctx.owner_id)
    if updated == 0:
        return reply(
            "You don't have any subscriptions yet. Want to set one up? Try \"Subscribe $15 monthly for Netflix\".",
            action="renew_none",
        )
    return reply(
        f"🔁 Auto-renew is on for {updated} subscription{'s' if updated != 1 else ''}. "
        "I'll remind you before each charge.",
        action="renew_enabled",
        data={"updated": updated},
    )
