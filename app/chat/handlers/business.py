from __future__ import annotations

import logging
from datetime import datetime, time, timedelta, timezone

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent
from app.chat.handlers.common import (
    STORAGE_UNAVAILABLE_MESSAGE,
    HandlerContext,
    bullet_list,
    collect,
    confirm,
    fmt_amount,
    needs_wallet,
    parse_amount,
    reply,
)
from app.chat.handlers.registry import executes, register
from app.chat.intents import extract_addresses
from app.services.schedule_time import parse_schedule_date
from db.repos.scheduled_payments_repo import create_scheduled_payment
from security.address import is_zero_address, short_address, validate_address

logger = logging.getLogger(__name__)

DEFAULT_INVOICE_TERMS = timedelta(days=30)
MAX_PAYROLL_RECIPIENTS = 50

_PAYROLL_STEP = {"daily": timedelta(days=1), "weekly": timedelta(days=7), "monthly": timedelta(days=30)}


# ---------------------------
# invoices
# ---------------------------


@register(IntentType.INVOICE)
def handle_invoice(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first so I know where the invoice should be paid.")
    if blocked:
        return blocked

    amount = intent.entities.get("amount")
    recipient = intent.entities.get("recipient")
    if parse_amount(amount) is None or not recipient:
        return reply(
            "To create an invoice, please provide:\n• Amount (e.g., $500)\n• Recipient (e.g., Acme)\n"
            "• Optional: due date (e.g., 'due next Friday')\n\nExample: 'Create invoice for $5,000 to Acme, due in 30 days'",
            action="invoice_help",
        )

    today = ctx.now().date()
    due = parse_schedule_date(intent.entities.get("date"), today=today) or today + DEFAULT_INVOICE_TERMS
    currency = intent.entities.get("currency") or "USDC"
    number = f"INV-{ctx.now():%Y%m%d}-{ctx.session_id[-4:].upper()}"
    pay_to = ctx.wallet.wallet_address or ""
    return reply(
        "🧾 Invoice ready to share\n\n"
        f"Invoice #: {number}\nBill to: {recipient}\nAmount: ${fmt_amount(amount)} {currency}\n"
        f"Due: {due:%B %d, %Y}\nPay to: {pay_to}\n\n"
        "Send this to your client. Payments to your address will show up in your transaction history.",
        action="create_invoice",
        data={
            "invoice_number": number,
            "recipient": recipient,
            "amount": amount,
            "currency": currency,
            "due_date": due.isoformat(),
            "pay_to": pay_to,
        },
    )


# ---------------------------
# payroll
# ---------------------------


@register(IntentType.PAYMENT_ROLL)
def handle_payment_roll(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    """
    Collect per-recipient amount, addresses and frequency, then schedule the
    first run as one scheduled payment per recipient.
    """
    blocked = needs_wallet(ctx, "Please create a wallet first to set up payment rolls.")
    if blocked:
        return blocked

    draft = dict(intent.entities)
    addresses = [a for a in (draft.get("addresses") or "").split(",") if a] or extract_addresses(intent.raw_command)
    if not addresses:
        return collect(
            IntentType.PAYMENT_ROLL,
            draft,
            "Let's set up a payment roll! 💼 Paste your team's wallet addresses (comma separated), "
            'e.g. "Payroll $3000 monthly to 0xabc..., 0xdef..."',
            action="payroll_missing_recipients",
            missing=["addresses"],
        )
    if len(addresses) > MAX_PAYROLL_RECIPIENTS:
        return reply(f"A payment roll can have up to {MAX_PAYROLL_RECIPIENTS} recipients.", action="payroll_too_many")
    if any(is_zero_address(a) for a in addresses):
        return reply("🚫 One of those is the zero address. Funds sent there are burned forever. Please remove it.", action="blocked_zero_address", enhance=False)
    invalid = [a for a in addresses if not validate_address(a).is_valid]
    if invalid:
        draft.pop("addresses", None)
        return collect(
            IntentType.PAYMENT_ROLL,
            draft,
            f"These addresses don't look right: {', '.join(short_address(a) for a in invalid)}. Please paste the list again.",
            action="payroll_invalid_address",
            missing=["addresses"],
        )
    addresses = [validate_address(a).normalized_address for a in addresses]
    draft["addresses"] = ",".join(addresses)
    draft["count"] = str(len(addresses))

    amount = draft.get("amount")
    if parse_amount(amount) is None:
        draft.pop("amount", None)
        return collect(
            IntentType.PAYMENT_ROLL,
            draft,
            f"Got {len(addresses)} recipients. How much should each person be paid?",
            action="payroll_missing_amount",
            missing=["amount"],
        )

    frequency = draft.setdefault("frequency", "monthly")
    if frequency not in _PAYROLL_STEP:
        frequency = draft["frequency"] = "monthly"
    total = parse_amount(amount) * len(addresses)
    lines = [f"{i}. {short_address(a)} - ${fmt_amount(amount)}" for i, a in enumerate(addresses, start=1)]
    return confirm(
        IntentType.PAYMENT_ROLL,
        draft,
        f"💼 Payment Roll Preview\n\nFrequency: {frequency}\nPer person: ${fmt_amount(amount)} USDC\n"
        f"Total per run: ${fmt_amount(total)} USDC\n\nRecipients:\n" + "\n".join(lines) + "\n\nShall I schedule the first run?",
        action="payroll_preview",
    )


@executes(IntentType.PAYMENT_ROLL)
def execute_payment_roll(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    data = pending.data
    first_run = datetime.combine(
        (ctx.now() + _PAYROLL_STEP[data.get("frequency", "monthly")]).date(),
        time(9, 0),
        tzinfo=timezone.utc,
    )
    addresses = [a for a in data["addresses"].split(",") if a]
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="payroll_unavailable")
        ids = [
            str(
                create_scheduled_payment(
                    db,
                    user_id=ctx.owner_id,
                    amount=data["amount"],
                    to_address=address,
                    scheduled_for=first_run,
                    wallet_id=ctx.wallet.wallet_id,
                    wallet_address=ctx.wallet.wallet_address,
                ).id
            )
            for address in addresses
        ]
    logger.info("Payment roll scheduled count=%s session_id=%s", len(ids), ctx.session_id)
    return reply(
        f"✅ Payment roll scheduled! {len(ids)} payments of ${fmt_amount(data['amount'])} go out on {first_run:%B %d} at 09:00 UTC.",
        action="payroll_scheduled",
        data={"scheduled_payment_ids": ids},
    )


# ---------------------------
# automation agents
# ---------------------------


@register(IntentType.AGENT)
def handle_agent(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    return reply(
        "🤖 Autonomous agents are coming soon! Meanwhile, I can already automate a lot for you:\n\n"
        + bullet_list(
            [
                '"Schedule $50 to 0x... tomorrow at 3pm"',
                '"Subscribe $15 monthly for Netflix"',
                '"Enable weekly auto-compound"',
                '"Buy 1 ETH at $2400"',
            ]
        ),
        action="agent_info",
    )
