from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent
from app.chat.handlers.common import (
    HandlerContext,
    collect,
    confirm,
    fmt_amount,
    needs_wallet,
    parse_amount,
    reply,
)
from app.chat.handlers.registry import executes, register
from app.chat.handlers.transfers import execute_send
from fx.rates import normalize_currency
from security.address import is_zero_address, short_address, validate_address

logger = logging.getLogger(__name__)

RATE_UNAVAILABLE_MESSAGE = "I couldn't fetch the exchange rate right now. Please try again in a moment."

_EURO_COUNTRIES = {
    "Germany", "France", "Spain", "Italy", "Portugal", "Netherlands", "Belgium", "Ireland", "Austria", "Greece", "Finland",
}


def _pair(intent: ParsedIntent) -> tuple[str, str]:
    src = normalize_currency(intent.entities.get("currency"))
    dst = normalize_currency(intent.entities.get("to_currency"))
    if src and not dst:
        dst = "EURC" if src == "USDC" else "USDC"
    elif dst and not src:
        src = "EURC" if dst == "USDC" else "USDC"
    elif not src and not dst:
        src, dst = "USDC", "EURC"
    return src, dst


def _format_rate(rate: float) -> str:
    return f"{rate:.6f}"


# ---------------------------
# conversion
# ---------------------------


@register(IntentType.CONVERT)
def handle_convert(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to convert currencies.")
    if blocked:
        return blocked

    draft = dict(intent.entities)
    amount = draft.get("amount")
    if parse_amount(amount) is None:
        draft.pop("amount", None)
        return collect(
            IntentType.CONVERT,
            draft,
            "How much would you like to convert? For example: 'Convert 100 USDC to EURC'",
            action="convert_missing_amount",
            missing=["amount"],
        )

    src, dst = _pair(intent)
    if src == dst:
        return reply(f"You can't convert {src} into itself. Try 'Convert 100 USDC to EURC'.", action="convert_same_currency")
    if ctx.fx is None:
        return reply(RATE_UNAVAILABLE_MESSAGE, action="convert_rate_unavailable")

    result = ctx.fx.convert(amount, src, dst)
    if not result.ok:
        logger.warning("FX quote failed session_id=%s error=%s", ctx.session_id, result.error)
        return reply(RATE_UNAVAILABLE_MESSAGE, action="convert_rate_unavailable")

    quote = result.value
    return confirm(
        IntentType.CONVERT,
        {
            "amount": quote.amount,
            "currency": src,
            "to_currency": dst,
            "converted_amount": quote.converted_amount,
            "rate": _format_rate(quote.rate),
        },
        f"💱 Currency Conversion Preview\n\nFrom: {fmt_amount(quote.amount)} {src}\n"
        f"To: ~{fmt_amount(quote.converted_amount)} {dst}\nRate: 1 {src} = {_format_rate(quote.rate)} {dst}\n\n"
        "Ready to convert? This will execute a swap transaction.",
        action="currency_conversion",
        data={"rate_source": quote.source},
    )


@executes(IntentType.CONVERT)
def execute_convert(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if not ctx.wallet.wallet_id or not ctx.wallet.wallet_address:
        return reply("Wallet not found. Please create a wallet first.", action="no_wallet")
    data = pending.data
    if ctx.wallet_provider is None:
        return reply(
            f"✅ Confirmed! Converting {fmt_amount(data['amount'])} {data['currency']} to {data['to_currency']}...",
            action="convert_confirmed",
        )

    result = ctx.wallet_provider.convert(
        wallet_id=ctx.wallet.wallet_id,
        wallet_address=ctx.wallet.wallet_address,
        from_currency=data["currency"],
        to_currency=data["to_currency"],
        amount=str(data["amount"]),
    )
    if not result.ok:
        logger.warning("FX swap failed session_id=%s error=%s", ctx.session_id, result.error)
        return reply(
            "❌ The conversion didn't go through. Your balance is unchanged. Please try again in a moment.",
            action="convert_failed",
            data={"error": result.error},
        )
    return reply(
        "✅ Swap submitted!\n\n"
        f"From: {fmt_amount(data['amount'])} {data['currency']}\n"
        f"To: ~{fmt_amount(data.get('converted_amount'))} {data['to_currency']}\n"
        f"Transaction ID: {result.value.transaction_id}",
        action="fx_swap_executed",
        data={"transaction_id": result.value.transaction_id},
    )


@register(IntentType.FX_RATE)
def handle_fx_rate(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    src, dst = _pair(intent)
    if ctx.fx is None:
        return reply(RATE_UNAVAILABLE_MESSAGE, action="fx_rate_unavailable")
    result = ctx.fx.get_rate(src, dst)
    if not result.ok:
        return reply(RATE_UNAVAILABLE_MESSAGE, action="fx_rate_unavailable")

    rate = result.value
    updated = datetime.fromtimestamp(rate.fetched_at, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    return reply(
        f"💱 Exchange Rate\n\n{src} → {dst}\nRate: 1 {src} = {_format_rate(rate.rate)} {dst}\n"
        f"Source: {rate.source}\nUpdated: {updated}",
        action="fx_rate",
        data={"from_currency": src, "to_currency": dst, "rate": rate.rate, "source": rate.source},
    )


@register(IntentType.FX_ALERT)
def handle_fx_alert(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    target = parse_amount(intent.entities.get("target_price"))
    if target is None:
        return reply(
            "To create an FX rate alert, tell me:\n• Currency pair (e.g., USDC/EURC)\n• Target rate (e.g., 0.95)\n"
            "• Direction (above or below)\n\nExample: 'Notify me when USDC/EURC goes above 0.95'",
            action="fx_alert_help",
        )

    src, dst = _pair(intent)
    direction = intent.entities.get("direction", "above")
    current = None
    if ctx.fx is not None:
        result = ctx.fx.get_rate(src, dst)
        if result.ok:
            current = result.value.rate

    message = f"🔔 FX Rate Alert\n\nPair: {src}/{dst}\nAlert: {direction} {target}"
    if current is not None:
        reached = current >= float(target) if direction == "above" else current <= float(target)
        message += f"\nCurrent rate: {_format_rate(current)}"
        if reached:
            message += f"\n\nHeads up: the rate is already {direction} your target!"
        else:
            message += f"\n\nI'll keep an eye on it and let you know when the rate goes {direction} {target}."
    return reply(
        message,
        action="create_fx_alert",
        data={"pair": f"{src}/{dst}", "target_rate": str(target), "direction": direction, "current_rate": current},
    )


# ---------------------------
# remittances
# ---------------------------


def _payout_currency(country: str | None) -> str:
    return "EURC" if country in _EURO_COUNTRIES else "USDC"


@register(IntentType.REMITTANCE)
def handle_remittance(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to send remittances.")
    if blocked:
        return blocked

    draft = dict(intent.entities)
    if is_zero_address(draft.get("address")):
        draft.pop("address", None)
        return collect(
            IntentType.REMITTANCE,
            draft,
            "🚫 That's the zero address. Funds sent there are burned forever. What's the recipient's wallet address?",
            action="remittance_zero_address",
            missing=["address"],
        )

    amount = draft.get("amount")
    country = draft.get("country")
    recipient = draft.get("recipient") or "your recipient"
    if parse_amount(amount) is None or not country:
        return collect(
            IntentType.REMITTANCE,
            draft,
            "To send a remittance, please tell me:\n• Amount (e.g., $500)\n• Recipient (e.g., 'my mom')\n"
            "• Country (e.g., 'Mexico')\n\nExample: 'Send $500 to my mom in Mexico'",
            action="remittance_missing_details",
            missing=[k for k in ("amount", "country") if not draft.get(k)],
        )

    address = draft.get("address")
    if not address:
        return collect(
            IntentType.REMITTANCE,
            draft,
            f"Got it: ${fmt_amount(amount)} to {recipient} in {country}. What's their wallet address (0x...)?",
            action="remittance_missing_address",
            missing=["address"],
        )
    validation = validate_address(address)
    if not validation.is_valid:
        draft.pop("address", None)
        return collect(
            IntentType.REMITTANCE,
            draft,
            f"That address doesn't look right ({validation.error}). What's {recipient}'s wallet address?",
            action="remittance_invalid_address",
            missing=["address"],
        )

    payout = _payout_currency(country)
    lines = [f"Recipient: {recipient} ({short_address(validation.normalized_address)})", f"Country: {country}"]
    if payout != "USDC" and ctx.fx is not None:
        quote = ctx.fx.convert(amount, "USDC", payout)
        if quote.ok:
            lines.append(f"They receive: ~{fmt_amount(quote.value.converted_amount)} {payout}")
            lines.append(f"Exchange rate: 1 USDC = {_format_rate(quote.value.rate)} {payout}")

    return confirm(
        IntentType.REMITTANCE,
        {
            "amount": amount,
            "currency": "USDC",
            "address": validation.normalized_address,
            "recipient": recipient,
            "country": country,
        },
        f"🌍 Remittance Preview\n\nAmount: ${fmt_amount(amount)} USDC\n" + "\n".join(lines) + "\n\nReady to send?",
        action="create_remittance",
    )


@executes(IntentType.REMITTANCE)
def execute_remittance(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    return execute_send(pending, intent, ctx)
