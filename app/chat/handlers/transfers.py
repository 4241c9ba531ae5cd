from __future__ import annotations

import logging
from decimal import Decimal

from app.chat.contracts import BridgeData, HandlerResult, IntentType, ParsedIntent, TransactionPreview
from app.chat.handlers.common import (
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
from db.repos.address_history_repo import get_address_history, record_address_use
from db.repos.contacts_repo import find_contact_by_name, touch_contact
from security.address import ZERO_ADDRESS, is_zero_address, short_address, validate_address
from security.phishing import detect_phishing_urls
from security.risk import RiskLevel, score_transaction_risk
from wallet.circle import CCTP_DOMAINS

logger = logging.getLogger(__name__)

ZERO_ADDRESS_BLOCK_MESSAGE = (
    "🚫 Transaction blocked\n\n"
    "That's the zero address (0x000...0000). Funds sent there are burned and can never be recovered. "
    "Please double-check the recipient address."
)
ESTIMATED_FEE = "0.01"
MAX_RECIPIENTS = 50

_SUPPORTED_CHAINS = ("Ethereum", "Base", "Arbitrum", "Optimism", "Polygon", "Avalanche")


def _zero_address_block() -> HandlerResult:
    return HandlerResult(
        message=ZERO_ADDRESS_BLOCK_MESSAGE,
        action="blocked_zero_address",
        requires_confirmation=False,
        data={"blocked": True, "reason": "zero_address"},
        clear_pending=True,
        enhance=False,
    )


def _mentions_zero_address(intent: ParsedIntent) -> bool:
    return is_zero_address(intent.entities.get("address")) or ZERO_ADDRESS in intent.raw_command.lower()


def _address_seen(ctx: HandlerContext, address: str) -> tuple[bool, int | None]:
    with ctx.db() as db:
        if db is None:
            return False, None
        row = get_address_history(db, user_id=ctx.owner_id, address=address)
        if row is None:
            return False, None
        return True, row.transaction_count


def _resolve_contact(ctx: HandlerContext, name: str) -> tuple[str | None, str | None]:
    with ctx.db() as db:
        if db is None:
            return None, None
        contact = find_contact_by_name(db, user_id=ctx.owner_id, name=name)
        if contact is None:
            return None, None
        touch_contact(db, contact=contact)
        return contact.address, contact.name


# ---------------------------
# send / pay
# ---------------------------


@register(IntentType.SEND, IntentType.PAY)
def handle_send(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    kind = intent.intent
    verb = "send" if kind == IntentType.SEND else "pay"

    # refused before anything else, whatever the amount
    if _mentions_zero_address(intent):
        return _zero_address_block()

    blocked = needs_wallet(ctx, f"Please create a wallet first to {verb}.")
    if blocked:
        return blocked

    entities = dict(intent.entities)
    currency = entities.get("currency") or "USDC"
    amount = entities.get("amount")

    if parse_amount(amount) is None:
        entities.pop("amount", None)
        question = (
            f"I'd be happy to help you {verb}! How much would you like to {verb}?"
            if amount is None
            else f"\"{amount}\" isn't an amount I can {verb}. How much would you like to {verb}?"
        )
        return collect(kind, entities, question, action=f"{verb}_missing_amount", missing=["amount"])

    address = entities.get("address")
    contact_name = None
    recipient = entities.get("recipient")
    if not address and recipient:
        address, contact_name = _resolve_contact(ctx, recipient)
        if address is None:
            return collect(
                kind,
                entities,
                f"I couldn't find \"{recipient}\" in your contacts.\n\n"
                f"Either:\n• Give me their wallet address\n• Or save them first: \"Save 0x... as {recipient}\"\n\n"
                f"What's the address for {recipient}?",
                action=f"{verb}_unknown_contact",
                missing=["address"],
            )

    if not address:
        return collect(
            kind,
            entities,
            f"I'll {verb} ${amount} {currency}. Who should I send it to?\n\n"
            "You can give me:\n• A wallet address (0x...)\n• A contact name (if you've saved them)",
            action=f"{verb}_missing_address",
            missing=["address"],
        )

    if is_zero_address(address):
        return _zero_address_block()

    validation = validate_address(address)
    if not validation.is_valid:
        entities.pop("address", None)
        return collect(
            kind,
            entities,
            f"That address doesn't look right ({validation.error}). "
            'It should start with "0x" and be 42 characters long. Want to try again?',
            action=f"{verb}_invalid_address",
            missing=["address"],
        )
    to_address = validation.normalized_address

    phishing = detect_phishing_urls(intent.raw_command)
    seen_before, tx_count = _address_seen(ctx, to_address)
    risk = score_transaction_risk(
        to_address,
        amount=amount,
        phishing=phishing,
        seen_before=seen_before,
        transaction_count=tx_count,
        large_amount_threshold=ctx.settings.large_amount_threshold,
    )
    is_new = not seen_before

    sections: list[str] = []
    if phishing.is_phishing:
        heading = "🚨 PHISHING WARNING (high confidence)" if phishing.blocked else "⚠️ PHISHING WARNING"
        sections.append(
            f"{heading}\n\nI detected potentially suspicious URLs in your message:\n"
            f"{bullet_list(phishing.detected_urls)}\n\nReasons:\n{bullet_list(phishing.reasons)}\n\n"
            "Please verify these URLs are legitimate before proceeding."
        )
    if risk.level == RiskLevel.HIGH:
        sections.append(
            f"🚨 HIGH RISK TRANSACTION DETECTED\n\nRisk Score: {risk.score}/100\n\n"
            "Please carefully verify the recipient address before proceeding. "
            "You can still approve this transaction if you're certain it's safe."
        )

    display = f"{contact_name} ({short_address(to_address)})" if contact_name else short_address(to_address)
    summary = f"Got it! I'm preparing to {verb} ${amount} {currency} to {display}."
    if is_new:
        summary += (
            "\n\n⚠️ NEW WALLET ADDRESS DETECTED\n\n"
            "This address hasn't been used in your transaction history before. "
            "Please double-check it's the correct address before we proceed."
        )
    elif contact_name:
        summary += f" I found {contact_name} in your contacts and you've sent there before."
    else:
        summary += " You've sent to this address before, so it looks familiar."
    sections.append(summary)
    sections.append(f"{risk.label}\n\nRisk Factors:\n{bullet_list(risk.reasons)}")
    sections.append('Reply "yes" to confirm or "no" to cancel.')

    preview = TransactionPreview(
        amount=amount,
        currency=currency,
        to=to_address,
        fee=ESTIMATED_FEE,
        risk_score=risk.score,
        risk_level=risk.level.value,
        risk_reasons=risk.reasons,
        blocked=False,
        is_new_wallet=is_new,
    )
    draft = {"amount": amount, "currency": currency, "address": to_address}
    if contact_name:
        draft["recipient"] = contact_name
    return confirm(
        kind,
        draft,
        "\n\n".join(sections),
        action=f"{verb}_transaction",
        transaction_preview=preview,
        data={"risk_score": risk.score, "risk_level": risk.level.value, "is_new_wallet": is_new},
    )


@executes(IntentType.SEND, IntentType.PAY)
def execute_send(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if not ctx.wallet.wallet_id:
        return reply("Wallet not found. Please create a wallet first.", action="no_wallet")
    data = pending.data
    if ctx.wallet_provider is None:
        return reply(
            f"✅ Confirmed! Executing {'send' if pending.type == IntentType.SEND else 'payment'} transaction...",
            action="transfer_confirmed",
            data={"transfer": data},
        )

    result = ctx.wallet_provider.send(
        wallet_id=ctx.wallet.wallet_id,
        to_address=data["address"],
        amount=str(data["amount"]),
        currency=data.get("currency", "USDC"),
    )
    if not result.ok:
        logger.warning("Transfer failed session_id=%s error=%s", ctx.session_id, result.error)
        return reply(
            "❌ The transfer didn't go through. No funds were moved. Please try again in a moment.",
            action="transfer_failed",
            data={"error": result.error},
        )

    with ctx.db() as db:
        if db is not None:
            record_address_use(db, user_id=ctx.owner_id, address=data["address"])

    receipt = result.value
    return reply(
        f"✅ Sent ${data['amount']} {data.get('currency', 'USDC')} to {short_address(data['address'])}.\n\n"
        f"Transaction ID: {receipt.transaction_id}",
        action="transfer_submitted",
        data={"transaction_id": receipt.transaction_id, "state": receipt.state, "tx_hash": receipt.tx_hash},
    )


# ---------------------------
# bridge
# ---------------------------


@register(IntentType.BRIDGE)
def handle_bridge(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "You'll need a wallet first to bridge assets across chains. Want me to help you set one up?")
    if blocked:
        return blocked

    entities = dict(intent.entities)
    amount = entities.get("amount")
    chain = entities.get("chain")

    if parse_amount(amount) is None:
        entities.pop("amount", None)
        return collect(
            IntentType.BRIDGE,
            entities,
            "I can help you bridge USDC across chains! 🌉 How much would you like to bridge?\n\n"
            'Example: "Bridge $50 to Ethereum" or "Bridge 100 USDC to Base"',
            action="bridge_missing_amount",
            missing=["amount"],
        )

    if not chain or chain.upper() not in CCTP_DOMAINS:
        entities.pop("chain", None)
        return collect(
            IntentType.BRIDGE,
            entities,
            f"I'll bridge ${amount} USDC for you! Which chain should I send it to?\n\n"
            f"You can choose:\n{bullet_list(list(_SUPPORTED_CHAINS))}",
            action="bridge_missing_chain",
            missing=["chain"],
        )
    chain_name = chain.title()

    destination = entities.get("address")
    if not destination and entities.get("destination") == "self":
        destination = ctx.wallet.wallet_address
    if not destination:
        return collect(
            IntentType.BRIDGE,
            entities,
            f"Great! I'll bridge ${amount} USDC to {chain_name}.\n\n"
            f"What's the destination address on {chain_name}? "
            f'(Paste the address or say "my wallet" to use your same address on {chain_name})',
            action="bridge_missing_address",
            missing=["address"],
        )

    if is_zero_address(destination):
        return _zero_address_block()
    validation = validate_address(destination)
    if not validation.is_valid:
        entities.pop("address", None)
        entities.pop("destination", None)
        return collect(
            IntentType.BRIDGE,
            entities,
            f"That destination address doesn't look right ({validation.error}). Could you paste it again?",
            action="bridge_invalid_address",
            missing=["address"],
        )

    bridge_data = BridgeData(
        amount=amount,
        to_chain=chain.upper(),
        destination_address=validation.normalized_address,
        wallet_id=ctx.wallet.wallet_id,
        wallet_address=ctx.wallet.wallet_address,
    )
    return confirm(
        IntentType.BRIDGE,
        {"amount": amount, "chain": chain.lower(), "address": validation.normalized_address},
        f"Perfect! Bridging ${amount} USDC from Arc to {chain_name} 🚀\n\n"
        f"• Destination: {short_address(validation.normalized_address)}\n"
        "• Arrives as native USDC, 1:1 with no slippage\n\nReady to go?",
        action="bridge_preview",
        bridge_data=bridge_data,
    )


@executes(IntentType.BRIDGE)
def execute_bridge(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if not ctx.wallet.wallet_id:
        return reply("Wallet not found. Please create a wallet first.", action="no_wallet")
    data = pending.data
    chain_name = str(data["chain"]).title()
    if ctx.wallet_provider is None:
        return reply(f"✅ Confirmed! Bridging ${data['amount']} USDC to {chain_name}...", action="bridge_confirmed")

    result = ctx.wallet_provider.bridge(
        wallet_id=ctx.wallet.wallet_id,
        amount=str(data["amount"]),
        destination_chain=str(data["chain"]).upper(),
        destination_address=data["address"],
    )
    if not result.ok:
        logger.warning("Bridge failed session_id=%s error=%s", ctx.session_id, result.error)
        return reply(
            "❌ The bridge didn't go through. Your USDC is still on Arc. Please try again in a moment.",
            action="bridge_failed",
            data={"error": result.error},
        )
    return reply(
        f"✅ Bridge started! ${data['amount']} USDC is on its way to {chain_name}. "
        "It usually arrives within a few minutes.",
        action="bridge_submitted",
        data={"transaction_id": result.value.transaction_id},
    )


# ---------------------------
# split / batch
# ---------------------------


def _recipients(intent: ParsedIntent) -> list[str]:
    if intent.entities.get("addresses"):
        return [a for a in intent.entities["addresses"].split(",") if a]
    return extract_addresses(intent.raw_command)


@register(IntentType.SPLIT_PAYMENT)
def handle_split_payment(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked

    total = parse_amount(intent.entities.get("amount"))
    if total is None:
        return reply(
            "I can split a payment among multiple people! Tell me the total amount and who should receive it.\n\n"
            'Example: "Split $100 between 0xabc... and 0xdef..."',
            action="split_help",
        )

    recipients = _recipients(intent)
    count = len(recipients) or int(intent.entities.get("count") or 0)
    if count == 0:
        return reply(
            f"I need to know who to split the ${fmt_amount(total)} with. Paste their addresses and I'll divide it evenly.",
            action="split_missing_recipients",
        )
    if count == 1:
        return reply(
            f"Splitting between 1 person is just sending! Try: \"Send ${fmt_amount(total)} to {short_address(recipients[0]) if recipients else '0x...'}\"",
            action="split_single",
        )
    if count > MAX_RECIPIENTS:
        return reply(f"Split payment limit is {MAX_RECIPIENTS} recipients. You provided {count}.", action="split_too_many")

    share = (total / count).quantize(Decimal("0.01"))
    if not recipients:
        return reply(
            f"That's ${fmt_amount(share)} USDC each for {count} people. Paste the {count} addresses and I'll prepare it.",
            action="split_missing_recipients",
            data={"per_person": str(share), "count": count},
        )
    if any(is_zero_address(r) for r in recipients):
        return _zero_address_block()
    invalid = [r for r in recipients if not validate_address(r).is_valid]
    if invalid:
        return reply(
            f"These addresses don't look right: {', '.join(short_address(r) for r in invalid)}. Please check them and try again.",
            action="split_invalid_address",
        )

    lines = [f"{i}. {short_address(r)} - ${fmt_amount(share)}" for i, r in enumerate(recipients, start=1)]
    return confirm(
        IntentType.SPLIT_PAYMENT,
        {"amount": str(total), "per_person": str(share), "addresses": ",".join(recipients)},
        f"Perfect! I'll split ${fmt_amount(total)} USDC evenly among {count} people.\n\n"
        f"Each person gets: ${fmt_amount(share)} USDC\n\nRecipients:\n" + "\n".join(lines) + "\n\nShall I proceed?",
        action="split_preview",
    )


@register(IntentType.BATCH)
def handle_batch(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked

    recipients = _recipients(intent)
    if not recipients:
        return reply(
            "I can batch send USDC to multiple people at once.\n\n"
            'Just tell me how much each person gets and their addresses, e.g. "Batch send $10 to 0xabc..., 0xdef..."',
            action="batch_help",
        )
    if len(recipients) == 1:
        return reply("For just one recipient, a regular send is better! Try: \"Send $50 to 0x...\"", action="batch_single")
    if len(recipients) > MAX_RECIPIENTS:
        return reply(
            f"Batch limit is {MAX_RECIPIENTS} recipients. You provided {len(recipients)}. Please reduce the list.",
            action="batch_too_many",
        )
    if any(is_zero_address(r) for r in recipients):
        return _zero_address_block()

    each = parse_amount(intent.entities.get("amount"))
    if each is None:
        return collect(
            IntentType.BATCH,
            {"addresses": ",".join(recipients), "count": str(len(recipients))},
            f"Great! I'll batch send to {len(recipients)} people. How much USDC should each person receive?",
            action="batch_missing_amount",
            missing=["amount"],
        )

    total = each * len(recipients)
    lines = [f"{i}. {short_address(r)}" for i, r in enumerate(recipients, start=1)]
    return confirm(
        IntentType.BATCH,
        {"amount": str(each), "addresses": ",".join(recipients), "total": str(total)},
        f"Perfect! I'll batch send ${fmt_amount(each)} USDC to {len(recipients)} recipients.\n\n"
        f"💰 Total: ${fmt_amount(total)} USDC\n\nRecipients:\n" + "\n".join(lines) + "\n\nShall I proceed?",
        action="batch_preview",
    )


# ---------------------------
# withdraw / scan
# ---------------------------


@register(IntentType.WITHDRAW)
def handle_withdraw(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to withdraw funds.")
    if blocked:
        return blocked
    if not intent.entities.get("amount"):
        return reply(
            "I can help you withdraw USDC to fiat! Please tell me how much and where to (bank account, card, etc.).\n\n"
            'Example: "Withdraw $50 to bank account"',
            action="withdraw_help",
        )
    return reply(
        "💸 Withdraw to fiat\n\nOff-ramp is not available in this testnet build. "
        "I can help you send USDC on Arc or bridge to another chain.",
        action="withdraw_unavailable",
        data={"destination": intent.entities.get("destination", "bank")},
    )


@register(IntentType.SCAN)
def handle_scan(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    address = intent.entities.get("address")
    if not address:
        return reply("Paste an address to scan, e.g. 'Scan 0xabc...'.", action="scan_help")

    if is_zero_address(address):
        risk = score_transaction_risk(address)
        return reply(
            f"🚫 High risk address detected (risk {risk.score}). Reasons: {', '.join(risk.reasons)}",
            action="scan_result",
            data={"risk_score": risk.score, "blocked": True},
            enhance=False,
        )

    validation = validate_address(address)
    if not validation.is_valid:
        return reply(f"That doesn't look like a valid address: {address} ({validation.error})", action="scan_invalid")

    seen_before, tx_count = _address_seen(ctx, validation.normalized_address)
    risk = score_transaction_risk(
        validation.normalized_address,
        phishing=detect_phishing_urls(intent.raw_command),
        seen_before=seen_before,
        transaction_count=tx_count,
    )
    return reply(
        f"Scan complete for {short_address(validation.normalized_address)}. {risk.label}\n\n"
        f"Reasons:\n{bullet_list(risk.reasons)}",
        action="scan_result",
        data={"risk_score": risk.score, "risk_level": risk.level.value, "blocked": risk.blocked},
    )
