from __future__ import annotations

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent
from app.chat.handlers.common import HandlerContext, bullet_list, command_has, needs_wallet, reply
from app.chat.handlers.registry import register
from security.address import short_address

FAUCET_URL = "https://faucet.circle.com"

_WALLET_SUGGESTIONS = [
    '"What\'s my balance?"',
    '"Show my address"',
    '"Send $50 to 0x..."',
    '"Transaction history"',
    '"Earn yield"',
    '"Bridge to Ethereum"',
]


def _time_greeting(ctx: HandlerContext, text: str) -> str:
    lowered = text.lower()
    for word in ("morning", "afternoon", "evening"):
        if word in lowered:
            return f"Good {word}!"
    if "night" in lowered:
        return "Good night!"
    hour = ctx.now().hour
    if hour < 12:
        return "Good morning!"
    if hour < 18:
        return "Good afternoon!"
    return "Good evening!"


@register(IntentType.GREETING)
def handle_greeting(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if command_has(intent.raw_command, "how are you", "how's it going", "hows it going", "how you doing"):
        return reply(
            "I'm doing great, thank you! 😊 I'm here and ready to help you with your wallet. What would you like to do?",
            action="greeting_response",
        )

    greeting = f"{_time_greeting(ctx, intent.raw_command)} 👋 I'm ARCLE, your AI wallet assistant!"
    if ctx.has_wallet:
        suggestions = "Try asking me:\n" + bullet_list(_WALLET_SUGGESTIONS)
    else:
        suggestions = "To get started, you'll need to create a wallet first. Would you like to create one?"
    return reply(f"{greeting}\n\n{suggestions}", action="greeting")


@register(IntentType.WALLET_CREATION)
def handle_wallet_creation(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if ctx.has_wallet:
        address = short_address(ctx.wallet.wallet_address)
        return reply(
            f"You already have a wallet ({address}). You can check your balance or receive funds right away.",
            action="wallet_exists",
        )
    return reply(
        "Let's set up your wallet! 🎉 I'll create a secure wallet on Arc for you. "
        "It only takes a moment and you'll be able to send, receive and earn with USDC.",
        action="create_wallet",
        data={"action": "create_wallet"},
    )


@register(IntentType.LOCATION)
def handle_location(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    coordinates = intent.entities.get("coordinates")
    if not coordinates:
        return reply(
            "I can use your location to find nearby places that accept USDC. Share your location and I'll take a look!",
            action="location_request",
        )
    return reply(
        f"📍 Thanks! I've got your location ({coordinates}). I'll keep it in mind for this conversation.",
        action="location_received",
        data={"coordinates": coordinates},
    )


@register(IntentType.BALANCE)
def handle_balance(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to check your balance.")
    if blocked:
        return blocked

    balance = ctx.wallet.balance
    source = "context"
    if ctx.wallet_provider is not None and ctx.wallet.wallet_id:
        result = ctx.wallet_provider.get_balance(ctx.wallet.wallet_id, currency="USDC")
        if result.ok:
            balance, source = result.value, result.source or "wallet"

    if balance is None:
        return reply(
            "Hmm, I'm having trouble fetching your balance right now. Want to try again?",
            action="balance_unavailable",
        )
    return reply(
        f"Your balance is ${balance} USDC on Arc network.",
        action="balance_check",
        data={"balance": balance, "source": source},
    )


@register(IntentType.TOKENS, IntentType.MULTI_CURRENCY)
def handle_tokens(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "You'll need a wallet first to check your tokens. Want me to create one for you?")
    if blocked:
        return blocked

    balances: dict[str, str] = {}
    if ctx.wallet_provider is not None and ctx.wallet.wallet_id:
        for currency in ("USDC", "EURC"):
            result = ctx.wallet_provider.get_balance(ctx.wallet.wallet_id, currency=currency)
            if result.ok and result.value is not None:
                balances[currency] = result.value
    if not balances and ctx.wallet.balance is not None:
        balances["USDC"] = ctx.wallet.balance
    if not balances:
        return reply(
            "Hmm, I'm having trouble fetching your token balances right now. Want to try again?",
            action="tokens_unavailable",
        )

    lines = [f"{currency}: {amount}" for currency, amount in balances.items()]
    message = "💱 Your balances\n\n" + "\n".join(lines)
    if intent.intent == IntentType.MULTI_CURRENCY:
        message += "\n\nWant to convert between currencies? Just ask!"
    return reply(message, action=intent.intent.value, data={"balances": balances})


@register(IntentType.ADDRESS, IntentType.RECEIVE)
def handle_address(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    address = ctx.wallet.wallet_address
    if not address and ctx.wallet_provider is not None and ctx.wallet.wallet_id:
        address = ctx.wallet_provider.get_address(ctx.wallet.wallet_id).unwrap_or(None)
    if not address:
        return reply("Please create a wallet first to get your address.", action="no_wallet", clear_pending=True)
    # the UI renders a QR code for this reply
    return reply(
        f"Here's your wallet address:\n{address}",
        action="show_address",
        data={"address": address},
    )


@register(IntentType.TRANSACTION_HISTORY)
def handle_history(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to view transaction history.")
    if blocked:
        return blocked
    if ctx.wallet_provider is None or not ctx.wallet.wallet_id:
        return reply(
            "I'm fetching your transaction history now. This will show all your recent transactions on Arc network.",
            action="fetch_history",
        )

    result = ctx.wallet_provider.list_transactions(ctx.wallet.wallet_id, limit=20 if intent.entities else 5)
    if not result.ok:
        return reply(
            "I couldn't load your transactions right now. Please try again shortly.",
            action="history_unavailable",
        )

    transactions = result.value or []
    wanted = intent.entities.get("transaction_id")
    if wanted:
        match = next(
            (tx for tx in transactions if wanted.lower() in {tx.transaction_id.lower(), (tx.tx_hash or "").lower()}),
            None,
        )
        if match is None:
            return reply(f"I couldn't find a transaction with id {short_address(wanted)}.", action="transaction_lookup")
        transactions = [match]

    if not transactions:
        return reply("No transactions yet. Once you send or receive USDC they'll show up here.", action="fetch_history")

    lines = []
    for tx in transactions[:5]:
        arrow = "⬆️ Sent" if tx.direction == "out" else "⬇️ Received"
        lines.append(f"{arrow} {tx.amount} {tx.currency} {short_address(tx.counterparty)} ({tx.state or 'unknown'})")
    return reply(
        "Here are your recent transactions:\n\n" + "\n".join(lines),
        action="fetch_history",
        data={"transactions": [tx.transaction_id for tx in transactions[:5]]},
    )


_HELP_SECTIONS = {
    "Basic Operations": [
        "Check your balance",
        "Send and receive USDC",
        "View your wallet address and transaction history",
    ],
    "Multi-Currency & FX": [
        'Convert between currencies (e.g., "Convert 100 USDC to EURC")',
        "Check exchange rates and set rate alerts",
        'Send remittances (e.g., "Send $500 to my mom in Mexico")',
    ],
    "Scheduling": [
        'Schedule one-time payments (e.g., "Schedule $50 to 0x... tomorrow at 3pm")',
        'Set up subscriptions (e.g., "Subscribe $15 monthly for Netflix")',
    ],
    "Cross-Chain": ["Bridge USDC to Ethereum, Base, Arbitrum, Optimism, Polygon or Avalanche"],
    "DeFi & Savings": [
        "Earn yield, start savings goals and SafeLocks",
        "Trades, limit orders, split and batch payments",
    ],
    "Security": [
        "Risk scoring for every transfer",
        "Phishing URL detection",
        "Address scans",
    ],
    "Contacts & Notifications": [
        'Save addresses as contacts (e.g., "Save 0x... as Jake")',
        "Turn transaction, balance and security notifications on or off",
    ],
}


@register(IntentType.HELP)
def handle_help(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    sections = [f"{title}:\n{bullet_list(items)}" for title, items in _HELP_SECTIONS.items()]
    message = (
        "I'm your AI wallet assistant on ARCLE! I can help you with:\n\n"
        + "\n\n".join(sections)
        + '\n\nJust ask me naturally, like "Send $50 to Jake" or "What\'s my balance?"'
    )
    return reply(message, action="help")


@register(IntentType.UNKNOWN)
def handle_unknown(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if command_has(intent.raw_command, "faucet", "testnet token", "test token", "request token", "get token"):
        return reply(
            f"You can request free testnet USDC at {FAUCET_URL}. Testnet tokens are for testing only and have no real value.",
            action="faucet_info",
            data={"faucet_url": FAUCET_URL},
        )
    return reply(
        "I'm not quite sure what you're asking for. I can help you:\n\n"
        + bullet_list(
            [
                "Check your balance",
                "Send or pay USDC",
                "Bridge to other chains",
                "Convert USDC and EURC",
                "Schedule payments",
                "Earn yield or start saving",
            ]
        )
        + f"\n\nNeed test tokens? Visit {FAUCET_URL}\n\nOr just type 'help' and I'll show you everything I can do!",
        action="unknown_intent",
    )
