from __future__ import annotations

import logging
import re
from decimal import Decimal

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent
from app.chat.handlers.common import (
    STORAGE_UNAVAILABLE_MESSAGE,
    HandlerContext,
    bullet_list,
    collect,
    command_has,
    confirm,
    fmt_amount,
    needs_wallet,
    parse_amount,
    reply,
)
from app.chat.handlers.registry import executes, register
from db.repos.limit_orders_repo import cancel_limit_order, create_limit_order, list_open_limit_orders

logger = logging.getLogger(__name__)

SLIPPAGE = "0.5%"
PERPETUAL_PAIR = "USDC/EURC"
DEFAULT_LEVERAGE = 10
MAX_LEVERAGE = 50

_STRATEGIES = {
    "conservative": "70% USDC, 20% EURC, 10% WETH",
    "balanced": "50% USDC, 30% WETH, 20% EURC",
    "aggressive": "50% WETH, 30% USDC, 20% WBTC",
}


# ---------------------------
# swaps
# ---------------------------


@register(IntentType.TRADE)
def handle_trade(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked

    from_token = intent.entities.get("currency") or "USDC"
    to_token = intent.entities.get("to_currency") or ("WETH" if from_token == "USDC" else "USDC")
    amount = intent.entities.get("amount")
    if parse_amount(amount) is None:
        return reply(
            "I can swap tokens for you!\n\nJust tell me:\n• How much to swap\n• From which token\n• To which token\n\n"
            'Example: "Trade 100 USDC for ETH" or "Swap 1 ETH for USDC"',
            action="trade_help",
        )
    if from_token == to_token:
        return reply(f"You're already holding {from_token}. Pick a different token to swap into.", action="trade_same_token")

    return confirm(
        IntentType.TRADE,
        {"amount": amount, "currency": from_token, "to_currency": to_token},
        f"Great! I'll swap {fmt_amount(amount)} {from_token} for {to_token}.\n\n"
        f"⚙️ Settings:\n• Slippage tolerance: {SLIPPAGE}\n• Route: {from_token} → {to_token}\n\n"
        "I'll show you a quote before executing. Shall I proceed?",
        action="trade_preview",
    )


@executes(IntentType.TRADE)
def execute_trade(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    data = pending.data
    return reply(
        f"✅ Confirmed! Executing trade: {fmt_amount(data.get('amount'))} {data.get('currency')} → {data.get('to_currency')}...",
        action="trade_confirmed",
    )


# ---------------------------
# limit orders
# ---------------------------


def _format_order(index: int, order) -> str:
    return (
        f"{index}. {order.side.upper()} {fmt_amount(order.amount)} {order.from_token} → {order.to_token} "
        f"at ${fmt_amount(order.target_price)} (expires {order.expires_at:%b %d})"
    )


@register(IntentType.LIMIT_ORDER)
def handle_limit_order(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked

    text = intent.raw_command
    if command_has(text, "list", "show", "my orders", "open orders"):
        return _list_orders(ctx)
    if command_has(text, "cancel"):
        return _cancel_orders(ctx, text)

    draft = dict(intent.entities)
    side = draft.setdefault("side", "buy")
    token = draft.setdefault("token", "ETH")

    target_price = draft.get("target_price")
    if parse_amount(target_price) is None:
        draft.pop("target_price", None)
        return collect(
            IntentType.LIMIT_ORDER,
            draft,
            "I can create limit orders that execute automatically when your target price is reached!\n\n"
            'Example: "Buy 1 ETH at $2400" or "Limit sell 0.5 ETH at $2600"\n\nWhat\'s your target price?',
            action="limit_order_missing_price",
            missing=["target_price"],
        )

    amount = draft.get("amount")
    if parse_amount(amount) is None:
        draft.pop("amount", None)
        return collect(
            IntentType.LIMIT_ORDER,
            draft,
            f"Target price ${fmt_amount(target_price)} noted. How much {token} would you like to {side}?",
            action="limit_order_missing_amount",
            missing=["amount"],
        )

    from_token, to_token = ("USDC", token) if side == "buy" else (token, "USDC")
    draft.update({"from_token": from_token, "to_token": to_token})
    return confirm(
        IntentType.LIMIT_ORDER,
        draft,
        "Perfect! I'll create a limit order:\n\n📋 Order Details:\n"
        f"• Type: {side.title()}\n• Amount: {fmt_amount(amount)} {token}\n• From: {from_token}\n• To: {to_token}\n"
        f"• Target Price: ${fmt_amount(target_price)}\n• Expiry: 7 days\n\n"
        "I'll execute it automatically when the price is reached. Shall I create this order?",
        action="limit_order_preview",
    )


def _list_orders(ctx: HandlerContext) -> HandlerResult:
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="limit_order_unavailable")
        lines = [_format_order(i, order) for i, order in enumerate(list_open_limit_orders(db, user_id=ctx.owner_id), start=1)]
    if not lines:
        return reply('You don\'t have any open limit orders. Try "Buy 1 ETH at $2400".', action="limit_order_list")
    return reply("📋 Your open limit orders:\n\n" + "\n".join(lines), action="limit_order_list")


def _cancel_orders(ctx: HandlerContext, text: str) -> HandlerResult:
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="limit_order_unavailable")
        orders = list_open_limit_orders(db, user_id=ctx.owner_id)
        if not orders:
            return reply("You don't have any open limit orders to cancel.", action="limit_order_cancel_none")

        number = re.search(r"\b(?:order\s*#?\s*|#)(\d+)\b", text, re.I)
        if command_has(text, "cancel all"):
            targets = orders
        elif number and 1 <= int(number.group(1)) <= len(orders):
            targets = [orders[int(number.group(1)) - 1]]
        elif len(orders) == 1:
            targets = orders
        else:
            lines = [_format_order(i, order) for i, order in enumerate(orders, start=1)]
            return reply(
                "Which limit order would you like to cancel? Say \"cancel order 2\" or \"cancel all\".\n\n" + "\n".join(lines),
                action="limit_order_cancel_choose",
            )

        for order in targets:
            cancel_limit_order(db, order_id=order.id)
    count = len(targets)
    return reply(f"🗑️ Cancelled {count} limit order{'s' if count != 1 else ''}.", action="limit_order_cancelled")


@executes(IntentType.LIMIT_ORDER)
def execute_limit_order(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    data = pending.data
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="limit_order_unavailable")
        order = create_limit_order(
            db,
            user_id=ctx.owner_id,
            side=data["side"],
            from_token=data["from_token"],
            to_token=data["to_token"],
            amount=data["amount"],
            target_price=data["target_price"],
        )
        order_id, expires_at = str(order.id), order.expires_at
    logger.info("Limit order created id=%s session_id=%s", order_id, ctx.session_id)
    return reply(
        f"✅ Limit order created! I'll {data['side']} when the price reaches ${fmt_amount(data['target_price'])}. "
        f"It expires on {expires_at:%B %d}.",
        action="limit_order_created",
        data={"limit_order_id": order_id},
    )


# ---------------------------
# informational DeFi flows
# ---------------------------


@register(IntentType.LIQUIDITY)
def handle_liquidity(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked
    amount = intent.entities.get("amount")
    if parse_amount(amount) is None:
        return reply(
            "I'll find the best liquidity across DEXs and chains!\n\n"
            "How much would you like to trade? Larger amounts benefit more from aggregation.",
            action="liquidity_help",
        )
    currency = intent.entities.get("currency") or "USDC"
    return reply(
        f"🔍 Scanning for the best route for ${fmt_amount(amount)} {currency} across "
        "Ethereum, Base, Arbitrum, Polygon and Avalanche. This may take a moment...",
        action="liquidity_scan",
        data={"amount": amount, "currency": currency},
    )


@register(IntentType.ARBITRAGE)
def handle_arbitrage(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked
    if command_has(intent.raw_command, "execute", "run"):
        return confirm(
            IntentType.ARBITRAGE,
            {},
            "Ready to execute arbitrage! I'll verify the opportunity still exists and check gas costs first.\n\nShall I proceed?",
            action="arbitrage_execute_preview",
        )
    margin = intent.entities.get("amount") or "0.5"
    return reply(
        f"I'll scan for arbitrage opportunities! 🔍\n\nLooking for cross-chain and DEX price differences "
        f"with a minimum profit of {margin}%. This may take a moment...",
        action="arbitrage_scan",
        data={"min_profit_pct": margin},
    )


@register(IntentType.REBALANCE)
def handle_rebalance(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked
    text = intent.raw_command.lower()
    strategy = next((name for name in _STRATEGIES if name in text), "balanced")

    if command_has(text, "analyze", "check"):
        return reply(
            f"I'll analyze your portfolio against the {strategy} strategy.\n\n"
            + bullet_list([f"{name.title()}: {mix}" for name, mix in _STRATEGIES.items()]),
            action="rebalance_analyze",
        )
    if any(name in text for name in _STRATEGIES) or command_has(text, "execute"):
        return confirm(
            IntentType.REBALANCE,
            {"strategy": strategy},
            f"I'll rebalance your portfolio to the {strategy} strategy ({_STRATEGIES[strategy]}).\n\nShall I proceed?",
            action="rebalance_preview",
        )
    return reply(
        "I can rebalance your portfolio! Available strategies:\n"
        + bullet_list(["Conservative (low risk)", "Balanced (medium risk)", "Aggressive (higher returns)"])
        + '\n\nTry: "Rebalance my portfolio to balanced" or "Analyze my portfolio"',
        action="rebalance_help",
    )


# ---------------------------
# derivatives
# ---------------------------


def _entry_price(ctx: HandlerContext) -> Decimal:
    if ctx.fx is not None:
        result = ctx.fx.get_rate("USDC", "EURC")
        if result.ok:
            return Decimal(str(result.value.rate))
    return Decimal("0.92")


@register(IntentType.PERPETUAL)
def handle_perpetual(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to trade perpetuals.")
    if blocked:
        return blocked

    if command_has(intent.raw_command, "list", "show", "positions"):
        return reply(
            "You don't have any perpetual positions. Open one by saying 'Open 10x long on USDC/EURC with $1,000'",
            action="perpetual_list",
        )

    side = intent.entities.get("side")
    margin = parse_amount(intent.entities.get("amount"))
    if not side or margin is None:
        return reply(
            "⚠️ High Risk Warning\n\nTo open a perpetual position, please tell me:\n"
            "• Side (long or short)\n• Margin amount\n• Leverage (e.g., 10x)\n\n"
            "Example: 'Open 10x long on USDC/EURC with $1,000'\n\n"
            "⚠️ Leveraged trading is high risk. Only trade what you can afford to lose!",
            action="perpetual_help",
        )

    leverage = int(intent.entities.get("leverage") or DEFAULT_LEVERAGE)
    if not 1 <= leverage <= MAX_LEVERAGE:
        return reply(f"Leverage must be between 1x and {MAX_LEVERAGE}x.", action="perpetual_invalid_leverage")

    entry = _entry_price(ctx)
    step = entry / leverage
    liquidation = (entry - step if side == "long" else entry + step).quantize(Decimal("0.0001"))
    size = margin * leverage
    return confirm(
        IntentType.PERPETUAL,
        {"side": side, "amount": str(margin), "leverage": str(leverage), "pair": PERPETUAL_PAIR},
        f"⚠️ Perpetual Position Preview\n\nPair: {PERPETUAL_PAIR}\nSide: {side.upper()}\n"
        f"Size: ${fmt_amount(size)}\nLeverage: {leverage}x\nEntry Price: {entry.quantize(Decimal('0.0001'))}\n"
        f"Liquidation Price: {liquidation}\nMargin: ${fmt_amount(margin)}\n\n"
        f"If the price reaches {liquidation}, you will be liquidated. Open this position?",
        action="perpetual_preview",
    )


@register(IntentType.OPTIONS)
def handle_options(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "Please create a wallet first to trade options.")
    if blocked:
        return blocked
    return reply(
        "Options trading is coming soon! For now, you can trade perpetuals. Say 'Open long position' to get started.",
        action="options_unavailable",
    )
