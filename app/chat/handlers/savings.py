from __future__ import annotations

import logging
import uuid
from datetime import timedelta
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
from db.models.safe_lock import SafeLockStatus
from db.repos.savings_repo import (
    SafeLockNotFoundError,
    create_safe_lock,
    create_savings_goal,
    list_safe_locks,
    list_savings_goals,
    unlock_safe_lock,
)

logger = logging.getLogger(__name__)

YIELD_APY = "~5%"

# lock period -> (label, APY %, days)
LOCK_PERIODS: dict[str, tuple[str, Decimal, int]] = {
    "2w": ("2 weeks", Decimal("7"), 14),
    "1m": ("1 month", Decimal("8"), 30),
    "3m": ("3 months", Decimal("10"), 90),
    "6m": ("6 months", Decimal("12"), 180),
    "1y": ("1 year", Decimal("15"), 365),
}
_PERIOD_ALIASES = {"14d": "2w", "4w": "1m", "30d": "1m", "12m": "1y", "52w": "1y"}


def _period(value: str | None) -> str | None:
    if not value:
        return None
    key = value.lower()
    key = _PERIOD_ALIASES.get(key, key)
    return key if key in LOCK_PERIODS else None


def _period_menu(*, include_two_weeks: bool = True) -> str:
    return bullet_list(
        [f"{label} → {apy}% APY" for key, (label, apy, _) in LOCK_PERIODS.items() if include_two_weeks or key != "2w"]
    )


# ---------------------------
# yield
# ---------------------------


@register(IntentType.YIELD)
def handle_yield(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "You'll need a wallet first to earn yield. Want me to create one for you?")
    if blocked:
        return blocked

    amount = intent.entities.get("amount")
    text = intent.raw_command

    if command_has(text, "withdraw", "redeem"):
        if parse_amount(amount) is None:
            return reply(
                "I'll help you withdraw from your yield position back to USDC, including what you've earned.\n\n"
                "How much would you like to redeem?",
                action="yield_withdraw_amount",
            )
        return confirm(
            IntentType.YIELD,
            {"amount": amount, "direction": "withdraw"},
            f"I'll redeem ${fmt_amount(amount)} and return it to your wallet as USDC, plus any yield earned.\n\nShall I proceed?",
            action="yield_withdraw_preview",
        )

    if command_has(text, "check", "status", "position", "balance"):
        return reply(
            "Here's how your yield position works: your deposit earns about 5% APY and you can withdraw any time.\n\n"
            "Want to deposit more or withdraw?",
            action="yield_status",
        )

    if parse_amount(amount) is None:
        return reply(
            f"Let's get you earning yield! 📈\n\n💰 Current APY: {YIELD_APY}\n"
            "✅ Backed by US government securities\n✅ Withdraw anytime, no penalty\n\n"
            'How much USDC would you like to deposit? (e.g., "$1000")',
            action="yield_info",
        )
    return confirm(
        IntentType.YIELD,
        {"amount": amount, "direction": "deposit"},
        f"Perfect! I'll deposit ${fmt_amount(amount)} USDC to start earning {YIELD_APY} APY.\n\n"
        "Your funds will be:\n• Earning yield automatically\n• Redeemable anytime\n\nShall I proceed with the deposit?",
        action="yield_deposit_preview",
    )


@executes(IntentType.YIELD)
def execute_yield(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    verb = "Redeeming" if pending.data.get("direction") == "withdraw" else "Depositing"
    return reply(f"✅ Confirmed! {verb} ${fmt_amount(pending.data.get('amount'))}...", action="yield_confirmed")


# ---------------------------
# savings goals and SafeLocks
# ---------------------------

_COMPARE_MESSAGE = (
    "💰 Savings vs Yield: what's the difference?\n\n"
    "Savings (goal-based):\n"
    "✅ Save for specific goals (house, car, etc.)\n"
    "✅ Higher APY (8-15%)\n"
    "⚠️ Penalty (3-10%) if withdrawn early\n\n"
    "Yield (flexible):\n"
    "✅ Earn passive income (~5% APY)\n"
    "✅ Withdraw anytime, no penalty\n"
    "⚠️ Lower returns\n\n"
    "Which would you like to start?"
)

_SAVINGS_HELP = (
    "💰 Start saving with ARCLE!\n\n"
    "1. Goal-based savings 🎯\n"
    '"Save $5000 for a house"\n\n'
    "2. SafeLock 🔒\n"
    '"Lock $1000 for 3 months"\n\n'
    "⚠️ Both have penalties for early withdrawal\n"
    '💡 Want flexibility? Try "Start earning yield" instead!'
)


def _savings_kind(intent: ParsedIntent) -> str | None:
    kind = intent.entities.get("kind")
    if kind:
        return kind
    text = intent.raw_command
    if command_has(text, "compare", "difference", " vs "):
        return "compare"
    if command_has(text, "break", "withdraw", "unlock"):
        return "break"
    if command_has(text, "list", "show", "my savings", "my goals", "my locks"):
        return "list"
    if command_has(text, "lock"):
        return "safelock"
    if command_has(text, "save for", "saving for", "goal", "save $", "save money"):
        return "goal"
    return None


@register(IntentType.SAVINGS)
def handle_savings(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx, "You'll need a wallet first to start saving. Want me to create one?")
    if blocked:
        return blocked

    kind = _savings_kind(intent)
    if kind == "compare":
        return reply(_COMPARE_MESSAGE, action="savings_compare")
    if kind == "list":
        return _list_savings(ctx)
    if kind == "break":
        return _break_safe_lock(ctx)
    if kind in ("goal", "safelock"):
        return _create_flow(intent, ctx, kind)
    return reply(_SAVINGS_HELP, action="savings_help")


def _list_savings(ctx: HandlerContext) -> HandlerResult:
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="savings_unavailable")
        goals = list_savings_goals(db, user_id=ctx.owner_id)
        locks = list_safe_locks(db, user_id=ctx.owner_id, status=SafeLockStatus.LOCKED)
        goal_lines = [f"🎯 {g.name}: ${fmt_amount(g.current_amount)} of ${fmt_amount(g.target_amount)}" for g in goals]
        lock_lines = [f"🔒 {lk.name}: ${fmt_amount(lk.amount)} until {lk.unlock_date:%B %d, %Y} ({lk.apy}% APY)" for lk in locks]

    if not goal_lines and not lock_lines:
        return reply("You don't have any savings yet. Try \"Save $500 for a trip\" or \"Lock $1000 for 3 months\".", action="savings_list")
    return reply("Here are your savings:\n\n" + "\n".join(goal_lines + lock_lines), action="savings_list")


def _break_safe_lock(ctx: HandlerContext) -> HandlerResult:
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="savings_unavailable")
        locks = list_safe_locks(db, user_id=ctx.owner_id, status=SafeLockStatus.LOCKED)
        if not locks:
            return reply("You don't have any active SafeLocks to break.", action="savings_break_none")
        lock = locks[0]
        lock_id, name, amount = str(lock.id), lock.name, lock.amount

    return confirm(
        IntentType.SAVINGS,
        {"kind": "break", "lock_id": lock_id, "name": name, "amount": str(amount)},
        f"⚠️ Early Withdrawal Warning\n\nBreaking \"{name}\" (${fmt_amount(amount)}) early will incur a penalty "
        "(3-10% depending on progress).\n\nYou'll receive your principal minus the penalty, plus yield earned so far.\n\n"
        "Are you sure you want to withdraw early?",
        action="savings_break_preview",
    )


def _create_flow(intent: ParsedIntent, ctx: HandlerContext, kind: str) -> HandlerResult:
    draft = dict(intent.entities)
    draft["kind"] = kind
    is_goal = kind == "goal"
    name = draft.get("name") or ("My Goal" if is_goal else "SafeLock")

    amount = draft.get("amount")
    if parse_amount(amount) is None:
        draft.pop("amount", None)
        message = (
            f"Great! Let's create a savings goal for \"{name}\" 🎯\n\nHow much do you want to save?"
            if is_goal
            else f"🔒 SafeLock: lock your funds for guaranteed returns!\n\n{_period_menu()}\n\nHow much would you like to lock?"
        )
        return collect(IntentType.SAVINGS, draft, message, action=f"{kind}_missing_amount", missing=["amount"])

    period = _period(draft.get("lock_period"))
    if period is None:
        draft.pop("lock_period", None)
        message = (
            f"Perfect! Saving ${fmt_amount(amount)} for \"{name}\".\n\nHow long would you like to save? Choose:\n"
            f"{_period_menu(include_two_weeks=False)}\n\n⚠️ Early withdrawal = 3-10% penalty"
            if is_goal
            else f"Great! I'll SafeLock ${fmt_amount(amount)}.\n\nChoose your lock period:\n{_period_menu()}\n\n"
            "⚠️ Early withdrawal penalties apply (decrease over time)"
        )
        return collect(IntentType.SAVINGS, draft, message, action=f"{kind}_missing_period", missing=["lock_period"])

    label, apy, days = LOCK_PERIODS[period]
    value = parse_amount(amount)
    maturity = value * (1 + apy / 100 * Decimal(days) / Decimal(365))
    draft.update({"amount": str(value), "lock_period": period, "name": name, "apy": str(apy)})

    if is_goal:
        message = (
            "✅ Ready to create your savings goal!\n\n"
            f"🎯 Goal: {name}\n💰 Amount: ${fmt_amount(value)}\n⏰ Period: {label}\n📈 APY: {apy}%\n"
            "⚠️ Early withdrawal penalty applies\n\nShall I create this savings goal?"
        )
    else:
        message = (
            "🔒 SafeLock Confirmation\n\n"
            f"Amount: ${fmt_amount(value)}\nPeriod: {label}\nAPY: {apy}%\n"
            f"At Maturity: ~${fmt_amount(maturity.quantize(Decimal('0.01')))}\n\n"
            "⚠️ Funds will be locked. Early withdrawal = penalty.\n"
            "✅ At maturity: full amount + yield, no penalty\n\nShall I create this SafeLock?"
        )
    return confirm(IntentType.SAVINGS, draft, message, action=f"{kind}_preview")


@executes(IntentType.SAVINGS)
def execute_savings(pending, intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    data = pending.data
    kind = data.get("kind")
    with ctx.db() as db:
        if db is None:
            return reply(STORAGE_UNAVAILABLE_MESSAGE, action="savings_unavailable")

        if kind == "break":
            try:
                unlock_safe_lock(db, lock_id=uuid.UUID(data["lock_id"]))
            except SafeLockNotFoundError:
                return reply("That SafeLock no longer exists. Nothing was changed.", action="savings_break_missing")
            return reply(
                f"🔓 \"{data.get('name')}\" has been unlocked. The funds (minus the early withdrawal penalty) are on their way back to your wallet.",
                action="savings_unlocked",
            )

        label, apy, days = LOCK_PERIODS[data["lock_period"]]
        if kind == "goal":
            goal = create_savings_goal(
                db,
                user_id=ctx.owner_id,
                name=data["name"],
                target_amount=data["amount"],
                lock_period=data["lock_period"],
                apy=apy,
                deadline=ctx.now() + timedelta(days=days),
            )
            logger.info("Savings goal created id=%s session_id=%s", goal.id, ctx.session_id)
            return reply(
                f"🎯 Savings goal \"{goal.name}\" created! Target: ${fmt_amount(data['amount'])} over {label} at {apy}% APY.",
                action="savings_goal_created",
                data={"savings_goal_id": str(goal.id)},
            )

        lock = create_safe_lock(
            db,
            user_id=ctx.owner_id,
            name=data["name"],
            amount=data["amount"],
            apy=apy,
            unlock_date=ctx.now() + timedelta(days=days),
        )
        logger.info("SafeLock created id=%s session_id=%s", lock.id, ctx.session_id)
        return reply(
            f"🔒 SafeLock created! ${fmt_amount(data['amount'])} is locked until {lock.unlock_date:%B %d, %Y} at {apy}% APY.",
            action="safe_lock_created",
            data={"safe_lock_id": str(lock.id)},
        )


# ---------------------------
# compounding
# ---------------------------


@register(IntentType.COMPOUND)
def handle_compound(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    blocked = needs_wallet(ctx)
    if blocked:
        return blocked

    text = intent.raw_command.lower()
    frequency = next((f for f in ("daily", "weekly", "monthly") if f in text), "weekly")

    if command_has(text, "disable", "stop", "turn off"):
        return confirm(
            IntentType.COMPOUND,
            {"enabled": "false"},
            "I'll disable auto-compounding. Your yield will still earn but won't automatically reinvest. Shall I?",
            action="compound_disable_preview",
        )
    if command_has(text, "enable", "start", "set up", "setup", "turn on", "create"):
        return confirm(
            IntentType.COMPOUND,
            {"enabled": "true", "frequency": frequency},
            f"I'll set up auto-compounding for your yield!\n\n⚙️ Settings:\n• Frequency: {frequency}\n"
            "• Minimum yield: $10\n• Reinvest: 100%\n\nShall I enable it?",
            action="compound_enable_preview",
        )
    if command_has(text, "check", "status", "history"):
        return reply("Auto-compounding reinvests your yield on a schedule. You can enable or disable it any time.", action="compound_status")
    return reply(
        "I can set up automatic compounding for your yield!\n\nOptions:\n"
        + bullet_list(['"Enable weekly auto-compound"', '"Set up daily compounding"', '"Check compound status"', '"Disable auto-compound"'])
        + "\n\nWhat would you like to do?",
        action="compound_help",
    )
