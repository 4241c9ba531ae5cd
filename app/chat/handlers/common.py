from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterator

from sqlalchemy.orm import Session

from app.chat.contracts import (
    ConversationContext,
    HandlerResult,
    IntentType,
    PendingAction,
    PendingStage,
    WalletContext,
)
from app.config import Settings
from db.utils import utcnow
from fx.rates import FXRateService
from wallet.base import WalletProvider

NO_WALLET_MESSAGE = "You'll need a wallet first. Want me to create one for you?"
STORAGE_UNAVAILABLE_MESSAGE = "I couldn't save that right now. Please try again in a moment."


@dataclass
class HandlerContext:
    """Everything a handler may read or call for one chat turn."""

    session_id: str
    conversation: ConversationContext
    settings: Settings
    wallet: WalletContext = field(default_factory=WalletContext)
    user_id: str | None = None
    wallet_provider: WalletProvider | None = None
    fx: FXRateService | None = None
    session_factory: Callable[[], Session] | None = None
    clock: Callable[[], datetime] = utcnow

    @property
    def pending(self) -> PendingAction | None:
        return self.conversation.pending_action

    @property
    def owner_id(self) -> str:
        # rows are keyed by the most stable identity available
        return self.user_id or self.wallet.wallet_id or self.session_id

    @property
    def has_wallet(self) -> bool:
        return self.wallet.has_wallet

    def now(self) -> datetime:
        return self.clock()

    @contextmanager
    def db(self) -> Iterator[Session | None]:
        if self.session_factory is None:
            yield None
            return
        with self.session_factory() as session:
            yield session


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_amount(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value).replace(",", ""))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def fmt_amount(value: Any) -> str:
    amount = parse_amount(value)
    if amount is None:
        return str(value)
    if -amount.as_tuple().exponent <= 2:
        return f"{amount.quantize(Decimal('0.01')):,}"
    return f"{amount.normalize():,}"


def bullet_list(items: list[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def collect(
    intent_type: IntentType,
    draft: dict[str, Any],
    message: str,
    *,
    action: str,
    missing: list[str] | None = None,
) -> HandlerResult:
    """Store the draft and ask for the next missing field."""
    return HandlerResult(
        message=message,
        action=action,
        data={"missing_fields": missing or []},
        pending=PendingAction(
            type=intent_type,
            data={k: v for k, v in draft.items() if v not in (None, "")},
            timestamp=now_ms(),
            stage=PendingStage.COLLECTING,
            awaiting=list(missing or []),
        ),
    )


def confirm(
    intent_type: IntentType,
    draft: dict[str, Any],
    message: str,
    *,
    action: str,
    **extra: Any,
) -> HandlerResult:
    """Store a fully specified draft and ask the user to approve it."""
    return HandlerResult(
        message=message,
        action=action,
        requires_confirmation=True,
        pending=PendingAction(
            type=intent_type,
            data=draft,
            timestamp=now_ms(),
            stage=PendingStage.CONFIRMING,
        ),
        **extra,
    )


def reply(message: str, *, action: str | None = None, **extra: Any) -> HandlerResult:
    return HandlerResult(message=message, action=action, **extra)


def needs_wallet(ctx: HandlerContext, message: str = NO_WALLET_MESSAGE) -> HandlerResult | None:
    if ctx.has_wallet:
        return None
    return HandlerResult(message=message, action="no_wallet", clear_pending=True)


def command_has(text: str, *words: str) -> bool:
    lowered = text.lower()
    return any(word in lowered for word in words)
