from __future__ import annotations

import logging
from typing import Callable

from app.chat.contracts import HandlerResult, IntentType, ParsedIntent, PendingAction, PendingStage
from app.chat.handlers.common import HandlerContext

logger = logging.getLogger(__name__)

Handler = Callable[[ParsedIntent, HandlerContext], HandlerResult]
Executor = Callable[[PendingAction, ParsedIntent, HandlerContext], HandlerResult]

SAFE_FALLBACK_MESSAGE = "Something went wrong on my side. No changes were made. Please try again in a moment."
CANCELLED_MESSAGE = "Action canceled. No changes were made."
CONFIRMED_MESSAGE = "✅ Confirmed! Processing your request..."

_HANDLERS: dict[IntentType, Handler] = {}
_EXECUTORS: dict[IntentType, Executor] = {}


class DuplicateHandlerError(RuntimeError):
    pass


def register(*intents: IntentType) -> Callable[[Handler], Handler]:
    def decorator(fn: Handler) -> Handler:
        for intent in intents:
            if intent in _HANDLERS:
                raise DuplicateHandlerError(f"Handler already registered for {intent.value}")
            _HANDLERS[intent] = fn
        return fn

    return decorator


def executes(*intents: IntentType) -> Callable[[Executor], Executor]:
    """Register the side effect run when a confirming draft of this type is approved."""

    def decorator(fn: Executor) -> Executor:
        for intent in intents:
            if intent in _EXECUTORS:
                raise DuplicateHandlerError(f"Executor already registered for {intent.value}")
            _EXECUTORS[intent] = fn
        return fn

    return decorator


def get_handler(intent: IntentType) -> Handler:
    return _HANDLERS.get(intent) or _HANDLERS[IntentType.UNKNOWN]


def registered_intents() -> set[IntentType]:
    return set(_HANDLERS)


def missing_handlers() -> set[IntentType]:
    return {intent for intent in IntentType if intent not in _HANDLERS and intent not in (IntentType.CONFIRM, IntentType.CANCEL)}


def _continue_draft(pending: PendingAction, intent: ParsedIntent) -> ParsedIntent:
    return ParsedIntent(
        intent=pending.type,
        confidence=intent.confidence,
        entities={k: str(v) for k, v in pending.data.items() if v not in (None, "")},
        raw_command=intent.raw_command,
    )


def _confirm(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    pending = ctx.pending
    if pending is None:
        return get_handler(IntentType.UNKNOWN)(intent, ctx)
    if pending.stage == PendingStage.COLLECTING:
        # "yes" to a half-filled form means "carry on", so ask for the next field
        return get_handler(pending.type)(_continue_draft(pending, intent), ctx)

    executor = _EXECUTORS.get(pending.type)
    if executor is None:
        return HandlerResult(message=CONFIRMED_MESSAGE, action="confirmed", clear_pending=True)
    result = executor(pending, intent, ctx)
    if result.pending is None:
        result.clear_pending = True
    return result


def _cancel(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    if ctx.pending is None:
        return get_handler(IntentType.UNKNOWN)(intent, ctx)
    return HandlerResult(message=CANCELLED_MESSAGE, action="cancelled", clear_pending=True)


def dispatch(intent: ParsedIntent, ctx: HandlerContext) -> HandlerResult:
    """
    Route a resolved intent to its handler.

    confirm/cancel act on this session's pending action and never reach the
    regular table while one exists. A handler that raises is logged and turned
    into a generic reply so the chat request itself never fails.
    """
    try:
        if intent.intent == IntentType.CONFIRM:
            return _confirm(intent, ctx)
        if intent.intent == IntentType.CANCEL:
            return _cancel(intent, ctx)
        return get_handler(intent.intent)(intent, ctx)
    except Exception:
        logger.exception("Handler failed intent=%s session_id=%s", intent.intent.value, ctx.session_id)
        return HandlerResult(message=SAFE_FALLBACK_MESSAGE, action="handler_error", enhance=False)
