from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from app.chat.contracts import (
    AIResponse,
    ConversationContext,
    HandlerResult,
    HistoryEntry,
    ParsedIntent,
    WalletContext,
)
from app.chat.handlers import HandlerContext, dispatch
from app.chat.handlers.common import now_ms
from app.chat.llm import HISTORY_WINDOW, IntentClassifier, ResponseEnhancer
from app.chat.resolver import resolve_pending_intent
from app.chat.state_store import SessionStore
from app.config import Settings
from app.core.context import set_session_id
from db.utils import utcnow
from fx.rates import FXRateService
from wallet.base import WalletProvider

logger = logging.getLogger(__name__)

MAX_COMMIT_ATTEMPTS = 3


class SessionWriteConflictError(RuntimeError):
    pass


@dataclass
class _Turn:
    entries: list[HistoryEntry]
    result: HandlerResult
    intent: ParsedIntent
    user_id: str | None


class ChatService:
    """
    One chat turn: classify, resolve against the pending action, dispatch,
    enhance, then persist the session with compare-and-swap.

    Strategies are injected once; nothing here picks a provider per request.

    Compare-and-swap guards the conversation record only. Handler side
    effects (a transfer on confirm, a stored schedule) run before the write
    and are not deduplicated across racing turns. A losing turn is replayed
    on top of the winner, so its pending change is last writer wins.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        store: SessionStore,
        classifier: IntentClassifier,
        enhancer: ResponseEnhancer,
        wallet_provider: WalletProvider | None = None,
        fx: FXRateService | None = None,
        session_factory: Callable[[], Session] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.settings = settings
        self.store = store
        self.classifier = classifier
        self.enhancer = enhancer
        self.wallet_provider = wallet_provider
        self.fx = fx
        self.session_factory = session_factory
        self.clock = clock

    def _load(self, session_id: str, user_id: str | None) -> ConversationContext:
        context = self.store.get(session_id)
        if context is None:
            return ConversationContext(session_id=session_id, user_id=user_id)
        return context

    def process_message(
        self,
        message: str,
        *,
        session_id: str | None = None,
        user_id: str | None = None,
        wallet: WalletContext | None = None,
    ) -> AIResponse:
        session_id = session_id or uuid.uuid4().hex
        set_session_id(session_id)
        wallet = wallet or WalletContext()
        context = self._load(session_id, user_id)

        parsed = self.classifier.classify(message, context)
        intent = resolve_pending_intent(parsed, context.pending_action)
        logger.info(
            "Chat turn session_id=%s intent=%s resolved=%s pending=%s",
            session_id,
            parsed.intent.value,
            intent.intent.value,
            context.pending_action.type.value if context.pending_action else None,
            extra={"intent": intent.intent.value, "user_id": user_id},
        )

        handler_ctx = HandlerContext(
            session_id=session_id,
            conversation=context,
            settings=self.settings,
            wallet=wallet,
            user_id=user_id or context.user_id,
            wallet_provider=self.wallet_provider,
            fx=self.fx,
            session_factory=self.session_factory,
            clock=self.clock,
        )
        result = dispatch(intent, handler_ctx)

        reply_text = result.message
        if result.enhance:
            reply_text = self.enhancer.enhance(
                result.message,
                intent=intent,
                action=result.action,
                data=result.data,
                history=context.recent_history(HISTORY_WINDOW),
            )

        turn = _Turn(
            entries=[
                HistoryEntry(role="user", message=message, timestamp=now_ms()),
                HistoryEntry(role="assistant", message=reply_text, timestamp=now_ms()),
            ],
            result=result,
            intent=intent,
            user_id=user_id,
        )
        saved = self._commit(context, turn)

        return AIResponse(
            message=reply_text,
            intent=intent,
            session_id=session_id,
            requires_confirmation=result.requires_confirmation,
            transaction_preview=result.transaction_preview,
            bridge_data=result.bridge_data,
            data=result.data,
            pending_action=saved.pending_action,
        )

    def _apply(self, base: ConversationContext, turn: _Turn) -> ConversationContext:
        updated = base.model_copy(deep=True)
        if turn.user_id:
            updated.user_id = turn.user_id
        if turn.result.pending is not None:
            updated.pending_action = turn.result.pending
        elif turn.result.clear_pending:
            updated.pending_action = None
        updated.last_intent = turn.intent.intent.value
        updated.history = (updated.history + turn.entries)[-self.settings.chat_history_limit :]
        return updated

    def _commit(self, context: ConversationContext, turn: _Turn) -> ConversationContext:
        """
        Write the turn with compare-and-swap. A lost race reloads the winner's
        state and replays this turn's history and pending change on top of it.
        Dispatch is not re-run, so side effects already happened exactly once
        per turn; a replayed clear_pending drops whatever the winner stored.
        """
        base = context
        for attempt in range(1, MAX_COMMIT_ATTEMPTS + 1):
            updated = self._apply(base, turn)
            if self.store.compare_and_swap(updated, expected_version=base.version):
                return updated.model_copy(update={"version": base.version + 1})
            logger.warning(
                "Session write conflict session_id=%s attempt=%s expected_version=%s",
                context.session_id,
                attempt,
                base.version,
            )
            base = self._load(context.session_id, turn.user_id)
        raise SessionWriteConflictError(f"Could not save session {context.session_id} after {MAX_COMMIT_ATTEMPTS} attempts")

    # ---------------------------
    # session management
    # ---------------------------

    def get_session(self, session_id: str) -> ConversationContext | None:
        return self.store.get(session_id)

    def clear_pending(self, session_id: str) -> ConversationContext | None:
        for _ in range(MAX_COMMIT_ATTEMPTS):
            context = self.store.get(session_id)
            if context is None:
                return None
            updated = context.model_copy(update={"pending_action": None})
            if self.store.compare_and_swap(updated, expected_version=context.version):
                return updated.model_copy(update={"version": context.version + 1})
        raise SessionWriteConflictError(f"Could not save session {session_id} after {MAX_COMMIT_ATTEMPTS} attempts")
