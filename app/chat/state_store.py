from __future__ import annotations

import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Protocol

from sqlalchemy.orm import Session

from app.chat.contracts import ConversationContext, HistoryEntry, PendingAction
from db.models.conversation_context import ConversationContextRecord
from db.repos.conversation_repo import (
    delete_context_row,
    delete_expired_rows,
    get_context_row,
    swap_context_row,
    upsert_context_row,
)
from db.utils import as_utc, utcnow

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    def get(self, session_id: str) -> ConversationContext | None: ...

    def put(self, context: ConversationContext) -> ConversationContext: ...

    def compare_and_swap(self, context: ConversationContext, *, expected_version: int) -> bool: ...

    def delete(self, session_id: str) -> None: ...

    def cleanup(self) -> int: ...


class InMemorySessionStore:
    """Process-local store. Entries expire ``ttl_seconds`` after their last write."""

    def __init__(self, *, ttl_seconds: int = 3600, clock: Callable[[], float] = time.time):
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._items: dict[str, tuple[float, ConversationContext]] = {}

    def _live(self, session_id: str) -> ConversationContext | None:
        item = self._items.get(session_id)
        if item is None:
            return None
        expires_at, context = item
        if expires_at <= self._clock():
            self._items.pop(session_id, None)
            return None
        return context

    def get(self, session_id: str) -> ConversationContext | None:
        with self._lock:
            context = self._live(session_id)
            return context.model_copy(deep=True) if context else None

    def put(self, context: ConversationContext) -> ConversationContext:
        with self._lock:
            current = self._live(context.session_id)
            version = (current.version if current else 0) + 1
            stored = context.model_copy(deep=True, update={"version": version})
            self._items[context.session_id] = (self._clock() + self._ttl, stored)
            return stored.model_copy(deep=True)

    def compare_and_swap(self, context: ConversationContext, *, expected_version: int) -> bool:
        with self._lock:
            current = self._live(context.session_id)
            if (current.version if current else 0) != expected_version:
                return False
            stored = context.model_copy(deep=True, update={"version": expected_version + 1})
            self._items[context.session_id] = (self._clock() + self._ttl, stored)
            return True

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._items.pop(session_id, None)

    def cleanup(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._items.items() if expires_at <= now]
            for key in expired:
                self._items.pop(key, None)
        return len(expired)


def _to_context(row: ConversationContextRecord) -> ConversationContext:
    return ConversationContext(
        session_id=row.session_id,
        user_id=row.user_id,
        pending_action=PendingAction.model_validate(row.pending_action) if row.pending_action else None,
        last_intent=row.last_intent,
        history=[HistoryEntry.model_validate(h) for h in (row.history or [])],
        version=row.version,
    )


class SqlSessionStore:
    """Durable store backed by the ``conversation_contexts`` table."""

    def __init__(self, session_factory: Callable[[], Session], *, ttl_seconds: int = 3600):
        self._session_factory = session_factory
        self._ttl = ttl_seconds

    def _expires_at(self):
        return utcnow() + timedelta(seconds=self._ttl)

    def get(self, session_id: str) -> ConversationContext | None:
        with self._session_factory() as db:
            row = get_context_row(db, session_id)
            if row is None:
                return None
            expires_at = as_utc(row.expires_at)
            if expires_at is not None and expires_at <= utcnow():
                delete_context_row(db, session_id)
                return None
            return _to_context(row)

    def put(self, context: ConversationContext) -> ConversationContext:
        with self._session_factory() as db:
            row = upsert_context_row(
                db,
                session_id=context.session_id,
                user_id=context.user_id,
                pending_action=context.pending_action.model_dump(mode="json") if context.pending_action else None,
                last_intent=context.last_intent,
                history=[h.model_dump(mode="json") for h in context.history],
                expires_at=self._expires_at(),
            )
            return _to_context(row)

    def compare_and_swap(self, context: ConversationContext, *, expected_version: int) -> bool:
        with self._session_factory() as db:
            swapped = swap_context_row(
                db,
                session_id=context.session_id,
                expected_version=expected_version,
                user_id=context.user_id,
                pending_action=context.pending_action.model_dump(mode="json") if context.pending_action else None,
                last_intent=context.last_intent,
                history=[h.model_dump(mode="json") for h in context.history],
                expires_at=self._expires_at(),
            )
        if not swapped:
            logger.info("Session CAS rejected session_id=%s expected_version=%s", context.session_id, expected_version)
        return swapped

    def delete(self, session_id: str) -> None:
        with self._session_factory() as db:
            delete_context_row(db, session_id)

    def cleanup(self) -> int:
        with self._session_factory() as db:
            return delete_expired_rows(db)


def build_session_store(settings, session_factory: Callable[[], Session] | None = None) -> SessionStore:
    if settings.session_store == "database":
        if session_factory is None:
            from db.session import SessionLocal

            session_factory = SessionLocal
        return SqlSessionStore(session_factory, ttl_seconds=settings.session_ttl_seconds)
    return InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
