from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models.conversation_context import ConversationContextRecord
from db.utils import utcnow


class ConversationNotFoundError(Exception):
    pass


def get_context_row(db: Session, session_id: str) -> ConversationContextRecord | None:
    return db.execute(
        select(ConversationContextRecord).where(ConversationContextRecord.session_id == session_id)
    ).scalar_one_or_none()


def upsert_context_row(
    db: Session,
    *,
    session_id: str,
    user_id: str | None,
    pending_action: dict[str, Any] | None,
    last_intent: str | None,
    history: list[dict[str, Any]],
    expires_at: datetime | None,
) -> ConversationContextRecord:
    row = get_context_row(db, session_id)
    if row is None:
        row = ConversationContextRecord(session_id=session_id, version=1)
    else:
        row.version = row.version + 1
    row.user_id = user_id
    row.pending_action = pending_action
    row.last_intent = last_intent
    row.history = history
    row.expires_at = expires_at

    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def swap_context_row(
    db: Session,
    *,
    session_id: str,
    expected_version: int,
    user_id: str | None,
    pending_action: dict[str, Any] | None,
    last_intent: str | None,
    history: list[dict[str, Any]],
    expires_at: datetime | None,
) -> bool:
    """
    Write the row only if nobody has bumped its version since it was read.

    A session that has never been stored is created when ``expected_version`` is 0.
    """
    result = db.execute(
        update(ConversationContextRecord)
        .where(
            ConversationContextRecord.session_id == session_id,
            ConversationContextRecord.version == expected_version,
        )
        .values(
            user_id=user_id,
            pending_action=pending_action,
            last_intent=last_intent,
            history=history,
            expires_at=expires_at,
            version=expected_version + 1,
            updated_at=utcnow(),
        )
    )
    if result.rowcount == 1:
        db.commit()
        return True

    if expected_version != 0 or get_context_row(db, session_id) is not None:
        db.rollback()
        return False

    db.add(
        ConversationContextRecord(
            session_id=session_id,
            user_id=user_id,
            pending_action=pending_action,
            last_intent=last_intent,
            history=history,
            expires_at=expires_at,
            version=1,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return False
    return True


def delete_context_row(db: Session, session_id: str) -> None:
    db.execute(delete(ConversationContextRecord).where(ConversationContextRecord.session_id == session_id))
    db.commit()


def delete_expired_rows(db: Session, *, now: datetime | None = None) -> int:
    now = now or utcnow()
    result = db.execute(
        delete(ConversationContextRecord).where(
            ConversationContextRecord.expires_at.is_not(None),
            ConversationContextRecord.expires_at <= now,
        )
    )
    db.commit()
    return result.rowcount or 0
