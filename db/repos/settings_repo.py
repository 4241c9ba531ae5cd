from __future__ import annotations

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.user_settings import UserSettings


def get_settings_row(db: Session, user_id: str) -> UserSettings | None:
    return db.execute(select(UserSettings).where(UserSettings.user_id == user_id)).scalar_one_or_none()


def get_or_create_settings(db: Session, *, user_id: str) -> UserSettings:
    row = get_settings_row(db, user_id)
    if row is not None:
        return row
    row = UserSettings(user_id=user_id)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_settings(db: Session, *, user_id: str, changes: dict[str, Any]) -> UserSettings:
    row = get_or_create_settings(db, user_id=user_id)
    for key, value in changes.items():
        if value is None or not hasattr(UserSettings, key) or key in {"id", "user_id", "created_at"}:
            continue
        setattr(row, key, value)

    db.add(row)
    db.commit()
    db.refresh(row)
    return row
