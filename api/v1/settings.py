from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.schemas.settings import UserSettingsRead, UserSettingsUpdate
from db.deps import get_db
from db.repos.settings_repo import get_or_create_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/{user_id}", response_model=UserSettingsRead)
def read_settings(user_id: str, db: Session = Depends(get_db)) -> UserSettingsRead:
    return UserSettingsRead.model_validate(get_or_create_settings(db, user_id=user_id))


@router.put("/{user_id}", response_model=UserSettingsRead)
def write_settings(user_id: str, payload: UserSettingsUpdate, db: Session = Depends(get_db)) -> UserSettingsRead:
    row = update_settings(db, user_id=user_id, changes=payload.model_dump(exclude_none=True))
    return UserSettingsRead.model_validate(row)
