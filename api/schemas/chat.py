from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from app.chat.contracts import HistoryEntry, PendingAction


class SessionResponse(BaseModel):
    session_id: str
    user_id: str | None = None
    last_intent: str | None = None
    pending_action: PendingAction | None = None
    history: list[HistoryEntry]
    version: int


class ClearPendingResponse(BaseModel):
    session_id: str
    cleared: bool
    previous: dict[str, Any] | None = None
