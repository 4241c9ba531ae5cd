from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class UserSettingsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    currency_preference: str
    language: str
    timezone: str
    notifications_enabled: bool
    transaction_notifications: bool
    balance_notifications: bool
    security_alerts: bool
    auto_approve_payments: bool
    auto_approve_limit: Decimal
    updated_at: datetime


class UserSettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    currency_preference: str | None = Field(default=None, min_length=3, max_length=8)
    language: str | None = Field(default=None, min_length=2, max_length=8)
    timezone: str | None = Field(default=None, min_length=1, max_length=64)
    notifications_enabled: bool | None = None
    transaction_notifications: bool | None = None
    balance_notifications: bool | None = None
    security_alerts: bool | None = None
    auto_approve_payments: bool | None = None
    auto_approve_limit: Decimal | None = Field(default=None, ge=0)
