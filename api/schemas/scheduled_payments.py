from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ScheduledPaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    wallet_id: str | None
    wallet_address: str | None
    amount: Decimal
    currency: str
    to_address: str
    scheduled_for: datetime
    status: str
    executed_at: datetime | None
    transaction_hash: str | None
    failure_reason: str | None
    created_at: datetime
    updated_at: datetime


class ScheduledPaymentList(BaseModel):
    items: list[ScheduledPaymentRead]
