from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base
from db.utils import UUIDType, utcnow


class UserSettings(Base):
    __tablename__ = "user_settings"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)

    currency_preference: Mapped[str] = mapped_column(String(8), nullable=False, default="USD")
    language: Mapped[str] = mapped_column(String(8), nullable=False, default="en")
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    transaction_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    balance_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    security_alerts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    auto_approve_payments: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_approve_limit: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
