from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.limit_order import LimitOrder, LimitOrderStatus
from db.utils import utcnow

LIMIT_ORDER_TTL = timedelta(days=7)


class LimitOrderNotFoundError(Exception):
    pass


def create_limit_order(
    db: Session,
    *,
    user_id: str,
    side: str,
    from_token: str,
    to_token: str,
    amount: Decimal | str,
    target_price: Decimal | str,
    expires_at: datetime | None = None,
) -> LimitOrder:
    order = LimitOrder(
        user_id=user_id,
        side=side,
        from_token=from_token,
        to_token=to_token,
        amount=Decimal(str(amount)),
        target_price=Decimal(str(target_price)),
        status=LimitOrderStatus.PENDING.value,
        expires_at=expires_at or utcnow() + LIMIT_ORDER_TTL,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def list_open_limit_orders(db: Session, *, user_id: str) -> list[LimitOrder]:
    stmt = (
        select(LimitOrder)
        .where(LimitOrder.user_id == user_id, LimitOrder.status == LimitOrderStatus.PENDING.value)
        .order_by(LimitOrder.created_at.asc())
    )
    return list(db.execute(stmt).scalars().all())


def cancel_limit_order(db: Session, *, order_id: uuid.UUID) -> LimitOrder:
    order = db.execute(select(LimitOrder).where(LimitOrder.id == order_id)).scalar_one_or_none()
    if not order:
        raise LimitOrderNotFoundError(f"Limit order not found: {order_id}")
    order.status = LimitOrderStatus.CANCELLED.value

    db.add(order)
    db.commit()
    db.refresh(order)
    return order
