from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from db.models.subscription import Subscription, SubscriptionFrequency


def create_subscription(
    db: Session,
    *,
    user_id: str,
    merchant: str,
    amount: Decimal | str,
    frequency: SubscriptionFrequency,
    next_charge_at: datetime,
    currency: str = "USDC",
    auto_renew: bool = True,
    remind_before_seconds: int = 2 * 24 * 3600,
) -> Subscription:
    subscription = Subscription(
        user_id=user_id,
        merchant=merchant,
        amount=Decimal(str(amount)),
        currency=currency,
        frequency=frequency.value,
        next_charge_at=next_charge_at,
        auto_renew=auto_renew,
        remind_before_seconds=remind_before_seconds,
    )
    db.add(subscription)
    db.commit()
    db.refresh(subscription)
    return subscription


def list_subscriptions(db: Session, *, user_id: str, include_paused: bool = True) -> list[Subscription]:
    stmt = select(Subscription).where(Subscription.user_id == user_id)
    if not include_paused:
        stmt = stmt.where(Subscription.paused.is_(False))
    return list(db.execute(stmt.order_by(Subscription.next_charge_at.asc())).scalars().all())


def enable_auto_renew(db: Session, *, user_id: str) -> int:
    result = db.execute(
        update(Subscription)
        .where(Subscription.user_id == user_id, Subscription.auto_renew.is_(False))
        .values(auto_renew=True)
    )
    db.commit()
    return result.rowcount or 0
