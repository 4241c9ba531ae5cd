from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.safe_lock import SafeLock, SafeLockStatus
from db.models.savings_goal import SavingsGoal
from db.utils import utcnow


class SafeLockNotFoundError(Exception):
    pass


def create_savings_goal(
    db: Session,
    *,
    user_id: str,
    name: str,
    target_amount: Decimal | str,
    lock_period: str | None = None,
    apy: Decimal | str | None = None,
    deadline: datetime | None = None,
    currency: str = "USDC",
) -> SavingsGoal:
    goal = SavingsGoal(
        user_id=user_id,
        name=name,
        target_amount=Decimal(str(target_amount)),
        current_amount=Decimal("0"),
        currency=currency,
        lock_period=lock_period,
        apy=Decimal(str(apy)) if apy is not None else None,
        deadline=deadline,
    )
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal


def list_savings_goals(db: Session, *, user_id: str) -> list[SavingsGoal]:
    stmt = select(SavingsGoal).where(SavingsGoal.user_id == user_id).order_by(SavingsGoal.created_at.asc())
    return list(db.execute(stmt).scalars().all())


def create_safe_lock(
    db: Session,
    *,
    user_id: str,
    name: str,
    amount: Decimal | str,
    apy: Decimal | str,
    unlock_date: datetime,
    currency: str = "USDC",
) -> SafeLock:
    lock = SafeLock(
        user_id=user_id,
        name=name,
        amount=Decimal(str(amount)),
        apy=Decimal(str(apy)),
        currency=currency,
        unlock_date=unlock_date,
        status=SafeLockStatus.LOCKED.value,
    )
    db.add(lock)
    db.commit()
    db.refresh(lock)
    return lock


def list_safe_locks(db: Session, *, user_id: str, status: SafeLockStatus | None = None) -> list[SafeLock]:
    stmt = select(SafeLock).where(SafeLock.user_id == user_id)
    if status is not None:
        stmt = stmt.where(SafeLock.status == status.value)
    return list(db.execute(stmt.order_by(SafeLock.unlock_date.asc())).scalars().all())


def unlock_safe_lock(db: Session, *, lock_id: uuid.UUID) -> SafeLock:
    lock = db.execute(select(SafeLock).where(SafeLock.id == lock_id)).scalar_one_or_none()
    if not lock:
        raise SafeLockNotFoundError(f"Safe lock not found: {lock_id}")
    lock.status = SafeLockStatus.UNLOCKED.value
    lock.unlocked_at = utcnow()

    db.add(lock)
    db.commit()
    db.refresh(lock)
    return lock
