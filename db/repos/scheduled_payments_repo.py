from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.scheduled_payment import ScheduledPayment, ScheduledPaymentStatus
from db.utils import utcnow


class ScheduledPaymentNotFoundError(Exception):
    pass


class InvalidStatusTransitionError(ValueError):
    pass


# Only pending payments move; every other status is terminal.
_ALLOWED = {
    ScheduledPaymentStatus.PENDING: {
        ScheduledPaymentStatus.EXECUTED,
        ScheduledPaymentStatus.FAILED,
        ScheduledPaymentStatus.CANCELLED,
    },
}


def _assert_transition(current: ScheduledPaymentStatus, to_status: ScheduledPaymentStatus) -> None:
    if to_status not in _ALLOWED.get(current, set()):
        raise InvalidStatusTransitionError(f"Invalid transition: {current.value} -> {to_status.value}")


def create_scheduled_payment(
    db: Session,
    *,
    user_id: str,
    amount: Decimal | str,
    to_address: str,
    scheduled_for: datetime,
    currency: str = "USDC",
    wallet_id: str | None = None,
    wallet_address: str | None = None,
) -> ScheduledPayment:
    payment = ScheduledPayment(
        user_id=user_id,
        wallet_id=wallet_id,
        wallet_address=wallet_address,
        amount=Decimal(str(amount)),
        currency=currency,
        to_address=to_address,
        scheduled_for=scheduled_for,
        status=ScheduledPaymentStatus.PENDING.value,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def get_scheduled_payment(db: Session, payment_id: uuid.UUID) -> ScheduledPayment | None:
    return db.execute(select(ScheduledPayment).where(ScheduledPayment.id == payment_id)).scalar_one_or_none()


def list_scheduled_payments(
    db: Session,
    *,
    user_id: str,
    status: ScheduledPaymentStatus | None = None,
) -> list[ScheduledPayment]:
    stmt = select(ScheduledPayment).where(ScheduledPayment.user_id == user_id)
    if status is not None:
        stmt = stmt.where(ScheduledPayment.status == status.value)
    stmt = stmt.order_by(ScheduledPayment.scheduled_for.asc())
    return list(db.execute(stmt).scalars().all())


def find_due_payments(db: Session, *, now: datetime | None = None, limit: int = 100) -> list[ScheduledPayment]:
    now = now or utcnow()
    stmt = (
        select(ScheduledPayment)
        .where(
            ScheduledPayment.status == ScheduledPaymentStatus.PENDING.value,
            ScheduledPayment.scheduled_for <= now,
        )
        .order_by(ScheduledPayment.scheduled_for.asc())
        .limit(limit)
    )
    return list(db.execute(stmt).scalars().all())


def _transition(
    db: Session,
    *,
    payment_id: uuid.UUID,
    to_status: ScheduledPaymentStatus,
) -> ScheduledPayment:
    payment = get_scheduled_payment(db, payment_id)
    if not payment:
        raise ScheduledPaymentNotFoundError(f"Scheduled payment not found: {payment_id}")
    _assert_transition(ScheduledPaymentStatus(payment.status), to_status)
    payment.status = to_status.value
    return payment


def mark_executed(db: Session, *, payment_id: uuid.UUID, transaction_hash: str | None = None) -> ScheduledPayment:
    payment = _transition(db, payment_id=payment_id, to_status=ScheduledPaymentStatus.EXECUTED)
    payment.executed_at = utcnow()
    payment.transaction_hash = transaction_hash

    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def mark_failed(db: Session, *, payment_id: uuid.UUID, reason: str) -> ScheduledPayment:
    payment = _transition(db, payment_id=payment_id, to_status=ScheduledPaymentStatus.FAILED)
    payment.failure_reason = reason

    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment


def cancel_scheduled_payment(db: Session, *, payment_id: uuid.UUID) -> ScheduledPayment:
    payment = _transition(db, payment_id=payment_id, to_status=ScheduledPaymentStatus.CANCELLED)

    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment
