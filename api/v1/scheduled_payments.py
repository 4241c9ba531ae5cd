from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.schemas.scheduled_payments import ScheduledPaymentList, ScheduledPaymentRead
from db.deps import get_db
from db.models.scheduled_payment import ScheduledPaymentStatus
from db.repos.scheduled_payments_repo import (
    InvalidStatusTransitionError,
    ScheduledPaymentNotFoundError,
    cancel_scheduled_payment,
    find_due_payments,
    list_scheduled_payments,
)

router = APIRouter(prefix="/scheduled-payments", tags=["scheduled-payments"])
logger = logging.getLogger(__name__)


@router.get("", response_model=ScheduledPaymentList)
def list_payments(
    user_id: str = Query(..., min_length=1),
    status: ScheduledPaymentStatus | None = Query(default=None),
    db: Session = Depends(get_db),
) -> ScheduledPaymentList:
    rows = list_scheduled_payments(db, user_id=user_id, status=status)
    return ScheduledPaymentList(items=[ScheduledPaymentRead.model_validate(r) for r in rows])


# executor hook
@router.get("/due", response_model=ScheduledPaymentList)
def due_payments(limit: int = Query(default=100, ge=1, le=500), db: Session = Depends(get_db)) -> ScheduledPaymentList:
    rows = find_due_payments(db, limit=limit)
    return ScheduledPaymentList(items=[ScheduledPaymentRead.model_validate(r) for r in rows])


@router.post("/{payment_id}/cancel", response_model=ScheduledPaymentRead)
def cancel_payment(payment_id: UUID, db: Session = Depends(get_db)) -> ScheduledPaymentRead:
    try:
        payment = cancel_scheduled_payment(db, payment_id=payment_id)
    except ScheduledPaymentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    logger.info("Scheduled payment cancelled payment_id=%s", payment_id)
    return ScheduledPaymentRead.model_validate(payment)
