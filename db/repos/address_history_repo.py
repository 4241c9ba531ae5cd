from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.address_history import AddressHistory
from db.utils import utcnow


def get_address_history(db: Session, *, user_id: str, address: str) -> AddressHistory | None:
    return db.execute(
        select(AddressHistory).where(
            AddressHistory.user_id == user_id,
            AddressHistory.address == address.lower(),
        )
    ).scalar_one_or_none()


def record_address_use(db: Session, *, user_id: str, address: str) -> AddressHistory:
    now = utcnow()
    row = get_address_history(db, user_id=user_id, address=address)
    if row is None:
        row = AddressHistory(
            user_id=user_id,
            address=address.lower(),
            transaction_count=0,
            first_seen_at=now,
        )
    row.transaction_count = row.transaction_count + 1
    row.last_seen_at = now

    db.add(row)
    db.commit()
    db.refresh(row)
    return row
