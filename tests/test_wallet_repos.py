from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import text

from db.models.safe_lock import SafeLockStatus
from db.models.scheduled_payment import ScheduledPaymentStatus
from db.repos.address_history_repo import get_address_history, record_address_use
from db.repos.contacts_repo import delete_contact, find_contact_by_name, list_contacts, save_contact
from db.repos.limit_orders_repo import LimitOrderNotFoundError, cancel_limit_order, create_limit_order, list_open_limit_orders
from db.repos.savings_repo import create_safe_lock, list_safe_locks, unlock_safe_lock
from db.repos.scheduled_payments_repo import (
    InvalidStatusTransitionError,
    ScheduledPaymentNotFoundError,
    cancel_scheduled_payment,
    create_scheduled_payment,
    find_due_payments,
    mark_executed,
    mark_failed,
)
from db.repos.settings_repo import get_or_create_settings, update_settings
from db.session import SessionLocal

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
NOW = datetime(2030, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        session.execute(text("SELECT 1"))
        yield session
    finally:
        session.close()


def _payment(db, *, when=NOW, user_id="user-1"):
    return create_scheduled_payment(db, user_id=user_id, amount="50", to_address=GOOD_ADDRESS, scheduled_for=when)


def test_scheduled_payment_starts_pending(db):
    payment = _payment(db)
    assert payment.status == ScheduledPaymentStatus.PENDING.value
    assert payment.currency == "USDC"
    assert payment.amount == Decimal("50")


def test_executed_payment_records_hash(db):
    payment = _payment(db)
    updated = mark_executed(db, payment_id=payment.id, transaction_hash="0xabc")
    assert updated.status == ScheduledPaymentStatus.EXECUTED.value
    assert updated.transaction_hash == "0xabc"
    assert updated.executed_at is not None


def test_failed_payment_records_reason(db):
    payment = _payment(db)
    updated = mark_failed(db, payment_id=payment.id, reason="insufficient balance")
    assert updated.status == ScheduledPaymentStatus.FAILED.value
    assert updated.failure_reason == "insufficient balance"


@pytest.mark.parametrize("first", [mark_executed, cancel_scheduled_payment])
def test_terminal_payments_cannot_move(db, first):
    payment = _payment(db)
    first(db, payment_id=payment.id)
    with pytest.raises(InvalidStatusTransitionError):
        cancel_scheduled_payment(db, payment_id=payment.id)


def test_unknown_payment_raises(db):
    with pytest.raises(ScheduledPaymentNotFoundError):
        cancel_scheduled_payment(db, payment_id=uuid.uuid4())


def test_due_payments_are_pending_and_past_due(db):
    due = _payment(db, when=NOW - timedelta(hours=1))
    _payment(db, when=NOW + timedelta(hours=1))
    cancelled = _payment(db, when=NOW - timedelta(hours=2))
    cancel_scheduled_payment(db, payment_id=cancelled.id)

    assert [p.id for p in find_due_payments(db, now=NOW)] == [due.id]


def test_contacts_are_matched_case_insensitively(db):
    save_contact(db, user_id="user-1", name="Jake", address=GOOD_ADDRESS)

    assert find_contact_by_name(db, user_id="user-1", name=" JAKE ").address == GOOD_ADDRESS
    assert find_contact_by_name(db, user_id="user-2", name="jake") is None


def test_saving_an_existing_contact_updates_it(db):
    save_contact(db, user_id="user-1", name="Jake", address="0x1")
    save_contact(db, user_id="user-1", name="jake", address=GOOD_ADDRESS, notes="rent")

    contacts = list_contacts(db, user_id="user-1")
    assert len(contacts) == 1
    assert contacts[0].address == GOOD_ADDRESS
    assert contacts[0].notes == "rent"


def test_delete_contact(db):
    save_contact(db, user_id="user-1", name="Jake", address=GOOD_ADDRESS)
    assert delete_contact(db, user_id="user-1", name="jake") is True
    assert delete_contact(db, user_id="user-1", name="jake") is False


def test_address_history_counts_uses_per_user(db):
    record_address_use(db, user_id="user-1", address=GOOD_ADDRESS)
    row = record_address_use(db, user_id="user-1", address=GOOD_ADDRESS.lower())

    assert row.transaction_count == 2
    assert row.address == GOOD_ADDRESS.lower()
    assert get_address_history(db, user_id="user-2", address=GOOD_ADDRESS) is None


def test_settings_are_created_with_defaults_and_updated(db):
    row = get_or_create_settings(db, user_id="user-1")
    assert row.currency_preference == "USD"
    assert row.notifications_enabled is True

    updated = update_settings(
        db,
        user_id="user-1",
        changes={"notifications_enabled": False, "language": None, "user_id": "someone-else"},
    )
    assert updated.notifications_enabled is False
    assert updated.language == "en"
    assert updated.user_id == "user-1"


def test_limit_orders_can_be_cancelled(db):
    order = create_limit_order(
        db, user_id="user-1", side="buy", from_token="USDC", to_token="ETH", amount="100", target_price="2000"
    )
    assert [o.id for o in list_open_limit_orders(db, user_id="user-1")] == [order.id]

    cancel_limit_order(db, order_id=order.id)
    assert list_open_limit_orders(db, user_id="user-1") == []
    with pytest.raises(LimitOrderNotFoundError):
        cancel_limit_order(db, order_id=uuid.uuid4())


def test_safe_lock_unlock(db):
    lock = create_safe_lock(db, user_id="user-1", name="Rainy day", amount="500", apy="4.5", unlock_date=NOW)
    unlock_safe_lock(db, lock_id=lock.id)

    assert list_safe_locks(db, user_id="user-1", status=SafeLockStatus.LOCKED) == []
    assert len(list_safe_locks(db, user_id="user-1", status=SafeLockStatus.UNLOCKED)) == 1
