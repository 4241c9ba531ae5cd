from __future__ import annotations

import uuid
from datetime import datetime, timezone

from db.repos.scheduled_payments_repo import create_scheduled_payment
from db.session import SessionLocal

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def _create(*, user_id="user-1", when=datetime(2099, 1, 1, tzinfo=timezone.utc)) -> uuid.UUID:
    with SessionLocal() as db:
        payment = create_scheduled_payment(
            db, user_id=user_id, amount="25.5", to_address=GOOD_ADDRESS, scheduled_for=when
        )
        return payment.id


def test_list_scheduled_payments_for_user(client):
    payment_id = _create()
    _create(user_id="someone-else")

    r = client.get("/v1/scheduled-payments", params={"user_id": "user-1"})
    assert r.status_code == 200, r.text

    items = r.json()["items"]
    assert [item["id"] for item in items] == [str(payment_id)]
    assert items[0]["status"] == "pending"
    assert items[0]["to_address"] == GOOD_ADDRESS


def test_list_requires_user_id(client):
    assert client.get("/v1/scheduled-payments").status_code == 422


def test_list_filters_by_status(client):
    payment_id = _create()
    _create()
    client.post(f"/v1/scheduled-payments/{payment_id}/cancel")

    r = client.get("/v1/scheduled-payments", params={"user_id": "user-1", "status": "cancelled"})
    assert [item["id"] for item in r.json()["items"]] == [str(payment_id)]


def test_cancel_then_cancel_again_conflicts(client):
    payment_id = _create()

    r = client.post(f"/v1/scheduled-payments/{payment_id}/cancel")
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"

    again = client.post(f"/v1/scheduled-payments/{payment_id}/cancel")
    assert again.status_code == 409


def test_cancel_unknown_payment_is_404(client):
    r = client.post(f"/v1/scheduled-payments/{uuid.uuid4()}/cancel")
    assert r.status_code == 404


def test_due_payments(client):
    due_id = _create(when=datetime(2020, 1, 1, tzinfo=timezone.utc))
    _create()

    r = client.get("/v1/scheduled-payments/due")
    assert r.status_code == 200, r.text
    assert [item["id"] for item in r.json()["items"]] == [str(due_id)]


def test_schedule_created_in_chat_is_listed(client):
    wallet = {"wallet_id": "wallet-1", "wallet_address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"}
    r = client.post(
        "/v1/chat/message",
        json={
            "message": f"Schedule $50 to {GOOD_ADDRESS} tomorrow at 3pm",
            "session_id": "api-1",
            "user_id": "user-1",
            "wallet": wallet,
        },
    )
    assert r.status_code == 200, r.text
    payment_id = r.json()["data"]["scheduled_payment_id"]

    listed = client.get("/v1/scheduled-payments", params={"user_id": "user-1"}).json()["items"]
    assert [item["id"] for item in listed] == [payment_id]
