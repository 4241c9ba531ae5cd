from __future__ import annotations


def test_settings_are_created_on_first_read(client):
    r = client.get("/v1/settings/user-1")
    assert r.status_code == 200, r.text

    data = r.json()
    assert data["user_id"] == "user-1"
    assert data["currency_preference"] == "USD"
    assert data["notifications_enabled"] is True
    assert data["auto_approve_payments"] is False


def test_partial_update_leaves_other_fields(client):
    r = client.put("/v1/settings/user-1", json={"balance_notifications": False, "language": "es"})
    assert r.status_code == 200, r.text

    data = client.get("/v1/settings/user-1").json()
    assert data["balance_notifications"] is False
    assert data["language"] == "es"
    assert data["transaction_notifications"] is True


def test_unknown_fields_are_rejected(client):
    assert client.put("/v1/settings/user-1", json={"user_id": "someone-else"}).status_code == 422
    assert client.put("/v1/settings/user-1", json={"auto_approve_limit": -1}).status_code == 422


def test_notification_toggle_in_chat_updates_settings(client):
    r = client.post(
        "/v1/chat/message",
        json={"message": "turn off balance alerts", "session_id": "api-1", "user_id": "user-1"},
    )
    assert r.status_code == 200, r.text

    assert client.get("/v1/settings/user-1").json()["balance_notifications"] is False
