from __future__ import annotations

from fastapi.testclient import TestClient

from app.chat.llm import PassthroughEnhancer, RuleBasedClassifier
from app.chat.service import ChatService
from app.chat.state_store import InMemorySessionStore
from app.config import get_settings
from app.main import create_app

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
WALLET = {"wallet_id": "wallet-1", "wallet_address": "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48", "balance": "125.50"}


class AlwaysConflictingStore(InMemorySessionStore):
    def compare_and_swap(self, context, *, expected_version):
        return False


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["llm_enabled"] is False
    assert body["wallet_configured"] is True
    assert body["session_store"] == "memory"


def test_post_message_returns_ai_response(client):
    r = client.post("/v1/chat/message", json={"message": "hello", "session_id": "api-1", "wallet": WALLET})
    assert r.status_code == 200, r.text

    data = r.json()
    assert data["session_id"] == "api-1"
    assert data["intent"]["intent"] == "greeting"
    assert data["requires_confirmation"] is False
    assert "ARCLE" in data["message"]


def test_send_preview_over_http(client):
    r = client.post(
        "/v1/chat/message",
        json={"message": f"send $50 to {GOOD_ADDRESS}", "session_id": "api-1", "wallet": WALLET},
    )
    assert r.status_code == 200, r.text

    data = r.json()
    assert data["requires_confirmation"] is True
    assert data["transaction_preview"]["to"] == GOOD_ADDRESS
    assert data["pending_action"]["type"] == "send"
    assert data["pending_action"]["stage"] == "confirming"


def test_empty_and_oversized_messages_are_rejected(client):
    assert client.post("/v1/chat/message", json={"message": ""}).status_code == 422
    assert client.post("/v1/chat/message", json={"message": "x" * 2001}).status_code == 422


def test_get_session(client):
    client.post("/v1/chat/message", json={"message": "hello", "session_id": "api-1", "user_id": "user-9"})

    r = client.get("/v1/chat/sessions/api-1")
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["user_id"] == "user-9"
    assert data["last_intent"] == "greeting"
    assert len(data["history"]) == 2
    assert data["version"] == 1


def test_get_unknown_session_is_404(client):
    assert client.get("/v1/chat/sessions/nope").status_code == 404


def test_clear_pending(client):
    client.post(
        "/v1/chat/message",
        json={"message": f"send $50 to {GOOD_ADDRESS}", "session_id": "api-1", "wallet": WALLET},
    )

    r = client.delete("/v1/chat/sessions/api-1/pending")
    assert r.status_code == 200, r.text
    assert r.json()["cleared"] is True
    assert r.json()["previous"]["type"] == "send"

    again = client.delete("/v1/chat/sessions/api-1/pending")
    assert again.json()["cleared"] is False
    assert client.get("/v1/chat/sessions/api-1").json()["pending_action"] is None


def test_clear_pending_unknown_session_is_404(client):
    assert client.delete("/v1/chat/sessions/nope/pending").status_code == 404


def test_write_conflict_is_409():
    service = ChatService(
        settings=get_settings(),
        store=AlwaysConflictingStore(),
        classifier=RuleBasedClassifier(),
        enhancer=PassthroughEnhancer(),
    )
    with TestClient(create_app(chat_service=service)) as client:
        r = client.post("/v1/chat/message", json={"message": "hello", "session_id": "api-1"})
    assert r.status_code == 409
