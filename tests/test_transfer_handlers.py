from __future__ import annotations

import pytest

from app.chat.contracts import IntentType, PendingAction, PendingStage, WalletContext
from app.chat.handlers import dispatch
from app.chat.handlers.registry import CANCELLED_MESSAGE
from app.chat.handlers.transfers import ZERO_ADDRESS_BLOCK_MESSAGE
from app.chat.intents import classify
from app.chat.resolver import resolve_pending_intent
from db.repos.address_history_repo import get_address_history, record_address_use
from db.repos.contacts_repo import save_contact
from db.session import SessionLocal

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def _turn(text, ctx):
    intent = resolve_pending_intent(classify(text), ctx.pending)
    return dispatch(intent, ctx)


@pytest.mark.parametrize("amount", ["1", "50", "1000000"])
@pytest.mark.parametrize("verb", ["send", "pay"])
def test_zero_address_is_blocked_for_any_amount(make_ctx, verb, amount):
    result = _turn(f"{verb} {amount} usdc to {ZERO_ADDRESS}", make_ctx())

    assert result.requires_confirmation is False
    assert result.message == ZERO_ADDRESS_BLOCK_MESSAGE
    assert result.data["blocked"] is True
    assert result.pending is None
    assert result.enhance is False


def test_zero_address_is_blocked_even_without_wallet(make_ctx):
    result = _turn(f"send $5 to {ZERO_ADDRESS}", make_ctx(wallet=WalletContext()))
    assert result.action == "blocked_zero_address"
    assert result.requires_confirmation is False


def test_send_without_wallet_asks_to_create_one(make_ctx):
    result = _turn(f"send $5 to {GOOD_ADDRESS}", make_ctx(wallet=WalletContext()))
    assert result.action == "no_wallet"
    assert result.requires_confirmation is False


def test_send_missing_amount_stores_draft(make_ctx):
    result = _turn(f"send to {GOOD_ADDRESS}", make_ctx())

    assert result.pending is not None
    assert result.pending.type == IntentType.SEND
    assert result.pending.stage == PendingStage.COLLECTING
    assert result.pending.data["address"] == GOOD_ADDRESS
    assert "How much" in result.message


def test_send_preview_warns_about_new_address(make_ctx):
    result = _turn(f"send $50 to {GOOD_ADDRESS}", make_ctx())

    assert result.requires_confirmation is True
    assert result.pending.stage == PendingStage.CONFIRMING
    assert result.pending.data == {"amount": "50", "currency": "USDC", "address": GOOD_ADDRESS}
    preview = result.transaction_preview
    assert preview.amount == "50"
    assert preview.to == GOOD_ADDRESS
    assert preview.is_new_wallet is True
    assert preview.blocked is False
    assert "NEW WALLET ADDRESS" in result.message
    assert result.data == {"risk_score": preview.risk_score, "risk_level": preview.risk_level, "is_new_wallet": True}


def test_send_to_known_address_has_no_new_address_warning(make_ctx):
    with SessionLocal() as db:
        record_address_use(db, user_id="user-1", address=GOOD_ADDRESS)

    result = _turn(f"send $50 to {GOOD_ADDRESS}", make_ctx())

    assert result.transaction_preview.is_new_wallet is False
    assert result.transaction_preview.risk_score == 0
    assert "NEW WALLET ADDRESS" not in result.message


def test_phishing_link_warns_but_still_allows_confirmation(make_ctx):
    result = _turn(f"send $50 to {GOOD_ADDRESS} like https://metamask-verify.com said", make_ctx())

    assert result.requires_confirmation is True
    assert "PHISHING WARNING" in result.message
    assert result.transaction_preview.risk_level == "high"
    assert result.transaction_preview.blocked is False


def test_invalid_address_keeps_amount_and_reprompts(make_ctx):
    result = _turn(f"send $50 to {GOOD_ADDRESS[:-1]}", make_ctx())

    assert result.requires_confirmation is False
    assert result.pending.data.get("amount") == "50"
    assert "address" not in result.pending.data
    assert "42 characters" in result.message


def test_send_to_saved_contact(make_ctx):
    with SessionLocal() as db:
        save_contact(db, user_id="user-1", name="Jake", address=GOOD_ADDRESS)

    result = _turn("send 20 usdc to jake", make_ctx())

    assert result.requires_confirmation is True
    assert result.pending.data["address"] == GOOD_ADDRESS
    assert result.pending.data["recipient"] == "Jake"


def test_unknown_contact_asks_for_address(make_ctx):
    result = _turn("send 20 usdc to jake", make_ctx())
    assert result.action == "send_unknown_contact"
    assert result.pending.data["recipient"] == "jake"


def test_confirm_executes_send_and_records_address(make_ctx, fake_wallet):
    pending = PendingAction(
        type=IntentType.SEND,
        data={"amount": "50", "currency": "USDC", "address": GOOD_ADDRESS},
        timestamp=1,
        stage=PendingStage.CONFIRMING,
    )
    result = _turn("yes", make_ctx(pending=pending))

    assert result.action == "transfer_submitted"
    assert result.clear_pending is True
    assert fake_wallet.calls == [
        ("send", {"wallet_id": "wallet-1", "to_address": GOOD_ADDRESS, "amount": "50", "currency": "USDC"})
    ]
    with SessionLocal() as db:
        row = get_address_history(db, user_id="user-1", address=GOOD_ADDRESS)
        assert row is not None
        assert row.transaction_count == 1


def test_failed_transfer_reports_and_clears(make_ctx, fake_wallet):
    fake_wallet.fail = True
    pending = PendingAction(
        type=IntentType.PAY,
        data={"amount": "5", "currency": "USDC", "address": GOOD_ADDRESS},
        timestamp=1,
        stage=PendingStage.CONFIRMING,
    )
    result = _turn("confirm", make_ctx(pending=pending))

    assert result.action == "transfer_failed"
    assert result.clear_pending is True


def test_cancel_discards_pending_without_side_effects(make_ctx, fake_wallet):
    pending = PendingAction(
        type=IntentType.SEND,
        data={"amount": "50", "currency": "USDC", "address": GOOD_ADDRESS},
        timestamp=1,
        stage=PendingStage.CONFIRMING,
    )
    result = _turn("no", make_ctx(pending=pending))

    assert result.message == CANCELLED_MESSAGE
    assert result.clear_pending is True
    assert fake_wallet.calls == []


def test_confirm_without_pending_falls_through_to_unknown(make_ctx, fake_wallet):
    result = _turn("yes", make_ctx())
    assert result.requires_confirmation is False
    assert result.clear_pending is False
    assert fake_wallet.calls == []


# ---------------------------
# bridge
# ---------------------------


def test_bridge_collects_chain_then_destination(make_ctx):
    first = _turn("bridge $25", make_ctx())
    assert first.action == "bridge_missing_chain"
    assert first.pending.data["amount"] == "25"

    second = _turn("to base", make_ctx(pending=first.pending))
    assert second.action == "bridge_missing_address"
    assert second.pending.data == {"amount": "25", "chain": "base"}

    third = _turn("my wallet", make_ctx(pending=second.pending))
    assert third.requires_confirmation is True
    assert third.bridge_data.to_chain == "BASE"
    assert third.bridge_data.from_chain == "ARC-TESTNET"
    assert third.bridge_data.amount == "25"


def test_confirm_bridge_consumes_pending(make_ctx, fake_wallet):
    pending = PendingAction(
        type=IntentType.BRIDGE,
        data={"amount": "25", "chain": "base", "address": GOOD_ADDRESS},
        timestamp=1,
        stage=PendingStage.CONFIRMING,
    )
    result = _turn("yes", make_ctx(pending=pending))

    assert result.clear_pending is True
    assert fake_wallet.calls[0][0] == "bridge"
    assert fake_wallet.calls[0][1]["destination_chain"] == "BASE"
    assert fake_wallet.calls[0][1]["destination_address"] == GOOD_ADDRESS


def test_unsupported_chain_is_asked_again(make_ctx):
    result = _turn("bridge 10 usdc to fantom", make_ctx())
    assert result.action == "bridge_missing_chain"
    assert result.pending.data == {"amount": "10", "currency": "USDC"}


def test_split_with_one_recipient_suggests_a_send(make_ctx):
    result = _turn(f"split $90 with {GOOD_ADDRESS}", make_ctx())
    assert result.action == "split_single"
    assert result.requires_confirmation is False
