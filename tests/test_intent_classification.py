from __future__ import annotations

from decimal import Decimal

import pytest

from app.chat.contracts import IntentType
from app.chat.intents import RULES, classify, extract_amount, extract_entities, extract_money_amounts

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def test_send_entities_round_trip():
    parsed = classify("Send $50 to 0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb")

    assert parsed.intent == IntentType.SEND
    assert parsed.entities == {
        "amount": "50",
        "address": "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb",
        "currency": "USDC",
    }
    assert parsed.raw_command == "Send $50 to 0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb"


def test_classify_is_idempotent():
    first = classify("send 25 usdc to jake")
    second = classify("send 25 usdc to jake")
    assert first == second
    assert first.entities == {"amount": "25", "currency": "USDC", "recipient": "jake"}


def test_bridge_is_checked_before_send():
    parsed = classify("Bridge 100 USDC to Base")
    assert parsed.intent == IntentType.BRIDGE
    assert parsed.entities["amount"] == "100"
    assert parsed.entities["chain"] == "base"


def test_bridge_to_my_wallet_marks_self_destination():
    parsed = classify("bridge $20 to ethereum to my wallet")
    assert parsed.intent == IntentType.BRIDGE
    assert parsed.entities["destination"] == "self"


def test_remittance_wins_over_send():
    parsed = classify("Send $500 to my mom in Mexico")
    assert parsed.intent == IntentType.REMITTANCE
    assert parsed.entities["amount"] == "500"
    assert parsed.entities["country"] == "Mexico"
    assert parsed.entities["recipient"] == "mom"


def test_notification_toggle_is_not_a_balance_check():
    assert classify("turn off balance alerts").intent == IntentType.NOTIFICATION
    assert classify("what's my balance?").intent == IntentType.BALANCE


@pytest.mark.parametrize(
    "text,expected",
    [
        ("hello", IntentType.GREETING),
        ("good morning!", IntentType.GREETING),
        ("create a wallet", IntentType.WALLET_CREATION),
        ("show my address", IntentType.RECEIVE),
        ("pay 20 to 0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045", IntentType.PAY),
        ("convert 100 usdc to eurc", IntentType.CONVERT),
        ("what's the usdc to eur exchange rate", IntentType.FX_RATE),
        ("show my transaction history", IntentType.TRANSACTION_HISTORY),
        ("yes", IntentType.CONFIRM),
        ("ok, go ahead", IntentType.CONFIRM),
        ("no", IntentType.CANCEL),
        ("cancel", IntentType.CANCEL),
        ("help", IntentType.HELP),
    ],
)
def test_rule_matches(text, expected):
    assert classify(text).intent == expected


def test_saving_an_address_is_a_contact_not_a_deposit():
    parsed = classify(f"Save {GOOD_ADDRESS} as Jake")
    assert parsed.intent == IntentType.CONTACT
    assert parsed.entities == {"name": "Jake", "address": GOOD_ADDRESS}

    assert classify("save $200 for a bike").intent == IntentType.SAVINGS


def test_schedule_with_full_details():
    parsed = classify(f"Schedule $50 to {GOOD_ADDRESS} tomorrow at 3pm")
    assert parsed.intent == IntentType.SCHEDULE
    assert parsed.confidence == 0.95
    assert parsed.entities == {
        "amount": "50",
        "address": GOOD_ADDRESS,
        "date": "tomorrow",
        "time": "3pm",
    }


def test_recurring_vocabulary_routes_to_subscription():
    parsed = classify("Pay $15 monthly for Netflix")
    assert parsed.intent == IntentType.SUBSCRIPTION
    assert parsed.entities["amount"] == "15"
    assert parsed.entities["merchant"] == "Netflix"
    assert parsed.entities["frequency"] == "monthly"


def test_unknown_has_low_confidence_and_no_entities():
    parsed = classify("asdfgh qwerty")
    assert parsed.intent == IntentType.UNKNOWN
    assert parsed.confidence == 0.1
    assert parsed.entities == {}


def test_empty_message_is_unknown():
    assert classify("   ").intent == IntentType.UNKNOWN


def test_amount_ignores_addresses_dates_and_times():
    assert extract_amount(f"send to {GOOD_ADDRESS} tomorrow at 3pm") is None
    assert extract_amount("send 1,250.50 usdc") == "1250.50"


def test_money_amounts_are_normalized_for_comparison():
    text = f"Send $1,024.66 and 50.00 USDC to {GOOD_ADDRESS} tomorrow at 3pm"
    assert extract_money_amounts(text) == {Decimal("1024.66"), Decimal("50")}


def test_follow_up_fragment_extracts_date_and_time_for_schedule():
    assert extract_entities(IntentType.SCHEDULE, "tomorrow at 3pm") == {"date": "tomorrow", "time": "3pm"}


def test_every_rule_carries_a_fixed_confidence():
    for intent, confidence, _ in RULES:
        assert 0.85 <= confidence <= 0.95, intent
