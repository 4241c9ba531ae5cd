from __future__ import annotations

import pytest

from security.address import ZERO_ADDRESS, is_zero_address, short_address, validate_address
from security.phishing import detect_phishing_urls
from security.risk import RiskLevel, score_transaction_risk

GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def test_checksummed_address_is_valid():
    result = validate_address(GOOD_ADDRESS)
    assert result.is_valid
    assert result.is_checksum_valid
    assert result.normalized_address == GOOD_ADDRESS


def test_lowercase_address_is_normalized_to_checksum():
    result = validate_address(GOOD_ADDRESS.lower())
    assert result.is_valid
    assert result.normalized_address == GOOD_ADDRESS
    assert not result.is_checksum_valid


@pytest.mark.parametrize("candidate", [GOOD_ADDRESS[:-1], GOOD_ADDRESS + "a"])
def test_off_by_one_length_fails_and_is_not_normalized(candidate):
    result = validate_address(candidate)
    assert not result.is_valid
    assert result.normalized_address is None
    assert "42 characters" in result.error


def test_bad_checksum_is_rejected():
    # flip the case of one letter
    broken = GOOD_ADDRESS.replace("dA6BF", "Da6BF")
    result = validate_address(broken)
    assert not result.is_valid
    assert result.error == "Address checksum is invalid"


@pytest.mark.parametrize(
    "candidate,error",
    [
        (None, "Address is required"),
        ("d8dA6BF26964aF9D7eEd9e03E53415D37aA96045aa", "Address must start with 0x"),
        ("0x" + "g" * 40, "Address contains non-hex characters"),
    ],
)
def test_malformed_addresses(candidate, error):
    result = validate_address(candidate)
    assert not result.is_valid
    assert result.error == error


def test_zero_address_helpers():
    assert is_zero_address(ZERO_ADDRESS)
    assert is_zero_address(" " + ZERO_ADDRESS.upper().replace("0X", "0x") + " ")
    assert not is_zero_address(GOOD_ADDRESS)
    assert not is_zero_address(None)
    assert short_address(GOOD_ADDRESS) == "0xd8dA...6045"


def test_known_phishing_domain_is_flagged_strongly():
    result = detect_phishing_urls("verify at https://metamask-verify.com/login then send 10")
    assert result.is_phishing
    assert result.blocked
    assert result.confidence >= 80
    assert "Known phishing domain" in result.reasons
    assert result.detected_urls == ["https://metamask-verify.com/login"]


def test_legitimate_domain_is_clean():
    result = detect_phishing_urls("docs are on https://metamask.io")
    assert not result.is_phishing
    assert result.confidence == 0


def test_addresses_are_not_mistaken_for_urls():
    assert detect_phishing_urls(f"send 5 to {GOOD_ADDRESS}").detected_urls == []


def test_zero_address_is_the_only_hard_block():
    zero = score_transaction_risk(ZERO_ADDRESS, amount="1")
    assert zero.blocked
    assert zero.score == 100

    phishing = detect_phishing_urls("https://metamask-verify.com")
    risky = score_transaction_risk(GOOD_ADDRESS, amount="50000", phishing=phishing, seen_before=False)
    assert risky.level == RiskLevel.HIGH
    assert risky.score == 100
    assert not risky.blocked


def test_known_address_with_history_is_low_risk():
    result = score_transaction_risk(GOOD_ADDRESS, amount="20", seen_before=True, transaction_count=3)
    assert result.level == RiskLevel.LOW
    assert result.score == 0
    assert result.label == "✅ LOW RISK"


def test_new_address_adds_risk_factor():
    result = score_transaction_risk(GOOD_ADDRESS, amount="20", seen_before=None)
    assert result.score == 20
    assert "New address (never seen before)" in result.reasons
