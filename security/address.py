from __future__ import annotations

import re
from dataclasses import dataclass

from web3 import Web3

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_HEX_BODY_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class AddressValidation:
    is_valid: bool
    normalized_address: str | None = None
    is_checksum_valid: bool = False
    error: str | None = None


def is_zero_address(address: str | None) -> bool:
    return bool(address) and address.strip().lower() == ZERO_ADDRESS


def short_address(address: str | None) -> str:
    if not address or len(address) <= 12:
        return address or "unknown"
    return f"{address[:6]}...{address[-4:]}"


def validate_address(address: str | None) -> AddressValidation:
    """
    Check an EVM address without ever repairing it.

    The input must be ``0x`` plus exactly 40 hex characters. Mixed-case input
    must carry a valid EIP-55 checksum; all-lower or all-upper input is
    accepted and normalized to its checksummed form.
    """
    if not address or not isinstance(address, str):
        return AddressValidation(is_valid=False, error="Address is required")

    candidate = address.strip()
    if not candidate.startswith("0x"):
        return AddressValidation(is_valid=False, error="Address must start with 0x")
    if len(candidate) != 42:
        return AddressValidation(is_valid=False, error="Address must be 42 characters long")
    if not _HEX_BODY_RE.match(candidate):
        return AddressValidation(is_valid=False, error="Address contains non-hex characters")

    body = candidate[2:]
    checksum_ok = Web3.is_checksum_address(candidate)
    if body != body.lower() and body != body.upper() and not checksum_ok:
        return AddressValidation(is_valid=False, error="Address checksum is invalid")

    return AddressValidation(
        is_valid=True,
        normalized_address=Web3.to_checksum_address(candidate),
        is_checksum_valid=checksum_ok,
    )
