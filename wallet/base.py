from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from wallet.result import AdapterResult


@dataclass
class TransferReceipt:
    transaction_id: str
    state: str | None = None
    tx_hash: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class WalletTransaction:
    transaction_id: str
    direction: str
    amount: str
    currency: str
    counterparty: str | None
    state: str | None
    tx_hash: str | None
    created_at: str | None


class WalletProvider(Protocol):
    def get_balance(self, wallet_id: str, *, currency: str = "USDC") -> AdapterResult[str]: ...

    def get_address(self, wallet_id: str) -> AdapterResult[str]: ...

    def send(
        self,
        *,
        wallet_id: str,
        to_address: str,
        amount: str,
        currency: str = "USDC",
    ) -> AdapterResult[TransferReceipt]: ...

    def bridge(
        self,
        *,
        wallet_id: str,
        amount: str,
        destination_chain: str,
        destination_address: str,
    ) -> AdapterResult[TransferReceipt]: ...

    def convert(
        self,
        *,
        wallet_id: str,
        wallet_address: str,
        from_currency: str,
        to_currency: str,
        amount: str,
    ) -> AdapterResult[TransferReceipt]: ...

    def list_transactions(self, wallet_id: str, *, limit: int = 5) -> AdapterResult[list[WalletTransaction]]: ...
