from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any

import requests

from app.config import Settings
from wallet.base import TransferReceipt, WalletTransaction
from wallet.result import AdapterResult

logger = logging.getLogger(__name__)

SOURCE = "circle"

# CCTP destination domains
CCTP_DOMAINS = {
    "ETHEREUM": 0,
    "AVALANCHE": 1,
    "OPTIMISM": 2,
    "ARBITRUM": 3,
    "SOLANA": 5,
    "BASE": 6,
    "POLYGON": 7,
}

_DEPOSIT_FOR_BURN = "depositForBurn(uint256,uint32,bytes32,address)"


class CircleAPIError(RuntimeError):
    pass


def _to_units(amount: str, decimals: int = 6) -> str:
    return str(int((Decimal(str(amount)) * (10 ** decimals)).to_integral_value()))


def _address_to_bytes32(address: str) -> str:
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


class CircleWalletClient:
    """
    Developer-controlled wallet adapter over Circle's W3S REST API.
    """

    def __init__(self, settings: Settings, *, session: requests.Session | None = None) -> None:
        self.base_url = settings.circle_base_url.rstrip("/")
        self.api_key = settings.circle_api_key
        self.entity_secret_ciphertext = settings.circle_entity_secret_ciphertext
        self.blockchain = settings.circle_blockchain
        self.timeout_s = settings.circle_timeout_s
        self.token_messenger_address = settings.circle_token_messenger_address
        self.fx_swap_address = settings.circle_fx_swap_address
        self.token_addresses = {
            "USDC": settings.usdc_token_address,
            "EURC": settings.eurc_token_address,
        }
        self.http = session or requests.Session()

    def _request(self, method: str, path: str, *, json: dict | None = None, params: dict | None = None) -> dict:
        if not self.api_key:
            raise CircleAPIError("CIRCLE_API_KEY is not set")
        url = f"{self.base_url}{path}"
        logger.info("Circle call start method=%s path=%s", method, path)
        try:
            resp = self.http.request(
                method,
                url,
                json=json,
                params=params,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise CircleAPIError(f"{method} {path} failed: {e}") from e
        if resp.status_code >= 400:
            raise CircleAPIError(f"{method} {path} returned {resp.status_code}: {resp.text[:200]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise CircleAPIError(f"{method} {path} returned invalid JSON") from e
        return body.get("data") or {}

    def _call(self, fn, *args, **kwargs) -> AdapterResult[Any]:
        try:
            return AdapterResult.success(fn(*args, **kwargs), source=SOURCE)
        except CircleAPIError as e:
            logger.warning("Circle call failed: %s", e)
            return AdapterResult.failure(str(e), source=SOURCE)

    def _transfer_body(self, *, wallet_id: str, to_address: str, amount: str, currency: str) -> dict[str, Any]:
        token_address = self.token_addresses.get(currency.upper())
        if not token_address:
            raise CircleAPIError(f"Unsupported currency: {currency}")
        return {
            "idempotencyKey": str(uuid.uuid4()),
            "entitySecretCiphertext": self.entity_secret_ciphertext,
            "walletId": wallet_id,
            "destinationAddress": to_address,
            "amounts": [str(amount)],
            "tokenAddress": token_address,
            "blockchain": self.blockchain,
            "feeLevel": "MEDIUM",
        }

    @staticmethod
    def _receipt(data: dict[str, Any]) -> TransferReceipt:
        tx_id = data.get("id")
        if not tx_id:
            raise CircleAPIError("Transaction response missing id")
        return TransferReceipt(transaction_id=tx_id, state=data.get("state"), tx_hash=data.get("txHash"))

    # ---------------------------
    # Reads
    # ---------------------------

    def get_balance(self, wallet_id: str, *, currency: str = "USDC") -> AdapterResult[str]:
        def fetch() -> str:
            data = self._request("GET", f"/v1/w3s/wallets/{wallet_id}/balances")
            for item in data.get("tokenBalances") or []:
                token = item.get("token") or {}
                if (token.get("symbol") or "").upper() == currency.upper():
                    return str(item.get("amount") or "0")
            return "0"

        return self._call(fetch)

    def get_address(self, wallet_id: str) -> AdapterResult[str]:
        def fetch() -> str:
            data = self._request("GET", f"/v1/w3s/wallets/{wallet_id}")
            address = (data.get("wallet") or {}).get("address")
            if not address:
                raise CircleAPIError("Wallet response missing address")
            return address

        return self._call(fetch)

    def list_transactions(self, wallet_id: str, *, limit: int = 5) -> AdapterResult[list[WalletTransaction]]:
        def fetch() -> list[WalletTransaction]:
            data = self._request("GET", "/v1/w3s/transactions", params={"walletIds": wallet_id, "pageSize": limit})
            items = []
            for tx in (data.get("transactions") or [])[:limit]:
                amounts = tx.get("amounts") or ["0"]
                items.append(
                    WalletTransaction(
                        transaction_id=tx.get("id", ""),
                        direction="out" if tx.get("transactionType") == "OUTBOUND" else "in",
                        amount=str(amounts[0]),
                        currency="USDC",
                        counterparty=tx.get("destinationAddress") or tx.get("sourceAddress"),
                        state=tx.get("state"),
                        tx_hash=tx.get("txHash"),
                        created_at=tx.get("createDate"),
                    )
                )
            return items

        return self._call(fetch)

    # ---------------------------
    # Writes
    # ---------------------------

    def send(
        self,
        *,
        wallet_id: str,
        to_address: str,
        amount: str,
        currency: str = "USDC",
    ) -> AdapterResult[TransferReceipt]:
        def submit() -> TransferReceipt:
            body = self._transfer_body(wallet_id=wallet_id, to_address=to_address, amount=amount, currency=currency)
            return self._receipt(self._request("POST", "/v1/w3s/developer/transactions/transfer", json=body))

        return self._call(submit)

    def bridge(
        self,
        *,
        wallet_id: str,
        amount: str,
        destination_chain: str,
        destination_address: str,
    ) -> AdapterResult[TransferReceipt]:
        domain = CCTP_DOMAINS.get(destination_chain.upper())
        if domain is None:
            return AdapterResult.failure(f"Unsupported destination chain: {destination_chain}", source=SOURCE)
        if not self.token_messenger_address:
            return AdapterResult.failure("Bridging is not configured", source=SOURCE)

        def submit() -> TransferReceipt:
            body = {
                "idempotencyKey": str(uuid.uuid4()),
                "entitySecretCiphertext": self.entity_secret_ciphertext,
                "walletId": wallet_id,
                "contractAddress": self.token_messenger_address,
                "abiFunctionSignature": _DEPOSIT_FOR_BURN,
                "abiParameters": [
                    _to_units(amount),
                    domain,
                    _address_to_bytes32(destination_address),
                    self.token_addresses["USDC"],
                ],
                "feeLevel": "MEDIUM",
            }
            receipt = self._receipt(
                self._request("POST", "/v1/w3s/developer/transactions/contractExecution", json=body)
            )
            receipt.extra = {"destinationChain": destination_chain.upper(), "domain": domain}
            return receipt

        return self._call(submit)

    def convert(
        self,
        *,
        wallet_id: str,
        wallet_address: str,
        from_currency: str,
        to_currency: str,
        amount: str,
    ) -> AdapterResult[TransferReceipt]:
        if from_currency.upper() == to_currency.upper():
            return AdapterResult.failure("Cannot convert currency to itself", source=SOURCE)

        def submit() -> TransferReceipt:
            # the swap venue settles the target currency back to the wallet
            destination = self.fx_swap_address or wallet_address
            body = self._transfer_body(
                wallet_id=wallet_id,
                to_address=destination,
                amount=amount,
                currency=from_currency,
            )
            return self._receipt(self._request("POST", "/v1/w3s/developer/transactions/transfer", json=body))

        return self._call(submit)
