from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import requests

from app.config import Settings
from wallet.result import AdapterResult

logger = logging.getLogger(__name__)

SUPPORTED_CURRENCIES = ("USDC", "EURC")

_COINGECKO_IDS = {"USDC": "usd-coin", "EURC": "euro-coin"}
_FIAT_BASE = {"USDC": "USD", "EURC": "EUR"}
_APPROXIMATE = {("USDC", "EURC"): 0.92, ("EURC", "USDC"): 1.09}

_CURRENCY_ALIASES = {
    "usdc": "USDC",
    "usd": "USDC",
    "dollar": "USDC",
    "dollars": "USDC",
    "eurc": "EURC",
    "eur": "EURC",
    "euro": "EURC",
    "euros": "EURC",
}


class FXProviderError(RuntimeError):
    pass


@dataclass(frozen=True)
class FXRate:
    from_currency: str
    to_currency: str
    rate: float
    source: str
    fetched_at: float


@dataclass(frozen=True)
class FXConversion:
    from_currency: str
    to_currency: str
    amount: str
    converted_amount: str
    rate: float
    source: str


def normalize_currency(value: str | None) -> str | None:
    if not value:
        return None
    return _CURRENCY_ALIASES.get(value.strip().lower())


class FXRateService:
    """
    USDC/EURC rate lookup.

    Order: in-process cache, CoinGecko stablecoin prices, fiat reference rates,
    then a fixed approximation so a quote is always available.
    """

    def __init__(self, settings: Settings, *, session: requests.Session | None = None) -> None:
        self.cache_ttl_s = settings.fx_cache_ttl_seconds
        self.timeout_s = settings.fx_timeout_s
        self.coingecko_base_url = settings.coingecko_base_url.rstrip("/")
        self.exchange_rate_base_url = settings.exchange_rate_base_url.rstrip("/")
        self.http = session or requests.Session()
        self._cache: dict[tuple[str, str], FXRate] = {}
        self._lock = threading.Lock()

    def _get_json(self, url: str, *, params: dict | None = None) -> dict:
        try:
            resp = self.http.get(url, params=params, timeout=self.timeout_s)
            resp.raise_for_status()
            return resp.json()
        except (requests.RequestException, ValueError) as e:
            raise FXProviderError(f"GET {url} failed: {e}") from e

    def _from_coingecko(self, from_currency: str, to_currency: str) -> float:
        ids = ",".join(_COINGECKO_IDS[c] for c in (from_currency, to_currency))
        data = self._get_json(
            f"{self.coingecko_base_url}/simple/price",
            params={"ids": ids, "vs_currencies": "usd"},
        )
        try:
            from_price = float(data[_COINGECKO_IDS[from_currency]]["usd"])
            to_price = float(data[_COINGECKO_IDS[to_currency]]["usd"])
        except (KeyError, TypeError, ValueError) as e:
            raise FXProviderError(f"Unexpected CoinGecko payload: {e}") from e
        if to_price <= 0:
            raise FXProviderError("CoinGecko returned a non-positive price")
        return from_price / to_price

    def _from_reference_rates(self, from_currency: str, to_currency: str) -> float:
        base = _FIAT_BASE[from_currency]
        data = self._get_json(f"{self.exchange_rate_base_url}/latest/{base}")
        try:
            return float(data["rates"][_FIAT_BASE[to_currency]])
        except (KeyError, TypeError, ValueError) as e:
            raise FXProviderError(f"Unexpected exchange-rate payload: {e}") from e

    def get_rate(self, from_currency: str, to_currency: str, *, use_cache: bool = True) -> AdapterResult[FXRate]:
        src = normalize_currency(from_currency)
        dst = normalize_currency(to_currency)
        if src is None or dst is None:
            return AdapterResult.failure(
                f"Unsupported currency pair: {from_currency}/{to_currency}",
                source="fx",
            )

        now = time.monotonic()
        if src == dst:
            return AdapterResult.success(FXRate(src, dst, 1.0, "identity", now), source="identity")

        if use_cache:
            with self._lock:
                cached = self._cache.get((src, dst))
            if cached and now - cached.fetched_at < self.cache_ttl_s:
                return AdapterResult.success(cached, source="cache")

        for source, fetch in (("coingecko", self._from_coingecko), ("exchangerate", self._from_reference_rates)):
            try:
                rate = FXRate(src, dst, fetch(src, dst), source, now)
            except FXProviderError as e:
                logger.warning("FX provider failed source=%s pair=%s/%s: %s", source, src, dst, e)
                continue
            with self._lock:
                self._cache[(src, dst)] = rate
            logger.info("FX rate fetched source=%s pair=%s/%s rate=%s", source, src, dst, rate.rate)
            return AdapterResult.success(rate, source=source)

        logger.warning("FX providers unavailable; using approximate rate for %s/%s", src, dst)
        return AdapterResult.success(FXRate(src, dst, _APPROXIMATE[(src, dst)], "approximate", now), source="approximate")

    def convert(self, amount: str, from_currency: str, to_currency: str) -> AdapterResult[FXConversion]:
        try:
            value = Decimal(str(amount))
        except ArithmeticError:
            return AdapterResult.failure(f"Invalid amount: {amount}", source="fx")
        if value <= 0:
            return AdapterResult.failure("Amount must be greater than zero", source="fx")

        rate_result = self.get_rate(from_currency, to_currency)
        if not rate_result.ok:
            return AdapterResult.failure(rate_result.error or "rate unavailable", source="fx")
        rate = rate_result.value
        converted = (value * Decimal(str(rate.rate))).quantize(Decimal("0.000001"), rounding=ROUND_HALF_UP)
        return AdapterResult.success(
            FXConversion(
                from_currency=rate.from_currency,
                to_currency=rate.to_currency,
                amount=str(value),
                converted_amount=str(converted),
                rate=rate.rate,
                source=rate.source,
            ),
            source=rate.source,
        )

    def get_rates(self, base_currency: str = "USDC") -> dict[str, FXRate]:
        rates: dict[str, FXRate] = {}
        for quote in SUPPORTED_CURRENCIES:
            result = self.get_rate(base_currency, quote)
            if result.ok and result.value is not None:
                rates[quote] = result.value
        return rates
