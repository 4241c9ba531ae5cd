import os
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# Set test database before any imports
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("LLM_ENABLED", "false")

from app.chat.contracts import ConversationContext, WalletContext
from app.chat.handlers import HandlerContext
from app.chat.llm import PassthroughEnhancer, RuleBasedClassifier
from app.chat.service import ChatService
from app.chat.state_store import InMemorySessionStore
from app.config import get_settings
from app.main import create_app
from db.base import Base
from db.session import SessionLocal, engine
from fx.rates import FXConversion, FXRate
from wallet.base import TransferReceipt, WalletTransaction
from wallet.result import AdapterResult

# 2030-03-04 is a Monday
FIXED_NOW = datetime(2030, 3, 4, 10, 0, tzinfo=timezone.utc)

# vitalik.eth, a well-known checksummed address
GOOD_ADDRESS = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
WALLET_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create all tables before tests run, drop after all tests complete."""
    # Import models to ensure they are registered with Base
    import db.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    """Clean tables between tests to ensure isolation."""
    yield
    with SessionLocal() as db:
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())
        db.commit()


@pytest.fixture(autouse=True)
def _configure_llm(monkeypatch, request):
    get_settings.cache_clear()
    if request.node.get_closest_marker("use_llm"):
        yield
        get_settings.cache_clear()
        return
    monkeypatch.setenv("LLM_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeWallet:
    """In-memory wallet provider that records every write."""

    def __init__(self, *, balance: str = "125.50", fail: bool = False):
        self.balance = balance
        self.fail = fail
        self.calls: list[tuple[str, dict]] = []

    def _write(self, name: str, **kwargs) -> AdapterResult:
        self.calls.append((name, kwargs))
        if self.fail:
            return AdapterResult.failure("provider down", source="fake")
        return AdapterResult.success(
            TransferReceipt(transaction_id=f"tx-{len(self.calls)}", state="INITIATED"),
            source="fake",
        )

    def get_balance(self, wallet_id, *, currency="USDC"):
        if self.fail:
            return AdapterResult.failure("provider down", source="fake")
        return AdapterResult.success(self.balance if currency == "USDC" else "0", source="fake")

    def get_address(self, wallet_id):
        return AdapterResult.success(WALLET_ADDRESS, source="fake")

    def list_transactions(self, wallet_id, *, limit=5):
        return AdapterResult.success(
            [
                WalletTransaction(
                    transaction_id="tx-old",
                    direction="out",
                    amount="10",
                    currency="USDC",
                    counterparty=GOOD_ADDRESS,
                    state="COMPLETE",
                    tx_hash=None,
                    created_at=None,
                )
            ],
            source="fake",
        )

    def send(self, **kwargs):
        return self._write("send", **kwargs)

    def bridge(self, **kwargs):
        return self._write("bridge", **kwargs)

    def convert(self, **kwargs):
        return self._write("convert", **kwargs)


class FakeFX:
    """Fixed USDC/EURC rate, no network."""

    def __init__(self, rate: float = 0.92):
        self.rate = rate

    def get_rate(self, from_currency, to_currency, *, use_cache=True):
        if from_currency == to_currency:
            return AdapterResult.success(FXRate(from_currency, to_currency, 1.0, "identity", 0.0), source="identity")
        rate = self.rate if from_currency == "USDC" else round(1 / self.rate, 6)
        return AdapterResult.success(FXRate(from_currency, to_currency, rate, "test", 0.0), source="test")

    def convert(self, amount, from_currency, to_currency):
        rate = self.get_rate(from_currency, to_currency).value
        converted = (Decimal(str(amount)) * Decimal(str(rate.rate))).quantize(Decimal("0.000001"))
        return AdapterResult.success(
            FXConversion(from_currency, to_currency, str(amount), str(converted), rate.rate, rate.source),
            source=rate.source,
        )


@pytest.fixture
def fake_wallet():
    return FakeWallet()


@pytest.fixture
def fake_fx():
    return FakeFX()


@pytest.fixture
def wallet_ctx():
    return WalletContext(wallet_id="wallet-1", wallet_address=WALLET_ADDRESS, balance="125.50")


@pytest.fixture
def make_ctx(fake_wallet, fake_fx, wallet_ctx):
    """Build a HandlerContext; pass ``pending=`` to simulate an in-flight action."""

    def _make(*, pending=None, wallet=None, session_id="session-1", with_db=True, provider=fake_wallet):
        conversation = ConversationContext(session_id=session_id, pending_action=pending)
        return HandlerContext(
            session_id=session_id,
            conversation=conversation,
            settings=get_settings(),
            wallet=wallet if wallet is not None else wallet_ctx,
            user_id="user-1",
            wallet_provider=provider,
            fx=fake_fx,
            session_factory=SessionLocal if with_db else None,
            clock=lambda: FIXED_NOW,
        )

    return _make


@pytest.fixture
def chat_service(fake_wallet, fake_fx):
    return ChatService(
        settings=get_settings(),
        store=InMemorySessionStore(ttl_seconds=3600),
        classifier=RuleBasedClassifier(),
        enhancer=PassthroughEnhancer(),
        wallet_provider=fake_wallet,
        fx=fake_fx,
        session_factory=SessionLocal,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def client(chat_service):
    app = create_app(chat_service=chat_service)
    with TestClient(app) as client:
        yield client
