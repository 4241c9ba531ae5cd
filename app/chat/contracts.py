from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class IntentType(str, Enum):
    GREETING = "greeting"
    LOCATION = "location"
    WALLET_CREATION = "wallet_creation"
    SCHEDULE = "schedule"
    INVOICE = "invoice"
    PAYMENT_ROLL = "payment_roll"
    BRIDGE = "bridge"
    SEND = "send"
    RECEIVE = "receive"
    REBALANCE = "rebalance"
    BALANCE = "balance"
    TOKENS = "tokens"
    ADDRESS = "address"
    PAY = "pay"
    YIELD = "yield"
    ARBITRAGE = "arbitrage"
    SPLIT_PAYMENT = "split_payment"
    BATCH = "batch"
    SAVINGS = "savings"
    TRADE = "trade"
    LIMIT_ORDER = "limit_order"
    LIQUIDITY = "liquidity"
    COMPOUND = "compound"
    CONVERT = "convert"
    FX_RATE = "fx_rate"
    MULTI_CURRENCY = "multi_currency"
    REMITTANCE = "remittance"
    FX_ALERT = "fx_alert"
    PERPETUAL = "perpetual"
    OPTIONS = "options"
    AGENT = "agent"
    TRANSACTION_HISTORY = "transaction_history"
    SCAN = "scan"
    WITHDRAW = "withdraw"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    CONTACT = "contact"
    NOTIFICATION = "notification"
    APPROVE_TOKEN = "approve_token"
    REJECT_TOKEN = "reject_token"
    HELP = "help"
    SUBSCRIPTION = "subscription"
    RENEW = "renew"
    UNKNOWN = "unknown"


class ParsedIntent(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    intent: IntentType
    confidence: float = Field(ge=0, le=1)
    # only keys that were actually extracted are present
    entities: dict[str, str] = Field(default_factory=dict)
    raw_command: str = ""


class PendingStage(str, Enum):
    COLLECTING = "collecting"
    CONFIRMING = "confirming"


class PendingAction(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: IntentType
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: int
    stage: PendingStage = PendingStage.COLLECTING
    # fields the last prompt asked for; a reply may replace them
    awaiting: list[str] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: Literal["user", "assistant"]
    message: str
    timestamp: int


class ConversationContext(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str
    user_id: str | None = None
    pending_action: PendingAction | None = None
    last_intent: str | None = None
    history: list[HistoryEntry] = Field(default_factory=list)
    # bumped on every successful write; used for compare-and-swap
    version: int = 0

    def recent_history(self, limit: int = 5) -> list[dict[str, Any]]:
        return [{"role": h.role, "content": h.message} for h in self.history[-limit:]]


class WalletContext(BaseModel):
    model_config = ConfigDict(extra="forbid")

    wallet_id: str | None = None
    wallet_address: str | None = None
    balance: str | None = None

    @property
    def has_wallet(self) -> bool:
        return bool(self.wallet_id or self.wallet_address)


class TransactionPreview(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: str
    currency: str = "USDC"
    to: str
    fee: str = "0.01"
    risk_score: int = 0
    risk_level: str = "low"
    risk_reasons: list[str] = Field(default_factory=list)
    blocked: bool = False
    is_new_wallet: bool = False


class BridgeData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    amount: str
    from_chain: str = "ARC-TESTNET"
    to_chain: str
    destination_address: str
    wallet_id: str | None = None
    wallet_address: str | None = None


class HandlerResult(BaseModel):
    """What a handler hands back to the service: a reply plus any state change."""

    model_config = ConfigDict(extra="forbid")

    message: str
    action: str | None = None
    requires_confirmation: bool = False
    transaction_preview: TransactionPreview | None = None
    bridge_data: BridgeData | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    pending: PendingAction | None = None
    clear_pending: bool = False
    # safety-critical replies are delivered verbatim
    enhance: bool = True


class AIResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str
    intent: ParsedIntent
    session_id: str
    requires_confirmation: bool = False
    transaction_preview: TransactionPreview | None = None
    bridge_data: BridgeData | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    pending_action: PendingAction | None = None


class ChatMessageRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str = Field(min_length=1, max_length=2000)
    session_id: str | None = None
    user_id: str | None = None
    wallet: WalletContext = Field(default_factory=WalletContext)
