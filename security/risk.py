from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum

from security.address import is_zero_address
from security.phishing import PhishingResult

KNOWN_SCAM_ADDRESSES: frozenset[str] = frozenset()

HIGH_RISK_THRESHOLD = 80
MEDIUM_RISK_THRESHOLD = 40


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class RiskAssessment:
    score: int
    level: RiskLevel
    reasons: list[str] = field(default_factory=list)
    # only the zero address is ever refused
    blocked: bool = False

    @property
    def label(self) -> str:
        if self.level == RiskLevel.HIGH:
            return f"⚠️ HIGH RISK ({self.score}/100)"
        if self.level == RiskLevel.MEDIUM:
            return f"⚠️ MEDIUM RISK ({self.score}/100)"
        return "✅ LOW RISK"


def _level(score: int) -> RiskLevel:
    if score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _as_decimal(amount: str | None) -> Decimal | None:
    if amount is None:
        return None
    try:
        return Decimal(str(amount))
    except InvalidOperation:
        return None


def score_transaction_risk(
    address: str,
    *,
    amount: str | None = None,
    phishing: PhishingResult | None = None,
    seen_before: bool | None = None,
    transaction_count: int | None = None,
    large_amount_threshold: float = 10000,
) -> RiskAssessment:
    """
    Score a prospective transfer on a 0..100 scale.

    ``seen_before`` / ``transaction_count`` come from the sender's own address
    history; ``None`` means no history is available and the address is treated
    as new.
    """
    if is_zero_address(address):
        return RiskAssessment(score=100, level=RiskLevel.HIGH, reasons=["Invalid zero address"], blocked=True)

    score = 0
    reasons: list[str] = []

    if phishing is not None and phishing.is_phishing:
        score += phishing.confidence
        reasons.extend(f"Phishing: {r}" for r in phishing.reasons)

    if address.lower() in KNOWN_SCAM_ADDRESSES:
        score += 50
        reasons.append("Known scam address")

    if not seen_before:
        score += 20
        reasons.append("New address (never seen before)")
    elif transaction_count == 0:
        score += 30
        reasons.append("Address has zero transaction history")

    value = _as_decimal(amount)
    if value is not None and value > Decimal(str(large_amount_threshold)):
        score += 10
        reasons.append("Large transaction amount")

    score = min(score, 100)
    return RiskAssessment(
        score=score,
        level=_level(score),
        reasons=reasons or ["No specific risk factors detected"],
    )
