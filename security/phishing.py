"""Heuristic phishing detection for URLs pasted into chat messages."""
from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass, field
from urllib.parse import urlparse

KNOWN_PHISHING_DOMAINS = frozenset(
    {
        "metamask-verify.com",
        "metamask-support.com",
        "wallet-connect.org",
        "uniswap-v2.com",
        "uniswap-v3.com",
        "opensea-verify.com",
    }
)

LEGITIMATE_DOMAINS = (
    "metamask.io",
    "uniswap.org",
    "opensea.io",
    "walletconnect.com",
    "arcscan.app",
    "circle.com",
)

SUSPICIOUS_TLDS = (".tk", ".ml", ".ga", ".cf", ".gq", ".xyz", ".top", ".click", ".download", ".stream")

SUSPICIOUS_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"metamask[^a-z]verify",
        r"wallet[^a-z]connect",
        r"uniswap[^a-z]v[23]",
        r"opensea[^a-z]verify",
        r"wallet[^a-z]recovery",
        r"seed[^a-z]phrase",
        r"private[^a-z]key",
        r"verify[^a-z]wallet",
        r"secure[^a-z]wallet",
        r"wallet[^a-z]sync",
    )
)

_URL_RE = re.compile(r"(https?://[^\s]+|www\.[^\s]+|[a-zA-Z0-9-]+\.[a-zA-Z]{2,}[^\s]*)")
_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
_LEGIT_SUFFIX_RE = re.compile(r"\.(com|io|org|app)$")
_ANY_SUFFIX_RE = re.compile(r"\.(com|io|org|app|net|xyz|tk|ml|ga|cf|gq|top|click|download|stream)$")

PHISHING_THRESHOLD = 50
BLOCK_THRESHOLD = 80


@dataclass
class PhishingResult:
    is_phishing: bool = False
    confidence: int = 0
    reasons: list[str] = field(default_factory=list)
    detected_urls: list[str] = field(default_factory=list)
    # strongest warning level; the chat flow still lets the user proceed
    blocked: bool = False


def _extract_urls(text: str) -> list[str]:
    return [u for u in _URL_RE.findall(text or "") if not _ADDRESS_RE.match(u)]


def _parse_domain(url: str) -> str | None:
    full = url if url.startswith(("http://", "https://")) else f"https://{url}"
    try:
        host = urlparse(full).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def _levenshtein(a: str, b: str) -> int:
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            cur.append(min(prev[j] + 1, cur[j - 1] + 1, prev[j - 1] + cost))
        prev = cur
    return prev[-1]


def _similarity(a: str, b: str) -> float:
    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    if not longer:
        return 1.0
    return (len(longer) - _levenshtein(longer, shorter)) / len(longer)


def _suspicious_domain_reason(domain: str) -> str | None:
    if domain in KNOWN_PHISHING_DOMAINS:
        return "Known phishing domain"
    for tld in SUSPICIOUS_TLDS:
        if domain.endswith(tld):
            return f"Suspicious TLD: {tld}"
    domain_base = _ANY_SUFFIX_RE.sub("", domain)
    for legit in LEGITIMATE_DOMAINS:
        legit_base = _LEGIT_SUFFIX_RE.sub("", legit)
        if len(domain_base) > 3 and len(legit_base) > 3:
            if _similarity(domain_base, legit_base) > 0.8 and domain != legit:
                return f"Possible typosquatting of {legit}"
    return None


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _score_url(url: str) -> tuple[int, list[str]]:
    score = 0
    reasons: list[str] = []
    domain = _parse_domain(url)

    if domain:
        reason = _suspicious_domain_reason(domain)
        if reason:
            score += 50
            reasons.append(reason)

    lowered = url.lower()
    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(lowered):
            score += 40
            reasons.append(f"Matches suspicious pattern: {pattern.pattern}")
            break

    if len(url) > 100:
        score += 10
        reasons.append("Unusually long URL")

    if domain and _is_ip(domain):
        score += 30
        reasons.append("URL uses IP address instead of domain")

    if domain and len(domain.split(".")) > 4:
        score += 15
        reasons.append("Excessive subdomains")

    return min(score, 100), reasons


def detect_phishing_urls(text: str) -> PhishingResult:
    urls = _extract_urls(text)
    if not urls:
        return PhishingResult()

    max_score = 0
    reasons: list[str] = []
    suspicious: list[str] = []
    for url in urls:
        score, url_reasons = _score_url(url)
        if score > 0:
            suspicious.append(url)
            max_score = max(max_score, score)
            for reason in url_reasons:
                if reason not in reasons:
                    reasons.append(reason)

    return PhishingResult(
        is_phishing=max_score >= PHISHING_THRESHOLD,
        confidence=max_score,
        reasons=reasons,
        detected_urls=suspicious,
        blocked=max_score >= BLOCK_THRESHOLD,
    )
