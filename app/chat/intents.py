"""
Rule-based intent classification.

Rules are evaluated in a fixed order and the first match wins; the ordering is
the tie-break (bridge before send, scan before the address lookups,
schedule before any payment verb). Classification is a pure function of the
input text.
"""
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable

from app.chat.contracts import IntentType, ParsedIntent

# ---------------------------
# Shared patterns
# ---------------------------

# Loose on purpose: near-miss addresses reach validation and get a precise re-prompt.
_ADDRESS_RE = re.compile(r"\b0x[a-fA-F0-9]{36,44}\b")
_TX_HASH_RE = re.compile(r"\b0x[a-fA-F0-9]{64}\b")
_ISO_DATE_RE = re.compile(r"\b20\d{2}-\d{2}-\d{2}\b")
_TIME_RE = re.compile(r"\b(\d{1,2}(?::\d{2})?\s*(?:am|pm))\b|\bat\s+(\d{1,2}(?::\d{2})?)\b|\b(\d{1,2}:\d{2})\b", re.I)
_WEEKDAY = r"(?:monday|tuesday|wednesday|thursday|friday|saturday|sunday)"
_MONTH = (
    r"(?:january|february|march|april|may|june|july|august|september|october|november|december"
    r"|jan|feb|mar|apr|jun|jul|aug|sep|sept|oct|nov|dec)"
)
_DATE_RE = re.compile(
    rf"\b(today|tomorrow|next\s+{_WEEKDAY}|in\s+\d+\s+(?:day|days|week|weeks)|20\d{{2}}-\d{{2}}-\d{{2}})\b"
    rf"|\b(?:on\s+)?({_MONTH}\s+\d{{1,2}}(?:st|nd|rd|th)?)\b",
    re.I,
)
_DURATION_RE = re.compile(r"\b\d+\s*(?:days?|weeks?|months?|years?|x|%)(?!\w)", re.I)

_CURRENCY_WORDS = {
    "usdc": "USDC",
    "usd": "USDC",
    "dollar": "USDC",
    "dollars": "USDC",
    "eurc": "EURC",
    "eur": "EURC",
    "euro": "EURC",
    "euros": "EURC",
}
_CURRENCY_MENTION_RE = re.compile(r"\b(usdc|usd|dollars?|eurc|eur|euros?)\b", re.I)

_CHAINS = ("ethereum", "base", "polygon", "avalanche", "arbitrum", "optimism", "solana")
_CHAIN_RE = re.compile(rf"\b(?:to|on|onto)\s+({'|'.join(_CHAINS)})\b", re.I)

_COUNTRIES = (
    "mexico",
    "philippines",
    "india",
    "nigeria",
    "kenya",
    "ghana",
    "brazil",
    "colombia",
    "vietnam",
    "pakistan",
    "bangladesh",
    "egypt",
    "guatemala",
    "el salvador",
    "honduras",
    "dominican republic",
    "jamaica",
    "haiti",
    "peru",
    "uk",
    "germany",
    "france",
    "spain",
)

_NOT_A_NAME = re.compile(
    r"^(?:0x\w*|usdc|eurc|usd|dollars?|money|my|me|the|a|an|it|this|that|address|wallet|base|ethereum|polygon)$", re.I
)


def _keywords(*words: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b", re.I)


def _any(pattern: re.Pattern) -> Callable[[str], bool]:
    return lambda text: bool(pattern.search(text))


def _starts_with_any(words: Iterable[str], seps: str) -> Callable[[str], bool]:
    def match(text: str) -> bool:
        for word in words:
            if text == word or any(text.startswith(word + s) for s in seps):
                return True
        return False

    return match


# ---------------------------
# Predicates
# ---------------------------

_GREETING_RE = re.compile(
    r"^(?:(?:hi|hello|hey|hiya|greetings|sup|wassup|what'?s up|whats good|what'?s good|yo|hola|salut|ciao|g'day|howdy)"
    r"(?:\s+(?:there|friend|buddy|pal|mate|you|everyone|all|arcle))?"
    r"|(?:good\s+)?(?:morning|afternoon|evening|night)"
    r"|how are you|how are we|how'?s it going|how you doing|how do you do"
    r"|nice to meet you|pleased to meet you)"
    r"(?:[\s,!.?]+(?:how are you|arcle|there))?[\s!.?]*$",
    re.I,
)

_LOCATION_RE = re.compile(
    r"📍|🗺️|🌍|google\.com/maps|maps\.google\.com|\bmy location\b|\blocation\b|\bcoordinates\b"
    r"|\bwhere i am\b|\bmy position\b|\bgps\b|-?\d+\.\d+,\s*-?\d+\.\d+",
    re.I,
)

_WALLET_CREATION_RE = re.compile(
    r"\b(?:create|make|set\s*up|open|start|initialize|activate)\s+(?:me\s+)?(?:a\s+|an\s+|my\s+)?(?:new\s+)?(?:wallet|account)\b"
    r"|\bnew (?:wallet|account)\b|\b(?:need|want|like) (?:a |an )?(?:wallet|account)\b|\bwallet (?:for me|please|now)\b",
    re.I,
)

_RECURRING_RE = _keywords(
    "recurring",
    "subscription",
    "subscribe",
    "auto renew",
    "auto-renew",
    "autorenew",
    "auto pay",
    "autopay",
    "every day",
    "every week",
    "every month",
    "monthly",
    "weekly",
    "daily",
)
_SCHEDULE_RE = _keywords(
    "schedule",
    "scheduled",
    "one-time payment",
    "one time payment",
    "pay later",
    "send later",
    "remind me to pay",
    "pay on",
    "pay at",
    "send on",
    "send at",
    "scheduled transaction",
)
_SUBSCRIPTION_RE = re.compile(r"\b(?:subscribe|subscription|recurring payment)", re.I)
_PAYMENT_VERB_RE = _keywords("pay", "payment", "send", "charge", "bill")
_RENEW_RE = re.compile(r"\b(?:renew|renewal|auto[- ]?renew)\b", re.I)
_RATE_RE = _keywords("rate", "rates", "price")

_FX_PAIR_RE = re.compile(r"\b(?:eurc|eur|euros?)\b", re.I)
_FX_VERB_RE = _keywords("convert", "exchange", "swap", "change")
_TRADE_RE = _keywords("trade", "swap", "exchange", "convert")


def _is_schedule(text: str) -> bool:
    return not _RECURRING_RE.search(text) and bool(_SCHEDULE_RE.search(text))


def _is_subscription(text: str) -> bool:
    if _SUBSCRIPTION_RE.search(text):
        return True
    return bool(_RECURRING_RE.search(text) and _PAYMENT_VERB_RE.search(text))


def _is_fx_conversion(text: str) -> bool:
    if _RATE_RE.search(text):
        return False
    return bool(_FX_VERB_RE.search(text) and _FX_PAIR_RE.search(text))


def _is_trade(text: str) -> bool:
    return bool(_TRADE_RE.search(text)) and not _RATE_RE.search(text)


_SEND_RE = _keywords("send", "transfer", "give", "wire")
_REMITTANCE_RE = re.compile(
    r"\b(?:remittance|remittances|remit)\b"
    r"|\b(?:mom|mother|dad|father|family|parents|sister|brother|wife|husband|son|daughter)\s+(?:in|back in|back home)\b",
    re.I,
)


def _is_send(text: str) -> bool:
    return bool(_SEND_RE.search(text)) and not _REMITTANCE_RE.search(text)


_BALANCE_RE = _keywords("balance", "how much", "funds")
_NOTIFICATION_RE = _keywords("notification", "notifications", "notify", "alert", "alerts")


def _is_balance(text: str) -> bool:
    return bool(_BALANCE_RE.search(text)) and not _NOTIFICATION_RE.search(text)


_FX_ALERT_RE = re.compile(
    r"\b(?:rate alert|fx alert|price alert|notify me when|tell me when|alert me when|let me know when)\b",
    re.I,
)
_PERPETUAL_RE = re.compile(
    r"\b(?:perpetuals?|perps?|leverage|leveraged|margin|open position|go (?:long|short)|\d+x (?:long|short))\b"
    r"|\b(?:long|short)\s+(?:eth|btc|sol|weth|position)\b",
    re.I,
)
_OPTIONS_RE = re.compile(
    r"\boptions?\b|\b(?:call|put)s?\s+options?\b|\bbuy (?:a )?(?:call|put)\b|\bstrike\b|\bexpiry\b",
    re.I,
)

_CONFIRM_WORDS = (
    "yes",
    "yeah",
    "yep",
    "yup",
    "sure",
    "ok",
    "okay",
    "okey",
    "confirm",
    "confirmed",
    "proceed",
    "go ahead",
    "go for it",
    "do it",
    "execute",
    "run it",
    "make it happen",
    "continue",
    "let's do it",
    "let's go",
    "sounds good",
    "that's right",
    "correct",
    "affirmative",
    "absolutely",
    "approve",
    "approved",
    "accept",
    "accepted",
)
_CANCEL_WORDS = ("no", "cancel", "stop", "abort", "don't", "dont", "nevermind", "never mind", "nope")

_Rule = tuple[IntentType, float, Callable[[str], bool]]

RULES: tuple[_Rule, ...] = (
    (IntentType.GREETING, 0.95, _any(_GREETING_RE)),
    (IntentType.LOCATION, 0.95, _any(_LOCATION_RE)),
    (IntentType.WALLET_CREATION, 0.95, _any(_WALLET_CREATION_RE)),
    (IntentType.SCHEDULE, 0.95, _is_schedule),
    (IntentType.RENEW, 0.9, _any(_RENEW_RE)),
    (IntentType.SUBSCRIPTION, 0.9, _is_subscription),
    (
        IntentType.INVOICE,
        0.95,
        _any(_keywords("invoice", "invoices", "create bill", "create a bill", "bill to")),
    ),
    (IntentType.PAYMENT_ROLL, 0.95, _any(_keywords("payment roll", "payroll", "pay employees", "pay team", "pay my team"))),
    (IntentType.BRIDGE, 0.9, _any(_keywords("bridge", "cross-chain", "cross chain", "move to"))),
    (IntentType.SPLIT_PAYMENT, 0.9, _any(_keywords("split", "divide payment"))),
    (IntentType.BATCH, 0.9, _any(_keywords("batch", "multiple transactions"))),
    (IntentType.SEND, 0.9, _is_send),
    (
        IntentType.SCAN,
        0.9,
        _any(_keywords("scan", "check address", "analyze address", "security check", "risk check", "is this address safe")),
    ),
    (
        IntentType.CONTACT,
        0.9,
        _any(
            re.compile(
                r"\b(?:contacts?|save as|address ?book|save address)\b|\bsave\s+0x[a-f0-9]+\s+as\b",
                re.I,
            )
        ),
    ),
    (IntentType.RECEIVE, 0.9, _any(_keywords("receive", "qr", "qr code", "my address", "show address", "deposit address"))),
    (IntentType.REBALANCE, 0.9, _any(_keywords("rebalance", "balance portfolio"))),
    (
        IntentType.BALANCE,
        0.95,
        _is_balance,
    ),
    (
        IntentType.TOKENS,
        0.95,
        _any(
            _keywords(
                "what tokens",
                "show tokens",
                "list tokens",
                "my tokens",
                "all tokens",
                "tokens i have",
                "token balances",
                "what do i have",
                "what assets",
            )
        ),
    ),
    (IntentType.ADDRESS, 0.9, _any(_keywords("address", "wallet address"))),
    (IntentType.PAY, 0.9, _any(_keywords("pay", "payment", "make payment"))),
    (IntentType.YIELD, 0.9, _any(_keywords("yield", "earn", "staking", "stake", "farm", "apy", "interest"))),
    (IntentType.ARBITRAGE, 0.9, _any(_keywords("arbitrage", "price difference"))),
    (
        IntentType.SAVINGS,
        0.9,
        _any(re.compile(r"\b(?:savings?|save money|safe ?lock|savings goal)\b|\b(?:save|lock)\s+\$?\d", re.I)),
    ),
    (IntentType.LIMIT_ORDER, 0.9, _any(_keywords("limit order", "limit orders", "limit buy", "limit sell", "order at", "when price"))),
    (IntentType.CONVERT, 0.9, _is_fx_conversion),
    (IntentType.TRADE, 0.9, _is_trade),
    (IntentType.LIQUIDITY, 0.9, _any(_keywords("liquidity", "best price", "find best"))),
    (IntentType.COMPOUND, 0.9, _any(_keywords("compound", "auto compound", "reinvest"))),
    (IntentType.FX_ALERT, 0.9, _any(_FX_ALERT_RE)),
    (IntentType.FX_RATE, 0.9, _any(_keywords("fx rate", "exchange rate", "currency rate", "rate", "rates"))),
    (IntentType.MULTI_CURRENCY, 0.9, _any(_keywords("currencies", "multi currency", "multi-currency"))),
    (IntentType.REMITTANCE, 0.9, _any(_REMITTANCE_RE)),
    (IntentType.PERPETUAL, 0.9, _any(_PERPETUAL_RE)),
    (IntentType.OPTIONS, 0.9, _any(_OPTIONS_RE)),
    (IntentType.AGENT, 0.9, _any(_keywords("agent", "agents", "ai agent", "autonomous", "automate"))),
    (
        IntentType.TRANSACTION_HISTORY,
        0.85,
        _any(_keywords("history", "transactions", "recent", "past", "activity")),
    ),
    (IntentType.WITHDRAW, 0.9, _any(_keywords("withdraw", "offramp", "off-ramp", "cash out", "cashout", "sell"))),
    (
        IntentType.APPROVE_TOKEN,
        0.9,
        _any(_keywords("approve token", "approve this token", "allow token", "accept token", "trust token", "keep token")),
    ),
    (
        IntentType.REJECT_TOKEN,
        0.9,
        _any(_keywords("reject token", "reject this token", "block token", "deny token", "remove token", "don't approve")),
    ),
    (IntentType.CONFIRM, 0.95, _starts_with_any(_CONFIRM_WORDS, (" ", ",", ".", "!"))),
    (IntentType.CANCEL, 0.95, _starts_with_any(_CANCEL_WORDS, (" ", ",", ".", "!"))),
    (IntentType.NOTIFICATION, 0.9, _any(_NOTIFICATION_RE)),
    (
        IntentType.HELP,
        0.95,
        _any(_keywords("help", "what can you do", "what do you do", "how", "commands")),
    ),
)


# ---------------------------
# Entity extraction
# ---------------------------


def _first_address(text: str) -> str | None:
    for match in _ADDRESS_RE.finditer(text):
        if not _TX_HASH_RE.fullmatch(match.group(0)):
            return match.group(0)
    return None


def extract_addresses(text: str) -> list[str]:
    return [m.group(0) for m in _ADDRESS_RE.finditer(text) if not _TX_HASH_RE.fullmatch(m.group(0))]


def _strip_non_amounts(text: str) -> str:
    """Blank out spans that contain digits but are never amounts."""
    text = _TX_HASH_RE.sub(" ", text)
    text = _ADDRESS_RE.sub(" ", text)
    text = _ISO_DATE_RE.sub(" ", text)
    text = _DATE_RE.sub(" ", text)
    text = _TIME_RE.sub(" ", text)
    text = _DURATION_RE.sub(" ", text)
    return text


_AMOUNT_PATTERNS = (
    re.compile(r"\$\s?(\d+(?:,\d{3})*(?:\.\d+)?)"),
    re.compile(r"(\d+(?:,\d{3})*(?:\.\d+)?)\s*(?:usdc|eurc|usd|eur|dollars?|euros?|bucks|money)\b", re.I),
    re.compile(r"(?<![\w.])(\d+(?:,\d{3})*(?:\.\d+)?)(?![\w.])"),
)


def extract_amount(text: str) -> str | None:
    cleaned = _strip_non_amounts(text)
    for pattern in _AMOUNT_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            return match.group(1).replace(",", "")
    return None


def extract_money_amounts(text: str) -> set[Decimal]:
    """Every explicit money figure ("$50", "1,024.66 USDC"), normalized for comparison."""
    cleaned = _strip_non_amounts(text)
    found: set[Decimal] = set()
    for pattern in _AMOUNT_PATTERNS[:2]:
        for match in pattern.finditer(cleaned):
            try:
                found.add(Decimal(match.group(1).replace(",", "")).normalize())
            except InvalidOperation:
                continue
    return found


def extract_currency(text: str) -> str | None:
    match = _CURRENCY_MENTION_RE.search(text)
    if not match:
        return None
    return _CURRENCY_WORDS[match.group(1).lower()]


def extract_date(text: str) -> str | None:
    match = _DATE_RE.search(text)
    if not match:
        return None
    return (match.group(1) or match.group(2)).lower()


def extract_time(text: str) -> str | None:
    match = _TIME_RE.search(text)
    if not match:
        return None
    value = next(g for g in match.groups() if g)
    return " ".join(value.lower().split())


def extract_currency_pair(text: str) -> tuple[str | None, str | None]:
    """Return (from, to) for FX phrases like "convert 100 usdc to eur"."""
    match = re.search(
        r"\b(?:from|convert|exchange|swap|change)\s+(?:\$?\d+(?:\.\d+)?\s*)?([a-z]+)\s+(?:to|for|into)\s+([a-z]+)\b",
        text,
        re.I,
    )
    if match:
        src = _CURRENCY_WORDS.get(match.group(1).lower())
        dst = _CURRENCY_WORDS.get(match.group(2).lower())
        if src and dst:
            return src, dst

    mentions = [(m.start(), _CURRENCY_WORDS[m.group(1).lower()]) for m in _CURRENCY_MENTION_RE.finditer(text)]
    if len(mentions) >= 2 and mentions[0][1] != mentions[1][1]:
        return mentions[0][1], mentions[1][1]
    if len(mentions) == 1:
        pos, currency = mentions[0]
        other = "USDC" if currency == "EURC" else "EURC"
        if re.search(r"\b(?:to|into|for)\s*$", text[:pos], re.I):
            return other, currency
        return currency, other
    return None, None


def _recipient_name(text: str) -> str | None:
    match = re.search(r"\bto\s+([a-zA-Z][a-zA-Z'-]*)\b", text)
    if match and not _NOT_A_NAME.match(match.group(1)):
        return match.group(1)
    return None


def _transfer_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    amount = extract_amount(text)
    if amount:
        entities["amount"] = amount
    entities["currency"] = extract_currency(text) or "USDC"
    address = _first_address(text)
    if address:
        entities["address"] = address
    else:
        recipient = _recipient_name(text)
        if recipient:
            entities["recipient"] = recipient
    return entities


def _bridge_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    amount = extract_amount(text)
    if amount:
        entities["amount"] = amount
    chain = _CHAIN_RE.search(text)
    if chain:
        entities["chain"] = chain.group(1).lower()
    currency = extract_currency(text)
    if currency:
        entities["currency"] = currency
    address = _first_address(text)
    if address:
        entities["address"] = address
    elif re.search(r"\b(?:my wallet|my address|same address|myself|my own)\b", text, re.I):
        entities["destination"] = "self"
    return entities


def _schedule_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    amount = extract_amount(text)
    if amount:
        entities["amount"] = amount
    currency = extract_currency(text)
    if currency:
        entities["currency"] = currency
    address = _first_address(text)
    if address:
        entities["address"] = address
    date = extract_date(text)
    if date:
        entities["date"] = date
    at = extract_time(text)
    if at:
        entities["time"] = at
    return entities


_FREQUENCY_RE = re.compile(r"\b(daily|weekly|monthly|every\s+(?:day|week|month))\b", re.I)
_FREQUENCY_WORDS = {"every day": "daily", "every week": "weekly", "every month": "monthly"}
_MERCHANT_STOP = {"monthly", "weekly", "daily", "every", "each", "at", "on", "for", "per", "a", "the"}


def _merchant(text: str) -> str | None:
    for pattern in (
        r"\bfor\s+([a-z][a-z0-9\-]*(?:\s+[a-z][a-z0-9\-]*){0,2})",
        r"\b(?:subscribe|subscription)\s+(?:to\s+)?([a-z][a-z0-9\-]*(?:\s+[a-z][a-z0-9\-]*){0,2})",
        r"\bto\s+([a-z][a-z0-9\-]*(?:\s+[a-z][a-z0-9\-]*){0,2})",
    ):
        match = re.search(pattern, text, re.I)
        if not match:
            continue
        words = []
        for word in match.group(1).split():
            if word.lower() in _MERCHANT_STOP or _CURRENCY_MENTION_RE.fullmatch(word):
                break
            words.append(word)
        if words:
            return " ".join(words)
    return None


def _subscription_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    amount = extract_amount(text)
    if amount:
        entities["amount"] = amount
    currency = extract_currency(text)
    if currency:
        entities["currency"] = currency
    merchant = _merchant(text)
    if merchant:
        entities["merchant"] = merchant
    frequency = _FREQUENCY_RE.search(text)
    if frequency:
        value = " ".join(frequency.group(1).lower().split())
        entities["frequency"] = _FREQUENCY_WORDS.get(value, value)
    at = extract_time(text)
    if at:
        entities["time"] = at
    return entities


def _history_entities(text: str) -> dict[str, str]:
    match = _TX_HASH_RE.search(text)
    return {"transaction_id": match.group(0)} if match else {}


def _address_only(text: str) -> dict[str, str]:
    address = _first_address(text)
    return {"address": address} if address else {}


def _amount_only(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    amount = extract_amount(text)
    if amount:
        entities["amount"] = amount
    currency = extract_currency(text)
    if currency:
        entities["currency"] = currency
    return entities


def _fx_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    entities.pop("currency", None)
    src, dst = extract_currency_pair(text)
    if src:
        entities["currency"] = src
    if dst:
        entities["to_currency"] = dst
    return entities


def _fx_alert_entities(text: str) -> dict[str, str]:
    entities = _fx_entities(text)
    entities.pop("amount", None)
    target = re.search(r"\b(?:at|above|below|reaches|hits|over|under)\s+\$?(\d+(?:\.\d+)?)", text, re.I)
    if target:
        entities["target_price"] = target.group(1)
    if re.search(r"\b(?:below|under|drops|falls)\b", text, re.I):
        entities["direction"] = "below"
    elif target:
        entities["direction"] = "above"
    return entities


_TOKEN_RE = re.compile(r"\b(eth|weth|btc|wbtc|sol|usdc|eurc|arb|op|matic)\b", re.I)


def _trade_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    entities.pop("currency", None)
    pair = re.search(r"\b([a-z]{2,5})\s+(?:to|for|into)\s+([a-z]{2,5})\b", text, re.I)
    if pair and _TOKEN_RE.fullmatch(pair.group(1)) and _TOKEN_RE.fullmatch(pair.group(2)):
        entities["currency"] = pair.group(1).upper()
        entities["to_currency"] = pair.group(2).upper()
    else:
        tokens = [t.upper() for t in _TOKEN_RE.findall(text)]
        if tokens:
            entities["currency"] = tokens[0]
        if len(tokens) > 1:
            entities["to_currency"] = tokens[1]
    return entities


def _limit_order_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    price = re.search(r"\b(?:at|when|price|reaches|hits)\s+(?:price\s+)?\$?(\d+(?:\.\d+)?)", text, re.I)
    if price:
        entities["target_price"] = price.group(1)
        remainder = text[: price.start()] + " " + text[price.end():]
    else:
        remainder = text
    amount = extract_amount(remainder)
    if amount:
        entities["amount"] = amount
    side = re.search(r"\b(buy|sell)\b", text, re.I)
    if side:
        entities["side"] = side.group(1).lower()
    tokens = [t.upper() for t in _TOKEN_RE.findall(text) if t.lower() not in {"usdc"}]
    if tokens:
        entities["token"] = tokens[0]
    return entities


def _perpetual_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    leverage = re.search(r"\b(\d+)\s*x\b", text, re.I)
    if leverage:
        entities["leverage"] = leverage.group(1)
    amount = extract_amount(text)
    if amount:
        entities["amount"] = amount
    side = re.search(r"\b(long|short)\b", text, re.I)
    if side:
        entities["side"] = side.group(1).lower()
    tokens = [t.upper() for t in _TOKEN_RE.findall(text) if t.lower() != "usdc"]
    if tokens:
        entities["token"] = tokens[0]
    return entities


def _options_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    side = re.search(r"\b(call|put)s?\b", text, re.I)
    if side:
        entities["side"] = side.group(1).lower()
    strike = re.search(r"\bstrike\s+(?:price\s+)?(?:of\s+)?\$?(\d+(?:\.\d+)?)", text, re.I)
    if strike:
        entities["target_price"] = strike.group(1)
    tokens = [t.upper() for t in _TOKEN_RE.findall(text) if t.lower() != "usdc"]
    if tokens:
        entities["token"] = tokens[0]
    return entities


def _split_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    count = re.search(r"\b(?:between|among)\s+(\d+)\b|\b(\d+)\s*(?:people|persons|friends|recipients|ways)\b", text, re.I)
    addresses = extract_addresses(text)
    if count:
        entities["count"] = count.group(1) or count.group(2)
        if entities.get("amount") == entities["count"]:
            entities.pop("amount")
            amount = extract_amount(text[: count.start()] + " " + text[count.end():])
            if amount:
                entities["amount"] = amount
    elif addresses:
        entities["count"] = str(len(addresses))
    if addresses:
        entities["addresses"] = ",".join(addresses)
    return entities


def _batch_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    addresses = extract_addresses(text)
    if addresses:
        entities["addresses"] = ",".join(addresses)
        entities["count"] = str(len(addresses))
    return entities


_LOCK_PERIOD_RE = re.compile(r"\b(\d+)\s*(week|weeks|month|months|year|years)\b|\b(1m|3m|6m|1y|2w)\b", re.I)


def _lock_period(text: str) -> str | None:
    match = _LOCK_PERIOD_RE.search(text)
    if not match:
        return None
    if match.group(3):
        return match.group(3).lower()
    return f"{match.group(1)}{match.group(2)[0].lower()}"


def _savings_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    period = _lock_period(text)
    if period:
        entities["lock_period"] = period
    name = re.search(r"\b(?:called|named|for a|for an|for my|for)\s+([a-z][a-z ]{1,30}?)(?:\s+(?:with|of|in|for)\b|$)", text, re.I)
    if name and not _CURRENCY_MENTION_RE.fullmatch(name.group(1).strip()):
        entities["name"] = name.group(1).strip()
    return entities


def _remittance_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    lowered = text.lower()
    for country in _COUNTRIES:
        if re.search(rf"\b{re.escape(country)}\b", lowered):
            entities["country"] = country.title() if len(country) > 2 else country.upper()
            break
    who = re.search(r"\b(?:my\s+)?(mom|mother|dad|father|family|sister|brother|wife|husband|son|daughter)\b", lowered)
    if who:
        entities["recipient"] = who.group(1)
    address = _first_address(text)
    if address:
        entities["address"] = address
    return entities


def _withdraw_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    destination = re.search(r"\b(bank|card|debit card|paypal)\b", text, re.I)
    if destination:
        entities["destination"] = destination.group(1).lower()
    return entities


def _contact_entities(text: str) -> dict[str, str]:
    entities: dict[str, str] = {}
    for pattern in (
        r"\bsave\s+(?:this\s+)?(?:address\s+)?as\s+([a-zA-Z][a-zA-Z0-9 ]{1,29}?)\s*(?:0x|$|,)",
        r"\bsave\s+0x[a-fA-F0-9]+\s+as\s+([a-zA-Z][a-zA-Z0-9 ]{1,29}?)\s*(?:$|,)",
        r"\b(?:add|save|new)\s+contact\s+([a-zA-Z][a-zA-Z0-9 ]{1,29}?)\s*(?:0x|$|,|with\b)",
        r"\b(?:delete|remove|update|edit|show|find)\s+contact\s+([a-zA-Z][a-zA-Z0-9 ]{1,29}?)\s*(?:$|,)",
        r"\b(?:delete|remove)\s+([a-zA-Z][a-zA-Z0-9]{1,29})\s+(?:from\s+)?(?:my\s+)?contacts?\b",
    ):
        match = re.search(pattern, text, re.I)
        if match:
            entities["name"] = match.group(1).strip()
            break
    address = _first_address(text)
    if address:
        entities["address"] = address
    notes = re.search(r"\bnotes?:\s*([^,]+)", text, re.I)
    if notes:
        entities["notes"] = notes.group(1).strip()
    return entities


def _token_approval_entities(text: str) -> dict[str, str]:
    entities = _address_only(text)
    symbol = re.search(r"\b(?:token|symbol)\s+([A-Za-z][A-Za-z0-9]{1,10})\b", text)
    if symbol and symbol.group(1).lower() not in {"from", "at", "this", "it"}:
        entities["token"] = symbol.group(1).upper()
    return entities


def _location_entities(text: str) -> dict[str, str]:
    coords = re.search(r"(-?\d+\.\d+),\s*(-?\d+\.\d+)", text)
    if coords:
        return {"coordinates": f"{coords.group(1)},{coords.group(2)}"}
    maps = re.search(r"(?:maps\.google\.com/\?q=|google\.com/maps\?q=)([^&\s]+)", text)
    if maps:
        return {"coordinates": maps.group(1)}
    return {}


def _invoice_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    who = re.search(r"\b(?:to|for)\s+([A-Z][a-zA-Z]+|[a-z]+)\b", text)
    if who and not _NOT_A_NAME.match(who.group(1)) and not _CURRENCY_MENTION_RE.fullmatch(who.group(1)):
        entities["recipient"] = who.group(1)
    date = extract_date(text)
    if date:
        entities["date"] = date
    return entities


def _payroll_entities(text: str) -> dict[str, str]:
    entities = _amount_only(text)
    frequency = _FREQUENCY_RE.search(text)
    if frequency:
        value = " ".join(frequency.group(1).lower().split())
        entities["frequency"] = _FREQUENCY_WORDS.get(value, value)
    addresses = extract_addresses(text)
    if addresses:
        entities["addresses"] = ",".join(addresses)
        entities["count"] = str(len(addresses))
    return entities


_EXTRACTORS: dict[IntentType, Callable[[str], dict[str, str]]] = {
    IntentType.SEND: _transfer_entities,
    IntentType.PAY: _transfer_entities,
    IntentType.BRIDGE: _bridge_entities,
    IntentType.SCHEDULE: _schedule_entities,
    IntentType.SUBSCRIPTION: _subscription_entities,
    IntentType.TRANSACTION_HISTORY: _history_entities,
    IntentType.SCAN: _address_only,
    IntentType.YIELD: _amount_only,
    IntentType.LIQUIDITY: _amount_only,
    IntentType.COMPOUND: _amount_only,
    IntentType.REBALANCE: _amount_only,
    IntentType.CONVERT: _fx_entities,
    IntentType.FX_RATE: _fx_entities,
    IntentType.FX_ALERT: _fx_alert_entities,
    IntentType.TRADE: _trade_entities,
    IntentType.LIMIT_ORDER: _limit_order_entities,
    IntentType.PERPETUAL: _perpetual_entities,
    IntentType.OPTIONS: _options_entities,
    IntentType.SPLIT_PAYMENT: _split_entities,
    IntentType.BATCH: _batch_entities,
    IntentType.SAVINGS: _savings_entities,
    IntentType.REMITTANCE: _remittance_entities,
    IntentType.WITHDRAW: _withdraw_entities,
    IntentType.CONTACT: _contact_entities,
    IntentType.APPROVE_TOKEN: _token_approval_entities,
    IntentType.REJECT_TOKEN: _token_approval_entities,
    IntentType.LOCATION: _location_entities,
    IntentType.INVOICE: _invoice_entities,
    IntentType.PAYMENT_ROLL: _payroll_entities,
}


def extract_entities(intent: IntentType, text: str) -> dict[str, str]:
    extractor = _EXTRACTORS.get(intent)
    if extractor is None:
        return {}
    return extractor(text.strip())


def normalize(text: str) -> str:
    return " ".join((text or "").lower().split())


def classify(raw_text: str) -> ParsedIntent:
    text = normalize(raw_text)
    for intent, confidence, predicate in RULES:
        if text and predicate(text):
            return ParsedIntent(
                intent=intent,
                confidence=confidence,
                entities=extract_entities(intent, raw_text or ""),
                raw_command=raw_text or "",
            )
    return ParsedIntent(intent=IntentType.UNKNOWN, confidence=0.1, entities={}, raw_command=raw_text or "")
