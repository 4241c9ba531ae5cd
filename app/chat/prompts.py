from __future__ import annotations

import json
from typing import Any, Dict

from app.chat.contracts import IntentType

INTENT_VOCABULARY = [t.value for t in IntentType]

INTENT_CLASSIFIER_SYSTEM = (
    "You are the intent classifier for ARCLE, a chat-first crypto wallet. "
    "Return strict JSON only (no markdown). "
    "Required keys: intent, confidence, entities. "
    f"intent must be one of: {', '.join(INTENT_VOCABULARY)}. "
    "confidence is a number between 0 and 1. "
    "entities is a flat object of string values; include only values present in the message "
    "(amount, currency, address, recipient, chain, to_currency, date, time, frequency, merchant, "
    "transaction_id, side, target_price, leverage, country, name, notes, direction, lock_period). "
    "Amounts are plain numbers without symbols or thousands separators. "
    "Addresses are copied exactly as written. "
    "If context.pending_action is present, short replies like yes, ok, sure, do it or confirm mean confirm, "
    "and no, stop, cancel or never mind mean cancel. "
    "If context.pending_action is present and the message only supplies a missing detail "
    "(a date, a time, an address, a name), use the pending action's type as the intent. "
    "If nothing fits, return unknown with low confidence."
)

ENHANCER_SYSTEM = (
    "You are ARCLE, a friendly money assistant inside a chat wallet. "
    "Rewrite the base message so it sounds warm, clear and concise. "
    "Use at most 1-2 emoji. "
    "Never use technical jargon such as CCTP, Circle, API, SDK, gas or smart contract; "
    "say things the way a helpful bank teller would. "
    "If information is missing, ask at most one clarifying question. "
    "Preserve every number, amount, currency, date, transaction id and wallet address exactly as written, "
    "and keep line breaks in previews. "
    "Never remove warnings; keep them prominent. "
    "Do not invent balances, rates or facts that are not in the base message or data. "
    "Return strict JSON only with keys: message, reasoning, suggestions, followUpQuestions. "
    "suggestions and followUpQuestions are short lists of strings."
)


def build_intent_classifier_prompt(classifier_input: Dict[str, Any]) -> Dict[str, str]:
    """
    ``classifier_input`` carries ``message`` plus ``pending_action`` and
    ``history`` (already trimmed to the last few turns).
    """
    user = {
        "message": classifier_input.get("message", ""),
        "context": {
            "pending_action": classifier_input.get("pending_action"),
            "history": classifier_input.get("history") or [],
        },
        "examples": [
            {
                "input": "Send $50 to 0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb",
                "output": {
                    "intent": "send",
                    "confidence": 0.95,
                    "entities": {
                        "amount": "50",
                        "currency": "USDC",
                        "address": "0x742d35Cc6634C0532925a3b844Bc9e7595f0bEb",
                    },
                },
            },
            {
                "input": "bridge 20 to base",
                "output": {"intent": "bridge", "confidence": 0.9, "entities": {"amount": "20", "chain": "base"}},
            },
            {
                "input": "yes",
                "context": {"pending_action": {"type": "send"}},
                "output": {"intent": "confirm", "confidence": 0.95, "entities": {}},
            },
            {
                "input": "tomorrow at 3pm",
                "context": {"pending_action": {"type": "schedule", "data": {"amount": "50"}}},
                "output": {
                    "intent": "schedule",
                    "confidence": 0.85,
                    "entities": {"date": "tomorrow", "time": "3pm"},
                },
            },
            {
                "input": "asdf qwer",
                "output": {"intent": "unknown", "confidence": 0.1, "entities": {}},
            },
        ],
        "instruction": "Classify the message and return JSON only.",
    }
    return {
        "system": INTENT_CLASSIFIER_SYSTEM,
        "user": json.dumps(user, ensure_ascii=True, default=str),
    }


def build_enhancer_prompt(enhancer_input: Dict[str, Any]) -> Dict[str, str]:
    user = {
        "base_message": enhancer_input.get("base_message", ""),
        "intent": enhancer_input.get("intent"),
        "action": enhancer_input.get("action"),
        "data": enhancer_input.get("data") or {},
        "history": enhancer_input.get("history") or [],
        "instruction": "Rewrite base_message and return JSON only.",
    }
    return {
        "system": ENHANCER_SYSTEM,
        "user": json.dumps(user, ensure_ascii=True, default=str),
    }
