from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Protocol

from pydantic import ValidationError

from app.chat.contracts import ConversationContext, IntentType, ParsedIntent
from app.chat.intents import classify, extract_addresses, extract_money_amounts
from llm.client import LLMClient, LLMError

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 5

_EMPHASIS_RE = re.compile(r"(\*\*|__)(.+?)\1|(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])", re.S)


def strip_markdown_emphasis(text: str) -> str:
    return _EMPHASIS_RE.sub(lambda m: m.group(2) if m.group(2) is not None else m.group(3), text)


# ---------------------------
# classifier strategies
# ---------------------------


class IntentClassifier(Protocol):
    def classify(self, message: str, context: ConversationContext | None = None) -> ParsedIntent: ...


class RuleBasedClassifier:
    def classify(self, message: str, context: ConversationContext | None = None) -> ParsedIntent:
        return classify(message)


def _coerce_entities(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    entities: Dict[str, str] = {}
    for key, value in raw.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            entities[str(key)] = text
    return entities


class LLMIntentClassifier:
    """
    Model-backed classification with the keyword rules as the safety net.

    Any provider error or output that does not validate into ``ParsedIntent``
    falls back to the rules. A model ``unknown`` also defers to the rules,
    since the rules never invent a match.
    """

    def __init__(self, client: LLMClient, *, fallback: RuleBasedClassifier | None = None):
        self._client = client
        self._fallback = fallback or RuleBasedClassifier()

    def classify(self, message: str, context: ConversationContext | None = None) -> ParsedIntent:
        pending = context.pending_action if context else None
        classifier_input = {
            "message": message,
            "pending_action": pending.model_dump(mode="json") if pending else None,
            "history": context.recent_history(HISTORY_WINDOW) if context else [],
        }
        try:
            output = self._client.classify(classifier_input=classifier_input)
            parsed = ParsedIntent(
                intent=IntentType(str(output.get("intent", "")).strip().lower()),
                confidence=min(1.0, max(0.0, float(output.get("confidence", 0.5)))),
                entities=_coerce_entities(output.get("entities")),
                raw_command=message,
            )
        except (LLMError, ValueError, TypeError, ValidationError) as e:
            logger.warning("LLM classification failed, using rules: %s", e)
            return self._fallback.classify(message, context)

        if parsed.intent == IntentType.UNKNOWN:
            return self._fallback.classify(message, context)
        logger.info("LLM classified intent=%s confidence=%s", parsed.intent.value, parsed.confidence)
        return parsed


# ---------------------------
# response enhancer strategies
# ---------------------------


class ResponseEnhancer(Protocol):
    def enhance(
        self,
        base_message: str,
        *,
        intent: ParsedIntent,
        action: str | None = None,
        data: Dict[str, Any] | None = None,
        history: List[Dict[str, Any]] | None = None,
    ) -> str: ...


class PassthroughEnhancer:
    def enhance(self, base_message: str, **_: Any) -> str:
        return base_message


class LLMResponseEnhancer:
    """Presentation-only rewrite. Never raises; the base message is the floor."""

    def __init__(self, client: LLMClient):
        self._client = client

    def enhance(
        self,
        base_message: str,
        *,
        intent: ParsedIntent,
        action: str | None = None,
        data: Dict[str, Any] | None = None,
        history: List[Dict[str, Any]] | None = None,
    ) -> str:
        enhancer_input = {
            "base_message": base_message,
            "intent": intent.intent.value,
            "action": action,
            "data": data or {},
            "history": (history or [])[-HISTORY_WINDOW:],
        }
        try:
            output = self._client.enhance(enhancer_input=enhancer_input)
        except LLMError as e:
            logger.warning("LLM enhancement failed: %s", e)
            return strip_markdown_emphasis(base_message)

        message = output.get("message")
        if not isinstance(message, str) or not message.strip():
            logger.warning("LLM enhancement returned no message")
            return strip_markdown_emphasis(base_message)
        message = message.strip()

        # a rewrite that loses an address is worse than no rewrite
        missing = [a for a in extract_addresses(base_message) if a.lower() not in message.lower()]
        if missing:
            logger.warning("LLM enhancement dropped %s address(es), using base message", len(missing))
            return strip_markdown_emphasis(base_message)
        changed = extract_money_amounts(base_message) - extract_money_amounts(message)
        if changed:
            logger.warning("LLM enhancement changed %s amount(s), using base message", len(changed))
            return strip_markdown_emphasis(base_message)
        return message


# ---------------------------
# wiring
# ---------------------------


def build_classifier(settings) -> IntentClassifier:
    if settings.LLM_ENABLED and settings.llm_classifier_enabled and settings.LLM_API_KEY:
        return LLMIntentClassifier(LLMClient.from_settings(settings))
    return RuleBasedClassifier()


def build_enhancer(settings) -> ResponseEnhancer:
    if settings.LLM_ENABLED and settings.llm_chat_responses and settings.LLM_API_KEY:
        return LLMResponseEnhancer(LLMClient.from_settings(settings, chat=True))
    return PassthroughEnhancer()
