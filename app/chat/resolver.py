from __future__ import annotations

from app.chat.contracts import IntentType, ParsedIntent, PendingAction, PendingStage
from app.chat.intents import extract_entities

# Follow-ups to these flows are almost always bare fragments ("tomorrow", "3pm").
_STICKY_TYPES = {IntentType.SCHEDULE, IntentType.SUBSCRIPTION}


def resolve_pending_intent(parsed: ParsedIntent, pending: PendingAction | None) -> ParsedIntent:
    """
    Re-interpret a classified message in light of an in-flight action.

    - confirm/cancel are never rewritten
    - an unrecognized follow-up is coerced into the pending flow and its
      entities are re-extracted with that flow's extractor
    - a same-type follow-up while collecting merges with the draft, draft values win
      except for the fields the last prompt asked for
    """
    if pending is None:
        return parsed
    if parsed.intent in (IntentType.CONFIRM, IntentType.CANCEL):
        return parsed

    collecting = pending.stage == PendingStage.COLLECTING

    if parsed.intent == IntentType.UNKNOWN and (pending.type in _STICKY_TYPES or collecting):
        entities = extract_entities(pending.type, parsed.raw_command)
        return ParsedIntent(
            intent=pending.type,
            confidence=0.8,
            entities=_merge(pending.data, entities, asked=pending.awaiting),
            raw_command=parsed.raw_command,
        )

    if parsed.intent == pending.type and collecting:
        return ParsedIntent(
            intent=parsed.intent,
            confidence=parsed.confidence,
            entities=_merge(pending.data, parsed.entities, asked=pending.awaiting),
            raw_command=parsed.raw_command,
        )

    return parsed


def _merge(draft: dict, fresh: dict[str, str], *, asked: list[str] | tuple[str, ...] = ()) -> dict[str, str]:
    merged = {k: v for k, v in fresh.items() if v}
    for key, value in draft.items():
        if value is None or value == "":
            continue
        if key in asked and key in merged:
            continue
        merged[key] = str(value)
    return merged
