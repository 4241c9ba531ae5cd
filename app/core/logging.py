from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from app.core.context import get_session_id
from app.config import get_settings

# record attributes passed through `extra=` that both formatters surface
CHAT_FIELDS = ("intent", "action", "user_id")

# chatty third-party loggers (http clients used by the wallet, fx and llm adapters)
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "urllib3", "openai")


def utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "session_id", None):
            record.session_id = get_session_id() or "-"
        return True


def _chat_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {name: getattr(record, name) for name in CHAT_FIELDS if getattr(record, name, None) is not None}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": utc_iso(),
            "level": record.levelname,
            "logger": record.name,
            "session_id": getattr(record, "session_id", "-"),
            "msg": record.getMessage(),
        }
        payload.update(_chat_fields(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        session_id = getattr(record, "session_id", "-")
        extras = "".join(f" {k}={v}" for k, v in _chat_fields(record).items())
        line = f"{utc_iso()} {record.levelname:<7} session={session_id}{extras} {record.name}: {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging() -> None:
    """Install one stdout handler on the root logger; JSON or text per LOG_JSON."""
    settings = get_settings()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(SessionIdFilter())
    handler.setFormatter(JsonFormatter() if settings.log_json else TextFormatter())
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
