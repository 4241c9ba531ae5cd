from __future__ import annotations

import json
import logging

from app.core.context import set_session_id
from app.core.logging import JsonFormatter, SessionIdFilter, TextFormatter


def _record(msg="Chat turn", **extra) -> logging.LogRecord:
    record = logging.LogRecord("app.chat.service", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_filter_stamps_session_id_from_context():
    set_session_id("abc123")
    try:
        record = _record()
        assert SessionIdFilter().filter(record) is True
        assert record.session_id == "abc123"
    finally:
        set_session_id(None)


def test_filter_defaults_to_dash():
    record = _record()
    SessionIdFilter().filter(record)
    assert record.session_id == "-"


def test_json_formatter_includes_chat_fields():
    record = _record(session_id="s-1", intent="send", user_id="user-1")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["session_id"] == "s-1"
    assert payload["intent"] == "send"
    assert payload["user_id"] == "user-1"
    assert payload["msg"] == "Chat turn"
    assert "action" not in payload


def test_text_formatter_line():
    line = TextFormatter().format(_record(session_id="s-1", intent="balance"))
    assert "session=s-1 intent=balance app.chat.service: Chat turn" in line
