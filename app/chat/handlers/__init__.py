# Importing the handler modules registers them.
from app.chat.handlers import account, basics, business, fx, savings, scheduling, trading, transfers  # noqa: F401
from app.chat.handlers.common import HandlerContext
from app.chat.handlers.registry import dispatch, missing_handlers, registered_intents

__all__ = [
    "HandlerContext",
    "dispatch",
    "missing_handlers",
    "registered_intents",
]
