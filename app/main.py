from __future__ import annotations

import logging

from fastapi import FastAPI

from api.v1 import chat, scheduled_payments, settings as settings_api
from app.chat.handlers import missing_handlers
from app.chat.llm import build_classifier, build_enhancer
from app.chat.service import ChatService
from app.chat.state_store import build_session_store
from app.config import Settings, get_settings
from app.core.logging import configure_logging
from app.core.middleware import SessionContextMiddleware
from db.session import SessionLocal
from fx.rates import FXRateService
from wallet.circle import CircleWalletClient

logger = logging.getLogger(__name__)


def build_chat_service(s: Settings) -> ChatService:
    """Pick every strategy once, from configuration."""
    missing = missing_handlers()
    if missing:
        raise RuntimeError(f"No handler registered for: {sorted(i.value for i in missing)}")

    return ChatService(
        settings=s,
        store=build_session_store(s, SessionLocal),
        classifier=build_classifier(s),
        enhancer=build_enhancer(s),
        wallet_provider=CircleWalletClient(s) if s.CIRCLE_CONFIGURED else None,
        fx=FXRateService(s),
        session_factory=SessionLocal,
    )


def create_app(*, chat_service: ChatService | None = None) -> FastAPI:
    configure_logging()
    s = get_settings()

    app = FastAPI(title="ARCLE Chat Wallet", version="0.1.0")
    app.add_middleware(SessionContextMiddleware)
    app.state.chat_service = chat_service or build_chat_service(s)

    app.include_router(chat.router, prefix="/v1")
    app.include_router(scheduled_payments.router, prefix="/v1")
    app.include_router(settings_api.router, prefix="/v1")

    @app.get("/healthz")
    async def healthz():
        service: ChatService = app.state.chat_service
        return {
            "ok": True,
            "llm_enabled": s.LLM_ENABLED,
            "llm_provider": s.LLM_PROVIDER if s.LLM_ENABLED else None,
            "db_configured": bool(s.DATABASE_URL),
            "wallet_configured": service.wallet_provider is not None,
            "session_store": s.session_store,
        }

    logger.info(
        "App ready llm_enabled=%s session_store=%s wallet_configured=%s",
        s.LLM_ENABLED,
        s.session_store,
        s.CIRCLE_CONFIGURED,
    )
    return app


app = create_app()
