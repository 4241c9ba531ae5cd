from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.schemas.chat import ClearPendingResponse, SessionResponse
from app.chat.contracts import AIResponse, ChatMessageRequest
from app.chat.service import ChatService, SessionWriteConflictError

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


@router.post("/message", response_model=AIResponse)
def post_message(req: ChatMessageRequest, service: ChatService = Depends(get_chat_service)) -> AIResponse:
    try:
        return service.process_message(
            req.message,
            session_id=req.session_id,
            user_id=req.user_id,
            wallet=req.wallet,
        )
    except SessionWriteConflictError as e:
        logger.warning("Chat turn dropped: %s", e)
        raise HTTPException(status_code=409, detail="Session was updated concurrently, please resend") from e


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, service: ChatService = Depends(get_chat_service)) -> SessionResponse:
    context = service.get_session(session_id)
    if context is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse(
        session_id=context.session_id,
        user_id=context.user_id,
        last_intent=context.last_intent,
        pending_action=context.pending_action,
        history=context.history,
        version=context.version,
    )


@router.delete("/sessions/{session_id}/pending", response_model=ClearPendingResponse)
def clear_pending(session_id: str, service: ChatService = Depends(get_chat_service)) -> ClearPendingResponse:
    before = service.get_session(session_id)
    if before is None:
        raise HTTPException(status_code=404, detail="Session not found")
    try:
        service.clear_pending(session_id)
    except SessionWriteConflictError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    return ClearPendingResponse(
        session_id=session_id,
        cleared=before.pending_action is not None,
        previous=before.pending_action.model_dump(mode="json") if before.pending_action else None,
    )
