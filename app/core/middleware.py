from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.context import set_session_id


class SessionContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        """
        Sets session_id into contextvars for the lifetime of the request.

        Priority:
        1. Header: X-Session-Id
        2. Path param: /sessions/{session_id}
        """
        session_id = request.headers.get("X-Session-Id")
        if not session_id and "session_id" in request.path_params:
            session_id = request.path_params.get("session_id")

        try:
            if session_id:
                set_session_id(str(session_id))
            return await call_next(request)
        finally:
            set_session_id(None)
