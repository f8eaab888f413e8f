"""
main.py
-------
FastAPI app exposing the chat endpoint and the analytics reports.
Includes /health for liveness checks.

The lifespan hook configures logging, opens the analytics store (or leaves it
disabled), starts the hourly session sweep, and tears both down on shutdown.
"""
from __future__ import annotations
import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import List

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..analytics import AnalyticsService
from ..config import settings
from ..errors import FreightAssistantError
from ..graph.memory import SessionManager
from ..logging_config import configure_logging
from ..models import ChatRequest, ChatResponse, Message, WindowSizeRequest
from .analytics_routes import router as analytics_router
from .chat import ChatService
from .deps import get_analytics, get_chat_service, get_session_manager

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, settings.log_json)
    settings.ensure_dirs()
    analytics = get_analytics()
    await analytics.init()
    sweep = asyncio.create_task(
        get_session_manager().run_cleanup_loop(settings.session_cleanup_interval_seconds)
    )
    try:
        yield
    finally:
        sweep.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep
        if get_chat_service.cache_info().currsize:
            # Pending analytics writes only exist once a chat service was built.
            await get_chat_service().drain()
        await analytics.close()


app = FastAPI(title="Freight Assistant", version="1.0.0", lifespan=lifespan)
app.include_router(analytics_router)


@app.exception_handler(FreightAssistantError)
async def assistant_error_handler(request: Request, exc: FreightAssistantError):
    logger.error("chat_request_failed", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "Error", "message": exc.public_message},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unexpected_error", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"status": "Error", "message": FreightAssistantError.public_message},
    )


@app.get("/health")
def health(analytics: AnalyticsService = Depends(get_analytics)):
    """Health check endpoint."""
    return {"status": "ok", "analytics": analytics.available}


@app.post("/api/v1/chat", response_model=ChatResponse)
async def chat(
    req: ChatRequest,
    request: Request,
    service: ChatService = Depends(get_chat_service),
):
    """
    Answer one user turn. Omit `session_id` on the first turn and send back the
    returned one on follow-ups to keep the conversation context.
    """
    return await service.chat(
        req.prompt,
        session_id=req.session_id,
        window_size=req.window_size,
        user_agent=request.headers.get("user-agent"),
        ip_address=request.client.host if request.client else None,
    )


@app.put("/api/v1/chat/session/{session_id}/window")
def set_window(
    session_id: str,
    body: WindowSizeRequest,
    sessions: SessionManager = Depends(get_session_manager),
):
    if not sessions.set_conversation_window_size(session_id, body.window_size):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": "Error", "message": "Session not found"},
        )
    return {"status": "Success", "data": {"session_id": session_id, "window_size": body.window_size}}


@app.get("/api/v1/chat/session/{session_id}/history", response_model=List[Message])
def session_history(session_id: str, sessions: SessionManager = Depends(get_session_manager)):
    return sessions.get_full_history(session_id)
