"""
chat.py
-------
One chat turn: session lookup, pipeline run, history update and a
fire-and-forget analytics write.
"""
from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Optional, Set

import structlog

from ..analytics import AnalyticsService
from ..graph.graph import RagPipeline
from ..graph.memory import SessionManager
from ..models import ChatMetadata, ChatResponse, Message, PipelineState

logger = structlog.get_logger(__name__)


class ChatService:
    def __init__(self, pipeline: RagPipeline, sessions: SessionManager, analytics: AnalyticsService) -> None:
        self.pipeline = pipeline
        self.sessions = sessions
        self.analytics = analytics
        self._background: Set[asyncio.Task] = set()

    def _schedule(self, coro: Awaitable) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def drain(self) -> None:
        """Wait for pending analytics writes (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def run_turn(
        self,
        question: str,
        session_id: Optional[str] = None,
        window_size: Optional[int] = None,
    ) -> PipelineState:
        """
        Run the pipeline with the session's windowed history and record the turn.
        Turns are appended only after a successful run, so a failed request leaves
        the session untouched.
        """
        handle = self.sessions.get_or_create_session(session_id)
        history = self.sessions.get_formatted_history(handle.session_id, window_size)
        result = await self.pipeline.ainvoke(question, history, handle.session_id)

        self.sessions.add_message(handle.session_id, Message(role="human", content=question))
        self.sessions.add_message(
            handle.session_id, Message(role="assistant", content=result.final_answer or result.answer)
        )
        return result

    async def chat(
        self,
        question: str,
        session_id: Optional[str] = None,
        window_size: Optional[int] = None,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> ChatResponse:
        started = time.perf_counter()
        result = await self.run_turn(question, session_id, window_size)
        response_time_ms = round((time.perf_counter() - started) * 1000, 2)
        reply = result.final_answer or result.answer

        self._schedule(
            self.analytics.log_interaction(
                session_id=result.session_id,
                question=question,
                answer=reply,
                context=result.context,
                response_time_ms=response_time_ms,
                human_assistance_needed=result.needs_human_assistance,
                category=result.category.value,
                relevance_score=result.context_relevance,
                user_agent=user_agent,
                ip_address=ip_address,
            )
        )

        logger.info(
            "chat_turn_completed",
            session_id=result.session_id,
            response_time_ms=response_time_ms,
            needs_human_assistance=result.needs_human_assistance,
        )
        return ChatResponse(
            message=reply,
            session_id=result.session_id,
            metadata=ChatMetadata(
                session_active=True,
                needs_human_assistance=result.needs_human_assistance,
                response_time_ms=response_time_ms,
                category=result.category.value,
                context_relevance=result.context_relevance,
            ),
        )
