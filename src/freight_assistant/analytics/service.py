"""
service.py
----------
Analytics service: records completed interactions and serves reports.

Nothing here raises to the caller. Writes report failure through logging only;
reads return ``None`` when the store is disabled or unreachable so the HTTP
layer can answer 503.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence

import structlog

from ..graph.outcome import capture, unwrap_or
from ..models import AnalyticsRecord, RetrievedDocument, utcnow
from . import reports
from .store import AnalyticsStore

logger = structlog.get_logger(__name__)

UNKNOWN_SOURCE = "Unknown Source"


class AnalyticsService:
    def __init__(self, store: Optional[AnalyticsStore], clock: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.clock = clock

    @property
    def available(self) -> bool:
        return self.store is not None and self.store.available

    async def init(self) -> bool:
        if self.store is None:
            return False
        return await self.store.init()

    async def close(self) -> None:
        if self.store is not None:
            await self.store.close()

    # ----------------------------------------------------------------------------------
    # Write side
    # ----------------------------------------------------------------------------------
    async def log_interaction(
        self,
        session_id: str,
        question: str,
        answer: str,
        context: Sequence[RetrievedDocument],
        response_time_ms: float,
        human_assistance_needed: bool = False,
        category: str = "General",
        relevance_score: float = 0.0,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> bool:
        """Persist one interaction. Returns False (never raises) when it was not stored."""
        if not self.available:
            return False
        try:
            record = AnalyticsRecord(
                timestamp=self.clock(),
                session_id=session_id,
                question=question,
                answer=answer,
                context_sources=[doc.source or UNKNOWN_SOURCE for doc in context],
                response_time_ms=response_time_ms,
                human_assistance_needed=human_assistance_needed,
                category=category,
                relevance_score=relevance_score,
                user_agent=user_agent,
                ip_address=ip_address,
            )
        except ValueError as exc:
            logger.warning("analytics_record_invalid", error=str(exc), session_id=session_id)
            return False

        outcome = await capture(self.store.insert(record))
        unwrap_or(outcome, None, "analytics_write_failed", session_id=session_id)
        return outcome.ok

    # ----------------------------------------------------------------------------------
    # Read side
    # ----------------------------------------------------------------------------------
    async def _records_since(self, days: int, report: str) -> Optional[List[AnalyticsRecord]]:
        if not self.available:
            return None
        since = reports.window_start(self.clock(), days)
        outcome = await capture(self.store.fetch_since(since))
        return unwrap_or(outcome, None, "analytics_query_failed", report=report)

    async def summary(self, days: int = 7) -> Optional[Dict[str, Any]]:
        records = await self._records_since(days, "summary")
        return None if records is None else reports.summary(records, days)

    async def session_analytics(self, session_id: str) -> Optional[Dict[str, Any]]:
        if not self.available:
            return None
        outcome = await capture(self.store.fetch_session(session_id))
        records = unwrap_or(outcome, None, "analytics_query_failed", report="session")
        return None if records is None else reports.session_analytics(session_id, records)

    async def conversation_quality_metrics(self, days: int = 7) -> Optional[Dict[str, Any]]:
        records = await self._records_since(days, "conversation_quality")
        return None if records is None else reports.conversation_quality_metrics(records, days)

    async def follow_up_patterns(self, limit: int = 100) -> Optional[Dict[str, Any]]:
        if not self.available:
            return None
        outcome = await capture(self.store.fetch_recent_sessions(limit))
        records = unwrap_or(outcome, None, "analytics_query_failed", report="follow_up_patterns")
        return None if records is None else reports.follow_up_patterns(records)

    async def user_retention(self, days: int = 30) -> Optional[Dict[str, Any]]:
        records = await self._records_since(days, "user_retention")
        return None if records is None else reports.user_retention(records, days)

    async def top_topics(self, days: int = 30, limit: int = 10) -> Optional[List[Dict[str, Any]]]:
        records = await self._records_since(days, "top_topics")
        return None if records is None else reports.top_topics(records, limit)

    async def conversation_window_effectiveness(self, days: int = 30) -> Optional[Dict[str, Any]]:
        records = await self._records_since(days, "conversation_windows")
        return None if records is None else reports.conversation_window_effectiveness(records, days)

    async def human_assistance_questions(self, limit: int = 10) -> Optional[List[str]]:
        """Most recent questions that were escalated; gaps in the knowledge base."""
        if not self.available:
            return None
        outcome = await capture(self.store.fetch_human_assistance_questions(limit))
        return unwrap_or(outcome, None, "analytics_query_failed", report="human_assistance_questions")

    async def session_window_recommendation(self, session_id: str) -> Optional[Dict[str, Any]]:
        analytics = await self.session_analytics(session_id)
        return None if analytics is None else reports.window_recommendation(analytics)
