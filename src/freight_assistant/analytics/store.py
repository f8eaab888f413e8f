"""
store.py
--------
Durable analytics store.

One row per completed chat interaction in the `chat_analytics` table, written
through an async SQLAlchemy engine. Rows are only ever inserted.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import StaticPool

from ..models import AnalyticsRecord

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


class ChatAnalytics(Base):
    __tablename__ = "chat_analytics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    session_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    answer: Mapped[str] = mapped_column(Text, nullable=False)
    context_sources: Mapped[list] = mapped_column(JSON, default=list)
    response_time_ms: Mapped[float] = mapped_column(Float, default=0.0)
    human_assistance_needed: Mapped[bool] = mapped_column(Boolean, index=True, default=False)
    category: Mapped[str] = mapped_column(String(64), default="General")
    relevance_score: Mapped[float] = mapped_column(Float, default=0.0)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


def _to_db_time(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_record(row: ChatAnalytics) -> AnalyticsRecord:
    return AnalyticsRecord(
        timestamp=_from_db_time(row.timestamp),
        session_id=row.session_id,
        question=row.question,
        answer=row.answer,
        context_sources=list(row.context_sources or []),
        response_time_ms=row.response_time_ms or 0.0,
        human_assistance_needed=bool(row.human_assistance_needed),
        category=row.category or "General",
        relevance_score=row.relevance_score or 0.0,
        user_agent=row.user_agent,
        ip_address=row.ip_address,
    )


class AnalyticsStore:
    """
    Owns the engine for the analytics database.

    `init()` connects and creates the table; until it succeeds the store reports
    itself unavailable. `close()` disposes the engine.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None

    @property
    def available(self) -> bool:
        return self._session_factory is not None

    def _create_engine(self) -> AsyncEngine:
        kwargs = {}
        if ":memory:" in self.url:
            # Share one connection so every session sees the same in-memory database.
            kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        return create_async_engine(self.url, **kwargs)

    async def init(self) -> bool:
        if not self.url:
            logger.info("analytics_disabled", reason="no database url")
            return False
        engine = None
        try:
            engine = self._create_engine()
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except Exception as exc:  # noqa: BLE001 - analytics stays disabled
            logger.error("analytics_init_failed", error=str(exc))
            if engine is not None:
                await engine.dispose()
            return False
        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        logger.info("analytics_initialized")
        return True

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def _session(self):
        if self._session_factory is None:
            raise RuntimeError("analytics store is not initialized")
        return self._session_factory()

    async def insert(self, record: AnalyticsRecord) -> None:
        row = ChatAnalytics(**record.model_dump())
        row.timestamp = _to_db_time(record.timestamp)
        async with self._session() as session:
            session.add(row)
            await session.commit()

    async def fetch_since(self, since: datetime) -> List[AnalyticsRecord]:
        stmt = (
            select(ChatAnalytics)
            .where(ChatAnalytics.timestamp >= _to_db_time(since))
            .order_by(ChatAnalytics.timestamp, ChatAnalytics.id)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_record(r) for r in rows]

    async def fetch_session(self, session_id: str) -> List[AnalyticsRecord]:
        stmt = (
            select(ChatAnalytics)
            .where(ChatAnalytics.session_id == session_id)
            .order_by(ChatAnalytics.timestamp, ChatAnalytics.id)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_record(r) for r in rows]

    async def fetch_recent_sessions(self, limit: int) -> List[AnalyticsRecord]:
        """All records of the `limit` sessions with the most recent activity."""
        recent = (
            select(ChatAnalytics.session_id)
            .group_by(ChatAnalytics.session_id)
            .order_by(func.max(ChatAnalytics.timestamp).desc())
            .limit(limit)
        )
        async with self._session() as session:
            session_ids = list((await session.execute(recent)).scalars().all())
            if not session_ids:
                return []
            stmt = (
                select(ChatAnalytics)
                .where(ChatAnalytics.session_id.in_(session_ids))
                .order_by(ChatAnalytics.timestamp, ChatAnalytics.id)
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [_to_record(r) for r in rows]

    async def fetch_human_assistance_questions(self, limit: int) -> List[str]:
        stmt = (
            select(ChatAnalytics.question)
            .where(ChatAnalytics.human_assistance_needed.is_(True))
            .order_by(ChatAnalytics.timestamp.desc(), ChatAnalytics.id.desc())
            .limit(limit)
        )
        async with self._session() as session:
            return list((await session.execute(stmt)).scalars().all())
