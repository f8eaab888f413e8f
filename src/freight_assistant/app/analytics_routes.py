"""
analytics_routes.py
-------------------
Read-only analytics endpoints. Every report answers 503 when the analytics
store is disabled or unreachable.
"""
from __future__ import annotations
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ..analytics import AnalyticsService
from .deps import get_analytics

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


def _respond(data: Any):
    if data is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "Error", "message": "Analytics service is not available"},
        )
    return {"status": "Success", "data": data}


@router.get("/summary")
async def summary(days: int = Query(7, ge=1), analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.summary(days))


@router.get("/session/{session_id}")
async def session(session_id: str, analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.session_analytics(session_id))


@router.get("/session/{session_id}/recommended-window")
async def recommended_window(session_id: str, analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.session_window_recommendation(session_id))


@router.get("/conversation-quality")
async def conversation_quality(days: int = Query(7, ge=1), analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.conversation_quality_metrics(days))


@router.get("/follow-up-patterns")
async def follow_up_patterns(limit: int = Query(100, ge=1), analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.follow_up_patterns(limit))


@router.get("/user-retention")
async def user_retention(days: int = Query(30, ge=1), analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.user_retention(days))


@router.get("/top-topics")
async def top_topics(
    days: int = Query(30, ge=1),
    limit: int = Query(10, ge=1),
    analytics: AnalyticsService = Depends(get_analytics),
):
    return _respond(await analytics.top_topics(days, limit))


@router.get("/conversation-windows")
async def conversation_windows(days: int = Query(30, ge=1), analytics: AnalyticsService = Depends(get_analytics)):
    return _respond(await analytics.conversation_window_effectiveness(days))


@router.get("/human-assistance-questions")
async def human_assistance_questions(
    limit: int = Query(10, ge=1), analytics: AnalyticsService = Depends(get_analytics)
):
    return _respond(await analytics.human_assistance_questions(limit))
