"""
reports.py
----------
Report aggregations over analytics records.

Every function here is pure: it takes the records already selected for the
report's time window (oldest first) and returns a JSON-serialisable dict.
"""
from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime, timedelta
from statistics import mean
from typing import Any, Dict, Iterable, List, Sequence

from ..models import AnalyticsRecord

LOW_RELEVANCE = 0.3
MAX_WINDOW_SIZE = 10

# (max interactions, window size) steps for the window recommendation.
WINDOW_STEPS = ((3, 3), (7, 5), (15, 8))
WINDOW_BUCKETS = {3: "1-3", 5: "4-7", 8: "8-15", 10: "16+"}


def _avg(values: Iterable[float]) -> float:
    values = list(values)
    return round(mean(values), 3) if values else 0.0


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _by_session(records: Iterable[AnalyticsRecord]) -> Dict[str, List[AnalyticsRecord]]:
    sessions: Dict[str, List[AnalyticsRecord]] = defaultdict(list)
    for r in records:
        sessions[r.session_id].append(r)
    for items in sessions.values():
        items.sort(key=lambda r: r.timestamp)
    return dict(sessions)


def base_window_size(interaction_count: int) -> int:
    for limit, size in WINDOW_STEPS:
        if interaction_count <= limit:
            return size
    return MAX_WINDOW_SIZE


def recommend_window_size(interaction_count: int, has_human_assistance: bool) -> int:
    """
    ≤3 → 3, ≤7 → 5, ≤15 → 8, otherwise 10; sessions that needed a human get
    two more messages of context, never more than 10.
    """
    size = base_window_size(interaction_count or 0)
    if has_human_assistance and size < MAX_WINDOW_SIZE:
        size += 2
    return min(size, MAX_WINDOW_SIZE)


def summary(records: Sequence[AnalyticsRecord], days: int) -> Dict[str, Any]:
    period = f"Last {days} days"
    if not records:
        return {
            "period": period,
            "total_interactions": 0,
            "message": "No interactions recorded in this period",
        }
    total = len(records)
    return {
        "period": period,
        "total_interactions": total,
        "avg_response_time_ms": _avg(r.response_time_ms for r in records),
        "human_assistance_percentage": _pct(sum(r.human_assistance_needed for r in records), total),
        "category_counts": dict(Counter(r.category for r in records)),
    }


def session_analytics(session_id: str, records: Sequence[AnalyticsRecord]) -> Dict[str, Any]:
    ordered = sorted(records, key=lambda r: r.timestamp)
    return {
        "session_id": session_id,
        "interaction_count": len(ordered),
        "has_human_assistance": any(r.human_assistance_needed for r in ordered),
        "first_interaction": ordered[0].timestamp.isoformat() if ordered else None,
        "last_interaction": ordered[-1].timestamp.isoformat() if ordered else None,
        "categories": sorted({r.category for r in ordered}),
        "avg_relevance_score": _avg(r.relevance_score for r in ordered),
    }


def conversation_quality_metrics(records: Sequence[AnalyticsRecord], days: int) -> Dict[str, Any]:
    sessions = _by_session(records)
    total = len(records)
    per_category: Dict[str, List[float]] = defaultdict(list)
    for r in records:
        per_category[r.category].append(r.relevance_score)

    return {
        "period": f"Last {days} days",
        "total_interactions": total,
        "total_sessions": len(sessions),
        "avg_interactions_per_session": _avg(len(v) for v in sessions.values()),
        "avg_relevance_score": _avg(r.relevance_score for r in records),
        "low_relevance_percentage": _pct(sum(r.relevance_score < LOW_RELEVANCE for r in records), total),
        "human_assistance_rate": _pct(sum(r.human_assistance_needed for r in records), total),
        "multi_turn_session_percentage": _pct(sum(len(v) > 1 for v in sessions.values()), len(sessions)),
        "avg_relevance_by_category": {c: _avg(v) for c, v in sorted(per_category.items())},
    }


def follow_up_patterns(records: Sequence[AnalyticsRecord], top_transitions: int = 10) -> Dict[str, Any]:
    """How conversations continue after the first question of each session."""
    sessions = _by_session(records)
    transitions: Counter = Counter()
    same_category = 0
    follow_ups: List[AnalyticsRecord] = []
    openers: List[AnalyticsRecord] = []

    for items in sessions.values():
        openers.append(items[0])
        for prev, cur in zip(items, items[1:]):
            follow_ups.append(cur)
            transitions[(prev.category, cur.category)] += 1
            if prev.category == cur.category:
                same_category += 1

    return {
        "sessions_analyzed": len(sessions),
        "total_follow_ups": len(follow_ups),
        "avg_follow_ups_per_session": _avg(len(v) - 1 for v in sessions.values()),
        "same_category_follow_up_percentage": _pct(same_category, len(follow_ups)),
        "top_transitions": [
            {"from": a, "to": b, "count": n}
            for (a, b), n in sorted(transitions.items(), key=lambda kv: (-kv[1], kv[0]))[:top_transitions]
        ],
        "first_question_escalation_rate": _pct(sum(r.human_assistance_needed for r in openers), len(openers)),
        "follow_up_escalation_rate": _pct(sum(r.human_assistance_needed for r in follow_ups), len(follow_ups)),
    }


def user_retention(records: Sequence[AnalyticsRecord], days: int) -> Dict[str, Any]:
    """Day buckets (UTC) of active, new and returning sessions."""
    first_seen: Dict[str, date] = {}
    active: Dict[date, set] = defaultdict(set)
    for r in sorted(records, key=lambda r: r.timestamp):
        day = r.timestamp.date()
        first_seen.setdefault(r.session_id, day)
        active[day].add(r.session_id)

    daily = []
    for day in sorted(active):
        ids = active[day]
        new = sum(1 for sid in ids if first_seen[sid] == day)
        daily.append({
            "date": day.isoformat(),
            "active_sessions": len(ids),
            "new_sessions": new,
            "returning_sessions": len(ids) - new,
        })

    returning = {
        sid for day, ids in active.items() for sid in ids if first_seen[sid] < day
    }
    return {
        "period": f"Last {days} days",
        "total_sessions": len(first_seen),
        "returning_sessions": len(returning),
        "returning_session_percentage": _pct(len(returning), len(first_seen)),
        "daily": daily,
    }


def top_topics(records: Sequence[AnalyticsRecord], limit: int) -> List[Dict[str, Any]]:
    grouped: Dict[str, List[AnalyticsRecord]] = defaultdict(list)
    for r in records:
        grouped[r.category].append(r)

    topics = [
        {
            "category": category,
            "interactions": len(items),
            "sessions": len({r.session_id for r in items}),
            "avg_relevance_score": _avg(r.relevance_score for r in items),
            "human_assistance_count": sum(r.human_assistance_needed for r in items),
        }
        for category, items in grouped.items()
    ]
    topics.sort(key=lambda t: (-t["sessions"], -t["interactions"], t["category"]))
    return topics[: max(limit, 0)]


def conversation_window_effectiveness(records: Sequence[AnalyticsRecord], days: int) -> Dict[str, Any]:
    """Outcome quality per session length, bucketed by the window size those sessions would get."""
    buckets: Dict[int, List[List[AnalyticsRecord]]] = defaultdict(list)
    for items in _by_session(records).values():
        buckets[base_window_size(len(items))].append(items)

    rows = []
    for size in sorted(WINDOW_BUCKETS):
        sessions = buckets.get(size, [])
        flat = [r for items in sessions for r in items]
        rows.append({
            "window_size": size,
            "session_length": WINDOW_BUCKETS[size],
            "sessions": len(sessions),
            "interactions": len(flat),
            "avg_relevance_score": _avg(r.relevance_score for r in flat),
            "human_assistance_rate": _pct(sum(r.human_assistance_needed for r in flat), len(flat)),
            "sessions_with_human_assistance": sum(
                any(r.human_assistance_needed for r in items) for items in sessions
            ),
            "avg_response_time_ms": _avg(r.response_time_ms for r in flat),
        })

    return {"period": f"Last {days} days", "buckets": rows}


def window_recommendation(analytics: Dict[str, Any]) -> Dict[str, Any]:
    count = analytics.get("interaction_count", 0) or 0
    size = recommend_window_size(count, bool(analytics.get("has_human_assistance")))
    return {
        "session_id": analytics.get("session_id"),
        "interaction_count": count,
        "recommended_window_size": size,
        "recommendation": (
            "Based on this session's complexity and history, we recommend a context "
            f"window of {size} messages."
        ),
    }


def window_start(now: datetime, days: int) -> datetime:
    return now - timedelta(days=days)
