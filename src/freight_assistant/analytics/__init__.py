"""Interaction logging and reporting."""

from .reports import recommend_window_size
from .service import AnalyticsService
from .store import AnalyticsStore

__all__ = ["AnalyticsService", "AnalyticsStore", "recommend_window_size"]
