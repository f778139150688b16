"""
dailymetrics/repositories package marker.
"""

from dailymetrics.repositories.daily_metrics_repository import (
    DailyMetricsRepository,
    DailyMetricsStorage,
    InMemoryDailyMetricsStorage,
    build_upsert_statement,
)
from dailymetrics.repositories.errors import MetricsPersistenceError

__all__ = [
    "DailyMetricsRepository",
    "DailyMetricsStorage",
    "InMemoryDailyMetricsStorage",
    "MetricsPersistenceError",
    "build_upsert_statement",
]
