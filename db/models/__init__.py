"""
Model package exports.

Import all SQLAlchemy models here so metadata registration works without
extra imports.
"""

from db.models.daily_metrics import UPSERT_CONSTRAINT, DailyMetrics

__all__ = [
    "DailyMetrics",
    "UPSERT_CONSTRAINT",
]
