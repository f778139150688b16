"""
dailymetrics/services package marker.
"""

from dailymetrics.services.metrics_engine import MetricsEngine, derive
from dailymetrics.services.reconciliation_service import (
    MetricsUpsertService,
    get_metrics_upsert_service,
    reconcile,
)
from dailymetrics.services.row_normalizer import NormalizationResult, RowNormalizer
from dailymetrics.services.sheet_ingestion_service import (
    IngestionSummary,
    PreparedSheet,
    SheetIngestionService,
    SheetInput,
    SheetSummary,
    build_sheet_ingestion_service,
    get_sheet_ingestion_service,
)

__all__ = [
    "IngestionSummary",
    "MetricsEngine",
    "MetricsUpsertService",
    "NormalizationResult",
    "PreparedSheet",
    "RowNormalizer",
    "SheetIngestionService",
    "SheetInput",
    "SheetSummary",
    "build_sheet_ingestion_service",
    "derive",
    "get_metrics_upsert_service",
    "get_sheet_ingestion_service",
    "reconcile",
]
