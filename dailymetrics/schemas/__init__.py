"""
dailymetrics/schemas package marker.
"""

from dailymetrics.schemas.ingestion import (
    IngestionSummaryResponse,
    RowFailureResponse,
    SheetSummaryResponse,
)

__all__ = [
    "IngestionSummaryResponse",
    "RowFailureResponse",
    "SheetSummaryResponse",
]
