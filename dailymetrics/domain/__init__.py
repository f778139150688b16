"""
dailymetrics/domain package marker.
"""

from dailymetrics.domain.daily_metrics import (
    OTHER_COST_FIELDS,
    RECONCILABLE_FIELDS,
    SPEND_CHANNEL_FIELDS,
    CanonicalRow,
    DerivedRecord,
    FieldId,
    RowOutcome,
    RowStatus,
    UpsertReport,
)

__all__ = [
    "CanonicalRow",
    "DerivedRecord",
    "FieldId",
    "OTHER_COST_FIELDS",
    "RECONCILABLE_FIELDS",
    "RowOutcome",
    "RowStatus",
    "SPEND_CHANNEL_FIELDS",
    "UpsertReport",
]
