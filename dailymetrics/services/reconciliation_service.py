"""
dailymetrics/services/reconciliation_service.py

Reconciles sheet-supplied values with engine output and persists records.

Sheets often carry some derived values already (total spend, payroll,
profit). A non-zero value from the sheet takes precedence over the engine's
value for the same field. Other derived fields are not recomputed from the
overridden value, so a record can mix sheet and engine figures.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from functools import lru_cache
from typing import Callable, Iterable, Mapping

from dailymetrics.config import get_ingestion_settings
from dailymetrics.domain.daily_metrics import (
    RECONCILABLE_FIELDS,
    CanonicalRow,
    DerivedRecord,
    RowOutcome,
    RowStatus,
    UpsertReport,
)
from dailymetrics.repositories.daily_metrics_repository import DailyMetricsStorage
from dailymetrics.repositories.errors import MetricsPersistenceError

logger = logging.getLogger(__name__)


def reconcile(
    canonical_row: CanonicalRow,
    precomputed: Mapping[str, float],
    engine_output: DerivedRecord,
) -> DerivedRecord:
    """
    Overlay non-zero pre-computed values on the engine output.
    """

    overrides = {
        field_id: float(value)
        for field_id, value in precomputed.items()
        if field_id in RECONCILABLE_FIELDS and value
    }
    if overrides:
        logger.debug(
            "Using %d sheet value(s) for %s on %s: %s",
            len(overrides),
            engine_output.country_id,
            canonical_row.date.isoformat(),
            ", ".join(sorted(overrides)),
        )
    return replace(engine_output, source=canonical_row, **overrides)


class MetricsUpsertService:
    """
    Writes derived records through a storage collaborator, one row at a time.

    A failure on one row is recorded in the report and the batch continues.
    Failures marked retryable are attempted again with exponential backoff.
    """

    def __init__(
        self,
        *,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._max_retries = max(0, max_retries)
        self._backoff_seconds = max(0.0, backoff_seconds)
        self._sleep = sleep

    def upsert_records(
        self,
        records: Iterable[DerivedRecord],
        storage: DailyMetricsStorage,
    ) -> UpsertReport:
        outcomes = tuple(self._upsert_one(record, storage) for record in records)
        report = UpsertReport(outcomes=outcomes)
        logger.info(
            "Upserted daily metrics: created=%d updated=%d failed=%d",
            report.created,
            report.updated,
            report.failed,
        )
        return report

    def _upsert_one(self, record: DerivedRecord, storage: DailyMetricsStorage) -> RowOutcome:
        attempt = 0
        while True:
            try:
                existing = storage.find_by_date_and_country(record.day, record.country_id)
                storage.upsert(record)
            except MetricsPersistenceError as exc:
                if exc.retryable and attempt < self._max_retries:
                    delay = self._backoff_seconds * (2**attempt)
                    attempt += 1
                    logger.info(
                        "Retrying upsert for %s on %s (attempt %d/%d) in %.2fs",
                        record.country_id,
                        record.day.isoformat(),
                        attempt,
                        self._max_retries,
                        delay,
                    )
                    if delay > 0:
                        self._sleep(delay)
                    continue

                logger.warning(
                    "Upsert failed for %s on %s: %s",
                    record.country_id,
                    record.day.isoformat(),
                    exc,
                )
                return RowOutcome(
                    day=record.day,
                    country_id=record.country_id,
                    status=RowStatus.FAILED,
                    error=str(exc),
                )

            status = RowStatus.UPDATED if existing is not None else RowStatus.CREATED
            return RowOutcome(day=record.day, country_id=record.country_id, status=status)


@lru_cache(maxsize=1)
def get_metrics_upsert_service() -> MetricsUpsertService:
    settings = get_ingestion_settings()
    return MetricsUpsertService(
        max_retries=settings.upsert_max_retries,
        backoff_seconds=settings.upsert_backoff_seconds,
    )
