"""
tests/test_reconciliation_service.py

Pytest unit tests for reconciliation and the upsert service.

Storage is an in-memory dict or a failing fake; no database is touched.
"""

from __future__ import annotations

from datetime import date

import pytest

from dailymetrics.domain.daily_metrics import CanonicalRow, FieldId, RowStatus
from dailymetrics.rates.models import CalculationSettings
from dailymetrics.repositories.daily_metrics_repository import InMemoryDailyMetricsStorage
from dailymetrics.repositories.errors import MetricsPersistenceError
from dailymetrics.services.metrics_engine import MetricsEngine
from dailymetrics.services.reconciliation_service import MetricsUpsertService, reconcile

DAY_ONE = date(2024, 1, 1)
DAY_TWO = date(2024, 1, 2)


def _record(day: date, *, country_id: str = "peru", precomputed=None):
    row = CanonicalRow(
        date=day,
        spend={"trust": 100.0},
        own_revenue_local=365.0,
        own_revenue_settled=100.0,
        first_deposit_sum_local=50.0,
        precomputed=precomputed or {},
    )
    derived = MetricsEngine().derive(row, CalculationSettings(), country_id=country_id)
    return reconcile(row, row.precomputed, derived)


class FailingStorage(InMemoryDailyMetricsStorage):
    """
    In-memory storage that fails upserts for chosen days.
    """

    def __init__(self, *, failing_days=(), retryable=False, failures_before_success=None):
        super().__init__()
        self._failing_days = set(failing_days)
        self._retryable = retryable
        self._failures_left = failures_before_success
        self.upsert_calls = 0

    def upsert(self, record):
        self.upsert_calls += 1
        if record.day in self._failing_days:
            if self._failures_left is None or self._failures_left > 0:
                if self._failures_left is not None:
                    self._failures_left -= 1
                raise MetricsPersistenceError(
                    f"write failed for {record.day.isoformat()}",
                    day=record.day,
                    country_id=record.country_id,
                    retryable=self._retryable,
                )
        super().upsert(record)


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


class TestReconcile:
    def test_non_zero_precomputed_values_win(self):
        engine_output = _record(DAY_ONE)
        precomputed = {FieldId.TOTAL_SPEND: 150.0, FieldId.NET_PROFIT: -12.5}

        record = reconcile(engine_output.source, precomputed, engine_output)

        assert record.total_spend == 150.0
        assert record.net_profit == -12.5

    def test_zero_or_unknown_precomputed_values_are_ignored(self):
        engine_output = _record(DAY_ONE)
        precomputed = {FieldId.ROI: 0.0, "spend_trust": 999.0}

        record = reconcile(engine_output.source, precomputed, engine_output)

        assert record.roi == engine_output.roi
        assert record.source.spend["trust"] == 100.0

    def test_overrides_do_not_cascade(self):
        engine_output = _record(DAY_ONE)

        record = reconcile(engine_output.source, {FieldId.TOTAL_SPEND: 150.0}, engine_output)

        assert record.agency_fee == pytest.approx(engine_output.agency_fee)
        assert record.buyer_pay == pytest.approx(engine_output.buyer_pay)
        assert record.total_expenses == pytest.approx(engine_output.total_expenses)

    def test_without_precomputed_values_output_is_unchanged(self):
        engine_output = _record(DAY_ONE)

        assert reconcile(engine_output.source, {}, engine_output) == engine_output


# ---------------------------------------------------------------------------
# MetricsUpsertService
# ---------------------------------------------------------------------------


class TestMetricsUpsertService:
    def test_created_then_updated(self):
        storage = InMemoryDailyMetricsStorage()
        service = MetricsUpsertService()
        records = [_record(DAY_ONE), _record(DAY_TWO)]

        first = service.upsert_records(records, storage)
        second = service.upsert_records(records, storage)

        assert (first.created, first.updated, first.failed) == (2, 0, 0)
        assert (second.created, second.updated, second.failed) == (0, 2, 0)
        assert len(storage) == 2

    def test_upsert_fully_overwrites_row(self):
        storage = InMemoryDailyMetricsStorage()
        service = MetricsUpsertService()
        service.upsert_records([_record(DAY_ONE)], storage)

        service.upsert_records([_record(DAY_ONE, precomputed={FieldId.TOTAL_SPEND: 500.0})], storage)

        assert storage.find_by_date_and_country(DAY_ONE, "peru")["total_spend"] == 500.0

    def test_same_day_different_country_is_a_new_row(self):
        storage = InMemoryDailyMetricsStorage()

        report = MetricsUpsertService().upsert_records(
            [_record(DAY_ONE, country_id="peru"), _record(DAY_ONE, country_id="chile")],
            storage,
        )

        assert report.created == 2

    def test_failure_is_reported_and_batch_continues(self):
        storage = FailingStorage(failing_days={DAY_ONE})
        service = MetricsUpsertService(max_retries=3, sleep=lambda _: None)

        report = service.upsert_records([_record(DAY_ONE), _record(DAY_TWO)], storage)

        assert report.failed == 1
        assert report.created == 1
        failure = report.failures[0]
        assert failure.status == RowStatus.FAILED
        assert failure.day == DAY_ONE
        assert "write failed" in failure.error
        assert storage.upsert_calls == 2

    def test_retryable_failure_is_retried_with_backoff(self):
        delays: list[float] = []
        storage = FailingStorage(failing_days={DAY_ONE}, retryable=True, failures_before_success=2)
        service = MetricsUpsertService(max_retries=2, backoff_seconds=0.5, sleep=delays.append)

        report = service.upsert_records([_record(DAY_ONE)], storage)

        assert report.created == 1
        assert delays == [0.5, 1.0]

    def test_retries_are_bounded(self):
        delays: list[float] = []
        storage = FailingStorage(failing_days={DAY_ONE}, retryable=True)
        service = MetricsUpsertService(max_retries=2, backoff_seconds=0.5, sleep=delays.append)

        report = service.upsert_records([_record(DAY_ONE)], storage)

        assert report.failed == 1
        assert storage.upsert_calls == 3
        assert len(delays) == 2
