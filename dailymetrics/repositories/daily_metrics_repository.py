"""
dailymetrics/repositories/daily_metrics_repository.py

Persistence layer for daily metrics records.

The caller controls commit/rollback; the SQLAlchemy repository never commits
on its own. Each upsert runs inside its own savepoint so one failing row
leaves the surrounding transaction usable.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import date
from typing import Any, Protocol

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import Insert, insert
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from dailymetrics.domain.daily_metrics import DerivedRecord
from dailymetrics.repositories.errors import MetricsPersistenceError
from db.models.daily_metrics import UPSERT_CONSTRAINT, DailyMetrics

logger = logging.getLogger(__name__)

_KEY_COLUMNS = frozenset({"id", "date", "country_id", "created_at"})


class DailyMetricsStorage(Protocol):
    """
    Storage collaborator keyed by ``(date, country_id)``.
    """

    def find_by_date_and_country(self, day: date, country_id: str) -> Any | None:
        ...

    def upsert(self, record: DerivedRecord) -> None:
        ...


def build_upsert_statement(payload: dict[str, Any]) -> Insert:
    """
    Build an ``INSERT ... ON CONFLICT DO UPDATE`` replacing every non-key column.
    """

    stmt = insert(DailyMetrics).values(id=uuid.uuid4(), **payload)
    update_columns: dict[str, Any] = {
        key: stmt.excluded[key] for key in payload if key not in _KEY_COLUMNS
    }
    update_columns["updated_at"] = func.now()
    return stmt.on_conflict_do_update(constraint=UPSERT_CONSTRAINT, set_=update_columns)


class DailyMetricsRepository:
    """
    SQLAlchemy-backed daily metrics storage for PostgreSQL.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_by_date_and_country(self, day: date, country_id: str) -> DailyMetrics | None:
        stmt = select(DailyMetrics).where(
            DailyMetrics.date == day,
            DailyMetrics.country_id == country_id,
        )
        try:
            return self._session.scalars(stmt).one_or_none()
        except SQLAlchemyError as exc:
            raise _translate_error(exc, action="lookup", day=day, country_id=country_id) from exc

    def upsert(self, record: DerivedRecord) -> None:
        """
        Insert or fully overwrite the row for the record's day and country.
        """

        stmt = build_upsert_statement(record.to_payload())
        try:
            with self._session.begin_nested():
                self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise _translate_error(
                exc,
                action="upsert",
                day=record.day,
                country_id=record.country_id,
            ) from exc


class InMemoryDailyMetricsStorage:
    """
    Dict-backed storage used for dry runs and tests.
    """

    def __init__(self) -> None:
        self._rows: dict[tuple[date, str], dict[str, Any]] = {}
        self._lock = threading.Lock()

    def find_by_date_and_country(self, day: date, country_id: str) -> dict[str, Any] | None:
        with self._lock:
            row = self._rows.get((day, country_id))
            return dict(row) if row is not None else None

    def upsert(self, record: DerivedRecord) -> None:
        with self._lock:
            self._rows[(record.day, record.country_id)] = record.to_payload()

    @property
    def rows(self) -> dict[tuple[date, str], dict[str, Any]]:
        with self._lock:
            return {key: dict(value) for key, value in self._rows.items()}

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


def _translate_error(
    exc: SQLAlchemyError,
    *,
    action: str,
    day: date,
    country_id: str,
) -> MetricsPersistenceError:
    retryable = isinstance(exc, OperationalError) or (
        isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)
    )
    logger.warning(
        "Daily metrics %s failed for %s on %s (retryable=%s): %s",
        action,
        country_id,
        day.isoformat(),
        retryable,
        exc.__class__.__name__,
    )
    return MetricsPersistenceError(
        f"Failed to {action} daily metrics for {country_id} on {day.isoformat()}: {exc}",
        day=day,
        country_id=country_id,
        retryable=retryable,
    )
