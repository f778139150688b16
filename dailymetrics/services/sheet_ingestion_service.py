"""
dailymetrics/services/sheet_ingestion_service.py

Service layer for workbook ingestion orchestration.

Each worksheet is mapped to a country through the rates book, normalized,
derived and reconciled. Sheets of the same country are prepared in order on
one worker so that a calendar day is only ingested once per country; different
countries are prepared in parallel. Persistence then runs sequentially
through the storage collaborator.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import Any, Mapping, Sequence

from dailymetrics.config import get_ingestion_settings
from dailymetrics.domain.daily_metrics import DerivedRecord, UpsertReport
from dailymetrics.logging_utils import log_event
from dailymetrics.rates.loader import RatesBook, get_rates_book
from dailymetrics.rates.models import SheetContext
from dailymetrics.repositories.daily_metrics_repository import DailyMetricsStorage
from dailymetrics.services.metrics_engine import MetricsEngine
from dailymetrics.services.reconciliation_service import (
    MetricsUpsertService,
    get_metrics_upsert_service,
    reconcile,
)
from dailymetrics.services.row_normalizer import RowNormalizer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SheetInput:
    """
    Raw worksheet content: one header row and the data rows below it.
    """

    name: str
    header_row: Sequence[Any]
    data_rows: Sequence[Sequence[Any]]


@dataclass(frozen=True)
class PreparedSheet:
    """
    Derived records for one sheet, ready to be persisted.
    """

    sheet_name: str
    context: SheetContext
    records: tuple[DerivedRecord, ...]
    seen_days: frozenset[date]
    skipped: Mapping[str, int] = field(default_factory=dict)
    unmatched_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class SheetSummary:
    """
    Outcome of ingesting one worksheet.
    """

    sheet_name: str
    country_id: str | None
    rows_parsed: int
    skipped: Mapping[str, int] = field(default_factory=dict)
    report: UpsertReport = field(default_factory=UpsertReport)
    unmatched_columns: tuple[str, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class IngestionSummary:
    """
    End-of-run ingestion summary across all sheets.
    """

    sheets: tuple[SheetSummary, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def rows_parsed(self) -> int:
        return sum(sheet.rows_parsed for sheet in self.sheets)

    @property
    def created(self) -> int:
        return sum(sheet.report.created for sheet in self.sheets)

    @property
    def updated(self) -> int:
        return sum(sheet.report.updated for sheet in self.sheets)

    @property
    def failed(self) -> int:
        return sum(sheet.report.failed for sheet in self.sheets)

    @property
    def sheets_skipped(self) -> int:
        return sum(1 for sheet in self.sheets if sheet.error is not None)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SheetIngestionService:
    """
    Coordinates normalization, derivation, reconciliation and persistence.
    """

    def __init__(
        self,
        *,
        rates_book: RatesBook,
        max_workers: int = 4,
        max_reported_errors: int = 500,
        log_row_errors: bool = True,
        normalizer: RowNormalizer | None = None,
        engine: MetricsEngine | None = None,
        upsert_service: MetricsUpsertService | None = None,
    ) -> None:
        self._rates_book = rates_book
        self._max_workers = max(1, max_workers)
        self._max_reported_errors = max(1, max_reported_errors)
        self._log_row_errors = log_row_errors
        self._normalizer = normalizer or RowNormalizer()
        self._engine = engine or MetricsEngine()
        self._upsert_service = upsert_service or MetricsUpsertService()

    def prepare_sheet(
        self,
        sheet: SheetInput,
        context: SheetContext,
        *,
        seen_days: frozenset[date] = frozenset(),
    ) -> PreparedSheet:
        """
        Normalize, derive and reconcile one sheet without touching storage.
        """

        log_event(
            logger,
            logging.INFO,
            "sheet_ingest_started",
            sheet=sheet.name,
            country_id=context.country_id,
            data_rows=len(sheet.data_rows),
        )
        result = self._normalizer.normalize(sheet.header_row, sheet.data_rows, seen_days=seen_days)
        settings = self._rates_book.settings_for(context.country_id)

        records = tuple(
            reconcile(
                row,
                row.precomputed,
                self._engine.derive(
                    row,
                    settings,
                    country_id=context.country_id,
                    exchange_rate_override=context.exchange_rate_override,
                ),
            )
            for row in result.rows
        )
        return PreparedSheet(
            sheet_name=sheet.name,
            context=context,
            records=records,
            seen_days=result.seen_days,
            skipped=result.skipped,
            unmatched_columns=result.unmatched_columns,
        )

    def ingest_sheets(
        self,
        sheets: Sequence[SheetInput],
        storage: DailyMetricsStorage,
    ) -> IngestionSummary:
        """
        Ingest every sheet and persist its records through ``storage``.

        Sheets without a country mapping are skipped and reported. The first
        row for a calendar day wins across all sheets of the same country,
        in the order the sheets are given.
        """

        errors: list[str] = []
        unmapped: dict[int, SheetSummary] = {}
        groups: dict[str, list[tuple[int, SheetInput, SheetContext]]] = {}

        for position, sheet in enumerate(sheets):
            context = self._rates_book.context_for_sheet(sheet.name)
            if context is None:
                message = f"No country mapping for sheet '{sheet.name}'."
                log_event(logger, logging.WARNING, "sheet_skipped", sheet=sheet.name, reason="unmapped")
                self._record_error(errors, message)
                unmapped[position] = SheetSummary(
                    sheet_name=sheet.name,
                    country_id=None,
                    rows_parsed=0,
                    error=message,
                )
                continue
            groups.setdefault(context.country_id, []).append((position, sheet, context))

        prepared: dict[int, PreparedSheet] = {}
        if groups:
            workers = min(self._max_workers, len(groups))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sheet-ingest") as executor:
                futures = [executor.submit(self._prepare_group, group) for group in groups.values()]
                for future in futures:
                    prepared.update(future.result())

        summaries: list[SheetSummary] = []
        for position, sheet in enumerate(sheets):
            if position in unmapped:
                summaries.append(unmapped[position])
                continue

            prepared_sheet = prepared[position]
            report = self._upsert_service.upsert_records(prepared_sheet.records, storage)
            for failure in report.failures:
                self._record_error(
                    errors,
                    f"{sheet.name} {failure.day.isoformat()} ({failure.country_id}): {failure.error}",
                )

            summary = SheetSummary(
                sheet_name=sheet.name,
                country_id=prepared_sheet.context.country_id,
                rows_parsed=len(prepared_sheet.records),
                skipped=prepared_sheet.skipped,
                report=report,
                unmatched_columns=prepared_sheet.unmatched_columns,
            )
            log_event(
                logger,
                logging.INFO,
                "sheet_ingest_finished",
                sheet=sheet.name,
                country_id=summary.country_id,
                rows_parsed=summary.rows_parsed,
                skipped=dict(summary.skipped),
                created=report.created,
                updated=report.updated,
                failed=report.failed,
            )
            summaries.append(summary)

        return IngestionSummary(sheets=tuple(summaries), errors=tuple(errors))

    def _prepare_group(
        self,
        group: Sequence[tuple[int, SheetInput, SheetContext]],
    ) -> dict[int, PreparedSheet]:
        seen_days: frozenset[date] = frozenset()
        prepared: dict[int, PreparedSheet] = {}
        for position, sheet, context in group:
            prepared_sheet = self.prepare_sheet(sheet, context, seen_days=seen_days)
            seen_days = prepared_sheet.seen_days
            prepared[position] = prepared_sheet
        return prepared

    def _record_error(self, errors: list[str], message: str) -> None:
        if len(errors) < self._max_reported_errors:
            errors.append(message)
        if self._log_row_errors:
            logger.warning("Ingestion error: %s", message)


def build_sheet_ingestion_service(*, rates_book: RatesBook | None = None) -> SheetIngestionService:
    """
    Build a service from runtime settings, optionally with an explicit rates book.
    """

    settings = get_ingestion_settings()
    return SheetIngestionService(
        rates_book=rates_book or get_rates_book(),
        max_workers=settings.max_workers,
        max_reported_errors=settings.max_reported_errors,
        log_row_errors=settings.log_row_errors,
        normalizer=RowNormalizer(totals_markers=settings.totals_markers),
        upsert_service=get_metrics_upsert_service(),
    )


@lru_cache(maxsize=1)
def get_sheet_ingestion_service() -> SheetIngestionService:
    return build_sheet_ingestion_service()
