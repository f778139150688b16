"""
Import a daily metrics workbook from CLI.
"""

from __future__ import annotations

import argparse
import logging

from dailymetrics.loaders.workbook_loader import load_workbook_sheets
from dailymetrics.rates.loader import load_rates_book
from dailymetrics.repositories.daily_metrics_repository import (
    DailyMetricsRepository,
    InMemoryDailyMetricsStorage,
)
from dailymetrics.schemas.ingestion import IngestionSummaryResponse
from dailymetrics.services.sheet_ingestion_service import build_sheet_ingestion_service
from db.session import session_scope


def main() -> int:
    parser = argparse.ArgumentParser(description="Import daily metrics from an .xlsx workbook.")
    parser.add_argument("workbook", help="Path to the .xlsx workbook.")
    parser.add_argument(
        "--sheet",
        dest="sheets",
        action="append",
        default=None,
        help="Only import this worksheet (repeatable).",
    )
    parser.add_argument(
        "--rates",
        dest="rates_path",
        default=None,
        help="Rates JSON file; defaults to METRICS_RATES_PATH.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Derive and report without writing to the database.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    rates_book = load_rates_book(config_path=args.rates_path) if args.rates_path else None
    service = build_sheet_ingestion_service(rates_book=rates_book)
    sheets = load_workbook_sheets(args.workbook, sheet_names=args.sheets)

    if args.dry_run:
        summary = service.ingest_sheets(sheets, InMemoryDailyMetricsStorage())
    else:
        with session_scope() as db:
            summary = service.ingest_sheets(sheets, DailyMetricsRepository(db))

    response = IngestionSummaryResponse.from_summary(summary, dry_run=args.dry_run)
    print(response.model_dump_json(indent=2))
    return 1 if summary.failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
