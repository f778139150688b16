"""
dailymetrics/schemas/ingestion.py

Response schemas for workbook ingestion reports.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from dailymetrics.services.sheet_ingestion_service import IngestionSummary, SheetSummary


class RowFailureResponse(BaseModel):
    """
    One daily metrics row that could not be persisted.
    """

    day: date
    country_id: str
    error: str | None = None


class SheetSummaryResponse(BaseModel):
    """
    Report model for one ingested worksheet.
    """

    sheet_name: str
    country_id: str | None = None
    rows_parsed: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: dict[str, int] = Field(default_factory=dict)
    unmatched_columns: list[str] = Field(default_factory=list)
    failures: list[RowFailureResponse] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def from_summary(cls, summary: SheetSummary) -> "SheetSummaryResponse":
        return cls(
            sheet_name=summary.sheet_name,
            country_id=summary.country_id,
            rows_parsed=summary.rows_parsed,
            created=summary.report.created,
            updated=summary.report.updated,
            failed=summary.report.failed,
            skipped=dict(summary.skipped),
            unmatched_columns=list(summary.unmatched_columns),
            failures=[
                RowFailureResponse(day=outcome.day, country_id=outcome.country_id, error=outcome.error)
                for outcome in summary.report.failures
            ],
            error=summary.error,
        )


class IngestionSummaryResponse(BaseModel):
    """
    Report model for a whole workbook ingestion run.
    """

    dry_run: bool = False
    rows_parsed: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    sheets_skipped: int = Field(..., ge=0)
    sheets: list[SheetSummaryResponse] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_summary(cls, summary: IngestionSummary, *, dry_run: bool = False) -> "IngestionSummaryResponse":
        return cls(
            dry_run=dry_run,
            rows_parsed=summary.rows_parsed,
            created=summary.created,
            updated=summary.updated,
            failed=summary.failed,
            sheets_skipped=summary.sheets_skipped,
            sheets=[SheetSummaryResponse.from_summary(sheet) for sheet in summary.sheets],
            errors=list(summary.errors),
        )
