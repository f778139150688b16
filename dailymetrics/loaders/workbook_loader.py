"""
dailymetrics/loaders/workbook_loader.py

Reads worksheets from an .xlsx workbook into raw sheet inputs.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

from openpyxl import load_workbook

from dailymetrics.services.sheet_ingestion_service import SheetInput

logger = logging.getLogger(__name__)


def load_workbook_sheets(
    path: str | Path,
    *,
    sheet_names: Sequence[str] | None = None,
) -> list[SheetInput]:
    """
    Load every worksheet (or only ``sheet_names``) as header row plus data rows.

    Cached formula results are read instead of formulas. The first row of a
    sheet is its header; fully blank trailing rows are dropped and empty
    sheets are skipped.
    """

    workbook_path = Path(path)
    if not workbook_path.exists():
        raise FileNotFoundError(f"Workbook not found: {workbook_path}")

    wanted = {name.strip() for name in sheet_names} if sheet_names else None
    workbook = load_workbook(workbook_path, read_only=True, data_only=True)
    try:
        sheets: list[SheetInput] = []
        for worksheet in workbook.worksheets:
            if wanted is not None and worksheet.title.strip() not in wanted:
                continue

            rows = _trim_trailing_blank_rows(worksheet.iter_rows(values_only=True))
            if not rows:
                logger.info("Skipping empty worksheet %r.", worksheet.title)
                continue

            sheets.append(
                SheetInput(
                    name=worksheet.title,
                    header_row=rows[0],
                    data_rows=tuple(rows[1:]),
                )
            )
    finally:
        workbook.close()

    logger.info("Loaded %d worksheet(s) from %s.", len(sheets), workbook_path.name)
    return sheets


def _trim_trailing_blank_rows(rows: Iterable[Sequence[Any]]) -> list[tuple[Any, ...]]:
    collected = [tuple(row) for row in rows]
    while collected and all(_is_blank(cell) for cell in collected[-1]):
        collected.pop()
    return collected


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""
