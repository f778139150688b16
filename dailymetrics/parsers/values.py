"""
dailymetrics/parsers/values.py

Lenient cell value parsing for spreadsheet ingestion.

Parsers never raise: an unreadable date becomes ``None`` and an unreadable
number becomes zero, so a single dirty cell cannot abort a sheet.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from openpyxl.utils.datetime import from_excel

DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
)

# 9999-12-31 in the 1900 date system.
MAX_SERIAL_DATE = 2958465

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})[./-](\d{1,2})[./-](\d{2}|\d{4})(?:\s.*)?$")
_NON_NUMERIC_RE = re.compile(r"[^\d.,-]")
_MINUS_SIGNS = ("−", "–", "‒")


def parse_date(value: Any) -> date | None:
    """
    Parse a spreadsheet cell into a calendar date.

    Accepts native date objects, spreadsheet serial numbers (also given as
    numeric strings), ISO-like strings and day-first ``DD.MM.YYYY`` strings.
    Returns None when nothing matches.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float, Decimal)):
        return _from_serial(float(value))

    raw = str(value).strip()
    if not raw:
        return None

    try:
        return _from_serial(float(raw))
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue

    match = _DAY_FIRST_RE.match(raw)
    if match is None:
        return None

    day, month, year = (int(part) for part in match.groups())
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_serial(serial: float) -> date | None:
    if not math.isfinite(serial) or serial <= 0 or serial > MAX_SERIAL_DATE:
        return None
    try:
        converted = from_excel(serial)
    except (OverflowError, ValueError):
        return None
    if isinstance(converted, datetime):
        return converted.date()
    if isinstance(converted, date):
        return converted
    return None


def parse_decimal(value: Any) -> float:
    """
    Parse a loosely formatted number, returning 0.0 when it cannot be read.

    Currency symbols, spaces and percent signs are stripped. A lone comma is
    treated as the decimal separator; commas next to a dot, or repeated
    commas, are thousands separators.
    """

    if value is None or isinstance(value, (bool, date)):
        return 0.0
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return number if math.isfinite(number) else 0.0

    text = str(value)
    for sign in _MINUS_SIGNS:
        text = text.replace(sign, "-")
    cleaned = _NON_NUMERIC_RE.sub("", text)
    if not cleaned:
        return 0.0

    if "." in cleaned:
        cleaned = cleaned.replace(",", "")
    elif cleaned.count(",") == 1:
        cleaned = cleaned.replace(",", ".")
    else:
        cleaned = cleaned.replace(",", "")

    try:
        number = float(cleaned)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_int(value: Any) -> int:
    """
    Parse a count, rounding fractional values half-up.
    """

    number = parse_decimal(value)
    try:
        return int(Decimal(repr(number)).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        return 0
