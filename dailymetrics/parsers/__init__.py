"""
dailymetrics/parsers package marker.
"""

from dailymetrics.parsers.values import parse_date, parse_decimal, parse_int

__all__ = [
    "parse_date",
    "parse_decimal",
    "parse_int",
]
