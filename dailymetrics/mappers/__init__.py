"""
dailymetrics/mappers package marker.
"""

from dailymetrics.mappers.header_resolver import (
    DEFAULT_HEADER_RULES,
    ColumnResolution,
    HeaderResolver,
    HeaderRule,
    normalize_header,
    resolve,
)

__all__ = [
    "ColumnResolution",
    "DEFAULT_HEADER_RULES",
    "HeaderResolver",
    "HeaderRule",
    "normalize_header",
    "resolve",
]
