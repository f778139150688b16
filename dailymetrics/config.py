"""
dailymetrics/config.py

Runtime configuration for spreadsheet ingestion.

Every setting has a default; a missing, blank or unparsable environment value
falls back to it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, TypeVar

from db.config import load_env_files

T = TypeVar("T")

DEFAULT_TOTALS_MARKERS: tuple[str, ...] = ("итого", "всего", "total")
TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    load_env_files()


def _read_env(name: str, default: T, convert: Callable[[str], T]) -> T:
    """
    Return `convert(value)` for a set, non-blank variable, else `default`.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        return convert(raw_value.strip())
    except ValueError:
        return default


def _as_bool(value: str) -> bool:
    return value.lower() in TRUTHY_VALUES


def _as_markers(value: str) -> tuple[str, ...]:
    markers = tuple(item.strip().casefold() for item in value.split(",") if item.strip())
    if not markers:
        raise ValueError("no markers listed")
    return markers


@dataclass(frozen=True)
class IngestionSettings:
    """
    Runtime settings for workbook ingestion.
    """

    rates_path: str = "config/rates.json"
    max_workers: int = 4
    max_reported_errors: int = 500
    log_row_errors: bool = True
    totals_markers: tuple[str, ...] = DEFAULT_TOTALS_MARKERS
    upsert_max_retries: int = 2
    upsert_backoff_seconds: float = 0.5


@lru_cache(maxsize=1)
def get_ingestion_settings() -> IngestionSettings:
    """
    Return cached ingestion settings from environment variables.
    """

    return IngestionSettings(
        rates_path=_read_env("METRICS_RATES_PATH", "config/rates.json", str),
        max_workers=max(1, _read_env("METRICS_INGEST_MAX_WORKERS", 4, int)),
        max_reported_errors=max(1, _read_env("METRICS_INGEST_MAX_REPORTED_ERRORS", 500, int)),
        log_row_errors=_read_env("METRICS_INGEST_LOG_ROW_ERRORS", True, _as_bool),
        totals_markers=_read_env("METRICS_INGEST_TOTALS_MARKERS", DEFAULT_TOTALS_MARKERS, _as_markers),
        upsert_max_retries=max(0, _read_env("METRICS_UPSERT_MAX_RETRIES", 2, int)),
        upsert_backoff_seconds=max(0.0, _read_env("METRICS_UPSERT_BACKOFF_SECONDS", 0.5, float)),
    )
