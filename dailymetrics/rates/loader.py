"""
JSON rates file loader.

The rates file carries three sections: ``defaults`` (calculation settings
for every country), ``countries`` (per-country overrides merged over the
defaults) and ``sheets`` (worksheet name to country and currency).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from dailymetrics.config import get_ingestion_settings
from dailymetrics.rates.models import CalculationSettings, SheetContext

logger = logging.getLogger(__name__)

_FLOAT_KEYS = {
    "default_channel_rate",
    "settlement_commission_rate",
    "repeat_handler_rate",
    "buyer_rate",
    "bonus_amount",
    "payroll_multiplier",
}
_INT_KEYS = {"bonus_threshold"}
_MAPPING_KEYS = {"channel_rates", "fixed_role_pay"}
_SEQUENCE_KEYS = {"first_deposit_tier_boundaries", "first_deposit_tier_rates"}


def normalize_sheet_name(name: str) -> str:
    return " ".join(str(name).split()).casefold()


@dataclass(frozen=True)
class RatesBook:
    """
    Resolved calculation settings and sheet contexts.
    """

    defaults: CalculationSettings = field(default_factory=CalculationSettings)
    countries: dict[str, CalculationSettings] = field(default_factory=dict)
    sheets: dict[str, SheetContext] = field(default_factory=dict)

    def settings_for(self, country_id: str) -> CalculationSettings:
        return self.countries.get(country_id, self.defaults)

    def context_for_sheet(self, sheet_name: str) -> SheetContext | None:
        """
        Return the sheet context, matching names without case or padding.
        """

        return self.sheets.get(normalize_sheet_name(sheet_name))


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


def load_rates_book(*, config_path: str) -> RatesBook:
    """
    Load the rates book from a JSON file.

    Raises FileNotFoundError when the file is missing and ValueError when a
    top-level section has the wrong shape or the default tiers are invalid.
    """

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Rates config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw_data, dict):
        raise ValueError("Invalid rates config: top level must be an object.")
    return build_rates_book(raw_data)


def build_rates_book(raw_data: Mapping[str, Any]) -> RatesBook:
    """
    Build a rates book from already decoded JSON data.
    """

    raw_defaults = raw_data.get("defaults", {})
    raw_countries = raw_data.get("countries", {})
    raw_sheets = raw_data.get("sheets", {})
    for section, value in (("defaults", raw_defaults), ("countries", raw_countries), ("sheets", raw_sheets)):
        if not isinstance(value, dict):
            raise ValueError(f"Invalid rates config: '{section}' must be an object.")

    defaults = CalculationSettings().merged(_normalize_overrides(raw_defaults))

    countries: dict[str, CalculationSettings] = {}
    for country_id, overrides in raw_countries.items():
        if not isinstance(country_id, str) or not country_id.strip():
            continue
        if not isinstance(overrides, dict):
            logger.warning("Skipping rates override for %s: expected an object.", country_id)
            continue
        try:
            countries[country_id.strip()] = defaults.merged(_normalize_overrides(overrides))
        except ValueError as exc:
            logger.warning("Skipping rates override for %s: %s", country_id, exc)

    sheets: dict[str, SheetContext] = {}
    for sheet_name, entry in raw_sheets.items():
        context = _parse_sheet_entry(sheet_name, entry)
        if context is None:
            logger.warning("Skipping malformed sheet mapping: %r", sheet_name)
            continue
        sheets[normalize_sheet_name(sheet_name)] = context

    return RatesBook(defaults=defaults, countries=countries, sheets=sheets)


def _parse_sheet_entry(sheet_name: object, entry: object) -> SheetContext | None:
    if not isinstance(sheet_name, str) or not sheet_name.strip():
        return None
    if not isinstance(entry, dict):
        return None

    country_id = _optional_str(entry.get("country_id"))
    currency = _optional_str(entry.get("currency"))
    if country_id is None or currency is None:
        return None

    override = _optional_float(entry.get("exchange_rate_override"))
    return SheetContext(
        sheet_name=sheet_name.strip(),
        country_id=country_id,
        currency=currency.upper(),
        exchange_rate_override=override if override and override > 0 else None,
    )


def _normalize_overrides(raw: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        if key in _FLOAT_KEYS:
            parsed = _optional_float(value)
            if parsed is not None:
                normalized[key] = parsed
        elif key in _INT_KEYS:
            parsed = _optional_float(value)
            if parsed is not None:
                normalized[key] = int(parsed)
        elif key in _MAPPING_KEYS:
            mapping = _normalize_rate_mapping(value)
            if mapping is not None:
                normalized[key] = mapping
        elif key in _SEQUENCE_KEYS:
            if isinstance(value, list) and all(_optional_float(item) is not None for item in value):
                normalized[key] = tuple(_optional_float(item) for item in value)
    return normalized


def _normalize_rate_mapping(value: object) -> dict[str, float] | None:
    if not isinstance(value, dict):
        return None

    normalized: dict[str, float] = {}
    for key, rate in value.items():
        parsed = _optional_float(rate)
        if isinstance(key, str) and key.strip() and parsed is not None:
            normalized[key.strip().lower()] = parsed
    return normalized


def _optional_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _optional_float(value: object) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@lru_cache(maxsize=1)
def get_rates_book() -> RatesBook:
    """
    Return the cached rates book from the configured rates path.
    """

    return load_rates_book(config_path=get_ingestion_settings().rates_path)
