"""
dailymetrics/services/row_normalizer.py

Turns one worksheet (header row plus data rows) into canonical daily rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Sequence

from dailymetrics.config import DEFAULT_TOTALS_MARKERS
from dailymetrics.domain.daily_metrics import (
    OTHER_COST_FIELDS,
    RECONCILABLE_FIELDS,
    SPEND_CHANNEL_FIELDS,
    CanonicalRow,
    FieldId,
)
from dailymetrics.mappers.header_resolver import HeaderResolver, normalize_header
from dailymetrics.parsers.values import parse_date, parse_decimal, parse_int

logger = logging.getLogger(__name__)


class CombinePolicy:
    """
    How repeated columns resolving to the same field are combined within a row.
    """

    SUM = "sum"
    MAX = "max"
    LAST = "last"


FIELD_POLICIES: dict[str, str] = {
    FieldId.SETTLEMENT_REVENUE_LOCAL: CombinePolicy.SUM,
    FieldId.SETTLEMENT_REVENUE_SETTLED: CombinePolicy.SUM,
    FieldId.OWN_REVENUE_LOCAL: CombinePolicy.SUM,
    FieldId.OWN_REVENUE_SETTLED: CombinePolicy.SUM,
    FieldId.FIRST_DEPOSIT_COUNT: CombinePolicy.MAX,
    FieldId.FIRST_DEPOSIT_SUM_LOCAL: CombinePolicy.SUM,
    FieldId.NON_FIRST_DEPOSIT_COUNT: CombinePolicy.MAX,
    FieldId.NON_FIRST_DEPOSIT_SUM_LOCAL: CombinePolicy.SUM,
    FieldId.NON_FIRST_DEPOSIT_SUM_SETTLED: CombinePolicy.SUM,
    FieldId.REPEAT_DEPOSIT_COUNT: CombinePolicy.MAX,
    FieldId.TOTAL_REVENUE_SETTLED: CombinePolicy.SUM,
    FieldId.FIRST_DEPOSIT_SUM_SETTLED: CombinePolicy.SUM,
    FieldId.REPEAT_DEPOSIT_SUM_LOCAL: CombinePolicy.SUM,
    FieldId.REPEAT_DEPOSIT_SUM_SETTLED: CombinePolicy.SUM,
}

COUNT_FIELDS = frozenset(
    {
        FieldId.FIRST_DEPOSIT_COUNT,
        FieldId.NON_FIRST_DEPOSIT_COUNT,
        FieldId.REPEAT_DEPOSIT_COUNT,
    }
)


def policy_for(field_id: str) -> str:
    return FIELD_POLICIES.get(field_id, CombinePolicy.LAST)


class SkipReason:
    BLANK = "blank"
    TOTALS = "totals"
    NO_DATE = "no_date"
    NO_ACTIVITY = "no_activity"
    DUPLICATE_DAY = "duplicate_day"

    ALL = (BLANK, TOTALS, NO_DATE, NO_ACTIVITY, DUPLICATE_DAY)


@dataclass(frozen=True)
class NormalizationResult:
    """
    Canonical rows of one sheet plus the days seen so far and skip counters.
    """

    rows: tuple[CanonicalRow, ...]
    seen_days: frozenset[date]
    skipped: Mapping[str, int] = field(default_factory=dict)
    unmatched_columns: tuple[str, ...] = ()

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())


class RowNormalizer:
    """
    Builds immutable canonical rows from raw worksheet rows.

    The column map is resolved once per call. Cells are parsed leniently and
    combined per field, then each row is checked in order for a date, for a
    calendar day not seen before and for non-zero activity. A dated row claims
    its day even when it carries no activity.
    """

    def __init__(
        self,
        *,
        resolver: HeaderResolver | None = None,
        totals_markers: Sequence[str] = DEFAULT_TOTALS_MARKERS,
    ) -> None:
        self._resolver = resolver or HeaderResolver()
        self._totals_markers = tuple(normalize_header(marker) for marker in totals_markers if marker)

    def normalize(
        self,
        header_row: Sequence[Any],
        data_rows: Iterable[Sequence[Any]],
        *,
        seen_days: frozenset[date] = frozenset(),
    ) -> NormalizationResult:
        """
        Normalize data rows under a header row.

        Parameters
        ----------
        header_row:
            Raw header labels; unmatched labels are ignored.
        data_rows:
            Raw cell rows in sheet order.
        seen_days:
            Days already claimed for the same country in this run. Rows for
            these days are dropped and the returned set includes every day
            claimed here, including days whose only row had no activity.
        """

        resolution = self._resolver.resolve_columns(header_row)
        columns = resolution.columns
        date_columns = [index for index, field_id in columns.items() if field_id == FieldId.DATE]
        seen = set(seen_days)
        skipped = {reason: 0 for reason in SkipReason.ALL}
        rows: list[CanonicalRow] = []

        for row_number, raw_row in enumerate(data_rows, start=2):
            cells = list(raw_row)
            first_cell = cells[0] if cells else None
            if _is_blank(first_cell):
                skipped[SkipReason.BLANK] += 1
                continue
            if self._is_totals_row(first_cell):
                skipped[SkipReason.TOTALS] += 1
                continue

            collected = self._collect(cells, columns)
            if not date_columns:
                fallback_day = parse_date(first_cell)
                if fallback_day is not None:
                    collected[FieldId.DATE] = fallback_day

            day = collected.get(FieldId.DATE)
            if not isinstance(day, date):
                skipped[SkipReason.NO_DATE] += 1
                continue

            if day in seen:
                skipped[SkipReason.DUPLICATE_DAY] += 1
                logger.info("Dropping duplicate row %s for day %s.", row_number, day.isoformat())
                continue
            seen.add(day)

            canonical = _build_row(day, collected)
            if not canonical.has_activity():
                skipped[SkipReason.NO_ACTIVITY] += 1
                continue
            rows.append(canonical)

        return NormalizationResult(
            rows=tuple(rows),
            seen_days=frozenset(seen),
            skipped=MappingProxyType(skipped),
            unmatched_columns=resolution.unmatched,
        )

    def _is_totals_row(self, first_cell: Any) -> bool:
        label = normalize_header(first_cell)
        return any(label.startswith(marker) for marker in self._totals_markers)

    @staticmethod
    def _collect(cells: Sequence[Any], columns: Mapping[int, str]) -> dict[str, Any]:
        collected: dict[str, Any] = {}
        for index, field_id in columns.items():
            if index >= len(cells) or _is_blank(cells[index]):
                continue
            raw = cells[index]

            if field_id == FieldId.DATE:
                parsed_day = parse_date(raw)
                if parsed_day is not None:
                    collected[FieldId.DATE] = parsed_day
                continue

            value: float | int = parse_int(raw) if field_id in COUNT_FIELDS else parse_decimal(raw)
            policy = policy_for(field_id)
            if field_id not in collected or policy == CombinePolicy.LAST:
                collected[field_id] = value
            elif policy == CombinePolicy.SUM:
                collected[field_id] += value
            elif policy == CombinePolicy.MAX:
                collected[field_id] = max(collected[field_id], value)
        return collected


def _build_row(day: date, collected: Mapping[str, Any]) -> CanonicalRow:
    spend = {
        channel: max(0.0, float(collected[field_id]))
        for field_id, channel in SPEND_CHANNEL_FIELDS.items()
        if field_id in collected
    }
    other_costs = {
        name: float(collected[field_id])
        for field_id, name in OTHER_COST_FIELDS.items()
        if field_id in collected
    }
    precomputed = {
        field_id: float(collected[field_id])
        for field_id in RECONCILABLE_FIELDS
        if field_id in collected
    }
    return CanonicalRow(
        date=day,
        spend=spend,
        settlement_revenue_local=float(collected.get(FieldId.SETTLEMENT_REVENUE_LOCAL, 0.0)),
        settlement_revenue_settled=float(collected.get(FieldId.SETTLEMENT_REVENUE_SETTLED, 0.0)),
        own_revenue_local=float(collected.get(FieldId.OWN_REVENUE_LOCAL, 0.0)),
        own_revenue_settled=float(collected.get(FieldId.OWN_REVENUE_SETTLED, 0.0)),
        first_deposit_count=max(0, int(collected.get(FieldId.FIRST_DEPOSIT_COUNT, 0))),
        first_deposit_sum_local=float(collected.get(FieldId.FIRST_DEPOSIT_SUM_LOCAL, 0.0)),
        non_first_deposit_count=int(collected.get(FieldId.NON_FIRST_DEPOSIT_COUNT, 0)),
        non_first_deposit_sum_local=float(collected.get(FieldId.NON_FIRST_DEPOSIT_SUM_LOCAL, 0.0)),
        non_first_deposit_sum_settled=float(collected.get(FieldId.NON_FIRST_DEPOSIT_SUM_SETTLED, 0.0)),
        repeat_deposit_count=int(collected.get(FieldId.REPEAT_DEPOSIT_COUNT, 0)),
        exchange_rate_own_override=float(collected.get(FieldId.EXCHANGE_RATE_OWN_OVERRIDE, 0.0)),
        ad_balance_fact=float(collected.get(FieldId.AD_BALANCE_FACT, 0.0)),
        ad_balance_math=float(collected.get(FieldId.AD_BALANCE_MATH, 0.0)),
        ad_account_deposit=float(collected.get(FieldId.AD_ACCOUNT_DEPOSIT, 0.0)),
        net_profit_fact=float(collected.get(FieldId.NET_PROFIT_FACT, 0.0)),
        other_costs=other_costs,
        precomputed=precomputed,
    )


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ""
