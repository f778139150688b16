"""
dailymetrics/domain/daily_metrics.py

Domain models shared by the normalization, derivation and upsert layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Mapping


class FieldId:
    """
    Canonical field identifiers a spreadsheet column can resolve to.
    """

    DATE = "date"

    SPEND_TRUST = "spend_trust"
    SPEND_CROSSGIF = "spend_crossgif"
    SPEND_FBM = "spend_fbm"

    SETTLEMENT_REVENUE_LOCAL = "settlement_revenue_local"
    SETTLEMENT_REVENUE_SETTLED = "settlement_revenue_settled"
    OWN_REVENUE_LOCAL = "own_revenue_local"
    OWN_REVENUE_SETTLED = "own_revenue_settled"

    FIRST_DEPOSIT_COUNT = "first_deposit_count"
    FIRST_DEPOSIT_SUM_LOCAL = "first_deposit_sum_local"
    NON_FIRST_DEPOSIT_COUNT = "non_first_deposit_count"
    NON_FIRST_DEPOSIT_SUM_LOCAL = "non_first_deposit_sum_local"
    NON_FIRST_DEPOSIT_SUM_SETTLED = "non_first_deposit_sum_settled"
    REPEAT_DEPOSIT_COUNT = "repeat_deposit_count"

    EXCHANGE_RATE_OWN_OVERRIDE = "exchange_rate_own_override"

    # Carried to storage as reported; not used in derivation.
    AD_BALANCE_FACT = "ad_balance_fact"
    AD_BALANCE_MATH = "ad_balance_math"
    AD_ACCOUNT_DEPOSIT = "ad_account_deposit"
    NET_PROFIT_FACT = "net_profit_fact"

    COST_CHATTERFY = "cost_chatterfy"
    COST_ADDITIONAL = "cost_additional"

    # Values the sheet may already carry pre-computed.
    TOTAL_SPEND = "total_spend"
    AGENCY_FEE = "agency_fee"
    EXCHANGE_RATE_SETTLEMENT = "exchange_rate_settlement"
    COMMISSION_SETTLEMENT = "commission_settlement"
    TOTAL_REVENUE_SETTLED = "total_revenue_settled"
    FIRST_DEPOSIT_SUM_SETTLED = "first_deposit_sum_settled"
    REPEAT_DEPOSIT_SUM_LOCAL = "repeat_deposit_sum_local"
    REPEAT_DEPOSIT_SUM_SETTLED = "repeat_deposit_sum_settled"
    HANDLER_REPEAT_DEPOSIT_PAY = "handler_repeat_deposit_pay"
    HANDLER_FIRST_DEPOSIT_PAY = "handler_first_deposit_pay"
    BUYER_PAY = "buyer_pay"
    TOTAL_PAYROLL = "total_payroll"
    TOTAL_EXPENSES = "total_expenses"
    EXPENSES_EXCLUDING_SPEND = "expenses_excluding_spend"
    NET_PROFIT = "net_profit"
    ROI = "roi"


SPEND_CHANNEL_FIELDS: dict[str, str] = {
    FieldId.SPEND_TRUST: "trust",
    FieldId.SPEND_CROSSGIF: "crossgif",
    FieldId.SPEND_FBM: "fbm",
}

OTHER_COST_FIELDS: dict[str, str] = {
    FieldId.COST_CHATTERFY: "chatterfy",
    FieldId.COST_ADDITIONAL: "additional",
}

RECONCILABLE_FIELDS: tuple[str, ...] = (
    FieldId.TOTAL_SPEND,
    FieldId.AGENCY_FEE,
    FieldId.EXCHANGE_RATE_SETTLEMENT,
    FieldId.COMMISSION_SETTLEMENT,
    FieldId.TOTAL_REVENUE_SETTLED,
    FieldId.FIRST_DEPOSIT_SUM_SETTLED,
    FieldId.REPEAT_DEPOSIT_SUM_LOCAL,
    FieldId.REPEAT_DEPOSIT_SUM_SETTLED,
    FieldId.HANDLER_REPEAT_DEPOSIT_PAY,
    FieldId.HANDLER_FIRST_DEPOSIT_PAY,
    FieldId.BUYER_PAY,
    FieldId.TOTAL_PAYROLL,
    FieldId.TOTAL_EXPENSES,
    FieldId.EXPENSES_EXCLUDING_SPEND,
    FieldId.NET_PROFIT,
    FieldId.ROI,
)


def _frozen_mapping(values: Mapping[str, float] | None) -> Mapping[str, float]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class CanonicalRow:
    """
    One spreadsheet data row translated to canonical semantics.

    Built once per ingestion pass by the row normalizer and never mutated.
    ``precomputed`` holds the subset of reconcilable derived values the
    sheet already carried.
    """

    date: date
    spend: Mapping[str, float] = field(default_factory=dict)
    settlement_revenue_local: float = 0.0
    settlement_revenue_settled: float = 0.0
    own_revenue_local: float = 0.0
    own_revenue_settled: float = 0.0
    first_deposit_count: int = 0
    first_deposit_sum_local: float = 0.0
    non_first_deposit_count: int = 0
    non_first_deposit_sum_local: float = 0.0
    non_first_deposit_sum_settled: float = 0.0
    repeat_deposit_count: int = 0
    exchange_rate_own_override: float = 0.0
    ad_balance_fact: float = 0.0
    ad_balance_math: float = 0.0
    ad_account_deposit: float = 0.0
    net_profit_fact: float = 0.0
    other_costs: Mapping[str, float] = field(default_factory=dict)
    precomputed: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "spend", _frozen_mapping(self.spend))
        object.__setattr__(self, "other_costs", _frozen_mapping(self.other_costs))
        object.__setattr__(self, "precomputed", _frozen_mapping(self.precomputed))

    def has_activity(self) -> bool:
        """
        Return True when any monetary or count value is non-zero.
        """

        scalars = (
            self.settlement_revenue_local,
            self.settlement_revenue_settled,
            self.own_revenue_local,
            self.own_revenue_settled,
            self.first_deposit_count,
            self.first_deposit_sum_local,
            self.non_first_deposit_count,
            self.non_first_deposit_sum_local,
            self.non_first_deposit_sum_settled,
            self.repeat_deposit_count,
        )
        if any(value != 0 for value in scalars):
            return True
        return any(
            value != 0
            for values in (self.spend, self.other_costs, self.precomputed)
            for value in values.values()
        )


@dataclass(frozen=True)
class DerivedRecord:
    """
    A canonical row enriched with every derived financial field.

    This is the unit persisted into storage, keyed by ``(day, country_id)``.
    """

    source: CanonicalRow
    country_id: str
    total_spend: float
    agency_fee: float
    exchange_rate_settlement: float
    commission_settlement: float
    exchange_rate_own: float
    total_revenue_settled: float
    first_deposit_sum_settled: float
    repeat_deposit_sum_local: float
    repeat_deposit_sum_settled: float
    handler_repeat_deposit_pay: float
    handler_first_deposit_pay: float
    buyer_pay: float
    fixed_role_pay: float
    total_payroll: float
    total_expenses: float
    expenses_excluding_spend: float
    net_profit: float
    roi: float

    @property
    def day(self) -> date:
        return self.source.date

    def to_payload(self) -> dict[str, Any]:
        """
        Flatten the record into the storage column dictionary.
        """

        row = self.source
        return {
            "date": row.date,
            "country_id": self.country_id,
            "spend_trust": row.spend.get("trust", 0.0),
            "spend_crossgif": row.spend.get("crossgif", 0.0),
            "spend_fbm": row.spend.get("fbm", 0.0),
            "spend_breakdown": dict(row.spend),
            "total_spend": self.total_spend,
            "agency_fee": self.agency_fee,
            "settlement_revenue_local": row.settlement_revenue_local,
            "settlement_revenue_settled": row.settlement_revenue_settled,
            "exchange_rate_settlement": self.exchange_rate_settlement,
            "commission_settlement": self.commission_settlement,
            "own_revenue_local": row.own_revenue_local,
            "own_revenue_settled": row.own_revenue_settled,
            "exchange_rate_own": self.exchange_rate_own,
            "total_revenue_settled": self.total_revenue_settled,
            "first_deposit_count": row.first_deposit_count,
            "first_deposit_sum_local": row.first_deposit_sum_local,
            "first_deposit_sum_settled": self.first_deposit_sum_settled,
            "non_first_deposit_count": row.non_first_deposit_count,
            "non_first_deposit_sum_local": row.non_first_deposit_sum_local,
            "non_first_deposit_sum_settled": row.non_first_deposit_sum_settled,
            "repeat_deposit_count": row.repeat_deposit_count,
            "repeat_deposit_sum_local": self.repeat_deposit_sum_local,
            "repeat_deposit_sum_settled": self.repeat_deposit_sum_settled,
            "handler_repeat_deposit_pay": self.handler_repeat_deposit_pay,
            "handler_first_deposit_pay": self.handler_first_deposit_pay,
            "buyer_pay": self.buyer_pay,
            "fixed_role_pay": self.fixed_role_pay,
            "total_payroll": self.total_payroll,
            "cost_chatterfy": row.other_costs.get("chatterfy", 0.0),
            "cost_additional": row.other_costs.get("additional", 0.0),
            "other_costs": dict(row.other_costs),
            "total_expenses": self.total_expenses,
            "expenses_excluding_spend": self.expenses_excluding_spend,
            "net_profit": self.net_profit,
            "roi": self.roi,
            "ad_balance_fact": row.ad_balance_fact,
            "ad_balance_math": row.ad_balance_math,
            "ad_account_deposit": row.ad_account_deposit,
            "net_profit_fact": row.net_profit_fact,
        }


class RowStatus:
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass(frozen=True)
class RowOutcome:
    """
    Result of upserting one derived record.
    """

    day: date
    country_id: str
    status: str
    error: str | None = None


@dataclass(frozen=True)
class UpsertReport:
    """
    Per-row upsert outcomes for one batch.
    """

    outcomes: tuple[RowOutcome, ...] = ()

    @property
    def created(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == RowStatus.CREATED)

    @property
    def updated(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == RowStatus.UPDATED)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == RowStatus.FAILED)

    @property
    def failures(self) -> tuple[RowOutcome, ...]:
        return tuple(outcome for outcome in self.outcomes if outcome.status == RowStatus.FAILED)
