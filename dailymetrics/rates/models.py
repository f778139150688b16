"""
Calculation rate models.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType
from typing import Any, Mapping


def _default_channel_rates() -> dict[str, float]:
    return {"trust": 0.09, "crossgif": 0.08, "fbm": 0.08}


def _default_fixed_role_pay() -> dict[str, float]:
    return {"head_designer": 10.0}


@dataclass(frozen=True)
class CalculationSettings:
    """
    Named rates and payroll parameters used by the metrics engine.

    Tier boundaries are the inclusive lower bounds of every tier after the
    first, so ``(5, 10)`` with rates ``(3, 4, 5)`` pays 3 below five first
    deposits, 4 from five to nine and 5 from ten upward.
    """

    channel_rates: Mapping[str, float] = field(default_factory=_default_channel_rates)
    default_channel_rate: float = 0.08
    settlement_commission_rate: float = 0.15
    repeat_handler_rate: float = 0.04
    buyer_rate: float = 0.12
    first_deposit_tier_boundaries: tuple[int, ...] = (5, 10)
    first_deposit_tier_rates: tuple[float, ...] = (3.0, 4.0, 5.0)
    bonus_threshold: int = 5
    bonus_amount: float = 15.0
    payroll_multiplier: float = 1.2
    fixed_role_pay: Mapping[str, float] = field(default_factory=_default_fixed_role_pay)

    def __post_init__(self) -> None:
        boundaries = tuple(int(value) for value in self.first_deposit_tier_boundaries)
        rates = tuple(float(value) for value in self.first_deposit_tier_rates)
        if len(rates) != len(boundaries) + 1:
            raise ValueError(
                "first_deposit_tier_rates must have exactly one more entry than "
                "first_deposit_tier_boundaries."
            )
        if any(left >= right for left, right in zip(boundaries, boundaries[1:])):
            raise ValueError("first_deposit_tier_boundaries must be strictly increasing.")

        object.__setattr__(self, "first_deposit_tier_boundaries", boundaries)
        object.__setattr__(self, "first_deposit_tier_rates", rates)
        object.__setattr__(
            self,
            "channel_rates",
            MappingProxyType({str(k): float(v) for k, v in self.channel_rates.items()}),
        )
        object.__setattr__(
            self,
            "fixed_role_pay",
            MappingProxyType({str(k): float(v) for k, v in self.fixed_role_pay.items()}),
        )

    def tier_rate(self, first_deposit_count: int) -> float:
        """
        Return the per-deposit handler rate for a first deposit count.
        """

        for boundary, rate in zip(self.first_deposit_tier_boundaries, self.first_deposit_tier_rates):
            if first_deposit_count < boundary:
                return rate
        return self.first_deposit_tier_rates[-1]

    def merged(self, overrides: Mapping[str, Any] | None) -> "CalculationSettings":
        """
        Return a copy with known keys replaced; unknown keys are ignored.

        ``channel_rates`` and ``fixed_role_pay`` overrides are merged into the
        current mappings rather than replacing them.
        """

        if not overrides:
            return self

        known = {item.name for item in fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in known:
                continue
            if key in {"channel_rates", "fixed_role_pay"} and isinstance(value, Mapping):
                changes[key] = {**getattr(self, key), **value}
            elif key in {"first_deposit_tier_boundaries", "first_deposit_tier_rates"}:
                changes[key] = tuple(value)
            else:
                changes[key] = value
        return replace(self, **changes)


@dataclass(frozen=True)
class SheetContext:
    """
    Country and currency a worksheet reports for.
    """

    sheet_name: str
    country_id: str
    currency: str
    exchange_rate_override: float | None = None
