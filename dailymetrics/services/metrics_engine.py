"""
dailymetrics/services/metrics_engine.py

Deterministic derivation of daily financial metrics.

The engine is a pure function of one canonical row and the named
calculation settings. No I/O happens here; the caller resolves the settings
for the row's country and decides what to do with the record.

Formulas
--------
total_spend               = Σ spend
agency_fee                = Σ spend[channel] * channel_rate
exchange_rate_settlement  = settlement_local / settlement_settled
commission_settlement     = settlement_settled * settlement_commission_rate
exchange_rate_own         = own_local / own_settled, else override
total_revenue_settled     = settlement_settled + own_settled
first_deposit_sum_settled = first_deposit_sum_local / exchange_rate_own
repeat_deposit_sum_local  = own_local - first_deposit_sum_local
total_payroll             = repeat handler + first deposit handler + buyer + fixed roles
total_expenses            = commission + total_spend + agency_fee + total_payroll + other costs
net_profit                = own_settled - commission - agency_fee - total_spend
                            - total_payroll - other costs
roi                       = (total_revenue_settled - total_expenses) / total_expenses

Every division by a non-positive denominator yields 0.
"""

from __future__ import annotations

import logging

from dailymetrics.domain.daily_metrics import CanonicalRow, DerivedRecord
from dailymetrics.rates.models import CalculationSettings

logger = logging.getLogger(__name__)


def _safe_ratio(numerator: float, denominator: float) -> float:
    if denominator > 0:
        return numerator / denominator
    return 0.0


class MetricsEngine:
    """
    Stateless calculator turning a canonical row into a derived record.

    Usage::

        engine = MetricsEngine()
        record = engine.derive(row, CalculationSettings(), country_id="peru")
        print(record.net_profit)
    """

    def derive(
        self,
        row: CanonicalRow,
        settings: CalculationSettings,
        *,
        country_id: str,
        exchange_rate_override: float | None = None,
    ) -> DerivedRecord:
        """
        Derive every financial field for one row.

        Parameters
        ----------
        row:
            Canonical row produced by the row normalizer.
        settings:
            Rates for the row's country.
        country_id:
            Key the record is stored under together with the row date.
        exchange_rate_override:
            Sheet-level own exchange rate, used only when the row supplies
            neither own revenue in both currencies nor its own override.

        Returns
        -------
        DerivedRecord
            Negative values (e.g. repeat deposits below zero) are kept as-is.
        """

        total_spend = sum(row.spend.values())
        agency_fee = sum(
            amount * settings.channel_rates.get(channel, settings.default_channel_rate)
            for channel, amount in row.spend.items()
        )

        exchange_rate_settlement = _safe_ratio(
            row.settlement_revenue_local, row.settlement_revenue_settled
        )
        commission_settlement = row.settlement_revenue_settled * settings.settlement_commission_rate

        exchange_rate_own = self.resolve_own_exchange_rate(
            row, exchange_rate_override=exchange_rate_override
        )
        total_revenue_settled = row.settlement_revenue_settled + row.own_revenue_settled

        first_deposit_sum_settled = _safe_ratio(row.first_deposit_sum_local, exchange_rate_own)
        repeat_deposit_sum_local = row.own_revenue_local - row.first_deposit_sum_local
        repeat_deposit_sum_settled = _safe_ratio(repeat_deposit_sum_local, exchange_rate_own)
        if repeat_deposit_sum_local < 0:
            logger.warning(
                "Negative repeat deposit sum for %s on %s: own revenue %.2f below first deposits %.2f.",
                country_id,
                row.date.isoformat(),
                row.own_revenue_local,
                row.first_deposit_sum_local,
            )

        handler_repeat_deposit_pay = repeat_deposit_sum_settled * settings.repeat_handler_rate
        handler_first_deposit_pay = self.first_deposit_handler_pay(row.first_deposit_count, settings)
        buyer_pay = total_spend * settings.buyer_rate
        fixed_role_pay = sum(settings.fixed_role_pay.values())
        total_payroll = (
            handler_repeat_deposit_pay + handler_first_deposit_pay + buyer_pay + fixed_role_pay
        )

        other_costs = sum(row.other_costs.values())
        total_expenses = (
            commission_settlement + total_spend + agency_fee + total_payroll + other_costs
        )
        expenses_excluding_spend = total_expenses - total_spend

        # Own revenue only; settlement revenue is not part of net profit.
        net_profit = (
            row.own_revenue_settled
            - commission_settlement
            - agency_fee
            - total_spend
            - total_payroll
            - other_costs
        )
        roi = _safe_ratio(total_revenue_settled - total_expenses, total_expenses)

        logger.debug(
            "Derived metrics for %s on %s: spend=%.2f revenue=%.2f profit=%.2f",
            country_id,
            row.date.isoformat(),
            total_spend,
            total_revenue_settled,
            net_profit,
        )
        return DerivedRecord(
            source=row,
            country_id=country_id,
            total_spend=total_spend,
            agency_fee=agency_fee,
            exchange_rate_settlement=exchange_rate_settlement,
            commission_settlement=commission_settlement,
            exchange_rate_own=exchange_rate_own,
            total_revenue_settled=total_revenue_settled,
            first_deposit_sum_settled=first_deposit_sum_settled,
            repeat_deposit_sum_local=repeat_deposit_sum_local,
            repeat_deposit_sum_settled=repeat_deposit_sum_settled,
            handler_repeat_deposit_pay=handler_repeat_deposit_pay,
            handler_first_deposit_pay=handler_first_deposit_pay,
            buyer_pay=buyer_pay,
            fixed_role_pay=fixed_role_pay,
            total_payroll=total_payroll,
            total_expenses=total_expenses,
            expenses_excluding_spend=expenses_excluding_spend,
            net_profit=net_profit,
            roi=roi,
        )

    @staticmethod
    def resolve_own_exchange_rate(
        row: CanonicalRow,
        *,
        exchange_rate_override: float | None = None,
    ) -> float:
        """
        Own exchange rate: implied by own revenue, else row override, else sheet override.
        """

        if row.own_revenue_settled > 0:
            return row.own_revenue_local / row.own_revenue_settled
        if row.exchange_rate_own_override > 0:
            return row.exchange_rate_own_override
        if exchange_rate_override is not None and exchange_rate_override > 0:
            return exchange_rate_override
        return 0.0

    @staticmethod
    def first_deposit_handler_pay(first_deposit_count: int, settings: CalculationSettings) -> float:
        """
        Tiered first deposit handler pay.

        Formula::

            (count * tier_rate(count) + bonus) * payroll_multiplier

        where ``bonus`` is paid once the count reaches ``bonus_threshold``.
        """

        bonus = settings.bonus_amount if first_deposit_count >= settings.bonus_threshold else 0.0
        return (
            first_deposit_count * settings.tier_rate(first_deposit_count) + bonus
        ) * settings.payroll_multiplier


_DEFAULT_ENGINE = MetricsEngine()


def derive(
    row: CanonicalRow,
    settings: CalculationSettings,
    *,
    country_id: str,
    exchange_rate_override: float | None = None,
) -> DerivedRecord:
    """
    Module-level shortcut for :meth:`MetricsEngine.derive`.
    """

    return _DEFAULT_ENGINE.derive(
        row,
        settings,
        country_id=country_id,
        exchange_rate_override=exchange_rate_override,
    )
