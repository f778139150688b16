"""
tests/test_metrics_engine.py

Pytest unit tests for MetricsEngine.

All tests are pure Python: no database, no I/O. Given the same row and
settings the engine must produce the same record every time.

Coverage
--------
- Spend totals and agency fee per channel
- Settlement and own exchange rates, including zero denominators
- Own rate fallback order (implied, row override, sheet override)
- First deposit handler tier table and bonus
- Full-row scenario for payroll, expenses, profit and ROI
- Negative repeat deposits kept and logged
- Statelessness across calls
"""

from __future__ import annotations

import logging
from datetime import date

import pytest

from dailymetrics.domain.daily_metrics import CanonicalRow
from dailymetrics.rates.models import CalculationSettings
from dailymetrics.services.metrics_engine import MetricsEngine, derive

DAY = date(2024, 1, 15)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> MetricsEngine:
    return MetricsEngine()


@pytest.fixture
def settings() -> CalculationSettings:
    return CalculationSettings()


@pytest.fixture
def full_row() -> CanonicalRow:
    return CanonicalRow(
        date=DAY,
        spend={"trust": 100.0},
        settlement_revenue_local=730.0,
        settlement_revenue_settled=200.0,
        own_revenue_local=365.0,
        own_revenue_settled=100.0,
        first_deposit_count=7,
        first_deposit_sum_local=50.0,
        other_costs={"additional": 10.0},
    )


# ---------------------------------------------------------------------------
# Spend
# ---------------------------------------------------------------------------


class TestSpend:
    def test_total_spend_is_sum_of_channels(self, engine, settings):
        row = CanonicalRow(date=DAY, spend={"trust": 100.0, "crossgif": 50.0, "fbm": 25.0})

        record = engine.derive(row, settings, country_id="peru")

        assert record.total_spend == pytest.approx(175.0)

    def test_agency_fee_for_trust_spend(self, engine, settings):
        row = CanonicalRow(date=DAY, spend={"trust": 100.0})

        record = engine.derive(row, settings, country_id="peru")

        assert record.agency_fee == pytest.approx(9.0)

    def test_agency_fee_uses_channel_rates(self, engine, settings):
        row = CanonicalRow(date=DAY, spend={"trust": 100.0, "crossgif": 50.0, "fbm": 50.0})

        record = engine.derive(row, settings, country_id="peru")

        assert record.agency_fee == pytest.approx(17.0)

    def test_unknown_channel_uses_default_rate(self, engine, settings):
        row = CanonicalRow(date=DAY, spend={"tiktok": 100.0})

        record = engine.derive(row, settings, country_id="peru")

        assert record.agency_fee == pytest.approx(8.0)


# ---------------------------------------------------------------------------
# Exchange rates
# ---------------------------------------------------------------------------


class TestExchangeRates:
    def test_own_rate_and_first_deposit_conversion(self, engine, settings):
        row = CanonicalRow(
            date=DAY,
            own_revenue_local=365.0,
            own_revenue_settled=100.0,
            first_deposit_sum_local=50.0,
        )

        record = engine.derive(row, settings, country_id="peru")

        assert record.exchange_rate_own == pytest.approx(3.65)
        assert record.first_deposit_sum_settled == pytest.approx(13.70, abs=0.01)
        assert record.repeat_deposit_sum_local == pytest.approx(315.0)
        assert record.repeat_deposit_sum_settled == pytest.approx(315.0 / 3.65)

    def test_zero_settled_settlement_revenue_gives_zero_rate_and_commission(self, engine, settings):
        row = CanonicalRow(date=DAY, settlement_revenue_local=500.0)

        record = engine.derive(row, settings, country_id="peru")

        assert record.exchange_rate_settlement == 0.0
        assert record.commission_settlement == 0.0

    def test_settlement_rate_and_commission(self, engine, settings):
        row = CanonicalRow(date=DAY, settlement_revenue_local=730.0, settlement_revenue_settled=200.0)

        record = engine.derive(row, settings, country_id="peru")

        assert record.exchange_rate_settlement == pytest.approx(3.65)
        assert record.commission_settlement == pytest.approx(30.0)

    def test_row_override_used_without_own_settled_revenue(self, engine, settings):
        row = CanonicalRow(date=DAY, first_deposit_sum_local=80.0, exchange_rate_own_override=4.0)

        record = engine.derive(row, settings, country_id="peru", exchange_rate_override=3.0)

        assert record.exchange_rate_own == pytest.approx(4.0)
        assert record.first_deposit_sum_settled == pytest.approx(20.0)

    def test_sheet_override_used_when_row_has_none(self, engine, settings):
        row = CanonicalRow(date=DAY, first_deposit_sum_local=70.0)

        record = engine.derive(row, settings, country_id="peru", exchange_rate_override=3.5)

        assert record.exchange_rate_own == pytest.approx(3.5)
        assert record.first_deposit_sum_settled == pytest.approx(20.0)

    def test_no_rate_gives_zero_conversions(self, engine, settings):
        row = CanonicalRow(date=DAY, own_revenue_local=100.0, first_deposit_sum_local=40.0)

        record = engine.derive(row, settings, country_id="peru")

        assert record.exchange_rate_own == 0.0
        assert record.first_deposit_sum_settled == 0.0
        assert record.repeat_deposit_sum_settled == 0.0
        assert record.repeat_deposit_sum_local == pytest.approx(60.0)


# ---------------------------------------------------------------------------
# Payroll
# ---------------------------------------------------------------------------


class TestFirstDepositHandlerPay:
    @pytest.mark.parametrize(
        "count, tier_rate",
        [(0, 3.0), (4, 3.0), (5, 4.0), (9, 4.0), (10, 5.0), (11, 5.0)],
    )
    def test_tier_table(self, settings, count, tier_rate):
        assert settings.tier_rate(count) == tier_rate

    @pytest.mark.parametrize(
        "count, expected",
        [(0, 0.0), (4, 14.4), (5, 42.0), (7, 51.6), (9, 61.2), (10, 78.0), (11, 84.0)],
    )
    def test_pay_with_bonus_and_multiplier(self, settings, count, expected):
        assert MetricsEngine.first_deposit_handler_pay(count, settings) == pytest.approx(expected)

    def test_custom_tiers(self):
        settings = CalculationSettings(
            first_deposit_tier_boundaries=(3,),
            first_deposit_tier_rates=(1.0, 2.0),
            bonus_threshold=100,
            payroll_multiplier=1.0,
        )

        assert MetricsEngine.first_deposit_handler_pay(2, settings) == pytest.approx(2.0)
        assert MetricsEngine.first_deposit_handler_pay(3, settings) == pytest.approx(6.0)


# ---------------------------------------------------------------------------
# Full row
# ---------------------------------------------------------------------------


class TestFullRow:
    def test_payroll_expenses_profit_and_roi(self, engine, settings, full_row):
        record = engine.derive(full_row, settings, country_id="peru")

        handler_rd = (315.0 / 3.65) * 0.04
        payroll = handler_rd + 51.6 + 12.0 + 10.0
        expenses = 30.0 + 100.0 + 9.0 + payroll + 10.0

        assert record.handler_repeat_deposit_pay == pytest.approx(handler_rd)
        assert record.handler_first_deposit_pay == pytest.approx(51.6)
        assert record.buyer_pay == pytest.approx(12.0)
        assert record.fixed_role_pay == pytest.approx(10.0)
        assert record.total_payroll == pytest.approx(payroll)
        assert record.total_revenue_settled == pytest.approx(300.0)
        assert record.total_expenses == pytest.approx(expenses)
        assert record.expenses_excluding_spend == pytest.approx(expenses - 100.0)
        assert record.net_profit == pytest.approx(100.0 - 30.0 - 9.0 - 100.0 - payroll - 10.0)
        assert record.roi == pytest.approx((300.0 - expenses) / expenses)

    def test_net_profit_ignores_settlement_revenue(self, engine, settings, full_row):
        baseline = engine.derive(full_row, settings, country_id="peru")
        more_settlement = CanonicalRow(
            date=DAY,
            spend=full_row.spend,
            settlement_revenue_local=full_row.settlement_revenue_local,
            settlement_revenue_settled=full_row.settlement_revenue_settled + 100.0,
            own_revenue_local=full_row.own_revenue_local,
            own_revenue_settled=full_row.own_revenue_settled,
            first_deposit_count=full_row.first_deposit_count,
            first_deposit_sum_local=full_row.first_deposit_sum_local,
            other_costs=full_row.other_costs,
        )

        record = engine.derive(more_settlement, settings, country_id="peru")

        # Extra settlement revenue only adds commission on the expense side.
        assert record.net_profit == pytest.approx(baseline.net_profit - 15.0)

    def test_zero_expenses_gives_zero_roi(self, engine):
        settings = CalculationSettings(fixed_role_pay={})
        row = CanonicalRow(date=DAY, own_revenue_settled=0.0)

        record = engine.derive(row, settings, country_id="peru")

        assert record.total_expenses == 0.0
        assert record.roi == 0.0

    def test_record_carries_source_and_key(self, engine, settings, full_row):
        record = engine.derive(full_row, settings, country_id="chile")

        assert record.source is full_row
        assert record.day == DAY
        assert record.country_id == "chile"

    def test_payload_contains_storage_columns(self, engine, settings, full_row):
        payload = engine.derive(full_row, settings, country_id="peru").to_payload()

        assert payload["date"] == DAY
        assert payload["country_id"] == "peru"
        assert payload["spend_trust"] == pytest.approx(100.0)
        assert payload["spend_fbm"] == 0.0
        assert payload["cost_additional"] == pytest.approx(10.0)
        assert payload["handler_first_deposit_pay"] == pytest.approx(51.6)


class TestEdgeCases:
    def test_negative_repeat_deposits_are_kept_and_logged(self, engine, settings, caplog):
        row = CanonicalRow(
            date=DAY,
            own_revenue_local=10.0,
            own_revenue_settled=5.0,
            first_deposit_sum_local=50.0,
        )

        with caplog.at_level(logging.WARNING, logger="dailymetrics.services.metrics_engine"):
            record = engine.derive(row, settings, country_id="peru")

        assert record.repeat_deposit_sum_local == pytest.approx(-40.0)
        assert record.repeat_deposit_sum_settled == pytest.approx(-20.0)
        assert "Negative repeat deposit sum" in caplog.text

    def test_derive_is_deterministic(self, engine, settings, full_row):
        first = engine.derive(full_row, settings, country_id="peru")
        second = engine.derive(full_row, settings, country_id="peru")

        assert first == second

    def test_module_function_matches_engine(self, engine, settings, full_row):
        assert derive(full_row, settings, country_id="peru") == engine.derive(
            full_row, settings, country_id="peru"
        )
