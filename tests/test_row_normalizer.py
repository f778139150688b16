"""
tests/test_row_normalizer.py

Pytest unit tests for RowNormalizer.

Coverage
--------
- Combination policies for repeated columns (SUM / MAX / LAST)
- Blank, totals, dateless and zero-activity rows
- First-row-wins deduplication within a call and across calls
- Pre-computed values captured separately from raw inputs
- Idempotence
"""

from __future__ import annotations

from datetime import date

import pytest

from dailymetrics.domain.daily_metrics import FieldId
from dailymetrics.services.row_normalizer import (
    CombinePolicy,
    RowNormalizer,
    SkipReason,
    policy_for,
)

HEADER = [
    "Дата",
    "Спенд TRUST",
    "Спенд FBM",
    "Доход в SOL приемка",
    "Доход в SOL приемка 2",
    "Доход в USDT наш",
    "Доход в SOL наш",
    "ФД кол-во",
    "ФД кол-во",
    "ФД сумма SOL",
    "Доп расходы",
    "Доп расходы",
]

DAY_ONE = date(2024, 1, 1)
DAY_TWO = date(2024, 1, 2)


def _row(day, *, trust=100, fbm=50, fd_first=3, fd_second=5, extra_first=10, extra_second=20):
    return [day, trust, fbm, 200, 100, 100, 365, fd_first, fd_second, 50, extra_first, extra_second]


@pytest.fixture
def normalizer() -> RowNormalizer:
    return RowNormalizer()


class TestCombinePolicies:
    def test_policy_table(self):
        assert policy_for(FieldId.SETTLEMENT_REVENUE_LOCAL) == CombinePolicy.SUM
        assert policy_for(FieldId.FIRST_DEPOSIT_COUNT) == CombinePolicy.MAX
        assert policy_for(FieldId.SPEND_TRUST) == CombinePolicy.LAST
        assert policy_for(FieldId.FIRST_DEPOSIT_SUM_SETTLED) == CombinePolicy.SUM
        assert policy_for(FieldId.NET_PROFIT) == CombinePolicy.LAST

    def test_repeated_columns_are_combined_per_field(self, normalizer):
        result = normalizer.normalize(HEADER, [_row(DAY_ONE)])

        assert len(result.rows) == 1
        row = result.rows[0]
        assert row.date == DAY_ONE
        assert dict(row.spend) == {"trust": 100.0, "fbm": 50.0}
        assert row.settlement_revenue_local == pytest.approx(300.0)
        assert row.own_revenue_settled == pytest.approx(100.0)
        assert row.own_revenue_local == pytest.approx(365.0)
        assert row.first_deposit_count == 5
        assert row.first_deposit_sum_local == pytest.approx(50.0)
        assert dict(row.other_costs) == {"additional": 20.0}

    def test_max_policy_keeps_larger_count(self, normalizer):
        result = normalizer.normalize(HEADER, [_row(DAY_ONE, fd_first=9, fd_second=2)])

        assert result.rows[0].first_deposit_count == 9

    def test_blank_cells_do_not_overwrite(self, normalizer):
        result = normalizer.normalize(HEADER, [_row(DAY_ONE, extra_second=None)])

        assert dict(result.rows[0].other_costs) == {"additional": 10.0}

    def test_text_numbers_and_dates_are_parsed(self, normalizer):
        result = normalizer.normalize(HEADER, [_row("02.01.2024", trust="1 234,5")])

        assert result.rows[0].date == DAY_TWO
        assert result.rows[0].spend["trust"] == pytest.approx(1234.5)


class TestSkipRules:
    def test_blank_and_totals_rows_are_skipped(self, normalizer):
        rows = [
            [None, 100],
            ["", 100],
            ["Итого", 1000],
            ["TOTAL:", 1000],
            _row(DAY_ONE),
        ]

        result = normalizer.normalize(HEADER, rows)

        assert len(result.rows) == 1
        assert result.skipped[SkipReason.BLANK] == 2
        assert result.skipped[SkipReason.TOTALS] == 2

    def test_rows_without_date_are_skipped(self, normalizer):
        result = normalizer.normalize(HEADER, [_row("не дата")])

        assert result.rows == ()
        assert result.skipped[SkipReason.NO_DATE] == 1

    def test_rows_without_activity_are_skipped(self, normalizer):
        empty = [DAY_ONE] + [0] * (len(HEADER) - 1)

        result = normalizer.normalize(HEADER, [empty])

        assert result.rows == ()
        assert result.skipped[SkipReason.NO_ACTIVITY] == 1
        assert result.seen_days == frozenset({DAY_ONE})

    def test_zero_row_claims_its_day(self, normalizer):
        empty = [DAY_ONE] + [0] * (len(HEADER) - 1)

        result = normalizer.normalize(HEADER, [empty, _row(DAY_ONE), _row(DAY_TWO)])

        assert [row.date for row in result.rows] == [DAY_TWO]
        assert result.skipped[SkipReason.NO_ACTIVITY] == 1
        assert result.skipped[SkipReason.DUPLICATE_DAY] == 1

    def test_custom_totals_markers(self):
        normalizer = RowNormalizer(totals_markers=("сумма",))

        result = normalizer.normalize(HEADER, [["Сумма за месяц", 1], ["Итого", 1]])

        assert result.skipped[SkipReason.TOTALS] == 1
        assert result.skipped[SkipReason.NO_DATE] == 1


class TestDeduplication:
    def test_first_row_for_a_day_wins(self, normalizer):
        rows = [_row(DAY_ONE, trust=100), _row(DAY_ONE, trust=999), _row(DAY_TWO)]

        result = normalizer.normalize(HEADER, rows)

        assert [row.date for row in result.rows] == [DAY_ONE, DAY_TWO]
        assert result.rows[0].spend["trust"] == pytest.approx(100.0)
        assert result.skipped[SkipReason.DUPLICATE_DAY] == 1
        assert result.seen_days == frozenset({DAY_ONE, DAY_TWO})

    def test_seen_days_from_earlier_sheets_are_respected(self, normalizer):
        result = normalizer.normalize(
            HEADER,
            [_row(DAY_ONE), _row(DAY_TWO)],
            seen_days=frozenset({DAY_ONE}),
        )

        assert [row.date for row in result.rows] == [DAY_TWO]
        assert result.seen_days == frozenset({DAY_ONE, DAY_TWO})

    def test_same_day_in_datetime_and_text_is_a_duplicate(self, normalizer):
        result = normalizer.normalize(HEADER, [_row(DAY_ONE), _row("01.01.2024")])

        assert len(result.rows) == 1


class TestPrecomputedAndFallbacks:
    def test_precomputed_columns_are_kept_apart(self, normalizer):
        header = ["Дата", "Спенд TRUST", "Спенд за день", "Чистая прибыль математика"]

        result = normalizer.normalize(header, [[DAY_ONE, 100, 150, -20]])

        row = result.rows[0]
        assert dict(row.spend) == {"trust": 100.0}
        assert dict(row.precomputed) == {FieldId.TOTAL_SPEND: 150.0, FieldId.NET_PROFIT: -20.0}

    def test_reported_profit_does_not_overwrite_formula_profit(self, normalizer):
        header = ["Дата", "Спенд TRUST", "Чистая прибыль математика", "Чистая прибыль факт"]

        result = normalizer.normalize(header, [[DAY_ONE, 100, 55.5, 40]])

        row = result.rows[0]
        assert row.precomputed[FieldId.NET_PROFIT] == pytest.approx(55.5)
        assert row.net_profit_fact == pytest.approx(40.0)

    def test_non_first_deposit_sums_keep_currencies_apart(self, normalizer):
        header = ["Дата", "нФД сумма SOL", "нФД сумма USDT"]

        result = normalizer.normalize(header, [[DAY_ONE, 365, 100]])

        row = result.rows[0]
        assert row.non_first_deposit_sum_local == pytest.approx(365.0)
        assert row.non_first_deposit_sum_settled == pytest.approx(100.0)

    def test_ad_account_columns_are_carried(self, normalizer):
        header = ["Дата", "Спенд", "Баланс РК факт", "Баланс РК математика", "Внесли на РК"]

        result = normalizer.normalize(header, [[DAY_ONE, 120, 500, 480, 200]])

        row = result.rows[0]
        assert row.precomputed[FieldId.TOTAL_SPEND] == pytest.approx(120.0)
        assert row.ad_balance_fact == pytest.approx(500.0)
        assert row.ad_balance_math == pytest.approx(480.0)
        assert row.ad_account_deposit == pytest.approx(200.0)

    def test_unmatched_columns_are_reported(self, normalizer):
        result = normalizer.normalize(["Дата", "Спенд TRUST", "Комментарий"], [[DAY_ONE, 1, "x"]])

        assert result.unmatched_columns == ("Комментарий",)

    def test_precomputed_values_alone_count_as_activity(self, normalizer):
        result = normalizer.normalize(["Дата", "Общий доход USDT"], [[DAY_ONE, 42]])

        assert len(result.rows) == 1

    def test_first_cell_is_the_date_when_no_date_column_matches(self, normalizer):
        result = normalizer.normalize(["", "Спенд TRUST"], [["2024-01-03", 10]])

        assert result.rows[0].date == date(2024, 1, 3)

    def test_negative_spend_is_clamped(self, normalizer):
        result = normalizer.normalize(["Дата", "Спенд TRUST", "Доход в USDT наш"], [[DAY_ONE, -5, 10]])

        assert result.rows[0].spend["trust"] == 0.0


class TestIdempotence:
    def test_same_input_gives_same_rows(self, normalizer):
        rows = [_row(DAY_ONE), _row(DAY_TWO), _row(DAY_ONE)]

        first = normalizer.normalize(HEADER, rows)
        second = normalizer.normalize(HEADER, rows)

        assert first.rows == second.rows
        assert first.seen_days == second.seen_days
        assert dict(first.skipped) == dict(second.skipped)
