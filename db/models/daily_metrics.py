"""
db/models/daily_metrics.py

Persisted daily metrics, one row per calendar day per country.
"""

from __future__ import annotations

import datetime
import uuid
from typing import Any

from sqlalchemy import Date, Double, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin

UPSERT_CONSTRAINT = "uq_daily_metrics_date_country"


def _money(comment: str) -> Any:
    return mapped_column(Double, nullable=False, default=0.0, server_default="0", comment=comment)


def _count(comment: str) -> Any:
    return mapped_column(Integer, nullable=False, default=0, server_default="0", comment=comment)


class DailyMetrics(Base, TimestampMixin):
    """
    Raw daily inputs plus every derived financial field for one country.

    The unique constraint on ``(date, country_id)`` drives upsert semantics:
    re-importing a day overwrites the existing row in full.
    """

    __tablename__ = "daily_metrics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    country_id: Mapped[str] = mapped_column(String(64), nullable=False)

    spend_trust: Mapped[float] = _money("Ad spend on the trust channel")
    spend_crossgif: Mapped[float] = _money("Ad spend on the crossgif channel")
    spend_fbm: Mapped[float] = _money("Ad spend on the fbm channel")
    spend_breakdown: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Spend per channel, including channels without a dedicated column",
    )
    total_spend: Mapped[float] = _money("Sum of channel spend")
    agency_fee: Mapped[float] = _money("Agency fee on spend")

    settlement_revenue_local: Mapped[float] = _money("Settlement partner revenue, local currency")
    settlement_revenue_settled: Mapped[float] = _money("Settlement partner revenue, settled currency")
    exchange_rate_settlement: Mapped[float] = _money("Implied settlement exchange rate")
    commission_settlement: Mapped[float] = _money("Settlement partner commission")

    own_revenue_local: Mapped[float] = _money("Direct revenue, local currency")
    own_revenue_settled: Mapped[float] = _money("Direct revenue, settled currency")
    exchange_rate_own: Mapped[float] = _money("Own exchange rate, implied or supplied")
    total_revenue_settled: Mapped[float] = _money("Settlement plus own revenue, settled currency")

    first_deposit_count: Mapped[int] = _count("First deposits")
    first_deposit_sum_local: Mapped[float] = _money("First deposit sum, local currency")
    first_deposit_sum_settled: Mapped[float] = _money("First deposit sum, settled currency")
    non_first_deposit_count: Mapped[int] = _count("Non-first deposits")
    non_first_deposit_sum_local: Mapped[float] = _money("Non-first deposit sum, local currency")
    non_first_deposit_sum_settled: Mapped[float] = _money("Non-first deposit sum, settled currency")
    repeat_deposit_count: Mapped[int] = _count("Repeat deposits as reported")
    repeat_deposit_sum_local: Mapped[float] = _money("Repeat deposit sum, local currency")
    repeat_deposit_sum_settled: Mapped[float] = _money("Repeat deposit sum, settled currency")

    handler_repeat_deposit_pay: Mapped[float] = _money("Repeat deposit handler pay")
    handler_first_deposit_pay: Mapped[float] = _money("First deposit handler pay")
    buyer_pay: Mapped[float] = _money("Media buyer pay")
    fixed_role_pay: Mapped[float] = _money("Fixed daily role pay")
    total_payroll: Mapped[float] = _money("Total payroll")

    cost_chatterfy: Mapped[float] = _money("Chatterfy cost")
    cost_additional: Mapped[float] = _money("Additional cost")
    other_costs: Mapped[dict[str, Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        comment="Other costs keyed by name",
    )
    total_expenses: Mapped[float] = _money("All expenses including spend")
    expenses_excluding_spend: Mapped[float] = _money("All expenses except spend")
    net_profit: Mapped[float] = _money("Own revenue minus all expenses")
    roi: Mapped[float] = _money("Return on total expenses")

    ad_balance_fact: Mapped[float] = _money("Ad account balance as reported")
    ad_balance_math: Mapped[float] = _money("Ad account balance as calculated in the sheet")
    ad_account_deposit: Mapped[float] = _money("Amount deposited to ad accounts")
    net_profit_fact: Mapped[float] = _money("Net profit as reported in the sheet")

    __table_args__ = (
        UniqueConstraint("date", "country_id", name=UPSERT_CONSTRAINT),
        Index("ix_daily_metrics_country_date", "country_id", "date"),
    )
