"""
dailymetrics/mappers/header_resolver.py

Rule-based resolution of free-form spreadsheet column labels to canonical fields.

Labels arrive in Russian and English with inconsistent spelling, currency
tags and decorations. Each label is normalized once and then tested against
an ordered rule list; the first matching rule names the field. Variant forms
that share a substring with a base form (``нФД`` vs ``ФД``, ``ФД сумма USDT``
vs ``ФД сумма``, ``Общие расходы`` vs ``Доп расходы``) are listed before the
base rule and the base rule forbids the variant marker as well.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Sequence

from dailymetrics.domain.daily_metrics import FieldId

_WHITESPACE_RE = re.compile(r"\s+")

REVENUE_WORDS: tuple[str, ...] = ("доход", "revenue")
SPEND_WORDS: tuple[str, ...] = ("спенд", "spend")
SETTLEMENT_WORDS: tuple[str, ...] = ("приемк", "priemka", "settlement")
OWN_WORDS: tuple[str, ...] = ("наш", "own")
SETTLED_CURRENCY_WORDS: tuple[str, ...] = ("usdt", "usd")
PROFIT_WORDS: tuple[str, ...] = ("прибыл", "net profit")
AD_BALANCE_WORDS: tuple[str, ...] = ("баланс рк", "ad balance", "ad account balance")
FACT_WORDS: tuple[str, ...] = ("факт", "fact", "actual")
MATH_WORDS: tuple[str, ...] = ("математ", "math", "calculated")


def normalize_header(label: Any) -> str:
    """
    Normalize a column label for rule matching.
    """

    if label is None:
        return ""
    text = str(label).replace(" ", " ").replace("ё", "е").replace("Ё", "Е")
    return _WHITESPACE_RE.sub(" ", text.strip().casefold())


@dataclass(frozen=True)
class HeaderRule:
    """
    One resolution rule over a normalized label.

    ``exact`` alternatives match on equality alone. Otherwise every group in
    ``require`` must contribute at least one substring, the label must start
    with one of ``prefix`` (when given), and no ``forbid`` substring may occur.
    """

    field: str
    require: tuple[tuple[str, ...], ...] = ()
    forbid: tuple[str, ...] = ()
    exact: tuple[str, ...] = ()
    prefix: tuple[str, ...] = ()

    def matches(self, label: str) -> bool:
        if label in self.exact:
            return True
        if not self.require and not self.prefix:
            return False
        if self.prefix and not label.startswith(self.prefix):
            return False
        if any(not any(word in label for word in group) for group in self.require):
            return False
        return not any(word in label for word in self.forbid)


DEFAULT_HEADER_RULES: tuple[HeaderRule, ...] = (
    HeaderRule(FieldId.DATE, exact=("дата", "date", "день", "day")),
    # Ad account balances and top-ups, reported figures only.
    HeaderRule(FieldId.AD_BALANCE_FACT, require=(AD_BALANCE_WORDS, FACT_WORDS)),
    HeaderRule(FieldId.AD_BALANCE_MATH, require=(AD_BALANCE_WORDS, MATH_WORDS)),
    HeaderRule(FieldId.AD_ACCOUNT_DEPOSIT, require=(("внесли", "deposited"), ("на рк", "ad account"))),
    # Sheet-side totals and pre-computed values. These labels reuse the
    # revenue, spend and deposit vocabulary, so they are tested first.
    HeaderRule(FieldId.TOTAL_REVENUE_SETTLED, require=(REVENUE_WORDS, ("общ", "итог", "total"))),
    HeaderRule(FieldId.TOTAL_EXPENSES, require=(("расход", "expense"), ("общ", "total"), SETTLED_CURRENCY_WORDS)),
    HeaderRule(FieldId.EXPENSES_EXCLUDING_SPEND, require=(("расход", "expense"), ("без", "excl", "without"))),
    HeaderRule(FieldId.AGENCY_FEE, require=(("процент агенст", "процент агент", "комиссия агенст", "agency fee", "agency commission"),)),
    HeaderRule(FieldId.TOTAL_SPEND, require=(SPEND_WORDS, ("за день", "общ", "итог", "total", "daily")), exact=SPEND_WORDS),
    HeaderRule(FieldId.COMMISSION_SETTLEMENT, require=(("комисс", "commission"), SETTLEMENT_WORDS)),
    HeaderRule(FieldId.EXCHANGE_RATE_SETTLEMENT, require=(("курс", "exchange rate"), SETTLEMENT_WORDS)),
    HeaderRule(FieldId.EXCHANGE_RATE_OWN_OVERRIDE, require=(("курс", "exchange rate"), OWN_WORDS)),
    HeaderRule(FieldId.TOTAL_PAYROLL, require=(("фот", "payroll"), ("общ", "итог", "total")), forbid=("выпла",)),
    HeaderRule(FieldId.HANDLER_REPEAT_DEPOSIT_PAY, require=(("фот", "payroll"), ("рд", "rd handler"))),
    HeaderRule(FieldId.HANDLER_FIRST_DEPOSIT_PAY, require=(("фот", "payroll"), ("фд", "fd handler")), forbid=("нфд",)),
    HeaderRule(FieldId.BUYER_PAY, require=(("фот", "payroll"), ("баер", "байер", "buyer"))),
    HeaderRule(FieldId.NET_PROFIT_FACT, require=(PROFIT_WORDS, FACT_WORDS)),
    HeaderRule(FieldId.NET_PROFIT, require=(PROFIT_WORDS,), forbid=FACT_WORDS),
    HeaderRule(FieldId.ROI, prefix=("roi",)),
    # Deposits. The non-first ("нФД") variant shares the "фд" substring.
    HeaderRule(FieldId.NON_FIRST_DEPOSIT_COUNT, prefix=("нфд", "nfd"), require=(("кол", "count"),)),
    HeaderRule(FieldId.NON_FIRST_DEPOSIT_SUM_SETTLED, prefix=("нфд", "nfd"), require=(("сумм", "sum"), SETTLED_CURRENCY_WORDS)),
    HeaderRule(FieldId.NON_FIRST_DEPOSIT_SUM_LOCAL, prefix=("нфд", "nfd"), require=(("сумм", "sum"),), forbid=SETTLED_CURRENCY_WORDS),
    HeaderRule(FieldId.FIRST_DEPOSIT_SUM_SETTLED, require=(("фд", "fd "), ("сумм", "sum"), SETTLED_CURRENCY_WORDS), forbid=("нфд", "nfd")),
    HeaderRule(FieldId.FIRST_DEPOSIT_COUNT, require=(("фд", "fd "), ("кол", "count")), forbid=("нфд", "nfd"), exact=("first deposits",)),
    HeaderRule(FieldId.FIRST_DEPOSIT_SUM_LOCAL, require=(("фд", "fd "), ("сумм", "sum")), forbid=("нфд", "nfd")),
    HeaderRule(FieldId.REPEAT_DEPOSIT_SUM_SETTLED, prefix=("рд", "rd "), require=(("сумм", "sum"), SETTLED_CURRENCY_WORDS)),
    HeaderRule(FieldId.REPEAT_DEPOSIT_SUM_LOCAL, prefix=("рд", "rd "), require=(("сумм", "sum"),)),
    HeaderRule(FieldId.REPEAT_DEPOSIT_COUNT, prefix=("рд", "rd "), require=(("кол", "count"),)),
    # Revenue, settled currency before local so "USDT" labels never fall through.
    HeaderRule(FieldId.SETTLEMENT_REVENUE_SETTLED, require=(REVENUE_WORDS, SETTLED_CURRENCY_WORDS, SETTLEMENT_WORDS)),
    HeaderRule(FieldId.SETTLEMENT_REVENUE_LOCAL, require=(REVENUE_WORDS, SETTLEMENT_WORDS), forbid=SETTLED_CURRENCY_WORDS + OWN_WORDS),
    HeaderRule(FieldId.OWN_REVENUE_SETTLED, require=(REVENUE_WORDS, SETTLED_CURRENCY_WORDS, OWN_WORDS)),
    HeaderRule(FieldId.OWN_REVENUE_LOCAL, require=(REVENUE_WORDS, OWN_WORDS), forbid=SETTLED_CURRENCY_WORDS),
    # Spend per ad channel.
    HeaderRule(FieldId.SPEND_TRUST, require=(SPEND_WORDS, ("trust", "траст")), exact=("trust", "траст")),
    HeaderRule(FieldId.SPEND_CROSSGIF, require=(SPEND_WORDS, ("крос", "cross")), exact=("кросгиф", "кроссгиф", "crossgif")),
    HeaderRule(FieldId.SPEND_FBM, require=(SPEND_WORDS, ("fbm", "фбм")), exact=("fbm", "фбм")),
    # Other costs.
    HeaderRule(FieldId.COST_CHATTERFY, require=(("chatterf", "чаттерф"),)),
    HeaderRule(FieldId.COST_ADDITIONAL, prefix=("доп расход", "дополн", "additional exp", "other exp"), forbid=("общ",)),
)


@dataclass(frozen=True)
class ColumnResolution:
    """
    Column index to field mapping for one header row.
    """

    columns: dict[int, str]
    matched: dict[str, str] = field(default_factory=dict)
    unmatched: tuple[str, ...] = ()


class HeaderResolver:
    """
    Resolves spreadsheet header labels into canonical field identifiers.
    """

    def __init__(self, *, extra_rules: Sequence[HeaderRule] | None = None) -> None:
        self._extra_rules = tuple(extra_rules or ())

    def resolve(self, label: Any) -> str | None:
        """
        Return the field for one label, or None when no rule matches.
        """

        normalized = normalize_header(label)
        if not normalized:
            return None
        for rule in self._extra_rules:
            if rule.matches(normalized):
                return rule.field
        return _resolve_normalized(normalized)

    def resolve_columns(self, header_row: Sequence[Any]) -> ColumnResolution:
        """
        Map every header cell to its field; unmatched labels are reported, not rejected.
        """

        columns: dict[int, str] = {}
        matched: dict[str, str] = {}
        unmatched: list[str] = []
        for index, label in enumerate(header_row):
            if label is None or not str(label).strip():
                continue
            field_id = self.resolve(label)
            if field_id is None:
                unmatched.append(str(label).strip())
                continue
            columns[index] = field_id
            matched[str(label).strip()] = field_id

        return ColumnResolution(columns=columns, matched=matched, unmatched=tuple(unmatched))


@lru_cache(maxsize=4096)
def _resolve_normalized(normalized: str) -> str | None:
    for rule in DEFAULT_HEADER_RULES:
        if rule.matches(normalized):
            return rule.field
    return None


def resolve(label: Any) -> str | None:
    """
    Resolve a label with the default rule set.
    """

    normalized = normalize_header(label)
    if not normalized:
        return None
    return _resolve_normalized(normalized)
