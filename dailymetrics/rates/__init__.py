"""
Calculation rates and sheet mapping helpers.
"""

from dailymetrics.rates.loader import RatesBook, build_rates_book, get_rates_book, load_rates_book
from dailymetrics.rates.models import CalculationSettings, SheetContext

__all__ = [
    "CalculationSettings",
    "RatesBook",
    "SheetContext",
    "build_rates_book",
    "get_rates_book",
    "load_rates_book",
]
