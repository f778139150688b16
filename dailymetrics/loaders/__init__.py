"""
dailymetrics/loaders package marker.
"""

from dailymetrics.loaders.workbook_loader import load_workbook_sheets

__all__ = ["load_workbook_sheets"]
