"""Fiscal calendar helpers.

Fiscal years are named after the calendar year in which they end: with a July
start, fiscal year 2026 runs from 2025-07-01 to 2026-06-30. With a January
start the fiscal year equals the calendar year.
"""

from datetime import date


def _check_start_month(start_month: int) -> None:
    if not 1 <= start_month <= 12:
        raise ValueError(f"fiscal_year_start_month must be 1..12, got {start_month}")


def fiscal_month_index(day: date, start_month: int) -> int:
    """Index 0-11 of the fiscal month containing ``day``."""
    _check_start_month(start_month)
    return (day.month - start_month) % 12


def add_months(day: date, months: int) -> date:
    """Shift a first-of-month style date by whole months (day clamped to 28)."""
    month_zero = day.month - 1 + months
    return date(day.year + month_zero // 12, month_zero % 12 + 1, min(day.day, 28))


def fiscal_year_start_date(fiscal_year: int, start_month: int) -> date:
    """First day of the given fiscal year."""
    _check_start_month(start_month)
    if start_month == 1:
        return date(fiscal_year, 1, 1)
    return date(fiscal_year - 1, start_month, 1)


def fiscal_month_start_date(fiscal_year: int, month_index: int, start_month: int) -> date:
    """First day of fiscal month ``month_index`` (0-11) of ``fiscal_year``."""
    if not 0 <= month_index <= 11:
        raise ValueError(f"month_index must be 0..11, got {month_index}")
    return add_months(fiscal_year_start_date(fiscal_year, start_month), month_index)


def period_key(fiscal_year: int, month_index: int) -> str:
    """Module-local period key, e.g. ``2026-03``."""
    return f"{fiscal_year}-{month_index:02d}"


__all__ = [
    "add_months",
    "fiscal_month_index",
    "fiscal_month_start_date",
    "fiscal_year_start_date",
    "period_key",
]
