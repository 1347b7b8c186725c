"""Penalty calculation for a single overdue bill.

Penalty rules:
- Bills are payable from their due date
- Grace period: configurable days
- After the grace period a compounding penalty is applied monthly
- Formula: each month, penalty = (principal + accrued penalty) x rate

Compounding example (10% rate, 1000.00 principal):
- Month 1: 1000.00 x 10% = 100.00 (total 100.00)
- Month 2: 1100.00 x 10% = 110.00 (total 210.00)
- Month 3: 1210.00 x 10% = 121.00 (total 331.00)

Amounts are integer minor units; the result is rounded half-up once, here,
so that no rounding happens inside the distribution engine.
"""

import math
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

DAYS_PER_PENALTY_MONTH = 30


def months_overdue(due_date: date, as_of_date: date, grace_days: int) -> int:
    """Number of penalty months elapsed.

    Zero within the grace period; any day past it counts as a full month.
    """
    grace_end = due_date + timedelta(days=grace_days)
    if as_of_date <= grace_end:
        return 0
    days_past_grace = (as_of_date - grace_end).days
    return max(1, math.ceil(days_past_grace / DAYS_PER_PENALTY_MONTH))


def compound_penalty(principal: int, months: int, rate: Decimal) -> int:
    """Total compounding penalty on ``principal`` after ``months`` months."""
    if months <= 0 or principal <= 0:
        return 0
    rate = Decimal(str(rate))
    running_total = Decimal(principal)
    total_penalty = Decimal(0)
    for _ in range(months):
        monthly = running_total * rate
        total_penalty += monthly
        running_total += monthly
    return int(total_penalty.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_penalty(
    base_outstanding: int,
    due_date: date,
    as_of_date: date,
    rate: Decimal,
    grace_days: int,
) -> int:
    """Penalty owed on an unpaid base amount as of a date.

    Args:
        base_outstanding: Unpaid base charge (minor units)
        due_date: Bill due date
        as_of_date: Date penalties are computed for (usually the payment date)
        rate: Monthly penalty rate (Decimal("0.05") = 5%)
        grace_days: Days after due date before penalties start

    Returns:
        Penalty in minor units

    Raises:
        ValueError: If rate or grace_days is negative
    """
    if Decimal(str(rate)) < 0:
        raise ValueError("penalty rate must be non-negative")
    if grace_days < 0:
        raise ValueError("grace_days must be non-negative")
    if base_outstanding <= 0:
        return 0
    return compound_penalty(base_outstanding, months_overdue(due_date, as_of_date, grace_days), rate)


__all__ = ["calculate_penalty", "compound_penalty", "months_overdue"]
