"""Priority classification of bills.

Rules, first match wins:
1. Past due dues
2. Past due utility
3. Current-month dues
4. Current-month utility
5. Future dues (prepaid allowed)
6. Future utility -> EXCLUDED (postpaid only, never offered for payment)
"""

import logging
from collections import Counter
from datetime import date
from typing import Iterable

from unified_billing.services.billing_types import Bill, ModuleType, PriorityRank
from unified_billing.services.errors import InvariantViolation
from unified_billing.services.fiscal_calendar import fiscal_month_index

logger = logging.getLogger(__name__)

_PAST_DUE = {ModuleType.DUES: PriorityRank.PAST_DUE_DUES, ModuleType.UTILITY: PriorityRank.PAST_DUE_UTILITY}
_CURRENT = {ModuleType.DUES: PriorityRank.CURRENT_DUES, ModuleType.UTILITY: PriorityRank.CURRENT_UTILITY}
_FUTURE = {ModuleType.DUES: PriorityRank.FUTURE_DUES, ModuleType.UTILITY: PriorityRank.EXCLUDED}


def is_same_fiscal_month(due_date: date, as_of_date: date, fiscal_year_start_month: int) -> bool:
    """True when both dates fall in the same fiscal month of the same calendar year.

    Comparing the calendar year as well keeps a month from matching the same
    fiscal month index one year earlier or later.
    """
    return (
        fiscal_month_index(due_date, fiscal_year_start_month)
        == fiscal_month_index(as_of_date, fiscal_year_start_month)
        and due_date.year == as_of_date.year
    )


def classify(bill: Bill, as_of_date: date, fiscal_year_start_month: int) -> PriorityRank:
    """Assign a priority rank to one bill.

    Raises:
        InvariantViolation: If the bill's module has no rule
    """
    try:
        module = ModuleType(bill.module_type)
    except ValueError as e:
        raise InvariantViolation(f"No priority rule for module {bill.module_type!r}") from e

    if bill.due_date < as_of_date:
        return _PAST_DUE[module]
    if is_same_fiscal_month(bill.due_date, as_of_date, fiscal_year_start_month):
        return _CURRENT[module]
    return _FUTURE[module]


def prioritize_bills(
    bills: Iterable[Bill],
    as_of_date: date,
    fiscal_year_start_month: int,
) -> list[Bill]:
    """Classify, drop excluded bills and sort by (rank, due date).

    Module and period are trailing sort keys so that equal (rank, due date)
    pairs still order the same way on every run.
    """
    ranked = [b.with_rank(classify(b, as_of_date, fiscal_year_start_month)) for b in bills]
    payable = [b for b in ranked if b.priority_rank.is_payable]

    excluded = len(ranked) - len(payable)
    if excluded:
        logger.info("Excluded %d future utility bill(s) (postpaid only)", excluded)

    payable.sort(key=lambda b: (b.priority_rank, b.due_date, b.module_type.value, b.period))

    breakdown = Counter(int(b.priority_rank) for b in payable)
    logger.debug("Priority breakdown: %s", dict(sorted(breakdown.items())))
    return payable


__all__ = ["classify", "is_same_fiscal_month", "prioritize_bills"]
