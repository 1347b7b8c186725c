"""Maps a unified allocation back onto per-module results.

Each module receives only its own bills, keyed by its own (non-namespaced)
period, so it can apply the update without seeing the other module's data.
"""

import logging
from typing import Mapping

from unified_billing.services.billing_types import (
    Bill,
    CreditSummary,
    DistributionResult,
    ModuleBillPayment,
    ModuleSplit,
    ModuleSummary,
    ModuleType,
)

logger = logging.getLogger(__name__)


def credit_summary(result: DistributionResult) -> CreditSummary:
    """Net credit movement of a distribution."""
    delta = result.credit_delta
    return CreditSummary(
        used=max(0, -delta),
        added=max(0, delta),
        final=result.final_credit,
    )


def split_by_module(result: DistributionResult, bills_by_key: Mapping[str, Bill]) -> ModuleSplit:
    """Split a unified distribution into dues, utility and credit sections.

    Args:
        result: Unified allocation (periods namespaced)
        bills_by_key: Bills that took part in the run, keyed by namespaced period

    Returns:
        ModuleSplit; zero allocations are left out, unknown periods are skipped
    """
    paid: dict[ModuleType, list[ModuleBillPayment]] = {m: [] for m in ModuleType}
    skipped = []

    for allocation in result.allocations:
        if allocation.amount_paid == 0:
            continue

        bill = bills_by_key.get(allocation.period)
        if bill is None:
            logger.warning("Could not find original bill for period %s, skipping", allocation.period)
            skipped.append(allocation.period)
            continue

        paid[bill.module_type].append(
            ModuleBillPayment(
                period=bill.period,
                due_date=bill.due_date,
                priority_rank=int(bill.priority_rank) if bill.priority_rank is not None else 0,
                base_due=bill.base_amount_due,
                penalty_due=bill.penalty_amount_due,
                base_paid=allocation.base_paid,
                penalty_paid=allocation.penalty_paid,
                total_paid=allocation.amount_paid,
                status=allocation.new_status,
            )
        )

    split = ModuleSplit(
        dues=ModuleSummary(ModuleType.DUES, tuple(paid[ModuleType.DUES])),
        utility=ModuleSummary(ModuleType.UTILITY, tuple(paid[ModuleType.UTILITY])),
        credit=credit_summary(result),
        skipped_periods=tuple(skipped),
    )
    logger.debug(
        "Split distribution: dues %d bill(s) %d, utility %d bill(s) %d",
        len(split.dues.bills_paid),
        split.dues.total_paid,
        len(split.utility.bills_paid),
        split.utility.total_paid,
    )
    return split


__all__ = ["credit_summary", "split_by_module"]
