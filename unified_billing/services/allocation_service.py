"""Tier allocator: applies one pool of funds to an ordered list of bills.

Each bill is completed (base charge, then penalty) before the next bill
receives anything, so a partial payment always lands on the earliest
unsatisfied bill of the tier.

Ensures: sum(amount_paid) + leftover == funds (zero money loss/creation)
"""

from typing import Sequence

from unified_billing.services.billing_types import (
    AllocationResult,
    Bill,
    BillStatus,
    TierAllocation,
)
from unified_billing.services.errors import InvariantViolation


def resolve_status(bill: Bill, amount_paid: int) -> BillStatus:
    """Status of a bill after receiving ``amount_paid`` in this run."""
    if amount_paid >= bill.total_due:
        return BillStatus.PAID
    if amount_paid > 0 or bill.paid_to_date > 0:
        return BillStatus.PARTIAL
    return BillStatus.UNPAID


def allocate_tier(bills: Sequence[Bill], funds: int) -> TierAllocation:
    """Allocate funds across one tier's bills in list order.

    Args:
        bills: Bills of a single priority rank, already sorted oldest first
        funds: Undifferentiated pool (payment and credit combined)

    Returns:
        TierAllocation with one result per bill (in input order) and leftover funds

    Raises:
        InvariantViolation: If funds is negative or the pool does not balance
    """
    if funds < 0:
        raise InvariantViolation(f"Cannot allocate negative funds: {funds}")

    remaining = funds
    results = []

    for bill in bills:
        base_paid = min(remaining, bill.base_amount_due)
        remaining -= base_paid
        penalty_paid = min(remaining, bill.penalty_amount_due)
        remaining -= penalty_paid

        amount_paid = base_paid + penalty_paid
        results.append(
            AllocationResult(
                period=bill.key,
                amount_paid=amount_paid,
                base_paid=base_paid,
                penalty_paid=penalty_paid,
                new_status=resolve_status(bill, amount_paid),
            )
        )

    allocated = sum(r.amount_paid for r in results)
    if allocated + remaining != funds:
        raise InvariantViolation(
            f"Tier allocation does not balance: allocated {allocated} + leftover {remaining} != {funds}"
        )

    return TierAllocation(results=tuple(results), leftover=remaining)


__all__ = ["allocate_tier", "resolve_status"]
