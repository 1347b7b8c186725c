"""Transaction allocation lines for a committed payment.

A payment becomes one line per base charge and per penalty paid, plus one
account-credit line for the net credit movement (negative when credit was
consumed). The lines of a payment always sum to the incoming amount.
"""

from dataclasses import dataclass

from unified_billing.services.billing_types import ModuleType, UnifiedPreview
from unified_billing.services.errors import InvariantViolation

CREDIT_ALLOCATION_TYPE = "account_credit"
CREDIT_CATEGORY = "Account Credit"

MODULE_CATEGORIES = {
    ModuleType.DUES: {"base": "HOA Dues", "penalty": "HOA Penalties"},
    ModuleType.UTILITY: {"base": "Water Consumption", "penalty": "Water Penalties"},
}


@dataclass(frozen=True)
class AllocationLine:
    """One allocation of a payment transaction."""

    line_id: str
    allocation_type: str
    category: str
    amount: int
    module: ModuleType | None = None
    bill_period: str | None = None


def allocation_line_id(index: int) -> str:
    """Line identifier: alloc_001, alloc_002, ..."""
    return f"alloc_{index:03d}"


def build_allocations(preview: UnifiedPreview) -> list[AllocationLine]:
    """Create allocation lines from a preview."""
    lines: list[AllocationLine] = []

    def add(allocation_type, category, amount, module=None, bill_period=None):
        lines.append(
            AllocationLine(
                line_id=allocation_line_id(len(lines) + 1),
                allocation_type=allocation_type,
                category=category,
                amount=amount,
                module=module,
                bill_period=bill_period,
            )
        )

    for module in ModuleType:
        categories = MODULE_CATEGORIES[module]
        for bill in preview.module(module).bills_paid:
            if bill.base_paid > 0:
                add(f"{module.value}_bill", categories["base"], bill.base_paid, module, bill.period)
            if bill.penalty_paid > 0:
                add(f"{module.value}_penalty", categories["penalty"], bill.penalty_paid, module, bill.period)

    credit_movement = preview.credit.added - preview.credit.used
    if credit_movement:
        add(CREDIT_ALLOCATION_TYPE, CREDIT_CATEGORY, credit_movement)

    return lines


def validate_allocations(lines: list[AllocationLine], payment_amount: int) -> None:
    """Check that allocation lines are well-formed and sum to the payment.

    Raises:
        InvariantViolation: Listing every problem found
    """
    errors = []
    seen_ids = set()

    for idx, line in enumerate(lines):
        if not line.line_id:
            errors.append(f"Allocation {idx}: missing id")
        elif line.line_id in seen_ids:
            errors.append(f"Allocation {idx}: duplicate id {line.line_id}")
        seen_ids.add(line.line_id)
        if not line.allocation_type:
            errors.append(f"Allocation {idx}: missing type")
        if not line.category:
            errors.append(f"Allocation {idx}: missing category")
        if isinstance(line.amount, bool) or not isinstance(line.amount, int):
            errors.append(f"Allocation {idx}: amount must be an integer")
        elif line.amount == 0:
            errors.append(f"Allocation {idx}: zero amount")
        elif line.amount < 0 and line.allocation_type != CREDIT_ALLOCATION_TYPE:
            errors.append(f"Allocation {idx}: negative amount on {line.allocation_type}")

    if not errors:
        total = sum(line.amount for line in lines)
        if total != payment_amount:
            errors.append(f"Total allocations ({total}) do not match payment amount ({payment_amount})")

    if errors:
        raise InvariantViolation("Invalid payment allocations: " + "; ".join(errors))


__all__ = [
    "AllocationLine",
    "CREDIT_ALLOCATION_TYPE",
    "allocation_line_id",
    "build_allocations",
    "validate_allocations",
]
