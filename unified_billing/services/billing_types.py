"""Value types flowing through the payment distribution pipeline.

All money is integer minor currency units (centavos). Nothing in this module
rounds; a float amount reaching these types is a bug and is rejected.
"""

from dataclasses import dataclass, field, replace
from datetime import date
from enum import Enum, IntEnum
from typing import Any

from unified_billing.services.errors import InvariantViolation, ValidationError

NAMESPACE_SEPARATOR = ":"


class ModuleType(str, Enum):
    """Billing modules that produce bills."""

    DUES = "dues"
    """HOA dues (prepaid allowed)"""

    UTILITY = "utility"
    """Water consumption (postpaid only)"""


class BillStatus(str, Enum):
    """Bill status after an allocation."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class PriorityRank(IntEnum):
    """Payment priority tiers, lowest value paid first."""

    PAST_DUE_DUES = 1
    PAST_DUE_UTILITY = 2
    CURRENT_DUES = 3
    CURRENT_UTILITY = 4
    FUTURE_DUES = 5
    EXCLUDED = 99

    @property
    def is_payable(self) -> bool:
        return self is not PriorityRank.EXCLUDED


def _require_amount(name: str, value: Any) -> None:
    # bool is an int subclass; neither bools nor floats are money
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvariantViolation(f"{name} must be an integer amount, got {value!r}")
    if value < 0:
        raise InvariantViolation(f"{name} must be non-negative, got {value}")


def _wire_int(data: dict[str, Any], key: str) -> int:
    """Read an integer field from a decoded JSON payload without coercion."""
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return value


def namespace_period(module_type: ModuleType, period: str) -> str:
    """Prefix a module-local period with its module ("dues:2026-03")."""
    return f"{ModuleType(module_type).value}{NAMESPACE_SEPARATOR}{period}"


def split_namespaced_period(key: str) -> tuple[ModuleType, str]:
    """Inverse of namespace_period.

    Raises:
        InvariantViolation: If the key carries no known module prefix
    """
    module_value, sep, period = key.partition(NAMESPACE_SEPARATOR)
    if not sep:
        raise InvariantViolation(f"Period key {key!r} is not namespaced")
    try:
        return ModuleType(module_value), period
    except ValueError as e:
        raise InvariantViolation(f"Period key {key!r} has unknown module prefix") from e


@dataclass(frozen=True)
class UnitRef:
    """Identifies one billing unit of one client."""

    client_id: str
    unit_id: str

    def __str__(self) -> str:
        return f"{self.client_id}/{self.unit_id}"


@dataclass(frozen=True)
class Bill:
    """One outstanding charge from one module for one billing period.

    ``base_amount_due`` and ``penalty_amount_due`` are what is still owed as of
    the fetch date, not the original charge. ``paid_to_date`` only matters for
    reporting a partly paid bill that receives nothing in this run.
    """

    module_type: ModuleType
    period: str
    due_date: date
    base_amount_due: int
    penalty_amount_due: int = 0
    paid_to_date: int = 0
    priority_rank: PriorityRank | None = None

    def __post_init__(self) -> None:
        _require_amount("base_amount_due", self.base_amount_due)
        _require_amount("penalty_amount_due", self.penalty_amount_due)
        _require_amount("paid_to_date", self.paid_to_date)

    @property
    def total_due(self) -> int:
        return self.base_amount_due + self.penalty_amount_due

    @property
    def key(self) -> str:
        """Namespaced period, unique across modules within one run."""
        return namespace_period(self.module_type, self.period)

    def with_rank(self, rank: PriorityRank) -> "Bill":
        return replace(self, priority_rank=rank)


@dataclass(frozen=True)
class FundsEnvelope:
    """Money available for one distribution: incoming payment plus existing credit."""

    incoming_payment: int
    existing_credit: int = 0

    def __post_init__(self) -> None:
        for name in ("incoming_payment", "existing_credit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an integer amount", field=name)
            if value < 0:
                raise ValidationError(f"{name} cannot be negative", field=name)

    @property
    def total(self) -> int:
        return self.incoming_payment + self.existing_credit


@dataclass(frozen=True)
class AllocationResult:
    """Money applied to one bill (``period`` is namespaced)."""

    period: str
    amount_paid: int
    base_paid: int
    penalty_paid: int
    new_status: BillStatus

    def __post_init__(self) -> None:
        _require_amount("amount_paid", self.amount_paid)
        _require_amount("base_paid", self.base_paid)
        _require_amount("penalty_paid", self.penalty_paid)
        if self.base_paid + self.penalty_paid != self.amount_paid:
            raise InvariantViolation(
                f"Allocation for {self.period}: base {self.base_paid} + penalty "
                f"{self.penalty_paid} != amount {self.amount_paid}"
            )


@dataclass(frozen=True)
class TierAllocation:
    """Allocator output for one tier."""

    results: tuple[AllocationResult, ...]
    leftover: int


@dataclass(frozen=True)
class DistributionResult:
    """Unified allocation across every tier, before splitting by module."""

    funds: FundsEnvelope
    allocations: tuple[AllocationResult, ...]
    final_credit: int
    total_bills: int

    @property
    def total_allocated(self) -> int:
        return sum(a.amount_paid for a in self.allocations)

    @property
    def credit_delta(self) -> int:
        return self.final_credit - self.funds.existing_credit


@dataclass(frozen=True)
class ModuleBillPayment:
    """A paid bill as reported back to its own module (period not namespaced)."""

    period: str
    due_date: date
    priority_rank: int
    base_due: int
    penalty_due: int
    base_paid: int
    penalty_paid: int
    total_paid: int
    status: BillStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "bill_period": self.period,
            "due_date": self.due_date.isoformat(),
            "priority": self.priority_rank,
            "base_due": self.base_due,
            "penalty_due": self.penalty_due,
            "base_paid": self.base_paid,
            "penalty_paid": self.penalty_paid,
            "total_paid": self.total_paid,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ModuleBillPayment":
        return cls(
            period=str(data["bill_period"]),
            due_date=date.fromisoformat(data["due_date"]),
            priority_rank=_wire_int(data, "priority"),
            base_due=_wire_int(data, "base_due"),
            penalty_due=_wire_int(data, "penalty_due"),
            base_paid=_wire_int(data, "base_paid"),
            penalty_paid=_wire_int(data, "penalty_paid"),
            total_paid=_wire_int(data, "total_paid"),
            status=BillStatus(data["status"]),
        )


@dataclass(frozen=True)
class ModuleSummary:
    """Bills of one module that received money."""

    module: ModuleType
    bills_paid: tuple[ModuleBillPayment, ...] = ()

    @property
    def total_paid(self) -> int:
        return sum(b.total_paid for b in self.bills_paid)

    def to_dict(self) -> dict[str, Any]:
        return {
            "bills_paid": [b.to_dict() for b in self.bills_paid],
            "total_paid": self.total_paid,
        }


@dataclass(frozen=True)
class CreditSummary:
    """Credit movement: ``added - used == final - existing`` always holds."""

    used: int
    added: int
    final: int

    def to_dict(self) -> dict[str, int]:
        return {"used": self.used, "added": self.added, "final": self.final}


@dataclass(frozen=True)
class ModuleSplit:
    """Module Splitter output."""

    dues: ModuleSummary
    utility: ModuleSummary
    credit: CreditSummary
    skipped_periods: tuple[str, ...] = ()


@dataclass(frozen=True)
class UnifiedPreview:
    """Complete, ephemeral result of distributing one payment for one unit."""

    unit: UnitRef
    as_of_date: date
    payment_amount: int
    current_credit_balance: int
    dues: ModuleSummary
    utility: ModuleSummary
    credit: CreditSummary
    total_bills: int
    preview_all: bool = False
    degraded_modules: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_available(self) -> int:
        return self.payment_amount + self.current_credit_balance

    @property
    def new_credit_balance(self) -> int:
        return self.credit.final

    @property
    def total_allocated(self) -> int:
        return self.dues.total_paid + self.utility.total_paid

    @property
    def allocation_count(self) -> int:
        return len(self.dues.bills_paid) + len(self.utility.bills_paid)

    def module(self, module_type: ModuleType) -> ModuleSummary:
        return self.dues if ModuleType(module_type) is ModuleType.DUES else self.utility

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": self.unit.client_id,
            "unit_id": self.unit.unit_id,
            "as_of_date": self.as_of_date.isoformat(),
            "payment_amount": self.payment_amount,
            "preview_all": self.preview_all,
            "total_available": self.total_available,
            "current_credit_balance": self.current_credit_balance,
            "new_credit_balance": self.new_credit_balance,
            "dues": self.dues.to_dict(),
            "utility": self.utility.to_dict(),
            "credit": self.credit.to_dict(),
            "summary": {
                "total_bills": self.total_bills,
                "total_allocated": self.total_allocated,
                "allocation_count": self.allocation_count,
            },
            "degraded_modules": list(self.degraded_modules),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnifiedPreview":
        """Rebuild a preview sent back by a client for commit.

        Raises:
            ValidationError: If the payload is not a well-formed preview
        """
        try:
            return cls(
                unit=UnitRef(client_id=str(data["client_id"]), unit_id=str(data["unit_id"])),
                as_of_date=date.fromisoformat(data["as_of_date"]),
                payment_amount=_wire_int(data, "payment_amount"),
                current_credit_balance=_wire_int(data, "current_credit_balance"),
                dues=ModuleSummary(
                    ModuleType.DUES,
                    tuple(ModuleBillPayment.from_dict(b) for b in data["dues"]["bills_paid"]),
                ),
                utility=ModuleSummary(
                    ModuleType.UTILITY,
                    tuple(ModuleBillPayment.from_dict(b) for b in data["utility"]["bills_paid"]),
                ),
                credit=CreditSummary(
                    used=_wire_int(data["credit"], "used"),
                    added=_wire_int(data["credit"], "added"),
                    final=_wire_int(data["credit"], "final"),
                ),
                total_bills=_wire_int(data["summary"], "total_bills"),
                preview_all=bool(data.get("preview_all", False)),
                degraded_modules=tuple(data.get("degraded_modules", ())),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as e:
            raise ValidationError(f"Malformed preview: {e}", field="preview") from e


__all__ = [
    "AllocationResult",
    "Bill",
    "BillStatus",
    "CreditSummary",
    "DistributionResult",
    "FundsEnvelope",
    "ModuleBillPayment",
    "ModuleSplit",
    "ModuleSummary",
    "ModuleType",
    "PriorityRank",
    "TierAllocation",
    "UnifiedPreview",
    "UnitRef",
    "namespace_period",
    "split_namespaced_period",
]
