"""Interfaces of the collaborators the distribution engine consumes."""

from datetime import date
from typing import Protocol, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from unified_billing.services.billing_types import Bill, ModuleBillPayment, ModuleType, UnitRef


class BillSource(Protocol):
    """Supplies and updates the bills of one billing module."""

    module_type: ModuleType

    async def fetch_unpaid_bills(self, unit: UnitRef, as_of_date: date) -> list[Bill]:
        """Unpaid or partly paid bills with penalties recalculated as of ``as_of_date``."""
        ...

    async def apply_payments(
        self,
        session: AsyncSession,
        unit: UnitRef,
        payments: Sequence[ModuleBillPayment],
        payment_id: int,
    ) -> int:
        """Apply this module's share of a committed payment inside ``session``'s transaction."""
        ...


class CreditSource(Protocol):
    """Reads a unit's account credit balance."""

    async def fetch_credit_balance(self, unit: UnitRef) -> int:
        ...


class UnitDirectory(Protocol):
    """Resolves clients and units."""

    async def unit_exists(self, unit: UnitRef) -> bool:
        ...

    async def fetch_fiscal_year_start_month(self, client_id: str) -> int:
        ...


__all__ = ["BillSource", "CreditSource", "UnitDirectory"]
