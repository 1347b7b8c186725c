"""Unit account credit: balance reads and ledgered changes.

The balance lives on the unit row; every change also writes a
CreditLedgerEntry so the balance can be explained from history.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_billing.models.credit_ledger import CreditLedgerEntry
from unified_billing.models.unit import Unit
from unified_billing.services.audit_service import AuditService
from unified_billing.services.billing_types import UnitRef
from unified_billing.services.errors import ValidationError
from unified_billing.services.unit_service import UnitService

logger = logging.getLogger(__name__)


class CreditService:
    """Service for unit credit balances."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def fetch_credit_balance(self, unit: UnitRef) -> int:
        """
        Get current credit balance of a unit in minor units.

        Raises:
            NotFoundError: If the unit does not exist
        """
        async with self.session_factory() as session:
            unit_row = await UnitService.require_unit_row(session, unit)
            return unit_row.credit_balance_cents

    @staticmethod
    def apply_delta(
        session: AsyncSession,
        unit_row: Unit,
        amount: int,
        *,
        source: str,
        payment_id: int | None = None,
        note: str | None = None,
    ) -> CreditLedgerEntry:
        """
        Change a unit's credit balance inside the caller's transaction.

        Args:
            session: Database session (caller commits)
            unit_row: Unit whose balance changes
            amount: Signed change in minor units
            source: Originating module or 'admin'
            payment_id: Payment transaction causing the change, if any
            note: Free-text reason

        Returns:
            Created ledger entry

        Raises:
            ValidationError: If the balance would go negative
        """
        new_balance = unit_row.credit_balance_cents + amount
        if new_balance < 0:
            raise ValidationError(
                f"Insufficient credit balance: have {unit_row.credit_balance_cents}, "
                f"change {amount}",
                field="amount",
            )

        unit_row.credit_balance_cents = new_balance
        entry = CreditLedgerEntry(
            unit_id=unit_row.id,
            amount_cents=amount,
            balance_after_cents=new_balance,
            payment_id=payment_id,
            source=source,
            note=note,
        )
        session.add(entry)
        return entry

    async def adjust_credit(
        self,
        unit: UnitRef,
        amount: int,
        note: str,
        *,
        actor: str | None = None,
    ) -> int:
        """
        Manually add (positive) or remove (negative) credit.

        Returns:
            New balance

        Raises:
            ValidationError: On a zero change, a missing note, or a negative result
            NotFoundError: If the unit does not exist
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
            raise ValidationError("Credit adjustment must be a non-zero integer amount", field="amount")
        if not note or not note.strip():
            raise ValidationError("Credit adjustment requires a note", field="note")

        async with self.session_factory() as session:
            async with session.begin():
                unit_row = await UnitService.require_unit_row(session, unit, for_update=True)
                previous = unit_row.credit_balance_cents
                entry = self.apply_delta(session, unit_row, amount, source="admin", note=note.strip())
                await session.flush()
                AuditService.log(
                    session=session,
                    entity_type="credit",
                    entity_id=entry.id,
                    action="adjust",
                    actor=actor,
                    changes={"unit": str(unit), "before": previous, "after": unit_row.credit_balance_cents},
                )
                balance = unit_row.credit_balance_cents

        logger.info("Credit for %s adjusted by %d to %d", unit, amount, balance)
        return balance

    async def get_history(self, unit: UnitRef, limit: int = 50) -> list[CreditLedgerEntry]:
        """Most recent credit ledger entries first."""
        async with self.session_factory() as session:
            unit_row = await UnitService.require_unit_row(session, unit)
            result = await session.execute(
                select(CreditLedgerEntry)
                .where(CreditLedgerEntry.unit_id == unit_row.id)
                .order_by(CreditLedgerEntry.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())


__all__ = ["CreditService"]
