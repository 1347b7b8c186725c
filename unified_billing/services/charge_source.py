"""Database-backed bill source shared by the dues and utility modules.

Reads a module's open bills with penalties recalculated for the payment date
and writes back the module's share of a committed payment.
"""

import logging
from datetime import date
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_billing.models.billing_config import BillingConfig
from unified_billing.services.billing_types import (
    Bill,
    BillStatus,
    ModuleBillPayment,
    ModuleType,
    UnitRef,
)
from unified_billing.services.errors import NotFoundError, PreviewStaleError
from unified_billing.services.penalty_service import calculate_penalty
from unified_billing.services.unit_service import UnitService

logger = logging.getLogger(__name__)


class ChargeBillSource:
    """Bill source over one module's bill table.

    Subclasses set ``module_type`` and ``model`` (an ORM class using
    ChargeColumns with ``unit_id`` and ``last_payment_id``).
    """

    module_type: ModuleType
    model: type

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_config(self, session: AsyncSession, client_db_id: int) -> BillingConfig:
        """
        Get this module's penalty configuration for a client.

        Raises:
            LookupError: If the client has no configuration for this module
        """
        result = await session.execute(
            select(BillingConfig).where(
                BillingConfig.client_id == client_db_id,
                BillingConfig.module == self.module_type.value,
            )
        )
        config = result.scalar_one_or_none()
        if config is None:
            raise LookupError(
                f"Penalty configuration missing for module '{self.module_type.value}'"
            )
        return config

    def penalty_due(self, row, as_of_date: date, config: BillingConfig) -> int:
        """Penalty still owed on a bill row as of a date.

        A penalty already assessed is never reduced by paying the base charge.
        """
        computed = calculate_penalty(
            row.base_outstanding_cents,
            row.due_date,
            as_of_date,
            config.penalty_rate,
            config.grace_days,
        )
        owed_total = max(row.penalty_assessed_cents, row.penalty_paid_cents + computed)
        return max(0, owed_total - row.penalty_paid_cents)

    async def fetch_unpaid_bills(self, unit: UnitRef, as_of_date: date) -> list[Bill]:
        """Open bills of this module for a unit, oldest first."""
        async with self.session_factory() as session:
            unit_row = await UnitService.require_unit_row(session, unit)
            config = await self.get_config(session, unit_row.client_id)

            result = await session.execute(
                select(self.model)
                .where(
                    self.model.unit_id == unit_row.id,
                    self.model.status != BillStatus.PAID.value,
                )
                .order_by(self.model.due_date, self.model.period)
            )
            rows = result.scalars().all()

        bills = []
        for row in rows:
            base_due = row.base_outstanding_cents
            penalty_due = self.penalty_due(row, as_of_date, config)
            if base_due + penalty_due == 0:
                logger.debug("Skipping settled %s bill %s", self.module_type.value, row.period)
                continue
            bills.append(
                Bill(
                    module_type=self.module_type,
                    period=row.period,
                    due_date=row.due_date,
                    base_amount_due=base_due,
                    penalty_amount_due=penalty_due,
                    paid_to_date=row.paid_to_date_cents,
                )
            )
        return bills

    async def apply_payments(
        self,
        session: AsyncSession,
        unit: UnitRef,
        payments: Sequence[ModuleBillPayment],
        payment_id: int,
    ) -> int:
        """
        Apply this module's share of a payment inside the caller's transaction.

        Returns:
            Number of bills updated

        Raises:
            NotFoundError: If a paid bill no longer exists
            PreviewStaleError: If the bill was paid after the preview was verified
        """
        if not payments:
            return 0

        unit_row = await UnitService.require_unit_row(session, unit)
        updated = 0

        for payment in payments:
            result = await session.execute(
                select(self.model).where(
                    self.model.unit_id == unit_row.id,
                    self.model.period == payment.period,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError(
                    f"{self.module_type.value} bill {payment.period} not found for unit {unit}"
                )
            if payment.total_paid and (
                row.status == BillStatus.PAID.value
                or payment.base_paid > row.base_outstanding_cents
            ):
                # Paid by another commit after this preview was verified
                raise PreviewStaleError(
                    f"{self.module_type.value} bill {payment.period}: payment {payment.base_paid} "
                    f"exceeds outstanding base {row.base_outstanding_cents}. "
                    "Please refresh and try again."
                )

            # Freeze the penalty owed at payment time before the base shrinks
            row.penalty_assessed_cents = max(
                row.penalty_assessed_cents,
                row.penalty_paid_cents + payment.penalty_due,
            )
            row.base_paid_cents += payment.base_paid
            row.penalty_paid_cents += payment.penalty_paid
            row.status = payment.status.value
            row.last_payment_id = payment_id
            updated += 1

            logger.debug(
                "Applied %d (base %d, penalty %d) to %s bill %s, status %s",
                payment.total_paid,
                payment.base_paid,
                payment.penalty_paid,
                self.module_type.value,
                payment.period,
                row.status,
            )

        return updated


__all__ = ["ChargeBillSource"]
