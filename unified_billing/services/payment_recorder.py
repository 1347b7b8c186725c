"""Atomic persistence of a verified unified payment."""

import logging
from dataclasses import dataclass
from typing import Mapping

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_billing.models.payment import PaymentAllocation, PaymentTransaction
from unified_billing.services.allocation_records import build_allocations, validate_allocations
from unified_billing.services.audit_service import AuditService
from unified_billing.services.billing_types import ModuleType, UnifiedPreview
from unified_billing.services.commit_service import PersistFn
from unified_billing.services.credit_service import CreditService
from unified_billing.services.errors import InvariantViolation, PreviewStaleError, ValidationError
from unified_billing.services.sources import BillSource
from unified_billing.services.unit_service import UnitService

logger = logging.getLogger(__name__)

CREDIT_LEDGER_SOURCE = "unified_payment"


@dataclass(frozen=True)
class PaymentMetadata:
    """Caller-supplied details of a payment being recorded."""

    payment_method: str
    reference: str | None = None
    notes: str | None = None
    recorded_by: str | None = None


class PaymentRecorder:
    """Writes a payment, its allocations, bill updates and credit change in one transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        sources: Mapping[ModuleType, BillSource],
    ):
        self.session_factory = session_factory
        self.sources = dict(sources)

    def persist_fn(self, metadata: PaymentMetadata) -> PersistFn:
        """Bind metadata, producing the persistence callback for CommitGuard."""

        async def persist(preview: UnifiedPreview) -> int:
            return await self.record(preview, metadata)

        return persist

    async def record(self, preview: UnifiedPreview, metadata: PaymentMetadata) -> int:
        """
        Persist a verified preview.

        Args:
            preview: Freshly computed preview that matched what the user saw
            metadata: Payment method, reference, notes and actor

        Returns:
            ID of the created payment transaction

        Raises:
            ValidationError: If the payment would record nothing
            PreviewStaleError: If the credit balance or a bill moved after verification
            InvariantViolation: If allocations do not balance or a module has no source
        """
        lines = build_allocations(preview)
        if not lines:
            raise ValidationError("Payment has nothing to allocate", field="amount")
        validate_allocations(lines, preview.payment_amount)

        unit = preview.unit
        credit_change = preview.credit.added - preview.credit.used

        async with self.session_factory() as session:
            async with session.begin():
                unit_row = await UnitService.require_unit_row(session, unit, for_update=True)
                if unit_row.credit_balance_cents != preview.current_credit_balance:
                    raise PreviewStaleError(
                        f"Credit balance changed from {preview.current_credit_balance} "
                        f"to {unit_row.credit_balance_cents} during commit"
                    )

                transaction = PaymentTransaction(
                    unit_id=unit_row.id,
                    amount_cents=preview.payment_amount,
                    payment_date=preview.as_of_date,
                    payment_method=metadata.payment_method,
                    reference=metadata.reference,
                    notes=metadata.notes,
                    recorded_by=metadata.recorded_by or "system",
                    total_allocated_cents=preview.total_allocated,
                )
                session.add(transaction)
                await session.flush()

                for line in lines:
                    session.add(
                        PaymentAllocation(
                            payment_id=transaction.id,
                            line_id=line.line_id,
                            allocation_type=line.allocation_type,
                            module=line.module.value if line.module else None,
                            bill_period=line.bill_period,
                            category=line.category,
                            amount_cents=line.amount,
                        )
                    )

                bills_updated = {}
                for module in ModuleType:
                    payments = preview.module(module).bills_paid
                    if not payments:
                        continue
                    source = self.sources.get(module)
                    if source is None:
                        raise InvariantViolation(f"No bill source registered for module '{module.value}'")
                    bills_updated[module.value] = await source.apply_payments(
                        session, unit, payments, transaction.id
                    )

                if credit_change:
                    CreditService.apply_delta(
                        session,
                        unit_row,
                        credit_change,
                        source=CREDIT_LEDGER_SOURCE,
                        payment_id=transaction.id,
                        note=f"Unified payment {transaction.id}",
                    )

                AuditService.log(
                    session=session,
                    entity_type="payment",
                    entity_id=transaction.id,
                    action="commit",
                    actor=metadata.recorded_by,
                    changes={
                        "unit": str(unit),
                        "amount": preview.payment_amount,
                        "dues_paid": preview.dues.total_paid,
                        "utility_paid": preview.utility.total_paid,
                        "credit_used": preview.credit.used,
                        "credit_added": preview.credit.added,
                        "credit_final": preview.credit.final,
                        "bills_updated": bills_updated,
                    },
                )
                transaction_id = transaction.id

        logger.info(
            "Recorded payment %d for %s: %d allocation line(s), credit change %d",
            transaction_id,
            unit,
            len(lines),
            credit_change,
        )
        return transaction_id


__all__ = ["PaymentMetadata", "PaymentRecorder"]
