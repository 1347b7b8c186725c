"""Integration tests: preview and commit against a real database."""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from unified_billing.models import (
    AuditLog,
    BillingConfig,
    CreditLedgerEntry,
    DuesBill,
    PaymentAllocation,
    PaymentTransaction,
    Unit,
    UtilityBill,
)
from unified_billing.services.billing_types import ModuleType, UnitRef
from unified_billing.services.config import Settings
from unified_billing.services.dues_service import DuesService
from unified_billing.services.errors import NotFoundError, PreviewStaleError, ValidationError
from unified_billing.services.payment_recorder import PaymentMetadata
from unified_billing.services.unified_payment_service import build_payment_service
from unified_billing.services.utility_service import UtilityService

AS_OF = date(2025, 8, 5)
METADATA = PaymentMetadata(payment_method="bank_transfer", reference="TRX-1", recorded_by="admin")


async def count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def get_bill(session_factory, model, period):
    async with session_factory() as session:
        return (await session.execute(select(model).where(model.period == period))).scalar_one()


@pytest_asyncio.fixture
async def billed_unit(session_factory, seeded_unit):
    """Unit 101 with FY2026 dues (5000/month) and one 900 water bill due 2025-08-10."""
    await DuesService(session_factory).generate_fiscal_year(seeded_unit, 2026, 5000)
    await UtilityService(session_factory).create_bill(
        seeded_unit, "2026-00", date(2025, 8, 10), Decimal("10"), Decimal("90")
    )
    return seeded_unit


@pytest.fixture
def service(session_factory):
    return build_payment_service(session_factory, Settings(preview_tolerance_cents=1))


class TestPreview:
    """Preview against database bills."""

    @pytest.mark.asyncio
    async def test_preview_orders_across_modules(self, service, billed_unit):
        preview = await service.preview(billed_unit, 12000, AS_OF)

        # Tier 1: July dues 5000 + 250 penalty, August dues 5000 (in grace)
        # Tier 4: current water bill 900; tier 5: 850 toward September dues
        assert [(b.period, b.total_paid) for b in preview.dues.bills_paid] == [
            ("2026-00", 5250),
            ("2026-01", 5000),
            ("2026-02", 850),
        ]
        assert [(b.period, b.total_paid) for b in preview.utility.bills_paid] == [("2026-00", 900)]
        assert preview.credit.final == 0
        assert preview.degraded_modules == ()

    @pytest.mark.asyncio
    async def test_missing_module_config_degrades(self, session_factory, service, billed_unit):
        async with session_factory() as session:
            async with session.begin():
                config = (
                    await session.execute(select(BillingConfig).where(BillingConfig.module == "utility"))
                ).scalar_one()
                await session.delete(config)

        preview = await service.preview(billed_unit, 5250, AS_OF)

        assert preview.degraded_modules == ("utility",)
        assert [(b.period, b.total_paid) for b in preview.dues.bills_paid] == [("2026-00", 5250)]

    @pytest.mark.asyncio
    async def test_unknown_unit(self, service, billed_unit):
        with pytest.raises(NotFoundError):
            await service.preview(UnitRef("AVII", "999"), 1000, AS_OF)


class TestCommit:
    """Commit of a verified preview."""

    @pytest.mark.asyncio
    async def test_commit_updates_every_module(self, session_factory, service, billed_unit):
        proposed = await service.preview(billed_unit, 12000, AS_OF)

        result = await service.commit(billed_unit, proposed, METADATA)

        july = await get_bill(session_factory, DuesBill, "2026-00")
        assert (july.base_paid_cents, july.penalty_paid_cents, july.status) == (5000, 250, "paid")
        assert july.penalty_assessed_cents == 250
        assert july.last_payment_id == result.transaction_id

        september = await get_bill(session_factory, DuesBill, "2026-02")
        assert (september.base_paid_cents, september.status) == (850, "partial")

        water = await get_bill(session_factory, UtilityBill, "2026-00")
        assert (water.base_paid_cents, water.status) == (900, "paid")

        async with session_factory() as session:
            transaction = await session.get(PaymentTransaction, result.transaction_id)
            lines = (
                await session.execute(
                    select(PaymentAllocation)
                    .where(PaymentAllocation.payment_id == result.transaction_id)
                    .order_by(PaymentAllocation.id)
                )
            ).scalars().all()
            audit = (await session.execute(select(AuditLog))).scalar_one()

        assert (transaction.amount_cents, transaction.total_allocated_cents) == (12000, 12000)
        assert transaction.payment_method == "bank_transfer"
        assert [(l.allocation_type, l.bill_period, l.amount_cents) for l in lines] == [
            ("dues_bill", "2026-00", 5000),
            ("dues_penalty", "2026-00", 250),
            ("dues_bill", "2026-01", 5000),
            ("dues_bill", "2026-02", 850),
            ("utility_bill", "2026-00", 900),
        ]
        assert (audit.entity_type, audit.action, audit.actor) == ("payment", "commit", "admin")
        assert audit.changes["dues_paid"] == 11100
        assert await count(session_factory, CreditLedgerEntry) == 0

    @pytest.mark.asyncio
    async def test_next_preview_sees_committed_payment(self, service, billed_unit):
        await service.commit(billed_unit, await service.preview(billed_unit, 12000, AS_OF), METADATA)

        preview = await service.preview(billed_unit, 5000, AS_OF)

        assert [(b.period, b.base_due, b.total_paid) for b in preview.dues.bills_paid] == [
            ("2026-02", 4150, 4150),
            ("2026-03", 5000, 850),
        ]

    @pytest.mark.asyncio
    async def test_overpayment_then_credit_use(self, session_factory, service, seeded_unit):
        utility = UtilityService(session_factory)
        await utility.create_bill(seeded_unit, "2026-00", date(2025, 8, 10), Decimal("10"), Decimal("90"))

        await service.commit(seeded_unit, await service.preview(seeded_unit, 1000, AS_OF), METADATA)

        async with session_factory() as session:
            unit_row = (await session.execute(select(Unit))).scalar_one()
        assert unit_row.credit_balance_cents == 100

        await utility.create_bill(seeded_unit, "2026-01", date(2025, 8, 20), Decimal("1"), Decimal("50"))
        proposed = await service.preview(seeded_unit, 0, AS_OF)
        assert (proposed.credit.used, proposed.credit.final) == (50, 50)

        await service.commit(seeded_unit, proposed, METADATA)

        async with session_factory() as session:
            ledger = (
                await session.execute(select(CreditLedgerEntry).order_by(CreditLedgerEntry.id))
            ).scalars().all()
        assert [(e.amount_cents, e.balance_after_cents) for e in ledger] == [(100, 100), (-50, 50)]

    @pytest.mark.asyncio
    async def test_stale_preview_writes_nothing(self, session_factory, service, billed_unit):
        proposed = await service.preview(billed_unit, 12000, AS_OF)
        await UtilityService(session_factory).create_bill(
            billed_unit, "2025-11", date(2025, 6, 1), Decimal("3"), Decimal("100")
        )

        with pytest.raises(PreviewStaleError):
            await service.commit(billed_unit, proposed, METADATA)

        assert await count(session_factory, PaymentTransaction) == 0
        assert (await get_bill(session_factory, DuesBill, "2026-00")).base_paid_cents == 0

    @pytest.mark.asyncio
    async def test_bill_paid_after_verification_is_stale(self, session_factory, service, billed_unit):
        """A verified preview written after another commit paid its bills is retryable."""
        proposed = await service.preview(billed_unit, 12000, AS_OF)
        await service.commit(billed_unit, proposed, METADATA)

        with pytest.raises(PreviewStaleError, match="refresh") as exc_info:
            await service.recorder.record(proposed, METADATA)

        assert exc_info.value.http_status == 409
        assert await count(session_factory, PaymentTransaction) == 1
        july = await get_bill(session_factory, DuesBill, "2026-00")
        assert (july.base_paid_cents, july.penalty_paid_cents) == (5000, 250)

    @pytest.mark.asyncio
    async def test_module_failure_rolls_back_everything(self, session_factory, service, billed_unit):
        """A failing utility update undoes the dues updates and the transaction."""
        service.recorder.sources[ModuleType.UTILITY].apply_payments = AsyncMock(
            side_effect=RuntimeError("disk full")
        )
        proposed = await service.preview(billed_unit, 12000, AS_OF)

        with pytest.raises(RuntimeError, match="disk full"):
            await service.commit(billed_unit, proposed, METADATA)

        assert await count(session_factory, PaymentTransaction) == 0
        assert await count(session_factory, PaymentAllocation) == 0
        assert await count(session_factory, AuditLog) == 0
        july = await get_bill(session_factory, DuesBill, "2026-00")
        assert (july.base_paid_cents, july.status) == (0, "unpaid")

    @pytest.mark.asyncio
    async def test_nothing_to_allocate(self, service, billed_unit):
        proposed = await service.preview(billed_unit, 0, AS_OF)

        with pytest.raises(ValidationError, match="nothing to allocate"):
            await service.commit(billed_unit, proposed, METADATA)
