"""Pytest configuration and shared fixtures."""

import asyncio
import os
from decimal import Decimal

# Set test database URL BEFORE any imports from unified_billing
# This keeps the module-level engine away from the working directory
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from unified_billing.models import Base, BillingConfig, Client, Unit
from unified_billing.services.billing_types import Bill, ModuleType, UnitRef
from unified_billing.services.distribution_service import PaymentDistributionService

UNIT = UnitRef(client_id="AVII", unit_id="101")


class FakeBillSource:
    """In-memory bill source for one module."""

    def __init__(self, module_type, bills=(), error=None, delay=0.0):
        self.module_type = module_type
        self.bills = list(bills)
        self.error = error
        self.delay = delay
        self.fetch_calls = 0
        self.applied = []

    async def fetch_unpaid_bills(self, unit, as_of_date):
        self.fetch_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.bills)

    async def apply_payments(self, session, unit, payments, payment_id):
        self.applied.append((payment_id, tuple(payments)))
        return len(payments)


class FakeDirectory:
    """In-memory unit directory."""

    def __init__(self, units=(UNIT,), fiscal_year_start_month=1):
        self.units = set(units)
        self.fiscal_year_start_month = fiscal_year_start_month

    async def unit_exists(self, unit):
        return unit in self.units

    async def fetch_fiscal_year_start_month(self, client_id):
        return self.fiscal_year_start_month


class FakeCreditSource:
    """In-memory credit balance."""

    def __init__(self, balance=0):
        self.balance = balance

    async def fetch_credit_balance(self, unit):
        return self.balance


def make_bill(module, period, due_date, base, penalty=0, paid_to_date=0):
    return Bill(
        module_type=ModuleType(module),
        period=period,
        due_date=due_date,
        base_amount_due=base,
        penalty_amount_due=penalty,
        paid_to_date=paid_to_date,
    )


@pytest.fixture
def unit():
    """Default unit used by engine tests."""
    return UNIT


@pytest.fixture
def bill():
    """Factory for Bill value objects: bill('dues', '2026-03', date, base, penalty)."""
    return make_bill


@pytest.fixture
def make_distribution():
    """Factory for a distribution service over in-memory collaborators.

    Returns (service, dues_source, utility_source, credit_source).
    """

    def _make(
        dues=(),
        utility=(),
        credit=0,
        fiscal_year_start_month=1,
        dues_error=None,
        utility_error=None,
        dues_delay=0.0,
        timeout=1.0,
    ):
        dues_source = FakeBillSource(ModuleType.DUES, dues, dues_error, dues_delay)
        utility_source = FakeBillSource(ModuleType.UTILITY, utility, utility_error)
        credit_source = FakeCreditSource(credit)
        service = PaymentDistributionService(
            sources=[dues_source, utility_source],
            directory=FakeDirectory(fiscal_year_start_month=fiscal_year_start_month),
            credit_source=credit_source,
            fetch_timeout=timeout,
        )
        return service, dues_source, utility_source, credit_source

    return _make


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database with all tables created.

    A file is used instead of :memory: so that concurrent bill fetches get
    their own connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_unit(session_factory):
    """Client AVII (fiscal year starts in July) with unit 101 and penalty configs.

    Dues: 5% monthly after 10 grace days. Utility: 10% monthly after 10 grace days.
    """
    async with session_factory() as session:
        async with session.begin():
            client = Client(code="AVII", name="Aventuras Villas II", fiscal_year_start_month=7)
            session.add(client)
            await session.flush()
            session.add_all(
                [
                    Unit(client_id=client.id, code="101", owner_name="Unit 101 Owner", credit_balance_cents=0),
                    BillingConfig(
                        client_id=client.id,
                        module="dues",
                        penalty_rate=Decimal("0.05"),
                        grace_days=10,
                    ),
                    BillingConfig(
                        client_id=client.id,
                        module="utility",
                        penalty_rate=Decimal("0.10"),
                        grace_days=10,
                    ),
                ]
            )
    return UnitRef(client_id="AVII", unit_id="101")
