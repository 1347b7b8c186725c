"""Client and unit lookups backed by the database."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from unified_billing.models.client import Client
from unified_billing.models.unit import Unit
from unified_billing.services.billing_types import UnitRef
from unified_billing.services.errors import NotFoundError


class UnitService:
    """Resolves external client/unit codes to database rows."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize with a session factory (one session per call)."""
        self.session_factory = session_factory

    @staticmethod
    async def get_client(session: AsyncSession, client_id: str) -> Client | None:
        result = await session.execute(select(Client).where(Client.code == client_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_unit_row(
        session: AsyncSession,
        unit: UnitRef,
        *,
        for_update: bool = False,
    ) -> Unit | None:
        """
        Get unit row by client code and unit code.

        Args:
            session: Database session
            unit: Client and unit codes
            for_update: Lock the row for the rest of the transaction

        Returns:
            Unit if found, None otherwise
        """
        stmt = (
            select(Unit)
            .join(Client, Unit.client_id == Client.id)
            .where(Client.code == unit.client_id, Unit.code == unit.unit_id)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @classmethod
    async def require_unit_row(
        cls,
        session: AsyncSession,
        unit: UnitRef,
        *,
        for_update: bool = False,
    ) -> Unit:
        """Like get_unit_row, but raises NotFoundError when the unit is missing."""
        unit_row = await cls.get_unit_row(session, unit, for_update=for_update)
        if unit_row is None:
            raise NotFoundError(f"Unit {unit.unit_id} not found for client {unit.client_id}")
        return unit_row

    async def unit_exists(self, unit: UnitRef) -> bool:
        async with self.session_factory() as session:
            return await self.get_unit_row(session, unit) is not None

    async def fetch_fiscal_year_start_month(self, client_id: str) -> int:
        """
        Get the calendar month (1-12) the client's fiscal year starts in.

        Raises:
            NotFoundError: If the client does not exist
        """
        async with self.session_factory() as session:
            client = await self.get_client(session, client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")
        return client.fiscal_year_start_month


__all__ = ["UnitService"]
