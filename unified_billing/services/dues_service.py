"""HOA dues module: monthly dues bills for a fiscal year."""

import logging

from sqlalchemy import select

from unified_billing.models.dues_bill import DuesBill
from unified_billing.services.billing_types import ModuleType, UnitRef
from unified_billing.services.charge_source import ChargeBillSource
from unified_billing.services.errors import ValidationError
from unified_billing.services.fiscal_calendar import fiscal_month_start_date, period_key
from unified_billing.services.unit_service import UnitService

logger = logging.getLogger(__name__)

MONTHS_PER_FISCAL_YEAR = 12


class DuesService(ChargeBillSource):
    """Bill source and bill generation for HOA dues."""

    module_type = ModuleType.DUES
    model = DuesBill

    async def generate_fiscal_year(
        self,
        unit: UnitRef,
        fiscal_year: int,
        monthly_amount: int,
    ) -> int:
        """
        Create the twelve monthly dues bills of a fiscal year.

        Each bill is due on the first day of its fiscal month. Months that
        already have a bill are left untouched.

        Args:
            unit: Client and unit
            fiscal_year: Fiscal year, named by its ending calendar year
            monthly_amount: Dues per month in minor units

        Returns:
            Number of bills created

        Raises:
            ValidationError: If monthly_amount is not a positive integer
            NotFoundError: If the unit does not exist
        """
        if isinstance(monthly_amount, bool) or not isinstance(monthly_amount, int) or monthly_amount <= 0:
            raise ValidationError("Monthly dues must be a positive integer amount", field="monthly_amount")

        async with self.session_factory() as session:
            async with session.begin():
                unit_row = await UnitService.require_unit_row(session, unit)
                client = await UnitService.get_client(session, unit.client_id)

                result = await session.execute(
                    select(DuesBill.period).where(DuesBill.unit_id == unit_row.id)
                )
                existing = set(result.scalars().all())

                created = 0
                for month_index in range(MONTHS_PER_FISCAL_YEAR):
                    period = period_key(fiscal_year, month_index)
                    if period in existing:
                        continue
                    session.add(
                        DuesBill(
                            unit_id=unit_row.id,
                            period=period,
                            fiscal_month_index=month_index,
                            due_date=fiscal_month_start_date(
                                fiscal_year, month_index, client.fiscal_year_start_month
                            ),
                            base_amount_cents=monthly_amount,
                            base_paid_cents=0,
                            penalty_assessed_cents=0,
                            penalty_paid_cents=0,
                        )
                    )
                    created += 1

        logger.info("Generated %d dues bill(s) for %s, fiscal year %d", created, unit, fiscal_year)
        return created


__all__ = ["DuesService"]
