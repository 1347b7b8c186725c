"""Water utility module: consumption bills from meter readings."""

import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select

from unified_billing.models.utility_bill import UtilityBill
from unified_billing.services.billing_types import ModuleType, UnitRef
from unified_billing.services.charge_source import ChargeBillSource
from unified_billing.services.errors import ValidationError
from unified_billing.services.unit_service import UnitService

logger = logging.getLogger(__name__)


def calculate_consumption_charge(consumption_m3: Decimal, rate_per_m3_cents: Decimal) -> int:
    """Charge for metered consumption in minor units.

    Formula: consumption x rate, rounded half-up to a whole minor unit

    Raises:
        ValueError: If consumption or rate is negative
    """
    consumption = Decimal(str(consumption_m3))
    rate = Decimal(str(rate_per_m3_cents))
    if consumption < 0:
        raise ValueError("Consumption cannot be negative")
    if rate < 0:
        raise ValueError("Rate cannot be negative")
    return int((consumption * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class UtilityService(ChargeBillSource):
    """Bill source and bill creation for water consumption."""

    module_type = ModuleType.UTILITY
    model = UtilityBill

    async def create_bill(
        self,
        unit: UnitRef,
        period: str,
        due_date: date,
        consumption_m3: Decimal,
        rate_per_m3_cents: Decimal,
    ) -> UtilityBill:
        """
        Create a consumption bill after a meter reading.

        Args:
            unit: Client and unit
            period: Module-local period key (e.g., '2026-03')
            due_date: Date the bill falls due
            consumption_m3: Metered consumption
            rate_per_m3_cents: Price per cubic meter in minor units

        Returns:
            Created bill

        Raises:
            ValidationError: If the period already has a bill or inputs are invalid
            NotFoundError: If the unit does not exist
        """
        try:
            amount = calculate_consumption_charge(consumption_m3, rate_per_m3_cents)
        except ValueError as e:
            raise ValidationError(str(e), field="consumption_m3") from e

        async with self.session_factory() as session:
            async with session.begin():
                unit_row = await UnitService.require_unit_row(session, unit)
                result = await session.execute(
                    select(UtilityBill.id).where(
                        UtilityBill.unit_id == unit_row.id,
                        UtilityBill.period == period,
                    )
                )
                if result.scalar_one_or_none() is not None:
                    raise ValidationError(f"Utility bill for period {period} already exists", field="period")

                bill = UtilityBill(
                    unit_id=unit_row.id,
                    period=period,
                    due_date=due_date,
                    consumption_m3=Decimal(str(consumption_m3)),
                    base_amount_cents=amount,
                    base_paid_cents=0,
                    penalty_assessed_cents=0,
                    penalty_paid_cents=0,
                )
                session.add(bill)

        logger.info("Created utility bill %s for %s: %d", period, unit, amount)
        return bill


__all__ = ["UtilityService", "calculate_consumption_charge"]
