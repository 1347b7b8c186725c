"""Water utility bill ORM model: one consumption charge for a unit."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from unified_billing.models import Base, BaseModel
from unified_billing.models.charge import ChargeColumns


class UtilityBill(Base, BaseModel, ChargeColumns):
    """Water consumption charge.

    Utility billing is postpaid: a bill is only generated after the meter is
    read, and bills dated in the future are never offered for payment.
    ``base_amount_cents`` is already rounded from consumption x rate.
    """

    __tablename__ = "utility_bills"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
    )

    consumption_m3: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Metered consumption for the period (cubic meters)",
    )

    last_payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_transactions.id"),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_utility_bill_unit_period", "unit_id", "period", unique=True),
        Index("idx_utility_bill_unit_status", "unit_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<UtilityBill(id={self.id}, unit_id={self.unit_id}, period={self.period!r}, "
            f"base={self.base_amount_cents}, status={self.status})>"
        )


__all__ = ["UtilityBill"]
