"""HOA dues bill ORM model: one monthly dues charge for a unit."""

from sqlalchemy import ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from unified_billing.models import Base, BaseModel
from unified_billing.models.charge import ChargeColumns


class DuesBill(Base, BaseModel, ChargeColumns):
    """Monthly HOA dues charge.

    Dues are prepaid: bills for future fiscal months exist up front and may be
    paid before they fall due.
    """

    __tablename__ = "dues_bills"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
    )

    fiscal_month_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Fiscal month index 0-11",
    )

    last_payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_transactions.id"),
        nullable=True,
        comment="Most recent payment transaction applied to this bill",
    )

    __table_args__ = (
        Index("idx_dues_bill_unit_period", "unit_id", "period", unique=True),
        Index("idx_dues_bill_unit_status", "unit_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<DuesBill(id={self.id}, unit_id={self.unit_id}, period={self.period!r}, "
            f"base={self.base_amount_cents}, status={self.status})>"
        )


__all__ = ["DuesBill"]
