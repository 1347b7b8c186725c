"""Shared columns for module bill tables (dues and utility)."""

from datetime import date

from sqlalchemy import Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column


class ChargeColumns:
    """Amount and payment-tracking columns common to every billing module.

    All amounts are integer minor currency units (centavos). Penalties are
    recalculated on read; ``penalty_assessed_cents`` only freezes the penalty
    that was owed at the time of the last payment so that paying the base
    charge does not erase it.
    """

    period: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Module-local period key (e.g., '2026-03' = fiscal year 2026, month index 3)",
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    base_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    base_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalty_assessed_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalty_paid_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default="unpaid",
        comment="unpaid | partial | paid",
    )

    @property
    def base_outstanding_cents(self) -> int:
        return max(0, self.base_amount_cents - self.base_paid_cents)

    @property
    def paid_to_date_cents(self) -> int:
        return self.base_paid_cents + self.penalty_paid_cents


__all__ = ["ChargeColumns"]
