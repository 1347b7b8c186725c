"""Credit ledger ORM model: history of unit credit balance changes."""

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from unified_billing.models import Base, BaseModel


class CreditLedgerEntry(Base, BaseModel):
    """One change to a unit's credit balance.

    ``amount_cents`` is signed: positive when credit is added (overpayment),
    negative when credit is consumed to pay bills.
    """

    __tablename__ = "credit_ledger"

    unit_id: Mapped[int] = mapped_column(ForeignKey("units.id"), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_transactions.id"),
        nullable=True,
    )
    source: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="Originating module or 'admin'",
    )
    note: Mapped[str | None] = mapped_column(String(500), nullable=True)

    __table_args__ = (Index("idx_credit_ledger_unit_created", "unit_id", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<CreditLedgerEntry(id={self.id}, unit_id={self.unit_id}, "
            f"amount_cents={self.amount_cents}, balance_after_cents={self.balance_after_cents})>"
        )


__all__ = ["CreditLedgerEntry"]
