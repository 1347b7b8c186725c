"""Payment transaction and allocation ORM models."""

from datetime import date

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unified_billing.models import Base, BaseModel


class PaymentTransaction(Base, BaseModel):
    """Model representing one recorded unified payment.

    A single transaction references bills of every module it paid, through
    its PaymentAllocation lines.
    """

    __tablename__ = "payment_transactions"

    unit_id: Mapped[int] = mapped_column(
        ForeignKey("units.id"),
        nullable=False,
        index=True,
        comment="Unit that made the payment",
    )
    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Incoming payment amount in minor units",
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="system",
    )
    total_allocated_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Amount applied to bills (excludes credit movement)",
    )

    allocations: Mapped[list["PaymentAllocation"]] = relationship(
        "PaymentAllocation",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.id",
    )

    __table_args__ = (Index("idx_payment_unit_date", "unit_id", "payment_date"),)

    def __repr__(self) -> str:
        return (
            f"<PaymentTransaction(id={self.id}, unit_id={self.unit_id}, "
            f"amount_cents={self.amount_cents}, payment_date={self.payment_date})>"
        )


class PaymentAllocation(Base, BaseModel):
    """One allocation line of a payment: base charge, penalty, or credit movement."""

    __tablename__ = "payment_allocations"

    payment_id: Mapped[int] = mapped_column(
        ForeignKey("payment_transactions.id"),
        nullable=False,
        index=True,
    )
    line_id: Mapped[str] = mapped_column(String(20), nullable=False)
    allocation_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="e.g. 'dues_bill', 'utility_penalty', 'account_credit'",
    )
    module: Mapped[str | None] = mapped_column(String(20), nullable=True)
    bill_period: Mapped[str | None] = mapped_column(String(20), nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Signed: negative for credit consumed",
    )

    payment: Mapped["PaymentTransaction"] = relationship(
        "PaymentTransaction",
        back_populates="allocations",
        foreign_keys=[payment_id],
    )

    def __repr__(self) -> str:
        return (
            f"<PaymentAllocation(payment_id={self.payment_id}, type={self.allocation_type!r}, "
            f"period={self.bill_period!r}, amount_cents={self.amount_cents})>"
        )


__all__ = ["PaymentTransaction", "PaymentAllocation"]
