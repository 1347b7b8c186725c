"""Unit ORM model: one billable unit (apartment, lot) of a client."""

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unified_billing.models import Base, BaseModel


class Unit(Base, BaseModel):
    """Model representing a billable unit.

    Holds the unit's running account credit balance. Every change to the
    balance is mirrored by a CreditLedgerEntry row.
    """

    __tablename__ = "units"

    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
        comment="Client this unit belongs to",
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        comment="Unit identifier within the client (e.g., '101', 'PH4D')",
    )

    owner_name: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
        comment="Owner display name",
    )

    credit_balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Account credit balance in minor currency units (never negative)",
    )

    # Relationships
    client: Mapped["Client"] = relationship(  # noqa: F821
        "Client",
        back_populates="units",
        foreign_keys=[client_id],
    )

    __table_args__ = (Index("idx_unit_client_code", "client_id", "code", unique=True),)

    def __repr__(self) -> str:
        return (
            f"<Unit(id={self.id}, client_id={self.client_id}, code={self.code!r}, "
            f"credit_balance_cents={self.credit_balance_cents})>"
        )


__all__ = ["Unit"]
