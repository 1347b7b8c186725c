"""Client ORM model: one managed property (condominium / HOA)."""

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unified_billing.models import Base, BaseModel


class Client(Base, BaseModel):
    """Model representing a managed property with its own fiscal calendar.

    Units, billing configuration and bills all hang off a client.
    """

    __tablename__ = "clients"

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="External client identifier (e.g., 'AVII', 'MTC')",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Display name of the property",
    )

    fiscal_year_start_month: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Calendar month (1-12) in which the fiscal year starts",
    )

    # Relationships
    units: Mapped[list["Unit"]] = relationship(  # noqa: F821
        "Unit",
        back_populates="client",
        cascade="all, delete-orphan",
    )

    billing_configs: Mapped[list["BillingConfig"]] = relationship(  # noqa: F821
        "BillingConfig",
        back_populates="client",
        cascade="all, delete-orphan",
    )

    __table_args__ = (Index("idx_client_code", "code"),)

    def __repr__(self) -> str:
        return (
            f"<Client(id={self.id}, code={self.code!r}, "
            f"fiscal_year_start_month={self.fiscal_year_start_month})>"
        )


__all__ = ["Client"]
