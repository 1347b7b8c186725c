"""Per-module billing configuration (penalty terms)."""

from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from unified_billing.models import Base, BaseModel


class BillingConfig(Base, BaseModel):
    """Penalty terms of one billing module for one client."""

    __tablename__ = "billing_configs"

    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id"),
        nullable=False,
        index=True,
    )

    module: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Billing module: 'dues' or 'utility'",
    )

    penalty_rate: Mapped[Decimal] = mapped_column(
        Numeric(6, 4),
        nullable=False,
        default=Decimal("0.05"),
        comment="Monthly compounding penalty rate (0.05 = 5%)",
    )

    grace_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
        comment="Days after the due date before penalties start",
    )

    client: Mapped["Client"] = relationship(  # noqa: F821
        "Client",
        back_populates="billing_configs",
        foreign_keys=[client_id],
    )

    __table_args__ = (Index("idx_billing_config_client_module", "client_id", "module", unique=True),)

    def __repr__(self) -> str:
        return (
            f"<BillingConfig(client_id={self.client_id}, module={self.module!r}, "
            f"penalty_rate={self.penalty_rate}, grace_days={self.grace_days})>"
        )


__all__ = ["BillingConfig"]
