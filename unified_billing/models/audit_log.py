"""Audit log model for tracking key entity lifecycle events."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from unified_billing.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry for tracking changes to key entities.

    Records who (actor) did what (action) to which entity (entity_type, entity_id)
    and an optional snapshot of the change.
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(50))
    """Entity type being audited: "payment", "credit", etc."""

    entity_id: Mapped[int] = mapped_column()
    """Primary key of the entity being audited."""

    action: Mapped[str] = mapped_column(String(50))
    """Action performed: "commit", "adjust", etc."""

    actor: Mapped[str | None] = mapped_column(String(100), nullable=True)
    """User who performed the action. None for system actions."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Optional JSON snapshot: {"dues_paid": 5000, "credit_final": 0}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor={self.actor}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
