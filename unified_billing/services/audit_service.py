"""Audit service for logging payment lifecycle events."""

from sqlalchemy.ext.asyncio import AsyncSession

from unified_billing.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Provides static method to create minimal audit log entries.
    """

    @staticmethod
    def log(
        session: AsyncSession,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        The entry joins the caller's transaction; nothing is flushed here.

        Args:
            session: Database session
            entity_type: Type of entity ("payment", "credit", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("commit", "adjust", etc.)
            actor: User who performed the action (optional)
            changes: Optional JSON snapshot of changed fields

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=changes,
        )
        session.add(audit)
        return audit


__all__ = ["AuditService"]
