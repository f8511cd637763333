"""Audit service for logging financial record lifecycle events."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Provides static method to create minimal audit log entries. The entry is
    added to the caller's session and committed with the caller's change.
    """

    @staticmethod
    def log(
        session: AsyncSession,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            session: Database session
            entity_type: Type of entity ("monthly_due", "concept", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("create", "paid", etc.)
            actor: Gateway user who performed the action (optional)
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
