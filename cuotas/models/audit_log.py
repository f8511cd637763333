"""Audit log model for financial record lifecycle events."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from cuotas.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Append-only trail of changes to dues, concepts and payroll payments."""

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(50), index=True)
    """Entity type being audited: "monthly_due", "concept", "payroll_payment"..."""

    entity_id: Mapped[int] = mapped_column(index=True)
    """Primary key of the entity being audited (0 for configuration-wide events)."""

    action: Mapped[str] = mapped_column(String(50))
    """Action performed: "create", "delinquent", "paid", "update_amounts"..."""

    actor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    """Gateway user id that triggered the action. None for scheduled jobs."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Optional JSON snapshot of changed fields."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, "
            f"entity_id={self.entity_id}, action={self.action}, actor={self.actor})>"
        )


__all__ = ["AuditLog"]
