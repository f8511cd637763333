"""SQLAlchemy base model with common fields and model exports."""

from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

# Base class for all models
Base = declarative_base()


class BaseModel:
    """Base model with common timestamp fields."""

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )


# Import models to register them with Base (after Base is defined)
from cuotas.models.audit_log import AuditLog  # noqa: E402
from cuotas.models.concept import Concept  # noqa: E402
from cuotas.models.monthly_due import DueState, MonthlyDue  # noqa: E402
from cuotas.models.payroll import PayrollPayment, PayrollState, Worker  # noqa: E402

__all__ = [
    "Base",
    "BaseModel",
    "AuditLog",
    "Concept",
    "DueState",
    "MonthlyDue",
    "PayrollPayment",
    "PayrollState",
    "Worker",
]
