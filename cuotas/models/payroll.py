"""Worker and payroll payment ORM models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cuotas.models import Base, BaseModel


class PayrollState(str, Enum):
    """Payroll payments are recorded only once settled."""

    COMPLETED = "completed"


class Worker(Base, BaseModel):
    """Building staff member paid monthly (janitor, gardener, security...)."""

    __tablename__ = "workers"

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Full name")
    worker_type: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Role, e.g. 'janitor' or 'security'"
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, comment="Inactive workers cannot be paid"
    )

    payments: Mapped[list["PayrollPayment"]] = relationship(
        "PayrollPayment", back_populates="worker"
    )

    def __repr__(self) -> str:
        return f"<Worker(id={self.id}, name={self.name}, worker_type={self.worker_type})>"


class PayrollPayment(Base, BaseModel):
    """Salary disbursed to a worker for one (year, month). Immutable once created."""

    __tablename__ = "payroll_payments"

    worker_id: Mapped[int] = mapped_column(
        ForeignKey("workers.id"), nullable=False, index=True, comment="Paid worker"
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    state: Mapped[PayrollState] = mapped_column(
        SQLEnum(PayrollState), nullable=False, default=PayrollState.COMPLETED
    )
    reference: Mapped[str] = mapped_column(
        String(100), nullable=False, unique=True, comment="PAY-{worker}-{YYYYMM}-{epoch_ms}"
    )
    paid_by: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Administrator who registered the payment"
    )
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    worker: Mapped["Worker"] = relationship("Worker", back_populates="payments", lazy="joined")

    __table_args__ = (
        UniqueConstraint("worker_id", "year", "month", name="uq_payroll_worker_period"),
    )

    def __repr__(self) -> str:
        return (
            f"<PayrollPayment(id={self.id}, worker_id={self.worker_id}, "
            f"period={self.year}-{self.month:02d}, amount={self.amount})>"
        )


__all__ = ["PayrollPayment", "PayrollState", "Worker"]
