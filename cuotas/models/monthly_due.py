"""Monthly due ORM model: one bill per resident per calendar month."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import DateTime, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from cuotas.errors import ConflictError
from cuotas.models import Base, BaseModel


class DueState(str, Enum):
    """Lifecycle state of a monthly due."""

    PENDING = "pending"
    """Issued, not yet past the due date"""

    OVERDUE = "overdue"
    """Past the due date, still inside the grace period"""

    DELINQUENT = "delinquent"
    """Past the grace period, surcharge applied"""

    PAID = "paid"
    """Settled; terminal"""


ALLOWED_TRANSITIONS: dict[DueState, frozenset[DueState]] = {
    DueState.PENDING: frozenset({DueState.OVERDUE, DueState.DELINQUENT, DueState.PAID}),
    DueState.OVERDUE: frozenset({DueState.DELINQUENT, DueState.PAID}),
    DueState.DELINQUENT: frozenset({DueState.DELINQUENT, DueState.PAID}),
    DueState.PAID: frozenset(),
}


class MonthlyDue(Base, BaseModel):
    """Amount a resident owes for one (year, month) period.

    The (resident_id, year, month) triple is unique: the store rejects a second
    row for the same period. Once PAID the row is frozen; callers go through
    ``transition_to`` and ``ensure_mutable`` before touching amounts or state.
    """

    __tablename__ = "monthly_dues"

    resident_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Resident identifier from the directory service",
    )
    resident_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Resident display name at generation time"
    )
    resident_email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Resident email at generation time"
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False, comment="Billing year")
    month: Mapped[int] = mapped_column(Integer, nullable=False, comment="Billing month (1-12)")

    base_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Configuration total at generation time"
    )
    surcharge_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Late surcharge, recomputed from base on every sweep",
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="base_amount + surcharge_amount"
    )
    surcharge_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2),
        nullable=False,
        default=Decimal("10.00"),
        comment="Surcharge percent fixed when the due was created",
    )

    state: Mapped[DueState] = mapped_column(
        SQLEnum(DueState),
        nullable=False,
        default=DueState.PENDING,
        index=True,
        comment="pending, overdue, delinquent or paid",
    )
    due_date: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, comment="Last day of the month at 23:59:59"
    )
    grace_date: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, comment="due_date plus the grace period"
    )
    delinquency_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Calendar days past grace_date"
    )

    payment_session_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True, comment="External checkout session reference"
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When payment was confirmed"
    )
    payment_method: Mapped[str | None] = mapped_column(
        String(50), nullable=True, comment="Payment method reported on confirmation"
    )

    __table_args__ = (
        UniqueConstraint("resident_id", "year", "month", name="uq_monthly_due_resident_period"),
        Index("idx_monthly_due_period", "year", "month"),
        Index("idx_monthly_due_state_grace", "state", "grace_date"),
    )

    @property
    def is_paid(self) -> bool:
        return self.state == DueState.PAID

    def ensure_mutable(self) -> None:
        """Raise ConflictError if the due is PAID."""
        if self.state == DueState.PAID:
            raise ConflictError(
                f"Due {self.id} for {self.year}-{self.month:02d} is already paid",
                code="already_paid",
                due_id=self.id,
            )

    def transition_to(self, new_state: DueState) -> None:
        """Move to ``new_state`` if the lifecycle allows it."""
        self.ensure_mutable()
        current = self.state or DueState.PENDING
        if new_state not in ALLOWED_TRANSITIONS[current]:
            raise ConflictError(
                f"Cannot move due {self.id} from {current.value} to {new_state.value}",
                code="invalid_transition",
                due_id=self.id,
            )
        self.state = new_state

    def __repr__(self) -> str:
        return (
            f"<MonthlyDue(id={self.id}, resident_id={self.resident_id}, "
            f"period={self.year}-{self.month:02d}, state={self.state}, "
            f"total_amount={self.total_amount})>"
        )


__all__ = ["ALLOWED_TRANSITIONS", "DueState", "MonthlyDue"]
