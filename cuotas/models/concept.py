"""Billable concept (line item) composing the monthly due."""

from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from cuotas.models import Base, BaseModel


class Concept(Base, BaseModel):
    """Named line item such as "water" or "cleaning" with its monthly amount.

    Concepts are never deleted: historic receipts reference them, so removal
    is a soft delete through ``active=False``.
    """

    __tablename__ = "concepts"

    key: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
        comment="Normalized identifier (lowercase, no whitespace)",
    )
    label: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Display name on receipts"
    )
    description: Mapped[str | None] = mapped_column(
        String(500), nullable=True, comment="Optional notes"
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Monthly amount contributed to the due",
    )
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, comment="Inactive concepts are not billed"
    )
    position: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Display/insertion order"
    )

    def __repr__(self) -> str:
        return (
            f"<Concept(id={self.id}, key={self.key}, amount={self.amount}, "
            f"active={self.active})>"
        )


__all__ = ["Concept"]
