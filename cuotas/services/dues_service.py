"""Dues ledger: lookups over monthly dues and billing period helpers."""

import calendar
from datetime import datetime, timedelta, timezone
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.errors import NotFoundError, ValidationError
from cuotas.models.monthly_due import DueState, MonthlyDue


class ResidentDueStatus(NamedTuple):
    """Whether a resident has a due for a period and whether it is paid."""

    year: int
    month: int
    due: MonthlyDue | None

    @property
    def has_due(self) -> bool:
        return self.due is not None

    @property
    def is_paid(self) -> bool:
        return self.due is not None and self.due.state == DueState.PAID


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def naive(moment: datetime) -> datetime:
    """Drop tzinfo after converting to UTC; due/grace dates are stored naive."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def current_period(now: datetime | None = None) -> tuple[int, int]:
    now = now or utc_now()
    return now.year, now.month


def resolve_period(
    year: int | None, month: int | None, now: datetime | None = None
) -> tuple[int, int]:
    """Fill missing year/month from the current period and validate both."""
    default_year, default_month = current_period(now)
    year = default_year if year is None else year
    month = default_month if month is None else month
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}", code="invalid_period")
    if not 2000 <= year <= 2100:
        raise ValidationError(f"Year must be between 2000 and 2100, got {year}", code="invalid_period")
    return year, month


def period_dates(year: int, month: int, grace_days: int) -> tuple[datetime, datetime]:
    """Return (due_date, grace_date) for a billing period.

    The due date is the last day of the month at 23:59:59; the grace date is
    ``grace_days`` later.
    """
    last_day = calendar.monthrange(year, month)[1]
    due_date = datetime(year, month, last_day, 23, 59, 59)
    return due_date, due_date + timedelta(days=grace_days)


class DuesService:
    """Async read service for the dues ledger.

    Writes happen in the generator, delinquency and payment services; this
    one answers lookups for the API and the other services.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def get(self, due_id: int) -> MonthlyDue | None:
        return await self.session.get(MonthlyDue, due_id)

    async def get_or_404(self, due_id: int) -> MonthlyDue:
        due = await self.get(due_id)
        if due is None:
            raise NotFoundError(f"Due {due_id} not found", due_id=due_id)
        return due

    async def find(self, resident_id: str, year: int, month: int) -> MonthlyDue | None:
        """Get the due for a (resident, year, month) key."""
        result = await self.session.execute(
            select(MonthlyDue).where(
                MonthlyDue.resident_id == resident_id,
                MonthlyDue.year == year,
                MonthlyDue.month == month,
            )
        )
        return result.scalar_one_or_none()

    async def find_by_session(self, session_ref: str) -> MonthlyDue | None:
        """Get the due carrying an external checkout session reference."""
        result = await self.session.execute(
            select(MonthlyDue).where(MonthlyDue.payment_session_id == session_ref)
        )
        return result.scalars().first()

    async def list_dues(
        self,
        resident_id: str | None = None,
        year: int | None = None,
        month: int | None = None,
        state: DueState | None = None,
        limit: int = 500,
    ) -> list[MonthlyDue]:
        """List dues newest period first, optionally filtered.

        Args:
            resident_id: Only this resident
            year: Only this year
            month: Only this month
            state: Only this state
            limit: Maximum rows returned

        Returns:
            List of MonthlyDue
        """
        stmt = select(MonthlyDue)
        if resident_id is not None:
            stmt = stmt.where(MonthlyDue.resident_id == resident_id)
        if year is not None:
            stmt = stmt.where(MonthlyDue.year == year)
        if month is not None:
            stmt = stmt.where(MonthlyDue.month == month)
        if state is not None:
            stmt = stmt.where(MonthlyDue.state == state)
        stmt = stmt.order_by(
            MonthlyDue.year.desc(), MonthlyDue.month.desc(), MonthlyDue.resident_id
        ).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def check_resident(
        self, resident_id: str, year: int | None = None, month: int | None = None
    ) -> ResidentDueStatus:
        """Report whether the resident has a (paid) due for the period."""
        year, month = resolve_period(year, month)
        due = await self.find(resident_id, year, month)
        return ResidentDueStatus(year=year, month=month, due=due)


__all__ = [
    "DuesService",
    "ResidentDueStatus",
    "current_period",
    "naive",
    "period_dates",
    "resolve_period",
    "utc_now",
]
