"""Delinquency sweep: surcharges on dues left unpaid past the grace period."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, NamedTuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.errors import UpstreamError
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.services.audit_service import AuditService
from cuotas.services.dues_config_service import money
from cuotas.services.dues_service import naive, utc_now

if TYPE_CHECKING:
    from cuotas.services.email_service import EmailService

logger = logging.getLogger(__name__)

SWEEPABLE_STATES = (DueState.PENDING, DueState.OVERDUE)


class Assessment(NamedTuple):
    """Recomputed delinquency figures for one due at a point in time."""

    delinquency_days: int
    surcharge_amount: Decimal
    total_amount: Decimal

    @property
    def is_delinquent(self) -> bool:
        return self.delinquency_days > 0


@dataclass
class SweepReport:
    scanned: int = 0
    updated: int = 0
    marked_overdue: int = 0
    errors: list[dict[str, object]] = field(default_factory=list)


@dataclass
class ReminderReport:
    sent: int = 0
    failed: int = 0
    skipped: int = 0


def assess(due: MonthlyDue, now: datetime) -> Assessment:
    """Recompute surcharge and total for ``due`` as of ``now``.

    Delinquency days count calendar days from the grace date to ``now``.
    The surcharge is always derived from the base amount, so repeated
    sweeps never compound it.
    """
    days = (naive(now).date() - due.grace_date.date()).days
    if days <= 0:
        return Assessment(0, money(due.surcharge_amount or 0), money(due.total_amount))
    base = money(due.base_amount)
    surcharge = money(base * Decimal(due.surcharge_percent) / Decimal(100))
    return Assessment(days, surcharge, money(base + surcharge))


class DelinquencyService:
    """Async service running the delinquency sweep and its reports."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def sweep(self, now: datetime | None = None) -> SweepReport:
        """Mark dues past their grace date DELINQUENT and apply the surcharge.

        Each due is committed on its own; a failing due is recorded in the
        report and the sweep goes on. PENDING dues past their due date that
        are not delinquent yet are moved to OVERDUE.

        Args:
            now: Reference time (defaults to current UTC time)

        Returns:
            SweepReport with scanned/updated/marked_overdue counts and errors
        """
        now = naive(now or utc_now())
        report = SweepReport()

        result = await self.session.execute(
            select(MonthlyDue.id, MonthlyDue.resident_id, MonthlyDue.year, MonthlyDue.month)
            .where(MonthlyDue.state.in_(SWEEPABLE_STATES), MonthlyDue.grace_date < now)
            .order_by(MonthlyDue.id)
        )
        candidates = result.all()
        report.scanned = len(candidates)

        for due_id, resident_id, year, month in candidates:
            try:
                due = await self.session.get(MonthlyDue, due_id)
                if due is None or due.state not in SWEEPABLE_STATES:
                    continue
                assessment = assess(due, now)
                if not assessment.is_delinquent:
                    continue

                previous_state = due.state
                due.transition_to(DueState.DELINQUENT)
                due.delinquency_days = assessment.delinquency_days
                due.surcharge_amount = assessment.surcharge_amount
                due.total_amount = assessment.total_amount
                AuditService.log(
                    self.session,
                    entity_type="monthly_due",
                    entity_id=due.id,
                    action="delinquent",
                    changes={
                        "from": previous_state.value,
                        "delinquency_days": assessment.delinquency_days,
                        "surcharge_amount": str(assessment.surcharge_amount),
                        "total_amount": str(assessment.total_amount),
                    },
                )
                await self.session.commit()
                report.updated += 1
            except Exception as e:
                await self.session.rollback()
                logger.error(
                    "Delinquency sweep failed for due %d (resident %s, %d-%02d): %s",
                    due_id,
                    resident_id,
                    year,
                    month,
                    e,
                    exc_info=True,
                )
                report.errors.append(
                    {
                        "due_id": due_id,
                        "resident_id": resident_id,
                        "year": year,
                        "month": month,
                        "error": str(e),
                    }
                )

        overdue = await self.session.execute(
            update(MonthlyDue)
            .where(MonthlyDue.state == DueState.PENDING, MonthlyDue.due_date < now)
            .values(state=DueState.OVERDUE)
        )
        report.marked_overdue = overdue.rowcount or 0
        await self.session.commit()

        logger.info(
            "Delinquency sweep at %s: %d scanned, %d delinquent, %d overdue, %d errors",
            now.isoformat(),
            report.scanned,
            report.updated,
            report.marked_overdue,
            len(report.errors),
        )
        return report

    async def list_delinquent(self) -> list[MonthlyDue]:
        result = await self.session.execute(
            select(MonthlyDue)
            .where(MonthlyDue.state == DueState.DELINQUENT)
            .order_by(MonthlyDue.year, MonthlyDue.month, MonthlyDue.resident_id)
        )
        return list(result.scalars().all())

    async def summary(self) -> dict:
        """Aggregate figures over DELINQUENT dues. Read-only."""
        dues = await self.list_delinquent()
        total_surcharge = money(sum((d.surcharge_amount for d in dues), Decimal("0")))
        total_owed = money(sum((d.total_amount for d in dues), Decimal("0")))
        avg_days = round(sum(d.delinquency_days for d in dues) / len(dues), 1) if dues else 0.0

        by_period: dict[tuple[int, int], dict] = {}
        for due in dues:
            bucket = by_period.setdefault(
                (due.year, due.month),
                {"year": due.year, "month": due.month, "count": 0, "total_owed": Decimal("0")},
            )
            bucket["count"] += 1
            bucket["total_owed"] = money(bucket["total_owed"] + due.total_amount)

        return {
            "count": len(dues),
            "total_surcharge": total_surcharge,
            "total_owed": total_owed,
            "avg_delinquency_days": avg_days,
            "by_period": [by_period[key] for key in sorted(by_period)],
        }

    async def remind(self, notifier: "EmailService") -> ReminderReport:
        """Email an overdue reminder for every DELINQUENT due.

        Dues without a resident email, or with email delivery disabled, are
        skipped. Delivery failures are logged and counted.
        """
        report = ReminderReport()
        for due in await self.list_delinquent():
            if not due.resident_email:
                report.skipped += 1
                continue
            try:
                if await notifier.send_overdue_reminder(due):
                    report.sent += 1
                else:
                    report.skipped += 1
            except UpstreamError as e:
                logger.warning("Reminder for due %d not delivered: %s", due.id, e.message)
                report.failed += 1

        logger.info(
            "Overdue reminders: %d sent, %d failed, %d skipped",
            report.sent,
            report.failed,
            report.skipped,
        )
        return report


__all__ = ["Assessment", "DelinquencyService", "ReminderReport", "SweepReport", "assess"]
