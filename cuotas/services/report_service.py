"""Financial reports over paid dues (income) and payroll (expenses)."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.errors import ReportRenderError, ValidationError
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.models.payroll import PayrollPayment
from cuotas.services.dues_config_service import money
from cuotas.services.dues_service import resolve_period, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ReportData:
    """Income/expense lines and totals for an optional date range."""

    income: list[dict] = field(default_factory=list)
    expenses: list[dict] = field(default_factory=list)
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    balance: Decimal = Decimal("0.00")
    start: date | None = None
    end: date | None = None
    generated_at: datetime = field(default_factory=utc_now)

    @property
    def period(self) -> str:
        if self.start is None and self.end is None:
            return "all"
        return f"{self.start.isoformat() if self.start else '...'} to {self.end.isoformat() if self.end else '...'}"


def _range_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    if start and end and start > end:
        raise ValidationError("Report start date is after end date", code="invalid_range")
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
    upper = (
        datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc) if end else None
    )
    return lower, upper


class ReportService:
    """Builds report data and renders it. Never writes to the ledger."""

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def collect(self, start: date | None = None, end: date | None = None) -> ReportData:
        """Collect paid dues and payroll payments in the inclusive date range.

        Args:
            start: First day included (optional)
            end: Last day included (optional)

        Returns:
            ReportData with lines and totals
        """
        lower, upper = _range_bounds(start, end)

        dues_stmt = select(MonthlyDue).where(MonthlyDue.state == DueState.PAID)
        payroll_stmt = select(PayrollPayment)
        if lower is not None:
            dues_stmt = dues_stmt.where(MonthlyDue.paid_at >= lower)
            payroll_stmt = payroll_stmt.where(PayrollPayment.paid_at >= lower)
        if upper is not None:
            dues_stmt = dues_stmt.where(MonthlyDue.paid_at < upper)
            payroll_stmt = payroll_stmt.where(PayrollPayment.paid_at < upper)

        dues = (await self.session.execute(dues_stmt.order_by(MonthlyDue.paid_at))).scalars().all()
        payments = (
            (await self.session.execute(payroll_stmt.order_by(PayrollPayment.paid_at)))
            .unique()
            .scalars()
            .all()
        )

        data = ReportData(start=start, end=end)
        data.income = [
            {
                "due_id": due.id,
                "resident_id": due.resident_id,
                "resident_name": due.resident_name,
                "year": due.year,
                "month": due.month,
                "amount": money(due.total_amount),
                "paid_at": due.paid_at,
                "payment_method": due.payment_method,
            }
            for due in dues
        ]
        data.expenses = [
            {
                "payment_id": payment.id,
                "worker_id": payment.worker_id,
                "worker_name": payment.worker.name if payment.worker else None,
                "worker_type": payment.worker.worker_type if payment.worker else None,
                "year": payment.year,
                "month": payment.month,
                "amount": money(payment.amount),
                "paid_at": payment.paid_at,
                "reference": payment.reference,
            }
            for payment in payments
        ]
        data.total_income = money(sum((line["amount"] for line in data.income), Decimal("0")))
        data.total_expenses = money(sum((line["amount"] for line in data.expenses), Decimal("0")))
        data.balance = money(data.total_income - data.total_expenses)

        logger.debug(
            "Report %s: %d income lines, %d expense lines",
            data.period,
            len(data.income),
            len(data.expenses),
        )
        return data

    async def period_statistics(self, year: int | None = None, month: int | None = None) -> dict:
        """Dues by state, collected vs pending, and payroll totals for a month."""
        year, month = resolve_period(year, month)
        dues = (
            await self.session.execute(
                select(MonthlyDue).where(MonthlyDue.year == year, MonthlyDue.month == month)
            )
        ).scalars().all()
        payments = (
            await self.session.execute(
                select(PayrollPayment).where(
                    PayrollPayment.year == year, PayrollPayment.month == month
                )
            )
        ).unique().scalars().all()

        by_state = {
            state.value: {"count": 0, "amount": Decimal("0.00")} for state in DueState
        }
        for due in dues:
            bucket = by_state[due.state.value]
            bucket["count"] += 1
            bucket["amount"] = money(bucket["amount"] + due.total_amount)

        collected = by_state[DueState.PAID.value]["amount"]
        pending = money(
            sum(
                (b["amount"] for s, b in by_state.items() if s != DueState.PAID.value),
                Decimal("0"),
            )
        )
        payroll_total = money(sum((p.amount for p in payments), Decimal("0")))
        collection_rate = (
            round(by_state[DueState.PAID.value]["count"] * 100 / len(dues), 1) if dues else 0.0
        )

        return {
            "year": year,
            "month": month,
            "dues_count": len(dues),
            "by_state": by_state,
            "collected": collected,
            "pending": pending,
            "collection_rate": collection_rate,
            "payroll_count": len(payments),
            "payroll_total": payroll_total,
            "balance": money(collected - payroll_total),
        }

    def render_pdf(self, data: ReportData) -> bytes:
        """Render the report as PDF.

        Raises:
            ReportRenderError: reportlab failed
        """
        from cuotas.services.report_export import build_report_pdf

        try:
            return build_report_pdf(data)
        except Exception as e:
            logger.error("PDF report rendering failed: %s", e, exc_info=True)
            raise ReportRenderError(f"Could not render PDF report: {e}") from e

    def render_xlsx(self, data: ReportData) -> bytes:
        """Render the report as an Excel workbook.

        Raises:
            ReportRenderError: openpyxl failed
        """
        from cuotas.services.report_export import build_report_xlsx

        try:
            return build_report_xlsx(data)
        except Exception as e:
            logger.error("XLSX report rendering failed: %s", e, exc_info=True)
            raise ReportRenderError(f"Could not render XLSX report: {e}") from e


__all__ = ["ReportData", "ReportService"]
