"""Payroll ledger: building staff and their monthly payments."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.errors import ConflictError, NotFoundError, ValidationError
from cuotas.models.payroll import PayrollPayment, PayrollState, Worker
from cuotas.services.audit_service import AuditService
from cuotas.services.dues_config_service import money
from cuotas.services.dues_service import resolve_period, utc_now

logger = logging.getLogger(__name__)


class PayrollCheck(NamedTuple):
    year: int
    month: int
    payment: PayrollPayment | None

    @property
    def already_paid(self) -> bool:
        return self.payment is not None


def payment_reference(worker_id: int, year: int, month: int, moment: datetime) -> str:
    """Build ``PAY-{worker}-{YYYYMM}-{epoch_ms}``."""
    return f"PAY-{worker_id}-{year}{month:02d}-{int(moment.timestamp() * 1000)}"


class PayrollService:
    """Async service for workers and payroll payments.

    A worker is paid at most once per calendar month; the unique
    (worker_id, year, month) constraint backs the pre-check.
    """

    def __init__(self, session: AsyncSession):
        """Initialize with async database session."""
        self.session = session

    async def register_worker(
        self, name: str, worker_type: str, email: str | None = None, actor: str | None = None
    ) -> Worker:
        """Add a worker.

        Raises:
            ValidationError: Missing name or type
        """
        name = (name or "").strip()
        worker_type = (worker_type or "").strip().lower()
        if not name:
            raise ValidationError("Worker name is required", code="invalid_worker")
        if not worker_type:
            raise ValidationError("Worker type is required", code="invalid_worker")

        worker = Worker(name=name, worker_type=worker_type, email=email, active=True)
        self.session.add(worker)
        await self.session.flush()
        AuditService.log(
            self.session,
            entity_type="worker",
            entity_id=worker.id,
            action="create",
            actor=actor,
            changes={"name": name, "worker_type": worker_type},
        )
        await self.session.commit()
        logger.info("Registered worker %d (%s)", worker.id, worker_type)
        return worker

    async def get_worker(self, worker_id: int) -> Worker:
        worker = await self.session.get(Worker, worker_id)
        if worker is None:
            raise NotFoundError(f"Worker {worker_id} not found", worker_id=worker_id)
        return worker

    async def list_workers(self, active_only: bool = True) -> list[Worker]:
        stmt = select(Worker).order_by(Worker.name, Worker.id)
        if active_only:
            stmt = stmt.where(Worker.active.is_(True))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _find_payment(self, worker_id: int, year: int, month: int) -> PayrollPayment | None:
        result = await self.session.execute(
            select(PayrollPayment).where(
                PayrollPayment.worker_id == worker_id,
                PayrollPayment.year == year,
                PayrollPayment.month == month,
            )
        )
        return result.scalars().first()

    async def get_payment(self, payment_id: int) -> PayrollPayment:
        payment = await self.session.get(PayrollPayment, payment_id)
        if payment is None:
            raise NotFoundError(f"Payroll payment {payment_id} not found", payment_id=payment_id)
        return payment

    async def check_paid(
        self, worker_id: int, year: int | None = None, month: int | None = None
    ) -> PayrollCheck:
        """Report whether the worker was already paid for the period."""
        year, month = resolve_period(year, month)
        await self.get_worker(worker_id)
        payment = await self._find_payment(worker_id, year, month)
        return PayrollCheck(year=year, month=month, payment=payment)

    async def pay(
        self,
        worker_id: int,
        amount: Decimal | int | float | str,
        paid_by: str | None = None,
        now: datetime | None = None,
    ) -> PayrollPayment:
        """Register the worker's salary payment for the current month.

        Args:
            worker_id: Worker to pay
            amount: Positive amount
            paid_by: Administrator registering the payment
            now: Reference time (defaults to current UTC time)

        Returns:
            Created PayrollPayment

        Raises:
            NotFoundError: Unknown worker
            ValidationError: Inactive worker or non-positive amount
            ConflictError: Worker already paid this month
        """
        try:
            value = money(amount)
        except (InvalidOperation, ValueError) as e:
            raise ValidationError("Amount must be a number", code="invalid_amount") from e
        if value <= 0:
            raise ValidationError("Amount must be greater than zero", code="invalid_amount")

        worker = await self.get_worker(worker_id)
        if not worker.active:
            raise ValidationError(
                f"Worker {worker_id} is inactive", code="inactive_worker", worker_id=worker_id
            )

        now = now or utc_now()
        year, month = now.year, now.month
        if await self._find_payment(worker_id, year, month) is not None:
            raise ConflictError(
                f"Worker {worker_id} already paid for {year}-{month:02d}",
                code="already_paid",
                worker_id=worker_id,
            )

        payment = PayrollPayment(
            worker_id=worker_id,
            year=year,
            month=month,
            amount=value,
            state=PayrollState.COMPLETED,
            reference=payment_reference(worker_id, year, month, now),
            paid_by=paid_by,
            paid_at=now,
        )
        self.session.add(payment)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise ConflictError(
                f"Worker {worker_id} already paid for {year}-{month:02d}",
                code="already_paid",
                worker_id=worker_id,
            ) from e

        AuditService.log(
            self.session,
            entity_type="payroll_payment",
            entity_id=payment.id,
            action="create",
            actor=paid_by,
            changes={"worker_id": worker_id, "amount": str(value), "reference": payment.reference},
        )
        await self.session.commit()
        await self.session.refresh(payment, attribute_names=["worker"])

        logger.info(
            "Paid worker %d for %d-%02d: %s (%s)",
            worker_id,
            year,
            month,
            value,
            payment.reference,
        )
        return payment

    async def history(self, year: int | None = None, month: int | None = None) -> list[PayrollPayment]:
        """Payroll payments, newest first."""
        stmt = select(PayrollPayment).order_by(PayrollPayment.paid_at.desc(), PayrollPayment.id.desc())
        if year is not None:
            stmt = stmt.where(PayrollPayment.year == year)
        if month is not None:
            stmt = stmt.where(PayrollPayment.month == month)
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())


__all__ = ["PayrollCheck", "PayrollService", "payment_reference"]
