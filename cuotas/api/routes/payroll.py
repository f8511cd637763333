"""Worker and payroll API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.dependencies import get_actor
from cuotas.api.errors import success
from cuotas.schemas.payroll import (
    CreateWorkerPayload,
    PayrollPaymentResponse,
    PayWorkerPayload,
    WorkerResponse,
)
from cuotas.services import get_async_session
from cuotas.services.payroll_service import PayrollService

workers_router = APIRouter(prefix="/api/workers", tags=["payroll"])
router = APIRouter(prefix="/api/payroll", tags=["payroll"])


def serialize_payment(payment) -> dict:
    return PayrollPaymentResponse.model_validate(payment).model_dump(mode="json")


@workers_router.get("")
async def list_workers(
    active_only: bool = True, session: AsyncSession = Depends(get_async_session)
) -> dict:
    workers = await PayrollService(session).list_workers(active_only=active_only)
    return success(
        [WorkerResponse.model_validate(w).model_dump(mode="json") for w in workers],
        f"{len(workers)} workers",
    )


@workers_router.post("", status_code=status.HTTP_201_CREATED)
async def register_worker(
    payload: CreateWorkerPayload,
    session: AsyncSession = Depends(get_async_session),
    actor: str | None = Depends(get_actor),
) -> dict:
    worker = await PayrollService(session).register_worker(
        payload.name, payload.worker_type, email=payload.email, actor=actor
    )
    return success(WorkerResponse.model_validate(worker).model_dump(mode="json"), "Worker registered")


@router.get("/workers/{worker_id}/check")
async def check_worker_paid(
    worker_id: int,
    year: int | None = None,
    month: int | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Whether the worker was already paid for the period (default current)."""
    check = await PayrollService(session).check_paid(worker_id, year, month)
    data = {
        "worker_id": worker_id,
        "year": check.year,
        "month": check.month,
        "already_paid": check.already_paid,
        "payment": serialize_payment(check.payment) if check.payment else None,
    }
    return success(data, "Already paid" if check.already_paid else "Not paid")


@router.post("/payments", status_code=status.HTTP_201_CREATED)
async def pay_worker(
    payload: PayWorkerPayload,
    session: AsyncSession = Depends(get_async_session),
    actor: str | None = Depends(get_actor),
) -> dict:
    """
    Pay a worker for the current month.

    Returns:
        201: Created payment
        400: Inactive worker or non-positive amount
        404: Unknown worker
        409: Already paid this month
    """
    payment = await PayrollService(session).pay(
        payload.worker_id, payload.amount, paid_by=payload.paid_by or actor
    )
    return success(serialize_payment(payment), f"Payment {payment.reference} registered")


@router.get("/payments")
async def list_payments(
    year: int | None = None,
    month: int | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    payments = await PayrollService(session).history(year, month)
    return success([serialize_payment(p) for p in payments], f"{len(payments)} payments")
