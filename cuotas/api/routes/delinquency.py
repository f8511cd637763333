"""Delinquency sweep, summary and reminder API routes."""

from dataclasses import asdict
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.dependencies import get_email_service
from cuotas.api.errors import success
from cuotas.services import get_async_session
from cuotas.services.delinquency_service import DelinquencyService
from cuotas.services.email_service import EmailService

router = APIRouter(prefix="/api/delinquency", tags=["delinquency"])


class SweepPayload(BaseModel):
    """Optional reference time; the sweep runs at the current time otherwise."""

    now: datetime | None = None


@router.post("/sweep")
async def run_sweep(
    payload: SweepPayload | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """
    Mark dues past their grace date DELINQUENT and apply the surcharge.

    Returns:
        200: scanned, updated, marked_overdue counts and per-due errors
    """
    report = await DelinquencyService(session).sweep(payload.now if payload else None)
    return success(asdict(report), f"{report.updated} dues marked delinquent")


@router.get("/summary")
async def get_summary(session: AsyncSession = Depends(get_async_session)) -> dict:
    summary = await DelinquencyService(session).summary()
    return success(summary, f"{summary['count']} delinquent dues")


@router.post("/reminders")
async def send_reminders(
    session: AsyncSession = Depends(get_async_session),
    notifier: EmailService = Depends(get_email_service),
) -> dict:
    report = await DelinquencyService(session).remind(notifier)
    return success(asdict(report), f"{report.sent} reminders sent")
