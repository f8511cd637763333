"""Monthly dues API routes: ledger lookups and generation."""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.dependencies import get_directory_client
from cuotas.api.errors import success
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.schemas.dues import DueResponse, GeneratePayload
from cuotas.services import get_async_session
from cuotas.services.directory_client import Resident, ResidentDirectoryClient
from cuotas.services.dues_generator import DuesGenerator
from cuotas.services.dues_service import DuesService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dues", tags=["dues"])


def serialize_due(due: MonthlyDue) -> dict:
    return DueResponse.model_validate(due).model_dump(mode="json")


@router.get("")
async def list_dues(
    resident_id: str | None = None,
    year: int | None = None,
    month: int | None = None,
    state: DueState | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    dues = await DuesService(session).list_dues(
        resident_id=resident_id, year=year, month=month, state=state
    )
    return success([serialize_due(d) for d in dues], f"{len(dues)} dues")


@router.get("/residents/{resident_id}/check")
async def check_resident(
    resident_id: str,
    year: int | None = None,
    month: int | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Whether the resident has a due, and paid it, for the period (default current)."""
    status = await DuesService(session).check_resident(resident_id, year, month)
    data = {
        "resident_id": resident_id,
        "year": status.year,
        "month": status.month,
        "has_due": status.has_due,
        "is_paid": status.is_paid,
        "due": serialize_due(status.due) if status.due else None,
    }
    return success(data, "Paid" if status.is_paid else "Not paid")


@router.get("/{due_id}")
async def get_due(due_id: int, session: AsyncSession = Depends(get_async_session)) -> dict:
    due = await DuesService(session).get_or_404(due_id)
    return success(serialize_due(due))


@router.post("/generate")
async def generate_dues(
    payload: GeneratePayload,
    session: AsyncSession = Depends(get_async_session),
    directory: ResidentDirectoryClient = Depends(get_directory_client),
) -> dict:
    """
    Generate PENDING dues for a period.

    Uses the posted roster, or fetches the active residents from the
    directory when none is posted.

    Returns:
        200: Generation report (created, already_existed, total, errors)
        400: Invalid period
        502: Directory unavailable
    """
    if payload.residents is None:
        residents = await directory.fetch_active_residents()
    else:
        residents = [Resident(id=r.id, name=r.name, email=r.email) for r in payload.residents]

    report = await DuesGenerator(session).generate_for_period(
        residents, year=payload.year, month=payload.month
    )
    return success(
        asdict(report),
        f"{report.created} dues created, {report.already_existed} already existed",
    )
