"""Dues configuration API routes."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.dependencies import get_actor
from cuotas.api.errors import success
from cuotas.schemas.dues import DuesConfigResponse
from cuotas.services import get_async_session
from cuotas.services.dues_config_service import DuesConfigService, DuesConfiguration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dues-config", tags=["dues-config"])


def serialize_configuration(configuration: DuesConfiguration) -> dict:
    return DuesConfigResponse.model_validate(configuration).model_dump(mode="json")


@router.get("")
async def get_configuration(session: AsyncSession = Depends(get_async_session)) -> dict:
    """Current concept amounts and total (defaults while the catalog is empty)."""
    configuration = await DuesConfigService(session).get()
    return success(serialize_configuration(configuration), "Dues configuration")


@router.put("")
async def update_configuration(
    amounts: dict[str, Any] = Body(..., description="Concept key -> amount"),
    session: AsyncSession = Depends(get_async_session),
    actor: str | None = Depends(get_actor),
) -> dict:
    """
    Update concept amounts and reprice PENDING dues.

    Returns:
        200: New configuration and number of repriced dues
        400: Unknown concept or invalid amount
    """
    result = await DuesConfigService(session).update(amounts, actor=actor)
    data = serialize_configuration(result.configuration)
    data["updated_dues"] = result.updated_dues
    return success(data, f"Configuration updated; {result.updated_dues} pending dues repriced")


@router.get("/base-amount")
async def get_base_amount(session: AsyncSession = Depends(get_async_session)) -> dict:
    base = await DuesConfigService(session).base_amount()
    return success({"base_amount": float(base)}, "Current base amount")
