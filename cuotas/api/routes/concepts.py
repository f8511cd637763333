"""Concept catalog API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.dependencies import get_actor
from cuotas.api.errors import success
from cuotas.schemas.dues import ConceptResponse, CreateConceptPayload, UpdateConceptPayload
from cuotas.services import get_async_session
from cuotas.services.concept_service import ConceptService

router = APIRouter(prefix="/api/concepts", tags=["concepts"])


def serialize_concept(concept) -> dict:
    return ConceptResponse.model_validate(concept).model_dump(mode="json")


@router.get("")
async def list_concepts(
    active_only: bool = False, session: AsyncSession = Depends(get_async_session)
) -> dict:
    concepts = await ConceptService(session).list_concepts(active_only=active_only)
    return success([serialize_concept(c) for c in concepts], f"{len(concepts)} concepts")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_concept(
    payload: CreateConceptPayload,
    session: AsyncSession = Depends(get_async_session),
    actor: str | None = Depends(get_actor),
) -> dict:
    """
    Add a concept.

    Returns:
        201: Created concept
        400: Invalid key, label or description
        409: Duplicate key
    """
    concept = await ConceptService(session).add(
        key=payload.key,
        label=payload.label,
        description=payload.description,
        active=payload.active,
        amount=payload.amount,
        actor=actor,
    )
    return success(serialize_concept(concept), f"Concept '{concept.key}' created")


@router.put("/{key}")
async def update_concept(
    key: str,
    payload: UpdateConceptPayload,
    session: AsyncSession = Depends(get_async_session),
    actor: str | None = Depends(get_actor),
) -> dict:
    concept = await ConceptService(session).update(
        key, payload.model_dump(exclude_unset=True), actor=actor
    )
    return success(serialize_concept(concept), f"Concept '{concept.key}' updated")


@router.delete("/{key}")
async def deactivate_concept(
    key: str,
    session: AsyncSession = Depends(get_async_session),
    actor: str | None = Depends(get_actor),
) -> dict:
    """Soft delete: the concept is kept but no longer billed."""
    concept = await ConceptService(session).deactivate(key, actor=actor)
    return success(serialize_concept(concept), f"Concept '{concept.key}' deactivated")
