"""Payment session API routes."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.dependencies import get_actor, get_checkout_provider, get_email_service
from cuotas.api.errors import success
from cuotas.api.routes.dues import serialize_due
from cuotas.schemas.dues import CheckoutSessionResponse, ConfirmSessionPayload, OpenSessionPayload
from cuotas.services import get_async_session
from cuotas.services.directory_client import Resident
from cuotas.services.email_service import EmailService
from cuotas.services.payment_provider import CheckoutProvider
from cuotas.services.payment_service import PaymentService

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def open_session(
    payload: OpenSessionPayload,
    session: AsyncSession = Depends(get_async_session),
    provider: CheckoutProvider = Depends(get_checkout_provider),
) -> dict:
    """
    Open a checkout session for the resident's current due.

    Returns:
        201: Session (null when the provider is unavailable) and due
        409: Current due already paid
    """
    result = await PaymentService(session, provider).open_session(
        Resident(id=payload.resident_id, name=payload.name, email=payload.email)
    )
    data = {
        "session": (
            CheckoutSessionResponse.model_validate(result.session).model_dump(mode="json")
            if result.session
            else None
        ),
        "due": serialize_due(result.due),
    }
    message = (
        "Checkout session opened"
        if result.session
        else "Payment provider unavailable; due returned without session"
    )
    return success(data, message)


@router.post("/sessions/{session_ref}/confirm")
async def confirm_session(
    session_ref: str,
    payload: ConfirmSessionPayload | None = None,
    session: AsyncSession = Depends(get_async_session),
    provider: CheckoutProvider = Depends(get_checkout_provider),
    notifier: EmailService = Depends(get_email_service),
    actor: str | None = Depends(get_actor),
) -> dict:
    """
    Mark the due behind a checkout session PAID (idempotent).

    Returns:
        200: Due and ``already_paid`` flag
        404: Unknown session reference
    """
    result = await PaymentService(session, provider, notifier=notifier).confirm_session(
        session_ref,
        payment_method=payload.payment_method if payload else "card",
        actor=actor,
    )
    data = {"due": serialize_due(result.due), "already_paid": result.already_paid}
    return success(data, "Already paid" if result.already_paid else "Payment confirmed")
