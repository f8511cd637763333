"""Payment session broker: checkout sessions for monthly dues."""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.config import settings
from cuotas.errors import ConflictError, NotFoundError, UpstreamError
from cuotas.models.monthly_due import DueState, MonthlyDue
from cuotas.services.audit_service import AuditService
from cuotas.services.directory_client import Resident
from cuotas.services.dues_generator import DuesGenerator
from cuotas.services.dues_service import DuesService, utc_now
from cuotas.services.email_service import EmailService, period_label
from cuotas.services.payment_provider import CheckoutProvider, CheckoutSession

logger = logging.getLogger(__name__)

PAYMENT_KIND = "monthly_due"


class SessionOpenResult(NamedTuple):
    session: CheckoutSession | None
    due: MonthlyDue


class ConfirmationResult(NamedTuple):
    due: MonthlyDue
    already_paid: bool


def to_minor_units(amount: Decimal) -> int:
    """Convert an amount to cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """Opens checkout sessions for dues and settles them on confirmation.

    Confirmation is idempotent: a provider retrying its webhook gets
    ``already_paid=True`` and the due is left untouched.
    """

    def __init__(
        self,
        session: AsyncSession,
        provider: CheckoutProvider,
        notifier: EmailService | None = None,
        currency: str | None = None,
    ):
        self.session = session
        self.provider = provider
        self.notifier = notifier
        self.currency = currency or settings.currency
        self.ledger = DuesService(session)
        self.generator = DuesGenerator(session)

    async def open_session(
        self, resident: Resident, now: datetime | None = None
    ) -> SessionOpenResult:
        """Open a checkout session for the resident's current due.

        The due is created if missing. With the provider disabled or failing
        the due is returned without a session.

        Raises:
            ConflictError: The current due is already paid
        """
        due, created = await self.generator.ensure_due(resident, now=now)
        if created:
            logger.info("Created due %d for resident %s on checkout", due.id, resident.id)
        if due.state == DueState.PAID:
            raise ConflictError(
                f"Dues for {due.year}-{due.month:02d} are already paid",
                code="already_paid",
                due_id=due.id,
            )

        if not self.provider.enabled:
            logger.warning("Payment provider disabled; returning due %d without session", due.id)
            return SessionOpenResult(session=None, due=due)

        metadata = {
            "due_id": str(due.id),
            "resident_id": due.resident_id,
            "year": str(due.year),
            "month": str(due.month),
            "kind": PAYMENT_KIND,
        }
        try:
            checkout = await self.provider.create_session(
                amount_minor=to_minor_units(due.total_amount),
                currency=self.currency,
                description=f"Dues {period_label(due.year, due.month)}",
                metadata=metadata,
                customer_email=resident.email or due.resident_email,
            )
        except UpstreamError as e:
            logger.warning("Checkout session for due %d not opened: %s", due.id, e.message)
            return SessionOpenResult(session=None, due=due)

        due.ensure_mutable()
        due.payment_session_id = checkout.id
        await self.session.commit()

        logger.info(
            "Opened checkout session %s for due %d (%s)", checkout.id, due.id, due.total_amount
        )
        return SessionOpenResult(session=checkout, due=due)

    async def confirm_session(
        self, session_ref: str, payment_method: str = "card", actor: str | None = None
    ) -> ConfirmationResult:
        """Mark the due behind ``session_ref`` PAID.

        Raises:
            NotFoundError: No due carries this session reference
        """
        due = await self.ledger.find_by_session(session_ref)
        if due is None:
            raise NotFoundError(
                f"No due for payment session {session_ref}", session_ref=session_ref
            )
        if due.state == DueState.PAID:
            logger.info("Session %s already confirmed for due %d", session_ref, due.id)
            return ConfirmationResult(due=due, already_paid=True)

        previous_state = due.state
        due.transition_to(DueState.PAID)
        due.paid_at = utc_now()
        due.payment_method = payment_method
        AuditService.log(
            self.session,
            entity_type="monthly_due",
            entity_id=due.id,
            action="paid",
            actor=actor,
            changes={
                "from": previous_state.value,
                "session_ref": session_ref,
                "payment_method": payment_method,
                "total_amount": str(due.total_amount),
            },
        )
        await self.session.commit()
        logger.info("Due %d paid via session %s", due.id, session_ref)

        if self.notifier is not None:
            try:
                await self.notifier.send_payment_confirmation(due)
            except UpstreamError as e:
                logger.warning("Payment confirmation email for due %d failed: %s", due.id, e.message)

        return ConfirmationResult(due=due, already_paid=False)


__all__ = ["ConfirmationResult", "PaymentService", "SessionOpenResult", "to_minor_units"]
