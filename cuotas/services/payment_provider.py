"""Checkout session providers.

The payment broker talks to an external checkout through the
CheckoutProvider protocol. StripeCheckoutProvider is used when a secret key
is configured; otherwise DisabledCheckoutProvider keeps payments working in
degraded mode (the due is returned without a session).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol

import stripe

from cuotas.config import settings
from cuotas.errors import UpstreamError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    """Checkout session opened with a provider."""

    id: str
    url: str | None = None
    provider: str = ""


class CheckoutProvider(Protocol):
    """Protocol for checkout session providers."""

    provider_name: str

    @property
    def enabled(self) -> bool:
        ...

    async def create_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession:
        """Open a checkout session for ``amount_minor`` (cents)."""
        ...


class DisabledCheckoutProvider:
    """Provider used when no payment gateway is configured."""

    provider_name = "disabled"

    @property
    def enabled(self) -> bool:
        return False

    async def create_session(self, **kwargs: Any) -> CheckoutSession:
        raise UpstreamError("Payment provider is not configured", code="provider_disabled")


class StripeCheckoutProvider:
    """Stripe Checkout in one-off payment mode."""

    provider_name = "stripe"

    def __init__(self, api_key: str, frontend_url: str | None = None):
        self.api_key = api_key
        self.frontend_url = (frontend_url or settings.frontend_url).rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def create_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        customer_email: str | None = None,
    ) -> CheckoutSession:
        params: dict[str, Any] = {
            "api_key": self.api_key,
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": description},
                        "unit_amount": amount_minor,
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "success_url": f"{self.frontend_url}/payments/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.frontend_url}/payments/cancel",
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await asyncio.to_thread(stripe.checkout.Session.create, **params)
        except stripe.StripeError as e:
            logger.error("Stripe checkout session failed: %s", e)
            raise UpstreamError(
                f"Payment provider error: {e.user_message or e}", code="provider_error"
            ) from e

        logger.info("Opened Stripe checkout session %s", session.id)
        return CheckoutSession(id=session.id, url=session.url, provider=self.provider_name)


def build_checkout_provider() -> CheckoutProvider:
    """Provider for the current settings."""
    if settings.stripe_secret_key:
        return StripeCheckoutProvider(settings.stripe_secret_key)
    logger.warning("STRIPE_SECRET_KEY not set, payment sessions are disabled")
    return DisabledCheckoutProvider()


__all__ = [
    "CheckoutProvider",
    "CheckoutSession",
    "DisabledCheckoutProvider",
    "StripeCheckoutProvider",
    "build_checkout_provider",
]
