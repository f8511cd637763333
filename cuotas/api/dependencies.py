"""FastAPI dependencies for collaborators; tests override these."""

from functools import lru_cache

from fastapi import Header

from cuotas.services.directory_client import ResidentDirectoryClient
from cuotas.services.email_service import EmailService
from cuotas.services.payment_provider import CheckoutProvider, build_checkout_provider


@lru_cache
def get_checkout_provider() -> CheckoutProvider:
    return build_checkout_provider()


def get_email_service() -> EmailService:
    return EmailService()


def get_directory_client() -> ResidentDirectoryClient:
    return ResidentDirectoryClient()


def get_actor(x_user_id: str | None = Header(None)) -> str | None:
    """Gateway-authenticated user id, forwarded in X-User-Id."""
    return x_user_id
