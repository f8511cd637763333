"""Unit tests for SMTP email delivery."""

import smtplib
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from cuotas.errors import UpstreamError
from cuotas.models.monthly_due import MonthlyDue
from cuotas.services import email_service as email_module
from cuotas.services.email_service import EmailService, build_message, period_label


def _due(**overrides) -> MonthlyDue:
    values = dict(
        resident_id="R1",
        resident_name="Ana Rojas",
        resident_email="ana@example.com",
        year=2025,
        month=3,
        base_amount=Decimal("65.00"),
        surcharge_amount=Decimal("6.50"),
        total_amount=Decimal("71.50"),
        surcharge_percent=Decimal("10.00"),
        delinquency_days=5,
    )
    values.update(overrides)
    return MonthlyDue(**values)


@pytest.fixture
def smtp_mock(monkeypatch):
    """Replace smtplib.SMTP and return the mocked connection."""
    connection = MagicMock()
    factory = MagicMock()
    factory.return_value.__enter__.return_value = connection
    monkeypatch.setattr(email_module.smtplib, "SMTP", factory)
    return factory, connection


def test_period_label():
    assert period_label(2025, 3) == "March 2025"
    assert period_label(2024, 12) == "December 2024"


def test_build_message_with_html_alternative():
    msg = build_message(
        from_email="billing@example.com",
        from_name="Administration",
        to_email="ana@example.com",
        subject="Hi",
        body_text="plain",
        body_html="<p>rich</p>",
    )

    assert msg["From"] == "Administration <billing@example.com>"
    assert msg["To"] == "ana@example.com"
    assert msg.is_multipart()
    assert msg.get_body(preferencelist=("html",)).get_content().strip() == "<p>rich</p>"


@pytest.mark.asyncio
async def test_disabled_service_does_not_send(smtp_mock):
    factory, _ = smtp_mock
    service = EmailService(host="")

    assert service.enabled is False
    assert await service.send("ana@example.com", "Hi", "text") is False
    factory.assert_not_called()


@pytest.mark.asyncio
async def test_send_uses_starttls_and_login(smtp_mock):
    factory, connection = smtp_mock
    service = EmailService(
        host="smtp.example.com", port=587, username="user", password="secret", use_tls=True
    )

    assert await service.send("ana@example.com", "Hi", "text") is True

    factory.assert_called_once_with("smtp.example.com", 587, timeout=service.timeout)
    connection.starttls.assert_called_once()
    connection.login.assert_called_once_with("user", "secret")
    sent = connection.send_message.call_args.args[0]
    assert sent["Subject"] == "Hi"


@pytest.mark.asyncio
async def test_smtp_failure_raises_upstream_error(smtp_mock):
    _, connection = smtp_mock
    connection.send_message.side_effect = smtplib.SMTPServerDisconnected("gone")
    service = EmailService(host="smtp.example.com", use_tls=False)

    with pytest.raises(UpstreamError) as exc_info:
        await service.send("ana@example.com", "Hi", "text")

    assert exc_info.value.code == "email_error"


@pytest.mark.asyncio
async def test_overdue_reminder_content(email_service):
    assert await email_service.send_overdue_reminder(_due()) is True

    message = email_service.sent[0]
    assert message["to"] == "ana@example.com"
    assert message["subject"] == "Overdue dues: March 2025"
    assert "5 days past the grace period" in message["text"]
    assert "71.50" in message["text"]


@pytest.mark.asyncio
async def test_notifications_skip_residents_without_email(email_service):
    due = _due(resident_email=None)

    assert await email_service.send_overdue_reminder(due) is False
    assert await email_service.send_payment_confirmation(due) is False
    assert email_service.sent == []
