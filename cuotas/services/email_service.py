"""Transactional email: payment confirmations and overdue reminders over SMTP."""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from html import escape

from cuotas.config import settings
from cuotas.errors import UpstreamError
from cuotas.models.monthly_due import MonthlyDue

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def period_label(year: int, month: int) -> str:
    return f"{MONTH_NAMES[month - 1]} {year}"


def build_message(
    *,
    from_email: str,
    from_name: str,
    to_email: str,
    subject: str,
    body_text: str,
    body_html: str = "",
) -> EmailMessage:
    """Build a text email with an optional HTML alternative."""
    msg = EmailMessage()
    msg["From"] = formataddr((from_name, from_email))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid()
    msg.set_content(body_text or " ")
    if body_html:
        msg.add_alternative(body_html, subtype="html")
    return msg


class EmailService:
    """Sends resident notifications through the configured SMTP server.

    With no SMTP_HOST configured every send is logged and reported as not
    delivered (returns False). SMTP failures raise UpstreamError; callers
    decide whether that matters.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool | None = None,
        from_email: str | None = None,
        from_name: str | None = None,
        timeout: float | None = None,
    ):
        self.host = host if host is not None else settings.smtp_host
        self.port = port if port is not None else settings.smtp_port
        self.username = username if username is not None else settings.smtp_user
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = use_tls if use_tls is not None else settings.smtp_use_tls
        self.from_email = from_email or settings.email_from
        self.from_name = from_name or settings.email_from_name
        self.timeout = timeout if timeout is not None else settings.smtp_timeout

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send(self, to_email: str, subject: str, body_text: str, body_html: str = "") -> bool:
        """Send one email.

        Returns:
            True if handed to the SMTP server, False if email is disabled

        Raises:
            UpstreamError: SMTP connection or delivery failed
        """
        if not self.enabled:
            logger.info("SMTP not configured, skipping email to %s: %s", to_email, subject)
            return False

        msg = build_message(
            from_email=self.from_email,
            from_name=self.from_name,
            to_email=to_email,
            subject=subject,
            body_text=body_text,
            body_html=body_html,
        )
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email to %s: %s", to_email, e)
            raise UpstreamError(f"Email delivery failed: {e}", code="email_error") from e

        logger.info("Email sent to %s: %s", to_email, subject)
        return True

    async def send_payment_confirmation(self, due: MonthlyDue) -> bool:
        """Confirm a settled due to the resident."""
        if not due.resident_email:
            return False
        period = period_label(due.year, due.month)
        name = due.resident_name or "resident"
        paid_on = due.paid_at.strftime("%Y-%m-%d %H:%M") if due.paid_at else ""
        subject = f"Payment received: {period} dues"
        text = (
            f"Hello {name},\n\n"
            f"We received your payment of {due.total_amount} for the {period} dues.\n"
            f"Paid on: {paid_on}\n"
            f"Method: {due.payment_method or 'card'}\n\n"
            "Thank you.\n"
        )
        html = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>We received your payment of <strong>{due.total_amount}</strong> "
            f"for the {escape(period)} dues.</p>"
            f"<ul><li>Paid on: {escape(paid_on)}</li>"
            f"<li>Method: {escape(due.payment_method or 'card')}</li></ul>"
            "<p>Thank you.</p>"
        )
        return await self.send(due.resident_email, subject, text, html)

    async def send_overdue_reminder(self, due: MonthlyDue) -> bool:
        """Remind the resident of an unpaid due and its surcharge."""
        if not due.resident_email:
            return False
        period = period_label(due.year, due.month)
        name = due.resident_name or "resident"
        subject = f"Overdue dues: {period}"
        text = (
            f"Hello {name},\n\n"
            f"Your {period} dues are {due.delinquency_days} days past the grace period.\n"
            f"Base amount: {due.base_amount}\n"
            f"Surcharge ({due.surcharge_percent}%): {due.surcharge_amount}\n"
            f"Total due: {due.total_amount}\n\n"
            "Please settle the balance as soon as possible.\n"
        )
        html = (
            f"<p>Hello {escape(name)},</p>"
            f"<p>Your {escape(period)} dues are {due.delinquency_days} days past the grace period.</p>"
            "<table>"
            f"<tr><td>Base amount</td><td>{due.base_amount}</td></tr>"
            f"<tr><td>Surcharge ({due.surcharge_percent}%)</td><td>{due.surcharge_amount}</td></tr>"
            f"<tr><td><strong>Total due</strong></td><td><strong>{due.total_amount}</strong></td></tr>"
            "</table>"
            "<p>Please settle the balance as soon as possible.</p>"
        )
        return await self.send(due.resident_email, subject, text, html)


__all__ = ["EmailService", "build_message", "period_label"]
