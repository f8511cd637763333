"""Invoice issuing: payroll invoices and paid-due receipts as PDF files."""

import hashlib
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import qrcode
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.config import settings
from cuotas.errors import ConflictError, NotFoundError, ReportRenderError, ValidationError
from cuotas.models.monthly_due import DueState
from cuotas.services.dues_config_service import DuesConfigService, money
from cuotas.services.dues_service import DuesService, utc_now
from cuotas.services.email_service import period_label
from cuotas.services.payroll_service import PayrollService

logger = logging.getLogger(__name__)

PAYROLL_KIND = "payroll"
DUES_KIND = "dues"

FILENAME_TEMPLATES = {
    PAYROLL_KIND: "payroll_invoice_{id}.pdf",
    DUES_KIND: "due_receipt_{id}.pdf",
}
NUMBER_PREFIXES = {PAYROLL_KIND: "NOM", DUES_KIND: "CUOTA"}
FILENAME_PATTERN = re.compile(r"^(payroll_invoice|due_receipt)_(\d+)\.pdf$")
FILENAME_KINDS = {"payroll_invoice": PAYROLL_KIND, "due_receipt": DUES_KIND}

LEGEND_LOW = (
    "Law 453: You have the right to receive information about the characteristics "
    "and contents of the services you use."
)
LEGEND_MID = (
    "Law 453: It is the duty and right of every citizen to comply with and demand "
    "compliance with the Constitution and the laws of the Republic."
)
LEGEND_HIGH = (
    "Law 453: For tax purposes, verify that the invoice data matches the information "
    "of your supplier."
)


@dataclass
class InvoiceLine:
    description: str
    amount: Decimal


@dataclass
class InvoiceData:
    """Everything printed on an invoice."""

    kind: str
    source_id: int
    number: str
    control_code: str
    legend: str
    recipient_name: str
    recipient_detail: str
    lines: list[InvoiceLine] = field(default_factory=list)
    total: Decimal = Decimal("0.00")
    issued_at: datetime = field(default_factory=utc_now)


@dataclass
class IssuedInvoice:
    kind: str
    source_id: int
    number: str
    filename: str
    path: Path
    existing: bool
    data: InvoiceData | None = None


def invoice_number(kind: str, source_id: int) -> str:
    return f"{NUMBER_PREFIXES[kind]}-{source_id:08d}"


def control_code(number: str, tax_id: str, amount: Decimal) -> str:
    """First 16 hex chars of SHA-256 over number, tax id and amount, uppercased."""
    payload = f"{number}{tax_id}{money(amount):.2f}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16].upper()


def fiscal_legend(amount: Decimal) -> str:
    if amount <= 1000:
        return LEGEND_LOW
    if amount <= 5000:
        return LEGEND_MID
    return LEGEND_HIGH


def _check_kind(kind: str) -> str:
    if kind not in FILENAME_TEMPLATES:
        raise ValidationError(
            f"Invoice kind must be one of {sorted(FILENAME_TEMPLATES)}", code="invalid_kind"
        )
    return kind


def _qr_image(content: str) -> ImageReader:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(content)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    buffer.seek(0)
    return ImageReader(buffer)


def render_invoice_pdf(data: InvoiceData) -> bytes:
    """Draw a single-page invoice with issuer block, lines, totals and QR."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4
    label = settings.invoice_currency_label

    c.setFillColor(colors.HexColor("#1e293b"))
    c.rect(0, height - 30 * mm, width, 30 * mm, fill=True, stroke=False)
    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(15 * mm, height - 13 * mm, settings.company_name)
    c.setFont("Helvetica", 8)
    c.drawString(15 * mm, height - 19 * mm, settings.company_address)
    c.drawString(15 * mm, height - 24 * mm, f"{settings.company_phone}  {settings.company_email}")
    c.setFont("Helvetica-Bold", 12)
    title = "INVOICE" if data.kind == PAYROLL_KIND else "RECEIPT"
    c.drawRightString(width - 15 * mm, height - 13 * mm, title)
    c.setFont("Helvetica", 8)
    c.drawRightString(width - 15 * mm, height - 19 * mm, f"Tax ID: {settings.company_tax_id}")
    c.drawRightString(width - 15 * mm, height - 24 * mm, f"No. {data.number}")

    c.setFillColor(colors.black)
    y = height - 42 * mm
    for caption, value in (
        ("Authorization", settings.company_authorization),
        ("Issued", data.issued_at.strftime("%Y-%m-%d %H:%M")),
        ("Name", data.recipient_name),
        ("Detail", data.recipient_detail),
    ):
        c.setFont("Helvetica-Bold", 9)
        c.drawString(15 * mm, y, f"{caption}:")
        c.setFont("Helvetica", 9)
        c.drawString(45 * mm, y, value)
        y -= 6 * mm

    y -= 4 * mm
    c.setFont("Helvetica-Bold", 9)
    c.drawString(15 * mm, y, "Description")
    c.drawRightString(width - 15 * mm, y, f"Amount ({label})")
    c.line(15 * mm, y - 2 * mm, width - 15 * mm, y - 2 * mm)
    y -= 8 * mm
    c.setFont("Helvetica", 9)
    for line in data.lines:
        c.drawString(15 * mm, y, line.description)
        c.drawRightString(width - 15 * mm, y, f"{line.amount:,.2f}")
        y -= 6 * mm

    c.line(15 * mm, y + 2 * mm, width - 15 * mm, y + 2 * mm)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(15 * mm, y - 4 * mm, "TOTAL")
    c.drawRightString(width - 15 * mm, y - 4 * mm, f"{label} {data.total:,.2f}")

    c.setFont("Helvetica", 8)
    c.drawString(15 * mm, 60 * mm, f"Control code: {data.control_code}")
    text = c.beginText(15 * mm, 52 * mm)
    text.setFont("Helvetica-Oblique", 7)
    for chunk in re.findall(r".{1,95}(?:\s|$)", data.legend):
        text.textLine(chunk.strip())
    c.drawText(text)

    qr_content = "|".join(
        [
            settings.company_tax_id,
            data.number,
            settings.company_authorization,
            data.issued_at.strftime("%Y-%m-%d"),
            f"{data.total:.2f}",
            data.control_code,
        ]
    )
    c.drawImage(
        _qr_image(qr_content), width - 45 * mm, 25 * mm, width=30 * mm, height=30 * mm,
        preserveAspectRatio=True,
    )

    c.showPage()
    c.save()
    return buffer.getvalue()


class InvoiceService:
    """Issues invoice PDFs into INVOICE_DIR.

    File names are deterministic per source record; an existing file is
    returned as already issued and never overwritten.
    """

    def __init__(self, session: AsyncSession, invoice_dir: str | Path | None = None):
        self.session = session
        self.invoice_dir = Path(invoice_dir if invoice_dir is not None else settings.invoice_dir)
        self.payroll = PayrollService(session)
        self.ledger = DuesService(session)
        self.config_service = DuesConfigService(session)

    def _path(self, kind: str, source_id: int) -> Path:
        return self.invoice_dir / FILENAME_TEMPLATES[kind].format(id=source_id)

    def _existing(self, kind: str, source_id: int) -> IssuedInvoice | None:
        path = self._path(kind, source_id)
        if not path.exists():
            return None
        logger.info("Invoice %s already generated", path.name)
        return IssuedInvoice(
            kind=kind,
            source_id=source_id,
            number=invoice_number(kind, source_id),
            filename=path.name,
            path=path,
            existing=True,
        )

    def _write(self, data: InvoiceData) -> IssuedInvoice:
        path = self._path(data.kind, data.source_id)
        try:
            content = render_invoice_pdf(data)
        except Exception as e:
            logger.error("Invoice %s rendering failed: %s", data.number, e, exc_info=True)
            raise ReportRenderError(f"Could not render invoice {data.number}: {e}") from e
        self.invoice_dir.mkdir(parents=True, exist_ok=True)
        # "xb" refuses to clobber a file written concurrently
        try:
            with open(path, "xb") as fh:
                fh.write(content)
        except FileExistsError:
            return self._existing(data.kind, data.source_id)
        logger.info("Generated invoice %s (%s)", data.number, path.name)
        return IssuedInvoice(
            kind=data.kind,
            source_id=data.source_id,
            number=data.number,
            filename=path.name,
            path=path,
            existing=False,
            data=data,
        )

    async def issue_payroll_invoice(self, payment_id: int) -> IssuedInvoice:
        """Issue the invoice for a payroll payment.

        Raises:
            NotFoundError: Unknown payment
        """
        payment = await self.payroll.get_payment(payment_id)
        existing = self._existing(PAYROLL_KIND, payment_id)
        if existing is not None:
            return existing

        amount = money(payment.amount)
        number = invoice_number(PAYROLL_KIND, payment_id)
        worker = payment.worker
        data = InvoiceData(
            kind=PAYROLL_KIND,
            source_id=payment_id,
            number=number,
            control_code=control_code(number, settings.company_tax_id, amount),
            legend=fiscal_legend(amount),
            recipient_name=worker.name if worker else str(payment.worker_id),
            recipient_detail=f"{worker.worker_type if worker else 'worker'} - ref {payment.reference}",
            lines=[
                InvoiceLine(
                    f"Salary {period_label(payment.year, payment.month)}", amount
                )
            ],
            total=amount,
        )
        return self._write(data)

    async def issue_due_receipt(self, due_id: int) -> IssuedInvoice:
        """Issue the receipt for a paid due.

        Lines itemize the current configuration concepts with an amount above
        zero, or a single dues line when they no longer add up to the due's
        base; a surcharge line is added when one was charged.

        Raises:
            NotFoundError: Unknown due
            ConflictError: Due is not paid
        """
        due = await self.ledger.get_or_404(due_id)
        if due.state != DueState.PAID:
            raise ConflictError(
                f"Due {due_id} is not paid; receipts are issued for paid dues only",
                code="not_paid",
                due_id=due_id,
            )
        existing = self._existing(DUES_KIND, due_id)
        if existing is not None:
            return existing

        base = money(due.base_amount)
        configuration = await self.config_service.get()
        labels = {c.key: c.label for c in configuration.concepts_metadata}
        lines = [
            InvoiceLine(labels.get(key, key), amount)
            for key, amount in configuration.concepts.items()
            if amount > 0
        ]
        if money(sum((line.amount for line in lines), Decimal("0"))) != base:
            lines = [InvoiceLine(f"Dues {period_label(due.year, due.month)}", base)]
        surcharge = money(due.surcharge_amount)
        if surcharge > 0:
            lines.append(InvoiceLine(f"Late surcharge ({money(due.surcharge_percent)}%)", surcharge))

        total = money(due.total_amount)
        number = invoice_number(DUES_KIND, due_id)
        data = InvoiceData(
            kind=DUES_KIND,
            source_id=due_id,
            number=number,
            control_code=control_code(number, settings.company_tax_id, total),
            legend=fiscal_legend(total),
            recipient_name=due.resident_name or due.resident_id,
            recipient_detail=f"Resident {due.resident_id} - {period_label(due.year, due.month)}",
            lines=lines,
            total=total,
        )
        return self._write(data)

    def list_invoices(self) -> list[dict]:
        """Invoices present in INVOICE_DIR, newest first."""
        if not self.invoice_dir.exists():
            return []
        invoices = []
        for path in self.invoice_dir.iterdir():
            match = FILENAME_PATTERN.match(path.name)
            if not match:
                continue
            kind = FILENAME_KINDS[match.group(1)]
            source_id = int(match.group(2))
            stat = path.stat()
            invoices.append(
                {
                    "kind": kind,
                    "id": source_id,
                    "number": invoice_number(kind, source_id),
                    "filename": path.name,
                    "size": stat.st_size,
                    "created_at": datetime.fromtimestamp(stat.st_mtime),
                }
            )
        invoices.sort(key=lambda item: item["created_at"], reverse=True)
        return invoices

    def invoice_path(self, kind: str, source_id: int) -> Path:
        """Path of an issued invoice.

        Raises:
            ValidationError: Unknown kind
            NotFoundError: Not issued yet
        """
        path = self._path(_check_kind(kind), source_id)
        if not path.exists():
            raise NotFoundError(f"Invoice {invoice_number(kind, source_id)} not generated")
        return path


__all__ = [
    "DUES_KIND",
    "InvoiceData",
    "InvoiceService",
    "IssuedInvoice",
    "PAYROLL_KIND",
    "control_code",
    "fiscal_legend",
    "invoice_number",
    "render_invoice_pdf",
]
