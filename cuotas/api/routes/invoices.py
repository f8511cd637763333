"""Invoice API routes."""

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.errors import success
from cuotas.services import get_async_session
from cuotas.services.invoice_service import InvoiceService, IssuedInvoice

router = APIRouter(prefix="/api/invoices", tags=["invoices"])


def get_invoice_service(session: AsyncSession = Depends(get_async_session)) -> InvoiceService:
    return InvoiceService(session)


def serialize_issued(invoice: IssuedInvoice) -> dict:
    data = {
        "kind": invoice.kind,
        "id": invoice.source_id,
        "number": invoice.number,
        "filename": invoice.filename,
        "existing": invoice.existing,
    }
    if invoice.data is not None:
        data["control_code"] = invoice.data.control_code
        data["total"] = invoice.data.total
        data["legend"] = invoice.data.legend
    return data


def _message(invoice: IssuedInvoice) -> str:
    if invoice.existing:
        return f"Invoice {invoice.number} already generated"
    return f"Invoice {invoice.number} generated"


@router.get("")
async def list_invoices(service: InvoiceService = Depends(get_invoice_service)) -> dict:
    invoices = service.list_invoices()
    return success(invoices, f"{len(invoices)} invoices")


@router.post("/payroll/{payment_id}")
async def issue_payroll_invoice(
    payment_id: int, service: InvoiceService = Depends(get_invoice_service)
) -> dict:
    invoice = await service.issue_payroll_invoice(payment_id)
    return success(serialize_issued(invoice), _message(invoice))


@router.post("/dues/{due_id}")
async def issue_due_receipt(
    due_id: int, service: InvoiceService = Depends(get_invoice_service)
) -> dict:
    """
    Issue the receipt for a paid due.

    Returns:
        200: Invoice file info (``existing`` when issued before)
        404: Unknown due
        409: Due not paid
    """
    invoice = await service.issue_due_receipt(due_id)
    return success(serialize_issued(invoice), _message(invoice))


@router.get("/{kind}/{source_id}/pdf")
async def download_invoice(
    kind: str, source_id: int, service: InvoiceService = Depends(get_invoice_service)
) -> FileResponse:
    path = service.invoice_path(kind, source_id)
    return FileResponse(path, media_type="application/pdf", filename=path.name)
