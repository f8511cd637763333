"""Unit tests for invoice and receipt issuing."""

import hashlib
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from cuotas.errors import ConflictError, NotFoundError, ValidationError
from cuotas.models.monthly_due import DueState
from cuotas.services.concept_service import ConceptService
from cuotas.services.invoice_service import (
    LEGEND_HIGH,
    LEGEND_LOW,
    LEGEND_MID,
    InvoiceService,
    control_code,
    fiscal_legend,
    invoice_number,
)
from cuotas.services.payroll_service import PayrollService

PAID_AT = datetime(2025, 4, 12, 9, 0, tzinfo=timezone.utc)


class TestInvoiceHelpers:
    def test_control_code_is_deterministic(self):
        expected = hashlib.sha256(b"NOM-000000011234567890123100.00").hexdigest()[:16].upper()

        assert control_code("NOM-00000001", "1234567890123", Decimal("100")) == expected
        assert control_code("NOM-00000001", "1234567890123", Decimal("100.00")) == expected
        assert len(expected) == 16

    @pytest.mark.parametrize(
        "amount, legend",
        [
            (Decimal("1000.00"), LEGEND_LOW),
            (Decimal("1000.01"), LEGEND_MID),
            (Decimal("5000.00"), LEGEND_MID),
            (Decimal("5000.01"), LEGEND_HIGH),
        ],
    )
    def test_fiscal_legend_thresholds(self, amount, legend):
        assert fiscal_legend(amount) == legend

    def test_invoice_numbers(self):
        assert invoice_number("payroll", 12) == "NOM-00000012"
        assert invoice_number("dues", 3) == "CUOTA-00000003"


async def _paid_worker(session) -> int:
    payroll = PayrollService(session)
    worker = await payroll.register_worker("Pedro Mamani", "janitor")
    payment = await payroll.pay(worker.id, 1500, now=datetime(2025, 3, 10, tzinfo=timezone.utc))
    return payment.id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_issue_payroll_invoice_writes_pdf(session, invoice_dir):
    payment_id = await _paid_worker(session)

    issued = await InvoiceService(session, invoice_dir=invoice_dir).issue_payroll_invoice(payment_id)

    assert issued.existing is False
    assert issued.filename == f"payroll_invoice_{payment_id}.pdf"
    assert issued.number == invoice_number("payroll", payment_id)
    assert issued.path.read_bytes().startswith(b"%PDF")
    assert issued.data.legend == LEGEND_MID
    assert issued.data.recipient_name == "Pedro Mamani"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_existing_invoice_is_never_overwritten(session, invoice_dir):
    payment_id = await _paid_worker(session)
    service = InvoiceService(session, invoice_dir=invoice_dir)
    first = await service.issue_payroll_invoice(payment_id)
    first.path.write_bytes(b"%PDF-original")

    second = await service.issue_payroll_invoice(payment_id)

    assert second.existing is True
    assert second.path == first.path
    assert second.path.read_bytes() == b"%PDF-original"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_payroll_invoice_for_unknown_payment(session, invoice_dir):
    with pytest.raises(NotFoundError):
        await InvoiceService(session, invoice_dir=invoice_dir).issue_payroll_invoice(404)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_due_receipt_itemizes_concepts_and_surcharge(session, make_due, invoice_dir):
    concepts = ConceptService(session)
    await concepts.add("water", "Water", amount=35)
    await concepts.add("cleaning", "Cleaning", amount=30)
    await concepts.add("garden", "Garden", amount=0)
    due = await make_due(
        "R1", 2025, 3,
        state=DueState.PAID,
        surcharge_amount=Decimal("6.50"),
        total_amount=Decimal("71.50"),
        paid_at=PAID_AT,
    )

    issued = await InvoiceService(session, invoice_dir=invoice_dir).issue_due_receipt(due.id)

    lines = [(line.description, line.amount) for line in issued.data.lines]
    assert lines == [
        ("Water", Decimal("35.00")),
        ("Cleaning", Decimal("30.00")),
        ("Late surcharge (10.00%)", Decimal("6.50")),
    ]
    assert issued.data.total == Decimal("71.50")
    assert issued.data.legend == LEGEND_LOW
    assert issued.filename == f"due_receipt_{due.id}.pdf"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_due_receipt_falls_back_to_single_line(session, make_due, invoice_dir):
    await ConceptService(session).add("water", "Water", amount=50)
    due = await make_due("R1", 2025, 3, state=DueState.PAID, paid_at=PAID_AT)

    issued = await InvoiceService(session, invoice_dir=invoice_dir).issue_due_receipt(due.id)

    assert [(line.description, line.amount) for line in issued.data.lines] == [
        ("Dues March 2025", Decimal("65.00"))
    ]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_due_receipt_requires_paid_due(session, make_due, invoice_dir):
    due = await make_due("R1", 2025, 3)

    with pytest.raises(ConflictError) as exc_info:
        await InvoiceService(session, invoice_dir=invoice_dir).issue_due_receipt(due.id)

    assert exc_info.value.code == "not_paid"
    assert not invoice_dir.exists()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_and_locate_invoices(session, make_due, invoice_dir):
    payment_id = await _paid_worker(session)
    due = await make_due("R1", 2025, 3, state=DueState.PAID, paid_at=PAID_AT)
    service = InvoiceService(session, invoice_dir=invoice_dir)
    await service.issue_payroll_invoice(payment_id)
    await service.issue_due_receipt(due.id)
    (invoice_dir / "notes.txt").write_text("ignored")

    listed = service.list_invoices()

    assert {(item["kind"], item["id"]) for item in listed} == {
        ("payroll", payment_id),
        ("dues", due.id),
    }
    assert service.invoice_path("dues", due.id).name == f"due_receipt_{due.id}.pdf"
    with pytest.raises(NotFoundError):
        service.invoice_path("payroll", 999)
    with pytest.raises(ValidationError) as exc_info:
        service.invoice_path("expenses", 1)
    assert exc_info.value.code == "invalid_kind"


def test_list_invoices_without_directory(tmp_path):
    assert InvoiceService(None, invoice_dir=tmp_path / "missing").list_invoices() == []
