"""Contract tests for workers, payroll, reports and invoices endpoints."""

import io

import pytest
from openpyxl import load_workbook

from cuotas.models.monthly_due import DueState


def assert_error(response, status: int, code: str) -> None:
    assert response.status_code == status, response.text
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == code


async def _paid_worker(client) -> tuple[int, int]:
    worker = await client.post("/api/workers", json={"name": "Pedro Mamani", "worker_type": "Janitor"})
    worker_id = worker.json()["data"]["id"]
    payment = await client.post(
        "/api/payroll/payments",
        json={"worker_id": worker_id, "amount": 1500},
        headers={"X-User-Id": "admin-1"},
    )
    return worker_id, payment.json()["data"]["id"]


@pytest.mark.contract
@pytest.mark.asyncio
class TestPayrollEndpoints:
    async def test_register_and_list_workers(self, client):
        created = await client.post("/api/workers", json={"name": "Bruno", "worker_type": "security"})
        listed = await client.get("/api/workers")

        assert created.status_code == 201
        assert created.json()["data"]["active"] is True
        assert [w["name"] for w in listed.json()["data"]] == ["Bruno"]

    async def test_register_requires_name(self, client):
        assert_error(
            await client.post("/api/workers", json={"worker_type": "security"}), 400, "validation_error"
        )

    async def test_pay_once_per_month(self, client):
        worker_id, _ = await _paid_worker(client)

        again = await client.post(
            "/api/payroll/payments", json={"worker_id": worker_id, "amount": 1500}
        )
        check = await client.get(f"/api/payroll/workers/{worker_id}/check")
        history = await client.get("/api/payroll/payments")

        assert_error(again, 409, "already_paid")
        assert check.json()["data"]["already_paid"] is True
        payment = history.json()["data"][0]
        assert payment["state"] == "completed"
        assert payment["paid_by"] == "admin-1"
        assert payment["worker"]["worker_type"] == "janitor"
        assert payment["reference"].startswith(f"PAY-{worker_id}-")

    async def test_pay_validation(self, client):
        worker = await client.post("/api/workers", json={"name": "Bruno", "worker_type": "security"})
        worker_id = worker.json()["data"]["id"]

        assert_error(
            await client.post("/api/payroll/payments", json={"worker_id": worker_id, "amount": 0}),
            400,
            "invalid_amount",
        )
        assert_error(
            await client.post("/api/payroll/payments", json={"worker_id": 999, "amount": 10}),
            404,
            "not_found",
        )
        assert_error(
            await client.post("/api/payroll/payments", json={"worker_id": worker_id}),
            400,
            "validation_error",
        )

    async def test_check_unknown_worker(self, client):
        assert_error(await client.get("/api/payroll/workers/999/check"), 404, "not_found")


@pytest.mark.contract
@pytest.mark.asyncio
class TestReportEndpoints:
    async def test_report_data(self, client, make_due):
        await _paid_worker(client)
        await make_due("R1", 2025, 3)

        response = await client.get("/api/reports/data")

        data = response.json()["data"]
        assert data["period"] == "all"
        assert data["total_expenses"] == 1500.0
        assert data["income"] == []

    async def test_inverted_range(self, client):
        response = await client.get(
            "/api/reports/data", params={"start": "2025-04-01", "end": "2025-03-01"}
        )

        assert_error(response, 400, "invalid_range")

    async def test_pdf_download(self, client):
        response = await client.get("/api/reports/pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "financial_report_" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    async def test_xlsx_download(self, client):
        response = await client.get(
            "/api/reports/xlsx", params={"start": "2025-01-01", "end": "2025-12-31"}
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert load_workbook(io.BytesIO(response.content)).sheetnames == [
            "Summary",
            "Income",
            "Expenses",
        ]

    async def test_statistics(self, client, make_due):
        await make_due("R1", 2025, 3, state=DueState.PAID)
        await make_due("R2", 2025, 3)

        response = await client.get("/api/reports/statistics", params={"year": 2025, "month": 3})

        data = response.json()["data"]
        assert data["dues_count"] == 2
        assert data["collection_rate"] == 50.0
        assert data["by_state"]["paid"]["count"] == 1

    async def test_statistics_invalid_month(self, client):
        assert_error(await client.get("/api/reports/statistics", params={"month": 13}), 400, "invalid_period")


@pytest.mark.contract
@pytest.mark.asyncio
class TestInvoiceEndpoints:
    async def test_issue_list_and_download_payroll_invoice(self, client):
        _, payment_id = await _paid_worker(client)

        first = await client.post(f"/api/invoices/payroll/{payment_id}")
        second = await client.post(f"/api/invoices/payroll/{payment_id}")
        listed = await client.get("/api/invoices")
        pdf = await client.get(f"/api/invoices/payroll/{payment_id}/pdf")

        assert first.json()["data"]["existing"] is False
        assert len(first.json()["data"]["control_code"]) == 16
        assert second.json()["data"]["existing"] is True
        assert "already generated" in second.json()["message"]
        assert [(i["kind"], i["id"]) for i in listed.json()["data"]] == [("payroll", payment_id)]
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")

    async def test_due_receipt_requires_payment(self, client, make_due):
        pending = await make_due("R1", 2025, 3)

        assert_error(await client.post(f"/api/invoices/dues/{pending.id}"), 409, "not_paid")
        assert_error(await client.post("/api/invoices/dues/999"), 404, "not_found")

    async def test_due_receipt_for_paid_due(self, client, make_due):
        paid = await make_due("R1", 2025, 3, state=DueState.PAID)

        response = await client.post(f"/api/invoices/dues/{paid.id}")

        assert response.status_code == 200
        assert response.json()["data"]["number"] == f"CUOTA-{paid.id:08d}"

    async def test_download_errors(self, client):
        assert_error(await client.get("/api/invoices/payroll/1/pdf"), 404, "not_found")
        assert_error(await client.get("/api/invoices/expenses/1/pdf"), 400, "invalid_kind")
