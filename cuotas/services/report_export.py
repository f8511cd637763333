"""PDF (reportlab) and XLSX (openpyxl) renderings of the financial report."""

import io
from datetime import datetime

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from cuotas.config import settings
from cuotas.services.report_service import ReportData

HEADER_COLOR = colors.HexColor("#1e293b")
ROW_ALT_COLOR = colors.HexColor("#f1f5f9")
BORDER_COLOR = colors.HexColor("#cbd5e1")

XLSX_HEADER_FILL = PatternFill("solid", fgColor="1F4E79")
XLSX_HEADER_FONT = Font(bold=True, color="FFFFFF", size=10)
XLSX_BORDER = Border(
    left=Side(style="thin"), right=Side(style="thin"),
    top=Side(style="thin"), bottom=Side(style="thin"),
)


def _f(value) -> str:
    return f"{float(value or 0):,.2f}"


def _when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "-"


def _table(rows: list[list[str]], widths: list[float]) -> Table:
    table = Table(rows, colWidths=widths, repeatRows=1)
    style = [
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, BORDER_COLOR),
        ("ALIGN", (-1, 1), (-1, -1), "RIGHT"),
    ]
    for i in range(2, len(rows), 2):
        style.append(("BACKGROUND", (0, i), (-1, i), ROW_ALT_COLOR))
    table.setStyle(TableStyle(style))
    return table


def build_report_pdf(data: ReportData) -> bytes:
    """Render income, expenses and balance to an A4 PDF."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4, leftMargin=15 * mm, rightMargin=15 * mm,
        topMargin=15 * mm, bottomMargin=15 * mm,
        title="Financial report",
    )
    styles = getSampleStyleSheet()
    story = [
        Paragraph(settings.company_name, styles["Title"]),
        Paragraph(f"Financial report: {data.period}", styles["Heading2"]),
        Paragraph(f"Generated: {data.generated_at.strftime('%Y-%m-%d %H:%M')} UTC", styles["Normal"]),
        Spacer(1, 6 * mm),
        Paragraph("Income (paid dues)", styles["Heading3"]),
    ]

    income_rows = [["Resident", "Period", "Paid", "Method", "Amount"]]
    income_rows += [
        [
            line["resident_name"] or line["resident_id"],
            f"{line['year']}-{line['month']:02d}",
            _when(line["paid_at"]),
            line["payment_method"] or "-",
            _f(line["amount"]),
        ]
        for line in data.income
    ]
    story.append(_table(income_rows, [60 * mm, 25 * mm, 30 * mm, 25 * mm, 30 * mm]))
    story += [Spacer(1, 6 * mm), Paragraph("Expenses (payroll)", styles["Heading3"])]

    expense_rows = [["Worker", "Type", "Period", "Reference", "Amount"]]
    expense_rows += [
        [
            line["worker_name"] or str(line["worker_id"]),
            line["worker_type"] or "-",
            f"{line['year']}-{line['month']:02d}",
            line["reference"],
            _f(line["amount"]),
        ]
        for line in data.expenses
    ]
    story.append(_table(expense_rows, [45 * mm, 25 * mm, 20 * mm, 50 * mm, 30 * mm]))

    totals = Table(
        [
            ["Total income", _f(data.total_income)],
            ["Total expenses", _f(data.total_expenses)],
            ["Balance", _f(data.balance)],
        ],
        colWidths=[60 * mm, 40 * mm],
    )
    totals.setStyle(TableStyle([
        ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("LINEABOVE", (0, 2), (-1, 2), 1, HEADER_COLOR),
    ]))
    story += [Spacer(1, 8 * mm), totals]

    doc.build(story)
    return buffer.getvalue()


def _write_sheet(ws, headers: list[str], rows: list[list]) -> None:
    for col, title in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = XLSX_HEADER_FONT
        cell.fill = XLSX_HEADER_FILL
        cell.alignment = Alignment(horizontal="center")
        cell.border = XLSX_BORDER
    for r, values in enumerate(rows, 2):
        for c, value in enumerate(values, 1):
            cell = ws.cell(row=r, column=c, value=value)
            cell.border = XLSX_BORDER
            if c == len(values):
                cell.number_format = "#,##0.00"
    for col in range(1, len(headers) + 1):
        ws.column_dimensions[ws.cell(row=1, column=col).column_letter].width = 20


def build_report_xlsx(data: ReportData) -> bytes:
    """Render the report as a workbook with Summary, Income and Expenses sheets."""
    wb = Workbook()
    summary = wb.active
    summary.title = "Summary"
    summary["A1"] = settings.company_name
    summary["A1"].font = Font(bold=True, size=13)
    summary["A2"] = f"Financial report: {data.period}"
    summary["A3"] = f"Generated: {data.generated_at.strftime('%Y-%m-%d %H:%M')} UTC"
    for row, (label, value) in enumerate(
        (
            ("Total income", data.total_income),
            ("Total expenses", data.total_expenses),
            ("Balance", data.balance),
        ),
        start=5,
    ):
        summary.cell(row=row, column=1, value=label).font = Font(bold=True)
        cell = summary.cell(row=row, column=2, value=float(value))
        cell.number_format = "#,##0.00"
    summary.column_dimensions["A"].width = 24
    summary.column_dimensions["B"].width = 16

    _write_sheet(
        wb.create_sheet("Income"),
        ["Due", "Resident", "Name", "Period", "Paid", "Method", "Amount"],
        [
            [
                line["due_id"],
                line["resident_id"],
                line["resident_name"] or "",
                f"{line['year']}-{line['month']:02d}",
                _when(line["paid_at"]),
                line["payment_method"] or "",
                float(line["amount"]),
            ]
            for line in data.income
        ],
    )
    _write_sheet(
        wb.create_sheet("Expenses"),
        ["Payment", "Worker", "Type", "Period", "Reference", "Paid", "Amount"],
        [
            [
                line["payment_id"],
                line["worker_name"] or "",
                line["worker_type"] or "",
                f"{line['year']}-{line['month']:02d}",
                line["reference"],
                _when(line["paid_at"]),
                float(line["amount"]),
            ]
            for line in data.expenses
        ],
    )

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


__all__ = ["build_report_pdf", "build_report_xlsx"]
