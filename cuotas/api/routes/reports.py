"""Financial report API routes."""

from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from cuotas.api.errors import success
from cuotas.services import get_async_session
from cuotas.services.report_service import ReportData, ReportService

router = APIRouter(prefix="/api/reports", tags=["reports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _filename(data: ReportData, extension: str) -> str:
    stamp = data.generated_at.strftime("%Y%m%d_%H%M%S")
    return f"financial_report_{stamp}.{extension}"


@router.get("/data")
async def report_data(
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    data = await ReportService(session).collect(start, end)
    payload = asdict(data)
    payload["period"] = data.period
    return success(payload, f"Report {data.period}")


@router.get("/pdf")
async def report_pdf(
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    service = ReportService(session)
    data = await service.collect(start, end)
    content = service.render_pdf(data)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{_filename(data, "pdf")}"'},
    )


@router.get("/xlsx")
async def report_xlsx(
    start: date | None = None,
    end: date | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> Response:
    service = ReportService(session)
    data = await service.collect(start, end)
    content = service.render_xlsx(data)
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{_filename(data, "xlsx")}"'},
    )


@router.get("/statistics")
async def period_statistics(
    year: int | None = None,
    month: int | None = None,
    session: AsyncSession = Depends(get_async_session),
) -> dict:
    """Dues by state, collected vs pending and payroll totals for a month."""
    stats = await ReportService(session).period_statistics(year, month)
    return success(stats, f"Statistics {stats['year']}-{stats['month']:02d}")
