"""Reports router — ``GET /reports/{type}`` as JSON or a CSV download."""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from wardstaff.auth.dependencies import require_capability
from wardstaff.auth.service import Actor
from wardstaff.common.constants import Capability, ExportFormat, ReportType
from wardstaff.database import get_db
from wardstaff.reports.schemas import ReportFilters, ReportResponse
from wardstaff.reports.service import ReportService

router = APIRouter(prefix="", tags=["reports"])


@router.get("/{report_type}", response_model=ReportResponse)
async def generate_report(
    report_type: ReportType,
    format: ExportFormat = Query(ExportFormat.json),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    _actor: Actor = Depends(require_capability(Capability.report_generate)),
    db: AsyncSession = Depends(get_db),
):
    """Staff, attendance, leave or disciplinary report; ``format=csv`` downloads a file."""
    filters = ReportFilters(from_date=from_date, to_date=to_date, department_id=department_id)
    report = await ReportService.build(db, report_type, filters)
    if format == ExportFormat.json:
        return report

    return StreamingResponse(
        iter([ReportService.to_csv(report)]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={ReportService.filename(report)}"},
    )
