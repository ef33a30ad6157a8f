"""Report endpoints — JSON tables or CSV / XLSX / PDF downloads."""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import is_admin, require_permission
from hrportal.auth.models import User
from hrportal.common.constants import ReportFormat, ReportType
from hrportal.common.exceptions import ForbiddenException
from hrportal.database import get_db
from hrportal.reports.renderers import MEDIA_TYPES, RENDERERS
from hrportal.reports.schemas import ReportData
from hrportal.reports.service import ReportService

router = APIRouter(prefix="", tags=["reports"])


@router.get("/{report_type}", response_model=ReportData)
async def generate_report(
    report_type: ReportType,
    request: Request,
    fmt: ReportFormat = Query(ReportFormat.json, alias="format"),
    start_date: Optional[date] = Query(None, description="Defaults to the first of this month"),
    end_date: Optional[date] = Query(None, description="Defaults to today"),
    department_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(require_permission("report:generate")),
    db: AsyncSession = Depends(get_db),
):
    """Admins report on any department; managers only on their own."""
    if not is_admin(request):
        own = user.employee.department_id if user.employee else None
        if own is None:
            raise ForbiddenException(detail="You are not assigned to a department.")
        if department_id is not None and department_id != own:
            raise ForbiddenException(detail="You can only report on your own department.")
        department_id = own

    report = await ReportService.build(
        db,
        report_type,
        start_date=start_date,
        end_date=end_date,
        department_id=department_id,
    )
    if fmt == ReportFormat.json:
        return report

    content = RENDERERS[fmt](report)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={
            "Content-Disposition": f'attachment; filename="{report.filename(fmt.value)}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )
