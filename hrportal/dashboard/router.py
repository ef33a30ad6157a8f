"""Dashboard router — read-only endpoints for role-specific dashboards.

``/me`` is open to every employee, ``/manager`` and ``/attendance-trend``
to managers (team scope) and admins, the rest to admins only.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import (
    get_current_employee,
    is_admin,
    require_permission,
)
from hrportal.auth.models import User
from hrportal.common.exceptions import ForbiddenException
from hrportal.core_hr.models import Employee
from hrportal.dashboard.schemas import (
    AdminStatsResponse,
    AttendanceTrendResponse,
    EmployeeSummaryResponse,
    ManagerStatsResponse,
    RecentActivitiesResponse,
)
from hrportal.dashboard.service import DashboardService
from hrportal.database import get_db

router = APIRouter()


# ── GET /admin ──────────────────────────────────────────────────────

@router.get("/admin", response_model=AdminStatsResponse)
async def admin_stats(
    user: User = Depends(require_permission("dashboard:system")),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.get_admin_stats(db)


# ── GET /manager ────────────────────────────────────────────────────

@router.get("/manager", response_model=ManagerStatsResponse)
async def manager_stats(
    user: User = Depends(require_permission("dashboard:team")),
    db: AsyncSession = Depends(get_db),
):
    if user.employee is None:
        raise ForbiddenException(detail="No employee record is linked to this account.")
    return await DashboardService.get_manager_stats(db, user.employee)


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=EmployeeSummaryResponse)
async def my_summary(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.get_employee_summary(db, employee, year)


# ── GET /attendance-trend ───────────────────────────────────────────

@router.get("/attendance-trend", response_model=AttendanceTrendResponse)
async def attendance_trend(
    request: Request,
    days: int = Query(7, ge=1, le=90),
    user: User = Depends(require_permission("dashboard:team")),
    db: AsyncSession = Depends(get_db),
):
    """Admins see everyone; managers see their team."""
    team_of = None
    if not is_admin(request):
        if user.employee is None:
            raise ForbiddenException(detail="No employee record is linked to this account.")
        team_of = user.employee
    return await DashboardService.get_attendance_trend(db, days, team_of=team_of)


# ── GET /recent-activities ──────────────────────────────────────────

@router.get("/recent-activities", response_model=RecentActivitiesResponse)
async def recent_activities(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(require_permission("dashboard:system")),
    db: AsyncSession = Depends(get_db),
):
    return await DashboardService.get_recent_activities(db, limit)
