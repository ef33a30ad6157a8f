"""Attendance router — check-in/out, history, team and admin views, holidays."""

from __future__ import annotations

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.attendance.schemas import (
    AttendanceCreate,
    AttendanceRecordResponse,
    AttendanceSummary,
    AttendanceUpdate,
    BulkAttendanceCreate,
    BulkAttendanceResult,
    DayAttendanceResponse,
    HolidayCreate,
    HolidayResponse,
    HolidayUpdate,
    PunchRequest,
)
from hrportal.attendance.service import AttendanceService, HolidayService
from hrportal.auth.dependencies import (
    get_current_employee,
    get_current_user,
    is_admin,
    require_role,
)
from hrportal.auth.models import User
from hrportal.common.constants import AttendanceStatus, UserRole
from hrportal.common.exceptions import ForbiddenException
from hrportal.common.pagination import PaginatedResponse, PaginationParams
from hrportal.common.timeutils import local_today
from hrportal.core_hr.models import Employee
from hrportal.core_hr.service import manages
from hrportal.database import get_db

router = APIRouter()
holidays_router = APIRouter()


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def _team_scope(request: Request, user: User) -> Optional[Employee]:
    """None for admins (everything visible); the manager's employee otherwise."""
    if is_admin(request):
        return None
    if user.employee is None:
        raise ForbiddenException(detail="No employee record is linked to this account.")
    return user.employee


# ── POST /check-in ──────────────────────────────────────────────────

@router.post("/check-in", response_model=AttendanceRecordResponse, status_code=201)
async def check_in(
    request: Request,
    body: Optional[PunchRequest] = None,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.check_in(
        db,
        employee,
        remarks=body.remarks if body else None,
        ip_address=_client_ip(request),
    )


# ── POST /check-out ─────────────────────────────────────────────────

@router.post("/check-out", response_model=AttendanceRecordResponse)
async def check_out(
    request: Request,
    body: Optional[PunchRequest] = None,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.check_out(
        db,
        employee,
        remarks=body.remarks if body else None,
        ip_address=_client_ip(request),
    )


# ── GET /today — my record for today ────────────────────────────────

@router.get("/today", response_model=Optional[AttendanceRecordResponse])
async def my_today(
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_today(db, employee)


# ── GET /me — my history ────────────────────────────────────────────

@router.get("/me", response_model=PaginatedResponse[AttendanceRecordResponse])
async def my_attendance(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await AttendanceService.list_records(
        db,
        pagination,
        employee_id=employee.id,
        start_date=start_date,
        end_date=end_date,
    )
    return PaginatedResponse(data=data, meta=meta)


@router.get("/me/summary", response_model=AttendanceSummary)
async def my_summary(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_summary(db, employee.id, year)


# ── Team / admin views ──────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse[AttendanceRecordResponse])
async def list_attendance(
    request: Request,
    employee_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status: Optional[AttendanceStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await AttendanceService.list_records(
        db,
        pagination,
        employee_id=employee_id,
        department_id=department_id,
        start_date=start_date,
        end_date=end_date,
        status=status,
        team_of=_team_scope(request, user),
    )
    return PaginatedResponse(data=data, meta=meta)


@router.get("/by-date", response_model=DayAttendanceResponse)
async def attendance_by_date(
    request: Request,
    day: Optional[date] = Query(None, description="Defaults to today"),
    department_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.get_by_date(
        db,
        day or local_today(),
        department_id=department_id,
        team_of=_team_scope(request, user),
    )


@router.get("/summary/{employee_id}", response_model=AttendanceSummary)
async def employee_summary(
    employee_id: uuid.UUID,
    request: Request,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    scope = _team_scope(request, user)
    if scope is not None and not await manages(db, scope, employee_id):
        raise ForbiddenException(detail="You can only view your own team.")
    return await AttendanceService.get_summary(db, employee_id, year)


# ── Admin CRUD ──────────────────────────────────────────────────────

@router.post("", response_model=AttendanceRecordResponse, status_code=201)
async def create_attendance(
    body: AttendanceCreate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.create_record(db, body, actor_id=admin.id)


@router.post("/bulk", response_model=BulkAttendanceResult, status_code=201)
async def bulk_create_attendance(
    body: BulkAttendanceCreate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.bulk_create(db, body.records, actor_id=admin.id)


@router.put("/{record_id}", response_model=AttendanceRecordResponse)
async def update_attendance(
    record_id: uuid.UUID,
    body: AttendanceUpdate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await AttendanceService.update_record(db, record_id, body, actor_id=admin.id)


@router.delete("/{record_id}", status_code=204)
async def delete_attendance(
    record_id: uuid.UUID,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await AttendanceService.delete_record(db, record_id, actor_id=admin.id)


# ═════════════════════════════════════════════════════════════════════
# Holidays
# ═════════════════════════════════════════════════════════════════════


@holidays_router.get("", response_model=list[HolidayResponse])
async def list_holidays(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    department_id: Optional[uuid.UUID] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.list_holidays(db, year=year, department_id=department_id)


@holidays_router.get("/upcoming", response_model=list[HolidayResponse])
async def upcoming_holidays(
    limit: int = Query(5, ge=1, le=50),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    department_id = user.employee.department_id if user.employee else None
    return await HolidayService.upcoming(db, limit=limit, department_id=department_id)


@holidays_router.post("", response_model=HolidayResponse, status_code=201)
async def create_holiday(
    body: HolidayCreate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.create_holiday(db, body, actor_id=admin.id)


@holidays_router.put("/{holiday_id}", response_model=HolidayResponse)
async def update_holiday(
    holiday_id: uuid.UUID,
    body: HolidayUpdate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await HolidayService.update_holiday(db, holiday_id, body, actor_id=admin.id)


@holidays_router.delete("/{holiday_id}", status_code=204)
async def delete_holiday(
    holiday_id: uuid.UUID,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await HolidayService.delete_holiday(db, holiday_id, actor_id=admin.id)
