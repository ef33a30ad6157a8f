"""Schedule router — department shift plans and the caller's own shifts."""

import uuid
from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_current_employee, is_admin, require_permission
from hrportal.auth.models import User
from hrportal.common.exceptions import ForbiddenException
from hrportal.common.timeutils import local_today
from hrportal.core_hr.models import Employee
from hrportal.database import get_db
from hrportal.schedules.schemas import ScheduleCreate, ScheduleResponse, ScheduleUpdate
from hrportal.schedules.service import ScheduleService

router = APIRouter(prefix="", tags=["schedules"])


def _window(start: Optional[date], end: Optional[date]) -> tuple[date, date]:
    """Default to the current week, Monday to Sunday."""
    today = local_today()
    start = start or today - timedelta(days=today.weekday())
    end = end or start + timedelta(days=6)
    return start, end


@router.get("", response_model=list[ScheduleResponse])
async def list_schedules(
    request: Request,
    department_id: Optional[uuid.UUID] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    user: User = Depends(require_permission("schedule:manage")),
    db: AsyncSession = Depends(get_db),
):
    """Admins may pick any department; managers see their own."""
    if not is_admin(request):
        own = user.employee.department_id if user.employee else None
        if own is None:
            raise ForbiddenException(detail="You are not assigned to a department.")
        if department_id is not None and department_id != own:
            raise ForbiddenException(detail="You can only view your own department's schedule.")
        department_id = own

    start, end = _window(start_date, end_date)
    return await ScheduleService.list_schedules(
        db, start=start, end=end, department_id=department_id
    )


@router.get("/me", response_model=list[ScheduleResponse])
async def my_schedule(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    start, end = _window(start_date, end_date)
    return await ScheduleService.list_schedules(
        db, start=start, end=end, employee_id=employee.id
    )


@router.post("", response_model=ScheduleResponse, status_code=201)
async def create_schedule(
    body: ScheduleCreate,
    request: Request,
    user: User = Depends(require_permission("schedule:manage")),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleService.create_schedule(
        db,
        body,
        actor_id=user.id,
        manager=user.employee,
        actor_is_admin=is_admin(request),
    )


@router.put("/{schedule_id}", response_model=ScheduleResponse)
async def update_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleUpdate,
    request: Request,
    user: User = Depends(require_permission("schedule:manage")),
    db: AsyncSession = Depends(get_db),
):
    return await ScheduleService.update_schedule(
        db,
        schedule_id,
        body,
        actor_id=user.id,
        manager=user.employee,
        actor_is_admin=is_admin(request),
    )


@router.delete("/{schedule_id}", status_code=204)
async def delete_schedule(
    schedule_id: uuid.UUID,
    request: Request,
    user: User = Depends(require_permission("schedule:manage")),
    db: AsyncSession = Depends(get_db),
):
    await ScheduleService.delete_schedule(
        db,
        schedule_id,
        actor_id=user.id,
        manager=user.employee,
        actor_is_admin=is_admin(request),
    )
