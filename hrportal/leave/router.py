"""Leave router — leave types, balances, requests and approvals.

Routes:
    /leave/types                      — List (gender-filtered), create
    /leave/types/{id}                 — Update, deactivate
    /leave/balances/me                — Caller's balances for a year
    /leave/balances/{employee_id}     — Team/admin view of balances
    /leave/balances                   — Admin allocation override (PUT)
    /leave/requests                   — Apply, list (team/admin)
    /leave/requests/me                — Caller's requests
    /leave/requests/pending           — Requests awaiting the caller's review
    /leave/requests/{id}              — Get, update (pending only)
    /leave/requests/{id}/cancel|approve|deny
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import (
    get_current_employee,
    get_current_user,
    is_admin,
    require_permission,
    require_role,
)
from hrportal.auth.models import User
from hrportal.common.constants import LeaveStatus, UserRole
from hrportal.common.exceptions import ForbiddenException
from hrportal.common.pagination import PaginatedResponse, PaginationParams
from hrportal.common.timeutils import local_today
from hrportal.core_hr.models import Employee
from hrportal.core_hr.service import EmployeeService, manages
from hrportal.database import get_db
from hrportal.leave.schemas import (
    LeaveApprove,
    LeaveBalanceResponse,
    LeaveBalanceUpsert,
    LeaveDeny,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from hrportal.leave.service import LeaveService, LeaveTypeService, to_request_response

router = APIRouter(prefix="", tags=["leave"])


async def _ensure_can_view(
    db: AsyncSession, request: Request, user: User, employee_id: uuid.UUID
) -> None:
    if is_admin(request):
        return
    if user.employee is not None and user.employee.id == employee_id:
        return
    if user.employee is None or not await manages(db, user.employee, employee_id):
        raise ForbiddenException(detail="You can only view your own team's leave.")


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


@router.get("/types", response_model=list[LeaveTypeResponse])
async def list_leave_types(
    request: Request,
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins see every type; everyone else only the types open to their gender."""
    admin = is_admin(request)
    return await LeaveTypeService.list_types(
        db,
        include_inactive=include_inactive and admin,
        gender=user.gender,
        filter_gender=not admin,
    )


@router.post("/types", response_model=LeaveTypeResponse, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    admin: User = Depends(require_permission("leave:configure")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveTypeService.create_type(db, body, actor_id=admin.id)


@router.put("/types/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    body: LeaveTypeUpdate,
    admin: User = Depends(require_permission("leave:configure")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveTypeService.update_type(db, leave_type_id, body, actor_id=admin.id)


@router.delete("/types/{leave_type_id}", status_code=204)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    admin: User = Depends(require_permission("leave:configure")),
    db: AsyncSession = Depends(get_db),
):
    await LeaveTypeService.deactivate_type(db, leave_type_id, actor_id=admin.id)


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


@router.get("/balances/me", response_model=list[LeaveBalanceResponse])
async def my_balances(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balances(db, employee, year or local_today().year)


@router.put("/balances", response_model=LeaveBalanceResponse)
async def upsert_balance(
    body: LeaveBalanceUpsert,
    admin: User = Depends(require_permission("leave:configure")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.upsert_balance(db, body, actor_id=admin.id)


@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceResponse])
async def employee_balances(
    employee_id: uuid.UUID,
    request: Request,
    year: Optional[int] = Query(None, ge=2000, le=2100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _ensure_can_view(db, request, user, employee_id)
    employee = await EmployeeService.load(db, employee_id)
    return await LeaveService.get_balances(db, employee, year or local_today().year)


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


@router.post("/requests", response_model=LeaveRequestResponse, status_code=201)
async def apply_leave(
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.apply_leave(db, employee, body)


@router.get("/requests", response_model=PaginatedResponse[LeaveRequestResponse])
async def list_leave_requests(
    request: Request,
    status: Optional[LeaveStatus] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    employee_id: Optional[uuid.UUID] = Query(None),
    department_id: Optional[uuid.UUID] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Admins see all requests; managers see their team's."""
    team_of = None
    if not is_admin(request):
        if user.employee is None:
            raise ForbiddenException(detail="No employee record is linked to this account.")
        team_of = user.employee

    data, meta = await LeaveService.list_requests(
        db,
        pagination,
        employee_id=employee_id,
        status=status,
        year=year,
        leave_type_id=leave_type_id,
        department_id=department_id,
        team_of=team_of,
    )
    return PaginatedResponse(data=data, meta=meta)


@router.get("/requests/me", response_model=PaginatedResponse[LeaveRequestResponse])
async def my_leave_requests(
    status: Optional[LeaveStatus] = Query(None),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    pagination: PaginationParams = Depends(),
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    data, meta = await LeaveService.list_requests(
        db, pagination, employee_id=employee.id, status=status, year=year
    )
    return PaginatedResponse(data=data, meta=meta)


@router.get("/requests/pending", response_model=list[LeaveRequestResponse])
async def pending_approvals(
    request: Request,
    user: User = Depends(require_permission("leave:approve")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.pending_approvals(
        db, user.employee, reviewer_is_admin=is_admin(request)
    )


@router.get("/requests/{request_id}", response_model=LeaveRequestResponse)
async def get_leave_request(
    request_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    req = await LeaveService.get_request(db, request_id)
    await _ensure_can_view(db, request, user, req.employee_id)
    return to_request_response(req)


@router.put("/requests/{request_id}", response_model=LeaveRequestResponse)
async def update_leave_request(
    request_id: uuid.UUID,
    body: LeaveRequestUpdate,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.update_leave(db, employee, request_id, body)


@router.post("/requests/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave_request(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.cancel_leave(db, employee, request_id)


@router.post("/requests/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_leave_request(
    request_id: uuid.UUID,
    request: Request,
    body: Optional[LeaveApprove] = None,
    user: User = Depends(require_permission("leave:approve")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.approve_leave(
        db,
        request_id,
        reviewer_user_id=user.id,
        reviewer_employee=user.employee,
        reviewer_is_admin=is_admin(request),
        remarks=body.remarks if body else None,
    )


@router.post("/requests/{request_id}/deny", response_model=LeaveRequestResponse)
async def deny_leave_request(
    request_id: uuid.UUID,
    body: LeaveDeny,
    request: Request,
    user: User = Depends(require_permission("leave:approve")),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.deny_leave(
        db,
        request_id,
        body.rejection_reason,
        reviewer_user_id=user.id,
        reviewer_employee=user.employee,
        reviewer_is_admin=is_admin(request),
    )
