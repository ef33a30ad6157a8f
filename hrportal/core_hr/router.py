"""Core HR router — employee and department endpoints.

Routes:
    /employees                    — List (admin: all, manager: team), create
    /employees/me                 — Caller's own employee record
    /employees/{id}               — Get, update, deactivate
    /employees/{id}/manager       — Assign reporting manager
    /employees/{id}/direct-reports
    /departments                  — List, create
    /departments/{id}             — Get, update, delete
    /departments/{id}/employees   — Department members
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import (
    get_current_employee,
    get_current_user,
    is_admin,
    require_role,
)
from hrportal.auth.models import User
from hrportal.common.constants import UserRole
from hrportal.common.exceptions import ForbiddenException
from hrportal.common.pagination import PaginatedResponse, PaginationParams
from hrportal.core_hr.models import Employee
from hrportal.core_hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeSummary,
    EmployeeUpdate,
    ManagerAssignment,
)
from hrportal.core_hr.service import DepartmentService, EmployeeService, manages
from hrportal.database import get_db

employees_router = APIRouter(prefix="", tags=["employees"])
departments_router = APIRouter(prefix="", tags=["departments"])


# ═════════════════════════════════════════════════════════════════════
# Employee Endpoints
# ═════════════════════════════════════════════════════════════════════


@employees_router.get("", response_model=PaginatedResponse[EmployeeSummary])
async def list_employees(
    request: Request,
    search: Optional[str] = Query(None, description="Search by name, email, or employee code"),
    department_id: Optional[uuid.UUID] = Query(None),
    reporting_manager_id: Optional[uuid.UUID] = Query(None),
    is_active: Optional[bool] = Query(True),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Admins see everyone; managers see their own team."""
    team_of = None
    if not is_admin(request):
        if user.employee is None:
            raise ForbiddenException(detail="No employee record is linked to this account.")
        team_of = user.employee

    data, meta = await EmployeeService.list_employees(
        db,
        pagination,
        search=search,
        department_id=department_id,
        reporting_manager_id=reporting_manager_id,
        is_active=is_active,
        team_of=team_of,
    )
    return PaginatedResponse(data=data, meta=meta)


@employees_router.post("", response_model=EmployeeDetail, status_code=201)
async def create_employee(
    body: EmployeeCreate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.create_employee(db, body, actor_id=admin.id)


@employees_router.get("/me", response_model=EmployeeDetail)
async def get_my_employee(
    employee: Employee = Depends(get_current_employee),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.get_employee(db, employee.id)


@employees_router.get("/{employee_id}", response_model=EmployeeDetail)
async def get_employee(
    employee_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Visible to admins, the employee themself, and their manager."""
    own = user.employee is not None and user.employee.id == employee_id
    if not (own or is_admin(request)):
        if user.employee is None or not await manages(db, user.employee, employee_id):
            raise ForbiddenException(detail="You can only view your own team.")
    return await EmployeeService.get_employee(db, employee_id)


@employees_router.put("/{employee_id}", response_model=EmployeeDetail)
async def update_employee(
    employee_id: uuid.UUID,
    body: EmployeeUpdate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.update_employee(db, employee_id, body, actor_id=admin.id)


@employees_router.delete("/{employee_id}", status_code=204)
async def deactivate_employee(
    employee_id: uuid.UUID,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await EmployeeService.deactivate_employee(db, employee_id, actor_id=admin.id)


@employees_router.put("/{employee_id}/manager", response_model=EmployeeDetail)
async def assign_manager(
    employee_id: uuid.UUID,
    body: ManagerAssignment,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.update_employee(
        db,
        employee_id,
        EmployeeUpdate(reporting_manager_id=body.reporting_manager_id),
        actor_id=admin.id,
    )


@employees_router.get("/{employee_id}/direct-reports", response_model=list[EmployeeSummary])
async def get_direct_reports(
    employee_id: uuid.UUID,
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await EmployeeService.get_direct_reports(db, employee_id)


# ═════════════════════════════════════════════════════════════════════
# Department Endpoints
# ═════════════════════════════════════════════════════════════════════


@departments_router.get("", response_model=list[DepartmentResponse])
async def list_departments(
    include_inactive: bool = Query(False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.list_departments(db, include_inactive=include_inactive)


@departments_router.post("", response_model=DepartmentResponse, status_code=201)
async def create_department(
    body: DepartmentCreate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.create_department(db, body, actor_id=admin.id)


@departments_router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(
    department_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.get_department(db, department_id)


@departments_router.put("/{department_id}", response_model=DepartmentResponse)
async def update_department(
    department_id: uuid.UUID,
    body: DepartmentUpdate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.update_department(db, department_id, body, actor_id=admin.id)


@departments_router.delete("/{department_id}", status_code=204)
async def delete_department(
    department_id: uuid.UUID,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await DepartmentService.delete_department(db, department_id, actor_id=admin.id)


@departments_router.get("/{department_id}/employees", response_model=list[EmployeeSummary])
async def list_department_members(
    department_id: uuid.UUID,
    user: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    return await DepartmentService.list_members(db, department_id)
