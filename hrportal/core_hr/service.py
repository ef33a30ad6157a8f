"""Core HR service layer — departments, employees, and team scoping.

Uses:
  - ``paginate()`` from hrportal.common.pagination
  - ``apply_filters / apply_search`` from hrportal.common.filters
  - ``create_audit_entry`` from hrportal.common.audit
"""

from __future__ import annotations

import uuid
from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.models import User
from hrportal.common.audit import create_audit_entry
from hrportal.common.exceptions import (
    BusinessRuleError,
    ConflictError,
    NotFoundException,
)
from hrportal.common.filters import apply_filters, apply_search
from hrportal.common.pagination import PaginationMeta, PaginationParams, paginate
from hrportal.core_hr.models import Department, Employee
from hrportal.core_hr.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    EmployeeCreate,
    EmployeeDetail,
    EmployeeSummary,
    EmployeeUpdate,
)


def _jsonable(values: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        out[key] = value
    return out


# ── Team scoping ────────────────────────────────────────────────────

def team_condition(manager: Employee):
    """SQL condition selecting the employees a manager oversees.

    A manager's team is their direct reports plus everyone in their
    department (the manager excluded).
    """
    conds = [Employee.reporting_manager_id == manager.id]
    if manager.department_id is not None:
        conds.append(Employee.department_id == manager.department_id)
    return (or_(*conds)) & (Employee.id != manager.id)


async def team_member_ids(db: AsyncSession, manager: Employee) -> list[uuid.UUID]:
    result = await db.execute(
        select(Employee.id).where(team_condition(manager), Employee.is_active.is_(True))
    )
    return [row[0] for row in result.all()]


async def manages(db: AsyncSession, manager: Employee, employee_id: uuid.UUID) -> bool:
    """True if *employee_id* belongs to *manager*'s team."""
    result = await db.execute(
        select(Employee.id).where(Employee.id == employee_id, team_condition(manager))
    )
    return result.first() is not None


# ═════════════════════════════════════════════════════════════════════
# EmployeeService
# ═════════════════════════════════════════════════════════════════════


class EmployeeService:
    """Async CRUD operations for employees."""

    @staticmethod
    async def load(db: AsyncSession, employee_id: uuid.UUID) -> Employee:
        result = await db.execute(
            select(Employee)
            .where(Employee.id == employee_id)
            .options(selectinload(Employee.reporting_manager))
            .execution_options(populate_existing=True)
        )
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_by_user(db: AsyncSession, user_id: uuid.UUID) -> Optional[Employee]:
        result = await db.execute(select(Employee).where(Employee.user_id == user_id))
        return result.scalars().first()

    # ── List (paginated, searchable, filterable) ────────────────────

    @staticmethod
    async def list_employees(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        department_id: Optional[uuid.UUID] = None,
        reporting_manager_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None,
        team_of: Optional[Employee] = None,
    ) -> tuple[list[EmployeeSummary], PaginationMeta]:
        """Return a paginated, filtered, searchable employee list."""

        query = select(Employee).join(User, Employee.user_id == User.id)
        query = apply_filters(
            query,
            Employee,
            {
                "department_id": department_id,
                "reporting_manager_id": reporting_manager_id,
                "is_active": is_active,
            },
        )
        if team_of is not None:
            query = query.where(team_condition(team_of))
        query = apply_search(
            query, search, [User.full_name, User.email, Employee.employee_code]
        )
        query = query.order_by(Employee.employee_code)

        rows, meta = await paginate(db, query, pagination, model=Employee)
        return [EmployeeSummary.model_validate(emp) for emp in rows], meta

    # ── Detail ──────────────────────────────────────────────────────

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> EmployeeDetail:
        """Load full employee detail including the manager and report count."""

        employee = await EmployeeService.load(db, employee_id)

        count_result = await db.execute(
            select(func.count())
            .select_from(Employee)
            .where(
                Employee.reporting_manager_id == employee.id,
                Employee.is_active.is_(True),
            )
        )

        return EmployeeDetail(
            **EmployeeSummary.model_validate(employee).model_dump(),
            user_id=employee.user_id,
            hire_date=employee.hire_date,
            is_active=employee.is_active,
            gender=employee.user.gender,
            contact_number=employee.user.contact_number,
            reporting_manager=(
                EmployeeSummary.model_validate(employee.reporting_manager)
                if employee.reporting_manager
                else None
            ),
            direct_reports_count=count_result.scalar() or 0,
        )

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def _check_refs(
        db: AsyncSession,
        *,
        department_id: Optional[uuid.UUID] = None,
        reporting_manager_id: Optional[uuid.UUID] = None,
    ) -> None:
        if department_id is not None and await db.get(Department, department_id) is None:
            raise NotFoundException("Department", str(department_id))
        if reporting_manager_id is not None and await db.get(Employee, reporting_manager_id) is None:
            raise NotFoundException("Employee", str(reporting_manager_id))

    @staticmethod
    async def create_employee(
        db: AsyncSession,
        data: EmployeeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeDetail:
        """Create the employee record for an existing user."""

        if await db.get(User, data.user_id) is None:
            raise NotFoundException("User", str(data.user_id))
        if await EmployeeService.get_by_user(db, data.user_id) is not None:
            raise ConflictError("user_id", data.user_id)
        existing = await db.execute(
            select(Employee.id).where(Employee.employee_code == data.employee_code)
        )
        if existing.first():
            raise ConflictError("employee_code", data.employee_code)
        await EmployeeService._check_refs(
            db,
            department_id=data.department_id,
            reporting_manager_id=data.reporting_manager_id,
        )

        employee = Employee(**data.model_dump())
        db.add(employee)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )

        return await EmployeeService.get_employee(db, employee.id)

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: EmployeeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> EmployeeDetail:
        """Partial-update an existing employee."""

        employee = await EmployeeService.load(db, employee_id)
        changes = data.model_dump(exclude_unset=True)
        if not changes:
            return await EmployeeService.get_employee(db, employee_id)

        if "employee_code" in changes and changes["employee_code"] != employee.employee_code:
            existing = await db.execute(
                select(Employee.id).where(Employee.employee_code == changes["employee_code"])
            )
            if existing.first():
                raise ConflictError("employee_code", changes["employee_code"])
        if changes.get("reporting_manager_id") == employee.id:
            raise BusinessRuleError("An employee cannot report to themselves.")
        await EmployeeService._check_refs(
            db,
            department_id=changes.get("department_id"),
            reporting_manager_id=changes.get("reporting_manager_id"),
        )

        old_values = {field: getattr(employee, field) for field in changes}
        for field, value in changes.items():
            setattr(employee, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values=_jsonable(old_values),
            new_values=_jsonable(changes),
        )

        return await EmployeeService.get_employee(db, employee_id)

    @staticmethod
    async def deactivate_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Soft-delete: attendance and leave history stay attached."""
        employee = await EmployeeService.load(db, employee_id)
        employee.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="employee",
            entity_id=employee.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )

    # ── Direct reports ──────────────────────────────────────────────

    @staticmethod
    async def get_direct_reports(
        db: AsyncSession,
        manager_id: uuid.UUID,
    ) -> Sequence[EmployeeSummary]:
        result = await db.execute(
            select(Employee)
            .where(
                Employee.reporting_manager_id == manager_id,
                Employee.is_active.is_(True),
            )
            .order_by(Employee.employee_code)
        )
        return [EmployeeSummary.model_validate(e) for e in result.scalars().all()]


# ═════════════════════════════════════════════════════════════════════
# DepartmentService
# ═════════════════════════════════════════════════════════════════════


class DepartmentService:
    """Department CRUD with head assignment and headcount."""

    @staticmethod
    async def _get(db: AsyncSession, department_id: uuid.UUID) -> Department:
        result = await db.execute(
            select(Department)
            .where(Department.id == department_id)
            .options(selectinload(Department.head))
            .execution_options(populate_existing=True)
        )
        department = result.scalars().first()
        if department is None:
            raise NotFoundException("Department", str(department_id))
        return department

    @staticmethod
    async def _to_response(db: AsyncSession, department: Department) -> DepartmentResponse:
        count = await db.execute(
            select(func.count())
            .select_from(Employee)
            .where(Employee.department_id == department.id, Employee.is_active.is_(True))
        )
        return DepartmentResponse(
            id=department.id,
            name=department.name,
            description=department.description,
            head_user_id=department.head_user_id,
            head_name=department.head.full_name if department.head else None,
            employee_count=count.scalar() or 0,
            is_active=department.is_active,
            created_at=department.created_at,
        )

    @staticmethod
    async def list_departments(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
    ) -> list[DepartmentResponse]:
        query = select(Department).options(selectinload(Department.head)).order_by(Department.name)
        if not include_inactive:
            query = query.where(Department.is_active.is_(True))
        result = await db.execute(query)
        return [
            await DepartmentService._to_response(db, d) for d in result.scalars().all()
        ]

    @staticmethod
    async def get_department(db: AsyncSession, department_id: uuid.UUID) -> DepartmentResponse:
        return await DepartmentService._to_response(
            db, await DepartmentService._get(db, department_id)
        )

    @staticmethod
    async def _ensure_unique_name(
        db: AsyncSession, name: str, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        query = select(Department.id).where(func.lower(Department.name) == name.lower())
        if exclude_id is not None:
            query = query.where(Department.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("name", name)

    @staticmethod
    async def create_department(
        db: AsyncSession,
        data: DepartmentCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        await DepartmentService._ensure_unique_name(db, data.name)
        if data.head_user_id is not None and await db.get(User, data.head_user_id) is None:
            raise NotFoundException("User", str(data.head_user_id))

        department = Department(**data.model_dump())
        db.add(department)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return await DepartmentService.get_department(db, department.id)

    @staticmethod
    async def update_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        data: DepartmentUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> DepartmentResponse:
        department = await DepartmentService._get(db, department_id)
        changes = data.model_dump(exclude_unset=True)
        if "name" in changes and changes["name"]:
            await DepartmentService._ensure_unique_name(db, changes["name"], department.id)
        if changes.get("head_user_id") is not None and await db.get(User, changes["head_user_id"]) is None:
            raise NotFoundException("User", str(changes["head_user_id"]))

        old_values = {field: getattr(department, field) for field in changes}
        for field, value in changes.items():
            setattr(department, field, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            old_values=_jsonable(old_values),
            new_values=_jsonable(changes),
        )
        return await DepartmentService.get_department(db, department.id)

    @staticmethod
    async def delete_department(
        db: AsyncSession,
        department_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        department = await DepartmentService._get(db, department_id)
        in_use = await db.execute(
            select(func.count()).select_from(Employee).where(Employee.department_id == department.id)
        )
        if in_use.scalar():
            raise BusinessRuleError(
                "Department still has employees assigned; move them before deleting."
            )
        await create_audit_entry(
            db,
            action="delete",
            entity_type="department",
            entity_id=department.id,
            actor_id=actor_id,
            old_values={"name": department.name},
        )
        await db.delete(department)
        await db.flush()

    @staticmethod
    async def list_members(
        db: AsyncSession,
        department_id: uuid.UUID,
    ) -> list[EmployeeSummary]:
        await DepartmentService._get(db, department_id)
        result = await db.execute(
            select(Employee)
            .where(Employee.department_id == department_id, Employee.is_active.is_(True))
            .order_by(Employee.employee_code)
        )
        return [EmployeeSummary.model_validate(e) for e in result.scalars().all()]
