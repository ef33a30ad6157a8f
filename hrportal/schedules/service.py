"""Schedule service — shift planning for managers, read access for employees."""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import SHIFT_HOURS, ShiftType
from hrportal.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrportal.core_hr.models import Employee
from hrportal.core_hr.service import manages
from hrportal.schedules.models import ScheduleItem
from hrportal.schedules.schemas import ScheduleCreate, ScheduleResponse, ScheduleUpdate

logger = logging.getLogger(__name__)


def shift_label(shift: ShiftType) -> str:
    """``"08:00-16:00"`` style window for a shift."""
    start, end = SHIFT_HOURS[shift]
    return f"{start:02d}:00-{end % 24:02d}:00"


def to_response(item: ScheduleItem) -> ScheduleResponse:
    employee = item.employee
    return ScheduleResponse(
        id=item.id,
        employee_id=item.employee_id,
        employee_code=employee.employee_code,
        employee_name=employee.full_name,
        department_id=employee.department_id,
        department=employee.department.name if employee.department else None,
        schedule_date=item.schedule_date,
        shift=item.shift,
        shift_hours=shift_label(item.shift),
        status=item.status,
        notes=item.notes,
    )


class ScheduleService:

    @staticmethod
    async def _get(db: AsyncSession, schedule_id: uuid.UUID) -> ScheduleItem:
        result = await db.execute(
            select(ScheduleItem)
            .where(ScheduleItem.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        item = result.scalars().first()
        if item is None:
            raise NotFoundException("ScheduleItem", str(schedule_id))
        return item

    @staticmethod
    async def _ensure_manages(
        db: AsyncSession,
        employee_id: uuid.UUID,
        manager: Optional[Employee],
        actor_is_admin: bool,
    ) -> None:
        if actor_is_admin:
            return
        if manager is None or not await manages(db, manager, employee_id):
            raise ForbiddenException(detail="You can only schedule members of your team.")

    @staticmethod
    async def _ensure_free(
        db: AsyncSession,
        employee_id: uuid.UUID,
        day: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(ScheduleItem.id).where(
            ScheduleItem.employee_id == employee_id,
            ScheduleItem.schedule_date == day,
        )
        if exclude_id is not None:
            query = query.where(ScheduleItem.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("schedule_date", day.isoformat())

    @staticmethod
    async def create_schedule(
        db: AsyncSession,
        data: ScheduleCreate,
        *,
        actor_id: uuid.UUID,
        manager: Optional[Employee] = None,
        actor_is_admin: bool = False,
    ) -> ScheduleResponse:
        employee = await db.get(Employee, data.employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundException("Employee", str(data.employee_id))
        await ScheduleService._ensure_manages(db, employee.id, manager, actor_is_admin)
        await ScheduleService._ensure_free(db, employee.id, data.schedule_date)

        item = ScheduleItem(
            employee_id=employee.id,
            schedule_date=data.schedule_date,
            shift=data.shift,
            notes=data.notes,
            created_by=actor_id,
        )
        db.add(item)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="schedule_item",
            entity_id=item.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info(
            "Scheduled %s shift for %s on %s",
            data.shift.value, employee.employee_code, data.schedule_date,
        )
        return to_response(await ScheduleService._get(db, item.id))

    @staticmethod
    async def update_schedule(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        data: ScheduleUpdate,
        *,
        actor_id: uuid.UUID,
        manager: Optional[Employee] = None,
        actor_is_admin: bool = False,
    ) -> ScheduleResponse:
        item = await ScheduleService._get(db, schedule_id)
        await ScheduleService._ensure_manages(db, item.employee_id, manager, actor_is_admin)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationException({"body": ["No changes supplied."]})
        if "schedule_date" in changes:
            await ScheduleService._ensure_free(
                db, item.employee_id, changes["schedule_date"], exclude_id=item.id
            )

        old_values = {
            "schedule_date": item.schedule_date.isoformat(),
            "shift": item.shift.value,
            "status": item.status.value,
        }
        for key, value in changes.items():
            setattr(item, key, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="schedule_item",
            entity_id=item.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(exclude_unset=True, mode="json"),
        )
        return to_response(await ScheduleService._get(db, item.id))

    @staticmethod
    async def delete_schedule(
        db: AsyncSession,
        schedule_id: uuid.UUID,
        *,
        actor_id: uuid.UUID,
        manager: Optional[Employee] = None,
        actor_is_admin: bool = False,
    ) -> None:
        item = await ScheduleService._get(db, schedule_id)
        await ScheduleService._ensure_manages(db, item.employee_id, manager, actor_is_admin)
        await create_audit_entry(
            db,
            action="delete",
            entity_type="schedule_item",
            entity_id=item.id,
            actor_id=actor_id,
            old_values={
                "employee_id": str(item.employee_id),
                "schedule_date": item.schedule_date.isoformat(),
            },
        )
        await db.delete(item)
        await db.flush()

    @staticmethod
    async def list_schedules(
        db: AsyncSession,
        *,
        start: date,
        end: date,
        department_id: Optional[uuid.UUID] = None,
        employee_id: Optional[uuid.UUID] = None,
    ) -> list[ScheduleResponse]:
        if end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
        query = (
            select(ScheduleItem)
            .join(Employee, ScheduleItem.employee_id == Employee.id)
            .where(ScheduleItem.schedule_date >= start, ScheduleItem.schedule_date <= end)
            .order_by(ScheduleItem.schedule_date, Employee.employee_code)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if employee_id is not None:
            query = query.where(ScheduleItem.employee_id == employee_id)
        rows = (await db.execute(query)).scalars().all()
        return [to_response(item) for item in rows]
