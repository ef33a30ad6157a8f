"""Attendance service layer — check-in/out, status derivation, records, holidays.

Business logic:
  - Check-in resolves the day's status: approved leave → holiday → weekend → present
  - Check-out computes work hours; a full day is present, a short day half_day
  - Admin CRUD and bulk creation with per-row duplicate reporting
  - Read operations for self, team, and admin views
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import and_, extract, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.attendance.models import AttendanceRecord, Holiday
from hrportal.attendance.schemas import (
    AttendanceCreate,
    AttendanceRecordResponse,
    AttendanceSummary,
    AttendanceUpdate,
    BulkAttendanceResult,
    BulkRowError,
    DayAttendanceResponse,
    HolidayCreate,
    HolidayResponse,
    HolidayUpdate,
)
from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import MAX_DATE_RANGE_DAYS, AttendanceStatus, LeaveStatus
from hrportal.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from hrportal.common.pagination import PaginationMeta, PaginationParams, paginate
from hrportal.common.timeutils import as_utc, is_late, is_weekend, local_today, utc_now
from hrportal.config import settings
from hrportal.core_hr.models import Employee
from hrportal.core_hr.service import team_condition

logger = logging.getLogger(__name__)


# ── Pure helpers ────────────────────────────────────────────────────

def compute_work_status(
    check_in: Optional[datetime],
    check_out: Optional[datetime],
    current: AttendanceStatus,
) -> tuple[Decimal, AttendanceStatus]:
    """Return (work_hours, status) for a pair of check times.

    Hours are rounded to two places. At least ``FULL_DAY_HOURS`` makes the
    day present, at least ``HALF_DAY_HOURS`` a half day; anything shorter
    keeps *current*.
    """
    if check_in is None or check_out is None:
        return Decimal("0"), current

    seconds = (as_utc(check_out) - as_utc(check_in)).total_seconds()
    hours = round(max(seconds, 0) / 3600, 2)

    if hours >= settings.FULL_DAY_HOURS:
        status = AttendanceStatus.present
    elif hours >= settings.HALF_DAY_HOURS:
        status = AttendanceStatus.half_day
    else:
        status = current
    return Decimal(str(hours)), status


def to_response(record: AttendanceRecord) -> AttendanceRecordResponse:
    employee = record.employee
    return AttendanceRecordResponse(
        id=record.id,
        employee_id=record.employee_id,
        employee_code=employee.employee_code,
        employee_name=employee.full_name,
        department=employee.department.name if employee.department else None,
        attendance_date=record.attendance_date,
        check_in=as_utc(record.check_in),
        check_out=as_utc(record.check_out),
        status=record.status,
        work_hours=float(record.work_hours or 0),
        is_leave=record.is_leave,
        leave_request_id=record.leave_request_id,
        remarks=record.remarks,
    )


def _validate_range(start: Optional[date], end: Optional[date]) -> None:
    if start and end:
        if end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
        if (end - start).days > MAX_DATE_RANGE_DAYS:
            raise ValidationException(
                {"date_range": [f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days."]}
            )


# ═════════════════════════════════════════════════════════════════════
# HolidayService
# ═════════════════════════════════════════════════════════════════════


class HolidayService:
    """Holiday calendar with per-department applicability."""

    @staticmethod
    def _to_response(holiday: Holiday) -> HolidayResponse:
        return HolidayResponse.model_validate(holiday)

    @staticmethod
    async def holiday_for(
        db: AsyncSession,
        day: date,
        department_id: Optional[uuid.UUID],
    ) -> Optional[Holiday]:
        """The holiday on *day* that applies to *department_id*, if any."""
        result = await db.execute(select(Holiday).where(Holiday.holiday_date == day))
        for holiday in result.scalars().all():
            if holiday.applies_to(department_id):
                return holiday
        return None

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> list[HolidayResponse]:
        query = select(Holiday).order_by(Holiday.holiday_date)
        if year is not None:
            query = query.where(extract("year", Holiday.holiday_date) == year)
        result = await db.execute(query)
        holidays = result.scalars().all()
        if department_id is not None:
            holidays = [h for h in holidays if h.applies_to(department_id)]
        return [HolidayService._to_response(h) for h in holidays]

    @staticmethod
    async def upcoming(
        db: AsyncSession,
        *,
        limit: int = 5,
        department_id: Optional[uuid.UUID] = None,
    ) -> list[HolidayResponse]:
        result = await db.execute(
            select(Holiday)
            .where(Holiday.holiday_date >= local_today())
            .order_by(Holiday.holiday_date)
        )
        holidays = [
            h for h in result.scalars().all()
            if department_id is None or h.applies_to(department_id)
        ]
        return [HolidayService._to_response(h) for h in holidays[:limit]]

    @staticmethod
    async def _get(db: AsyncSession, holiday_id: uuid.UUID) -> Holiday:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", str(holiday_id))
        return holiday

    @staticmethod
    async def _ensure_unique(
        db: AsyncSession, name: str, day: date, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        query = select(Holiday.id).where(Holiday.name == name, Holiday.holiday_date == day)
        if exclude_id is not None:
            query = query.where(Holiday.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("holiday", f"{name} on {day.isoformat()}")

    @staticmethod
    async def create_holiday(
        db: AsyncSession,
        data: HolidayCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayResponse:
        await HolidayService._ensure_unique(db, data.name, data.holiday_date)
        values = data.model_dump(mode="json")
        holiday = Holiday(
            name=data.name,
            holiday_date=data.holiday_date,
            description=data.description,
            is_optional=data.is_optional,
            applicable_departments=values["applicable_departments"] or None,
        )
        db.add(holiday)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values=values,
        )
        return HolidayService._to_response(holiday)

    @staticmethod
    async def update_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        data: HolidayUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> HolidayResponse:
        holiday = await HolidayService._get(db, holiday_id)
        changes = data.model_dump(exclude_unset=True, mode="json")
        if "name" in changes or "holiday_date" in changes:
            await HolidayService._ensure_unique(
                db,
                data.name or holiday.name,
                data.holiday_date or holiday.holiday_date,
                exclude_id=holiday.id,
            )

        if "name" in changes:
            holiday.name = data.name
        if "holiday_date" in changes:
            holiday.holiday_date = data.holiday_date
        if "description" in changes:
            holiday.description = data.description
        if "is_optional" in changes and data.is_optional is not None:
            holiday.is_optional = data.is_optional
        if "applicable_departments" in changes:
            holiday.applicable_departments = changes["applicable_departments"] or None
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            new_values=changes,
        )
        return HolidayService._to_response(holiday)

    @staticmethod
    async def delete_holiday(
        db: AsyncSession,
        holiday_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        holiday = await HolidayService._get(db, holiday_id)
        await create_audit_entry(
            db,
            action="delete",
            entity_type="holiday",
            entity_id=holiday.id,
            actor_id=actor_id,
            old_values={"name": holiday.name, "holiday_date": holiday.holiday_date.isoformat()},
        )
        await db.delete(holiday)
        await db.flush()


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async attendance operations: check in/out, read, admin CRUD."""

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _find(
        db: AsyncSession,
        employee_id: uuid.UUID,
        day: date,
    ) -> Optional[AttendanceRecord]:
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.attendance_date == day,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def _get(db: AsyncSession, record_id: uuid.UUID) -> AttendanceRecord:
        result = await db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.id == record_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalars().first()
        if record is None:
            raise NotFoundException("AttendanceRecord", str(record_id))
        return record

    @staticmethod
    async def resolve_day_status(
        db: AsyncSession,
        employee: Employee,
        day: date,
    ) -> tuple[AttendanceStatus, Optional[uuid.UUID]]:
        """Initial status for *day*: approved leave, holiday, weekend, else present.

        Returns (status, covering_leave_request_id).
        """
        from hrportal.leave.models import LeaveRequest

        leave = await db.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.employee_id == employee.id,
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= day,
                LeaveRequest.end_date >= day,
            )
        )
        leave_id = leave.scalar()
        if leave_id is not None:
            return AttendanceStatus.leave, leave_id
        if await HolidayService.holiday_for(db, day, employee.department_id):
            return AttendanceStatus.holiday, None
        if is_weekend(day):
            return AttendanceStatus.weekend, None
        return AttendanceStatus.present, None

    # ── Check in ────────────────────────────────────────────────────

    @staticmethod
    async def check_in(
        db: AsyncSession,
        employee: Employee,
        *,
        remarks: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AttendanceRecordResponse:
        """Record today's check-in. A second check-in on the same day is refused."""

        now = utc_now()
        today = local_today()

        record = await AttendanceService._find(db, employee.id, today)
        if record is not None and record.check_in is not None:
            raise ConflictError("check_in", today.isoformat(), detail="Already checked in today.")

        status, leave_id = await AttendanceService.resolve_day_status(db, employee, today)
        if record is None:
            record = AttendanceRecord(
                employee_id=employee.id,
                attendance_date=today,
                check_in=now,
                status=status,
                is_leave=status == AttendanceStatus.leave,
                leave_request_id=leave_id,
                remarks=remarks,
            )
            db.add(record)
        else:
            record.check_in = now
            record.status = status
            record.is_leave = status == AttendanceStatus.leave
            record.leave_request_id = leave_id
            if remarks:
                record.remarks = remarks
        await db.flush()

        await create_audit_entry(
            db,
            action="check_in",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee.user_id,
            new_values={"timestamp": now.isoformat(), "status": status.value},
            ip_address=ip_address,
        )
        logger.info("Employee %s checked in (%s)", employee.employee_code, status.value)
        return to_response(await AttendanceService._get(db, record.id))

    # ── Check out ───────────────────────────────────────────────────

    @staticmethod
    async def check_out(
        db: AsyncSession,
        employee: Employee,
        *,
        remarks: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AttendanceRecordResponse:
        """Record today's check-out and derive hours and status."""

        now = utc_now()
        today = local_today()

        record = await AttendanceService._find(db, employee.id, today)
        if record is None or record.check_in is None:
            raise ValidationException({"check_out": ["You have not checked in today."]})
        if record.check_out is not None:
            raise ConflictError("check_out", today.isoformat(), detail="Already checked out today.")

        record.check_out = now
        if remarks:
            record.remarks = remarks
        record.work_hours, record.status = compute_work_status(
            record.check_in, now, record.status
        )
        await db.flush()

        await create_audit_entry(
            db,
            action="check_out",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=employee.user_id,
            new_values={
                "timestamp": now.isoformat(),
                "work_hours": float(record.work_hours),
                "status": record.status.value,
            },
            ip_address=ip_address,
        )
        logger.info(
            "Employee %s checked out after %s h", employee.employee_code, record.work_hours
        )
        return to_response(await AttendanceService._get(db, record.id))

    # ── Read: self ──────────────────────────────────────────────────

    @staticmethod
    async def get_today(
        db: AsyncSession,
        employee: Employee,
    ) -> Optional[AttendanceRecordResponse]:
        record = await AttendanceService._find(db, employee.id, local_today())
        return to_response(record) if record else None

    @staticmethod
    async def get_summary(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> AttendanceSummary:
        """Year-to-date status counts and late arrivals for one employee."""

        year = year or local_today().year
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.attendance_date >= date(year, 1, 1),
                AttendanceRecord.attendance_date <= date(year, 12, 31),
            )
        )
        summary = AttendanceSummary(employee_id=employee_id, year=year)
        total_hours = Decimal("0")
        for record in result.scalars().all():
            if record.status == AttendanceStatus.present:
                summary.present += 1
            elif record.status == AttendanceStatus.half_day:
                summary.half_day += 1
            elif record.status == AttendanceStatus.absent:
                summary.absent += 1
            elif record.status == AttendanceStatus.leave:
                summary.leaves += 1
            elif record.status == AttendanceStatus.holiday:
                summary.holidays += 1
            if record.check_in is not None and is_late(record.check_in):
                summary.late += 1
            total_hours += record.work_hours or Decimal("0")
        summary.total_work_hours = float(total_hours)
        return summary

    # ── Read: lists ─────────────────────────────────────────────────

    @staticmethod
    async def list_records(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AttendanceStatus] = None,
        team_of: Optional[Employee] = None,
    ) -> tuple[list[AttendanceRecordResponse], PaginationMeta]:
        """Filtered, paginated attendance records, newest first."""

        _validate_range(start_date, end_date)
        conditions = []
        if employee_id is not None:
            conditions.append(AttendanceRecord.employee_id == employee_id)
        if start_date is not None:
            conditions.append(AttendanceRecord.attendance_date >= start_date)
        if end_date is not None:
            conditions.append(AttendanceRecord.attendance_date <= end_date)
        if status is not None:
            conditions.append(AttendanceRecord.status == status)

        query = select(AttendanceRecord)
        if department_id is not None or team_of is not None:
            query = query.join(Employee, AttendanceRecord.employee_id == Employee.id)
            if department_id is not None:
                conditions.append(Employee.department_id == department_id)
            if team_of is not None:
                conditions.append(team_condition(team_of))
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(
            AttendanceRecord.attendance_date.desc(), AttendanceRecord.check_in.desc()
        )

        rows, meta = await paginate(db, query, pagination, model=AttendanceRecord)
        return [to_response(r) for r in rows], meta

    @staticmethod
    async def records_between(
        db: AsyncSession,
        start_date: date,
        end_date: date,
        *,
        department_id: Optional[uuid.UUID] = None,
        employee_ids: Optional[Sequence[uuid.UUID]] = None,
    ) -> list[AttendanceRecord]:
        """Unpaginated records for reports, oldest first."""
        query = (
            select(AttendanceRecord)
            .join(Employee, AttendanceRecord.employee_id == Employee.id)
            .where(
                AttendanceRecord.attendance_date >= start_date,
                AttendanceRecord.attendance_date <= end_date,
            )
            .order_by(AttendanceRecord.attendance_date, Employee.employee_code)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if employee_ids is not None:
            query = query.where(AttendanceRecord.employee_id.in_(list(employee_ids)))
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def get_by_date(
        db: AsyncSession,
        day: date,
        *,
        department_id: Optional[uuid.UUID] = None,
        team_of: Optional[Employee] = None,
    ) -> DayAttendanceResponse:
        """All records for one day with present/absent/on-leave counts."""

        query = (
            select(AttendanceRecord)
            .join(Employee, AttendanceRecord.employee_id == Employee.id)
            .where(AttendanceRecord.attendance_date == day)
            .order_by(Employee.employee_code)
        )
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        if team_of is not None:
            query = query.where(team_condition(team_of))
        records = (await db.execute(query)).scalars().all()

        present_like = {AttendanceStatus.present, AttendanceStatus.half_day}
        return DayAttendanceResponse(
            date=day,
            total=len(records),
            present=sum(1 for r in records if r.status in present_like),
            absent=sum(1 for r in records if r.status == AttendanceStatus.absent),
            on_leave=sum(1 for r in records if r.status == AttendanceStatus.leave),
            records=[to_response(r) for r in records],
        )

    # ── Admin: CRUD ─────────────────────────────────────────────────

    @staticmethod
    def _initial_status(data: AttendanceCreate) -> tuple[Decimal, AttendanceStatus]:
        default = AttendanceStatus.present if data.check_in else AttendanceStatus.absent
        current = data.status or default
        if data.status is not None:
            return compute_work_status(data.check_in, data.check_out, current)[0], current
        return compute_work_status(data.check_in, data.check_out, current)

    @staticmethod
    async def create_record(
        db: AsyncSession,
        data: AttendanceCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceRecordResponse:
        if await db.get(Employee, data.employee_id) is None:
            raise NotFoundException("Employee", str(data.employee_id))
        if await AttendanceService._find(db, data.employee_id, data.attendance_date):
            raise ConflictError(
                "attendance_date",
                data.attendance_date.isoformat(),
                detail="Attendance already recorded for this employee and date.",
            )

        work_hours, status = AttendanceService._initial_status(data)
        record = AttendanceRecord(
            employee_id=data.employee_id,
            attendance_date=data.attendance_date,
            check_in=data.check_in,
            check_out=data.check_out,
            status=status,
            work_hours=work_hours,
            is_leave=status == AttendanceStatus.leave,
            remarks=data.remarks,
        )
        db.add(record)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        return to_response(await AttendanceService._get(db, record.id))

    @staticmethod
    async def bulk_create(
        db: AsyncSession,
        rows: list[AttendanceCreate],
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> BulkAttendanceResult:
        """Create many records; duplicates and unknown employees are reported per row."""

        created: list[AttendanceRecordResponse] = []
        errors: list[BulkRowError] = []
        seen: set[tuple[uuid.UUID, date]] = set()

        for index, row in enumerate(rows):
            key = (row.employee_id, row.attendance_date)
            if key in seen:
                errors.append(BulkRowError(
                    index=index,
                    employee_id=row.employee_id,
                    attendance_date=row.attendance_date,
                    detail="Duplicate row in request.",
                ))
                continue
            seen.add(key)
            try:
                created.append(
                    await AttendanceService.create_record(db, row, actor_id=actor_id)
                )
            except (ConflictError, NotFoundException) as exc:
                errors.append(BulkRowError(
                    index=index,
                    employee_id=row.employee_id,
                    attendance_date=row.attendance_date,
                    detail=exc.detail,
                ))

        logger.info("Bulk attendance: %d created, %d rejected", len(created), len(errors))
        return BulkAttendanceResult(created=created, errors=errors)

    @staticmethod
    async def update_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        data: AttendanceUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> AttendanceRecordResponse:
        record = await AttendanceService._get(db, record_id)
        changes = data.model_dump(exclude_unset=True)
        old_values = {
            "check_in": record.check_in.isoformat() if record.check_in else None,
            "check_out": record.check_out.isoformat() if record.check_out else None,
            "status": record.status.value,
            "remarks": record.remarks,
        }

        for field in ("check_in", "check_out", "remarks"):
            if field in changes:
                setattr(record, field, changes[field])
        if changes.get("status") is not None:
            record.status = changes["status"]
            record.is_leave = record.status == AttendanceStatus.leave

        if record.check_in and record.check_out:
            if as_utc(record.check_out) <= as_utc(record.check_in):
                raise ValidationException({"check_out": ["check_out must be after check_in"]})
            hours, derived = compute_work_status(record.check_in, record.check_out, record.status)
            record.work_hours = hours
            if changes.get("status") is None:
                record.status = derived
        else:
            record.work_hours = Decimal("0")
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor_id,
            old_values=old_values,
            new_values=data.model_dump(exclude_unset=True, mode="json"),
        )
        return to_response(await AttendanceService._get(db, record.id))

    @staticmethod
    async def delete_record(
        db: AsyncSession,
        record_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        record = await AttendanceService._get(db, record_id)
        await create_audit_entry(
            db,
            action="delete",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor_id,
            old_values={
                "employee_id": str(record.employee_id),
                "attendance_date": record.attendance_date.isoformat(),
                "status": record.status.value,
            },
        )
        await db.delete(record)
        await db.flush()
