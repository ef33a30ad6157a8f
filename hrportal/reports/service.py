"""Report data builders — one table per report type.

Performance scoring:
  - attendance % = (days present + days on leave) / weekdays in period
  - on-time %    = check-ins at or before office start / all check-ins
  - score        = 0.7 * attendance % + 0.3 * on-time %, graded A..F
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.attendance.service import AttendanceService
from hrportal.common.constants import (
    DATE_FORMAT,
    MAX_DATE_RANGE_DAYS,
    AttendanceStatus,
    LeaveStatus,
    ReportType,
)
from hrportal.common.exceptions import NotFoundException, ValidationException
from hrportal.common.timeutils import (
    is_late,
    local_today,
    month_start,
    to_local,
    utc_now,
    working_days,
)
from hrportal.core_hr.models import Department, Employee
from hrportal.leave.service import LeaveService
from hrportal.reports.schemas import ReportData, ReportMeta

logger = logging.getLogger(__name__)

# (header, column) pairs per report type
REPORT_COLUMNS: dict[ReportType, list[tuple[str, str]]] = {
    ReportType.attendance: [
        ("Date", "date"),
        ("Employee Name", "employee_name"),
        ("Employee Code", "employee_code"),
        ("Email", "email"),
        ("Check In", "check_in"),
        ("Check Out", "check_out"),
        ("Status", "status"),
        ("Work Hours", "work_hours"),
    ],
    ReportType.employees: [
        ("Employee Code", "employee_code"),
        ("Name", "name"),
        ("Email", "email"),
        ("Department", "department"),
        ("Position", "position"),
        ("Join Date", "join_date"),
        ("Status", "status"),
    ],
    ReportType.leaves: [
        ("Employee Name", "employee_name"),
        ("Employee Code", "employee_code"),
        ("Email", "email"),
        ("Leave Type", "leave_type"),
        ("Start Date", "start_date"),
        ("End Date", "end_date"),
        ("Duration (Days)", "duration"),
        ("Status", "status"),
        ("Reason", "reason"),
        ("Applied Date", "applied_date"),
    ],
    ReportType.performance: [
        ("Employee Name", "employee_name"),
        ("Employee Code", "employee_code"),
        ("Department", "department"),
        ("Position", "position"),
        ("Days Present", "days_present"),
        ("Days Absent", "days_absent"),
        ("Days On Leave", "days_on_leave"),
        ("Attendance %", "attendance_percentage"),
        ("Avg Work Hours", "avg_work_hours"),
        ("On Time %", "on_time_percentage"),
        ("Performance Score", "performance_score"),
    ],
}

_TITLES = {
    ReportType.attendance: "Attendance Report",
    ReportType.employees: "Employee Report",
    ReportType.leaves: "Leave Report",
    ReportType.performance: "Performance Report",
}

_PRESENT = (AttendanceStatus.present, AttendanceStatus.half_day)


# ── Scoring ─────────────────────────────────────────────────────────

def performance_score(attendance_pct: float, on_time_pct: float) -> float:
    return attendance_pct * 0.7 + on_time_pct * 0.3


def performance_grade(score: float) -> str:
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def _pct(value: float) -> str:
    return f"{value:.2f}%"


def _time(value) -> str:
    local = to_local(value)
    return local.strftime("%H:%M:%S") if local else ""


def resolve_period(
    start: Optional[date],
    end: Optional[date],
) -> tuple[date, date]:
    """Default period is the first of the current month through today."""
    today = local_today()
    start = start or month_start(today)
    end = end or today
    if end < start:
        raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
    if (end - start).days > MAX_DATE_RANGE_DAYS:
        raise ValidationException(
            {"date_range": [f"Date range cannot exceed {MAX_DATE_RANGE_DAYS} days."]}
        )
    return start, end


# ═════════════════════════════════════════════════════════════════════
# ReportService
# ═════════════════════════════════════════════════════════════════════


class ReportService:

    @staticmethod
    async def build(
        db: AsyncSession,
        report_type: ReportType,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        department_id: Optional[uuid.UUID] = None,
    ) -> ReportData:
        start, end = resolve_period(start_date, end_date)

        department_name = None
        if department_id is not None:
            department = await db.get(Department, department_id)
            if department is None:
                raise NotFoundException("Department", str(department_id))
            department_name = department.name

        builder = {
            ReportType.attendance: ReportService._attendance_rows,
            ReportType.employees: ReportService._employee_rows,
            ReportType.leaves: ReportService._leave_rows,
            ReportType.performance: ReportService._performance_rows,
        }[report_type]
        rows = await builder(db, start, end, department_id)

        title = _TITLES[report_type]
        if department_name:
            title = f"{department_name} {title}"
        pairs = REPORT_COLUMNS[report_type]
        logger.info(
            "Built %s report: %d row(s), %s..%s, department=%s",
            report_type.value, len(rows), start, end, department_name or "All",
        )
        return ReportData(
            title=title,
            headers=[h for h, _ in pairs],
            columns=[c for _, c in pairs],
            rows=rows,
            meta=ReportMeta(
                report_type=report_type,
                generated_at=utc_now(),
                department_id=department_id,
                department_name=department_name,
                start_date=start,
                end_date=end,
            ),
        )

    # ── Builders ────────────────────────────────────────────────────

    @staticmethod
    async def _employees(
        db: AsyncSession,
        department_id: Optional[uuid.UUID],
        *,
        active_only: bool = True,
    ) -> list[Employee]:
        query = select(Employee).order_by(Employee.employee_code)
        if active_only:
            query = query.where(Employee.is_active.is_(True))
        if department_id is not None:
            query = query.where(Employee.department_id == department_id)
        return list((await db.execute(query)).scalars().all())

    @staticmethod
    async def _attendance_rows(db, start, end, department_id) -> list[dict]:
        records = await AttendanceService.records_between(
            db, start, end, department_id=department_id
        )
        return [
            {
                "date": r.attendance_date.strftime(DATE_FORMAT),
                "employee_name": r.employee.full_name,
                "employee_code": r.employee.employee_code,
                "email": r.employee.email,
                "check_in": _time(r.check_in),
                "check_out": _time(r.check_out),
                "status": r.status.value.upper(),
                "work_hours": float(r.work_hours or 0),
            }
            for r in records
        ]

    @staticmethod
    async def _employee_rows(db, start, end, department_id) -> list[dict]:
        employees = await ReportService._employees(db, department_id, active_only=False)
        return [
            {
                "employee_code": e.employee_code,
                "name": e.full_name,
                "email": e.email,
                "department": e.department.name if e.department else "No Department",
                "position": e.designation or "N/A",
                "join_date": e.hire_date.strftime(DATE_FORMAT),
                "status": "Active" if e.is_active else "Inactive",
            }
            for e in employees
        ]

    @staticmethod
    async def _leave_rows(db, start, end, department_id) -> list[dict]:
        requests = await LeaveService.requests_between(
            db, start, end, department_id=department_id
        )
        return [
            {
                "employee_name": r.employee.full_name,
                "employee_code": r.employee.employee_code,
                "email": r.employee.email,
                "leave_type": r.leave_type.name,
                "start_date": r.start_date.strftime(DATE_FORMAT),
                "end_date": r.end_date.strftime(DATE_FORMAT),
                "duration": float(r.duration),
                "status": r.status.value.upper(),
                "reason": r.reason,
                "applied_date": to_local(r.applied_at).strftime(DATE_FORMAT),
            }
            for r in requests
        ]

    @staticmethod
    async def _performance_rows(db, start, end, department_id) -> list[dict]:
        employees = await ReportService._employees(db, department_id)
        if not employees:
            return []
        ids = {e.id for e in employees}
        period_days = working_days(start, end)

        records_by_emp = defaultdict(list)
        for record in await AttendanceService.records_between(db, start, end, employee_ids=ids):
            records_by_emp[record.employee_id].append(record)

        leave_days: dict[uuid.UUID, Decimal] = defaultdict(Decimal)
        for req in await LeaveService.requests_between(db, start, end, department_id=department_id):
            if req.status != LeaveStatus.approved or req.employee_id not in ids:
                continue
            overlap = (min(req.end_date, end) - max(req.start_date, start)).days + 1
            leave_days[req.employee_id] += min(Decimal(overlap), Decimal(str(req.duration)))

        rows = []
        for emp in employees:
            records = records_by_emp.get(emp.id, [])
            present = sum(1 for r in records if r.status in _PRESENT)
            absent = sum(1 for r in records if r.status == AttendanceStatus.absent)
            on_leave = float(leave_days.get(emp.id, Decimal("0")))
            hours = sum(float(r.work_hours or 0) for r in records if r.status in _PRESENT)
            check_ins = [r.check_in for r in records if r.check_in is not None]
            on_time = sum(1 for c in check_ins if not is_late(c))

            attendance_pct = (
                min((present + on_leave) / period_days * 100, 100.0) if period_days else 0.0
            )
            on_time_pct = on_time / len(check_ins) * 100 if check_ins else 0.0
            score = performance_score(attendance_pct, on_time_pct)

            rows.append({
                "employee_name": emp.full_name,
                "employee_code": emp.employee_code,
                "department": emp.department.name if emp.department else "No Department",
                "position": emp.designation or "N/A",
                "days_present": present,
                "days_absent": absent,
                "days_on_leave": on_leave,
                "attendance_percentage": _pct(attendance_pct),
                "avg_work_hours": f"{hours / present:.2f}" if present else "0.00",
                "on_time_percentage": _pct(on_time_pct),
                "performance_score": performance_grade(score),
            })
        return rows
