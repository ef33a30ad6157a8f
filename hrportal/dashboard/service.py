"""Dashboard service — read-only aggregation queries across HR modules.

All methods are static async, following the project convention.
Counts are done with COUNT/GROUP BY at DB level.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import and_, case, extract, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.attendance.models import AttendanceRecord
from hrportal.attendance.service import HolidayService
from hrportal.auth.models import RoleAssignment, User
from hrportal.common.audit import AuditTrail
from hrportal.common.constants import (
    SUMMARY_LEAVE_CODES,
    AttendanceStatus,
    LeaveStatus,
    UserRole,
)
from hrportal.common.timeutils import as_utc, is_late, iter_days, local_today
from hrportal.core_hr.models import Department, Employee
from hrportal.core_hr.service import team_condition
from hrportal.dashboard.schemas import (
    AdminStatsResponse,
    AttendanceDayPoint,
    AttendanceTrendResponse,
    DepartmentHeadcountItem,
    EmployeeSummaryResponse,
    LeaveRemaining,
    ManagerStatsResponse,
    RecentActivitiesResponse,
    RecentActivityItem,
    TeamMemberStatus,
    TodayAttendance,
    YearAttendanceStats,
)
from hrportal.leave.models import LeaveRequest, LeaveType
from hrportal.leave.service import LeaveService

_PRESENT_STATUSES = (AttendanceStatus.present, AttendanceStatus.half_day)


async def _multi_scalar(db: AsyncSession, *stmts) -> list:
    """Execute multiple scalar queries and return their results in order."""
    results = []
    for stmt in stmts:
        result = await db.execute(stmt)
        results.append(result.scalar() or 0)
    return results


def _today_counts(total: int, present: int, on_leave: int) -> TodayAttendance:
    return TodayAttendance(
        total=total,
        present=present,
        on_leave=on_leave,
        absent=max(total - present - on_leave, 0),
    )


class DashboardService:
    """Async dashboard aggregation queries."""

    # ═════════════════════════════════════════════════════════════════
    # GET /admin
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_admin_stats(db: AsyncSession) -> AdminStatsResponse:
        """System-wide counts, today's attendance and per-department headcount."""
        today = local_today()

        results = await _multi_scalar(
            db,
            select(func.count(User.id)),
            select(func.count(User.id)).where(User.is_active.is_(True)),
            select(func.count(Employee.id)).where(Employee.is_active.is_(True)),
            select(func.count(Department.id)).where(Department.is_active.is_(True)),
            select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.attendance_date == today,
                AttendanceRecord.status.in_(_PRESENT_STATUSES),
            ),
            select(func.count(AttendanceRecord.id)).where(
                AttendanceRecord.attendance_date == today,
                AttendanceRecord.status == AttendanceStatus.leave,
            ),
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.status == LeaveStatus.pending,
            ),
        )
        total_users, active_users, employees, departments, present, on_leave, pending = results

        return AdminStatsResponse(
            total_users=total_users,
            active_users=active_users,
            total_employees=employees,
            total_departments=departments,
            today=_today_counts(employees, present, on_leave),
            pending_leave_requests=pending,
            role_counts=await DashboardService.get_role_counts(db),
            departments=await DashboardService.get_department_headcount(db),
        )

    @staticmethod
    async def get_role_counts(db: AsyncSession) -> dict[str, int]:
        """Active users per role. Users without an assignment count as employees."""
        result = await db.execute(
            select(RoleAssignment.role, func.count(RoleAssignment.id))
            .join(User, RoleAssignment.user_id == User.id)
            .where(User.is_active.is_(True))
            .group_by(RoleAssignment.role)
        )
        counts = {role.value: 0 for role in UserRole}
        for role, count in result.all():
            counts[role.value] = count

        unassigned = await db.execute(
            select(func.count(User.id)).where(
                User.is_active.is_(True),
                ~select(RoleAssignment.id).where(RoleAssignment.user_id == User.id).exists(),
            )
        )
        counts[UserRole.employee.value] += unassigned.scalar() or 0
        return counts

    @staticmethod
    async def get_department_headcount(
        db: AsyncSession,
    ) -> list[DepartmentHeadcountItem]:
        """Headcount per department with today's attendance snapshot."""
        today = local_today()

        headcount_rows = (
            await db.execute(
                select(
                    Department.id.label("department_id"),
                    Department.name.label("department_name"),
                    func.count(Employee.id).label("headcount"),
                )
                .outerjoin(Employee, and_(
                    Employee.department_id == Department.id,
                    Employee.is_active.is_(True),
                ))
                .where(Department.is_active.is_(True))
                .group_by(Department.id, Department.name)
                .order_by(Department.name)
            )
        ).all()

        att_rows = (
            await db.execute(
                select(
                    Employee.department_id,
                    func.count(
                        case((AttendanceRecord.status.in_(_PRESENT_STATUSES), 1))
                    ).label("present_today"),
                    func.count(
                        case((AttendanceRecord.status == AttendanceStatus.leave, 1))
                    ).label("on_leave_today"),
                )
                .join(Employee, AttendanceRecord.employee_id == Employee.id)
                .where(
                    AttendanceRecord.attendance_date == today,
                    Employee.is_active.is_(True),
                )
                .group_by(Employee.department_id)
            )
        ).all()
        att_map = {row.department_id: row for row in att_rows}

        items: list[DepartmentHeadcountItem] = []
        for row in headcount_rows:
            att = att_map.get(row.department_id)
            items.append(DepartmentHeadcountItem(
                department_id=row.department_id,
                department_name=row.department_name,
                headcount=row.headcount,
                present_today=att.present_today if att else 0,
                on_leave_today=att.on_leave_today if att else 0,
            ))
        return items

    # ═════════════════════════════════════════════════════════════════
    # GET /manager
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_manager_stats(
        db: AsyncSession,
        manager: Employee,
    ) -> ManagerStatsResponse:
        """Team size, today's attendance per member and pending approvals."""
        today = local_today()

        members = (
            await db.execute(
                select(Employee)
                .where(team_condition(manager), Employee.is_active.is_(True))
                .order_by(Employee.employee_code)
            )
        ).scalars().all()
        member_ids = [m.id for m in members]

        records: dict[uuid.UUID, AttendanceRecord] = {}
        pending = 0
        if member_ids:
            result = await db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.attendance_date == today,
                    AttendanceRecord.employee_id.in_(member_ids),
                )
            )
            records = {r.employee_id: r for r in result.scalars().all()}
            pending = (
                await db.execute(
                    select(func.count(LeaveRequest.id)).where(
                        LeaveRequest.status == LeaveStatus.pending,
                        LeaveRequest.employee_id.in_(member_ids),
                    )
                )
            ).scalar() or 0

        present = sum(1 for r in records.values() if r.status in _PRESENT_STATUSES)
        on_leave = sum(1 for r in records.values() if r.status == AttendanceStatus.leave)

        return ManagerStatsResponse(
            department_id=manager.department_id,
            department_name=manager.department.name if manager.department else None,
            team_size=len(members),
            today=_today_counts(len(members), present, on_leave),
            pending_approvals=pending,
            members=[
                TeamMemberStatus(
                    employee_id=m.id,
                    employee_code=m.employee_code,
                    full_name=m.full_name,
                    designation=m.designation,
                    status_today=records[m.id].status if m.id in records else None,
                    check_in=as_utc(records[m.id].check_in) if m.id in records else None,
                )
                for m in members
            ],
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /me
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_employee_summary(
        db: AsyncSession,
        employee: Employee,
        year: Optional[int] = None,
    ) -> EmployeeSummaryResponse:
        """Year-to-date attendance, AL/SL/CL remaining and today's state."""
        today = local_today()
        year = year or today.year

        records = (
            await db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.employee_id == employee.id,
                    extract("year", AttendanceRecord.attendance_date) == year,
                )
            )
        ).scalars().all()

        stats = YearAttendanceStats()
        last_check_in = None
        today_record = None
        for record in records:
            if record.status in _PRESENT_STATUSES:
                stats.present += 1
            elif record.status == AttendanceStatus.absent:
                stats.absent += 1
            elif record.status == AttendanceStatus.leave:
                stats.leaves += 1
            if record.check_in is not None:
                check_in = as_utc(record.check_in)
                if is_late(check_in):
                    stats.late += 1
                if last_check_in is None or check_in > last_check_in:
                    last_check_in = check_in
            if record.attendance_date == today:
                today_record = record

        remaining = {}
        types = (
            await db.execute(
                select(LeaveType).where(LeaveType.code.in_(list(SUMMARY_LEAVE_CODES.values())))
            )
        ).scalars().all()
        by_code = {t.code: t for t in types}
        for key, code in SUMMARY_LEAVE_CODES.items():
            leave_type = by_code.get(code)
            if leave_type is None or not leave_type.is_active:
                remaining[key] = 0.0
                continue
            balance = await LeaveService.get_or_create_balance(db, employee.id, leave_type, year)
            remaining[key] = float(max(balance.remaining, 0))

        pending = (
            await db.execute(
                select(func.count(LeaveRequest.id)).where(
                    LeaveRequest.employee_id == employee.id,
                    LeaveRequest.status == LeaveStatus.pending,
                )
            )
        ).scalar() or 0

        return EmployeeSummaryResponse(
            employee_id=employee.id,
            year=year,
            attendance=stats,
            leave_balance=LeaveRemaining(**remaining),
            last_check_in=last_check_in,
            checked_in_today=bool(today_record and today_record.check_in),
            checked_out_today=bool(today_record and today_record.check_out),
            pending_leave_requests=pending,
            upcoming_holidays=await HolidayService.upcoming(
                db, limit=3, department_id=employee.department_id
            ),
        )

    # ═════════════════════════════════════════════════════════════════
    # GET /attendance-trend
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_attendance_trend(
        db: AsyncSession,
        days: int = 7,
        *,
        team_of: Optional[Employee] = None,
    ) -> AttendanceTrendResponse:
        """Daily status counts for the last *days* days, optionally for one team."""
        end = local_today()
        start = end - timedelta(days=days - 1)

        query = (
            select(
                AttendanceRecord.attendance_date,
                AttendanceRecord.status,
                func.count(AttendanceRecord.id),
            )
            .where(
                AttendanceRecord.attendance_date >= start,
                AttendanceRecord.attendance_date <= end,
            )
            .group_by(AttendanceRecord.attendance_date, AttendanceRecord.status)
        )
        if team_of is not None:
            query = query.where(
                AttendanceRecord.employee_id.in_(select(Employee.id).where(team_condition(team_of)))
            )

        points = {day: AttendanceDayPoint(day=day) for day in iter_days(start, end)}
        for day, status, count in (await db.execute(query)).all():
            point = points.get(day)
            if point is None:
                continue
            if status == AttendanceStatus.present:
                point.present += count
            elif status == AttendanceStatus.half_day:
                point.half_day += count
            elif status == AttendanceStatus.leave:
                point.on_leave += count
            elif status == AttendanceStatus.absent:
                point.absent += count

        return AttendanceTrendResponse(start_date=start, end_date=end, data=list(points.values()))

    # ═════════════════════════════════════════════════════════════════
    # GET /recent-activities
    # ═════════════════════════════════════════════════════════════════

    @staticmethod
    async def get_recent_activities(
        db: AsyncSession,
        limit: int = 20,
    ) -> RecentActivitiesResponse:
        """Most recent audit trail entries with human-readable descriptions."""
        rows = (
            await db.execute(
                select(
                    AuditTrail.id,
                    AuditTrail.action,
                    AuditTrail.entity_type,
                    AuditTrail.entity_id,
                    AuditTrail.actor_id,
                    AuditTrail.created_at,
                    User.full_name.label("actor_name"),
                )
                .outerjoin(User, AuditTrail.actor_id == User.id)
                .order_by(AuditTrail.created_at.desc())
                .limit(limit)
            )
        ).all()

        return RecentActivitiesResponse(
            limit=limit,
            data=[
                RecentActivityItem(
                    id=row.id,
                    action=row.action,
                    entity_type=row.entity_type,
                    entity_id=row.entity_id,
                    actor_id=row.actor_id,
                    actor_name=row.actor_name,
                    description=describe_activity(row.action, row.entity_type, row.actor_name),
                    created_at=as_utc(row.created_at),
                )
                for row in rows
            ],
        )


# ═════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════


_ACTION_DESCRIPTIONS: dict[str, dict[str, str]] = {
    "create": {
        "employee": "added a new employee",
        "department": "created a new department",
        "attendance_record": "created an attendance record",
        "holiday": "added a holiday",
        "leave_type": "added a leave type",
        "schedule_item": "scheduled a shift",
    },
    "update": {
        "employee": "updated employee details",
        "department": "updated department details",
        "attendance_record": "updated an attendance record",
        "leave_request": "updated a leave request",
        "schedule_item": "changed a shift",
    },
    "apply": {"leave_request": "applied for leave"},
    "approve": {"leave_request": "approved a leave request"},
    "deny": {"leave_request": "denied a leave request"},
    "cancel": {"leave_request": "cancelled a leave request"},
    "check_in": {"attendance_record": "checked in"},
    "check_out": {"attendance_record": "checked out"},
    "login": {"user_session": "logged in"},
    "register": {"user": "registered"},
    "delete": {"employee": "deactivated an employee"},
}


def describe_activity(
    action: str,
    entity_type: str,
    actor_name: Optional[str] = None,
) -> str:
    """Human-readable description for an audit trail entry."""
    actor = actor_name or "System"
    verb = _ACTION_DESCRIPTIONS.get(action, {}).get(entity_type)
    if verb:
        return f"{actor} {verb}"
    return f"{actor} performed '{action}' on {entity_type.replace('_', ' ')}"
