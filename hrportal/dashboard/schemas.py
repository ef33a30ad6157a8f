"""Dashboard Pydantic v2 schemas — response models for all dashboard endpoints."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from hrportal.attendance.schemas import HolidayResponse
from hrportal.common.constants import AttendanceStatus


# ═════════════════════════════════════════════════════════════════════
# GET /admin
# ═════════════════════════════════════════════════════════════════════


class DepartmentHeadcountItem(BaseModel):
    """Active employees and today's attendance for one department."""

    department_id: Optional[uuid.UUID] = None
    department_name: str
    headcount: int = 0
    present_today: int = 0
    on_leave_today: int = 0


class TodayAttendance(BaseModel):
    total: int = Field(0, description="Active employees expected today")
    present: int = 0
    absent: int = 0
    on_leave: int = 0


class AdminStatsResponse(BaseModel):
    """System-wide KPI cards."""

    total_users: int
    active_users: int
    total_employees: int
    total_departments: int
    today: TodayAttendance
    pending_leave_requests: int
    role_counts: dict[str, int] = Field(default_factory=dict)
    departments: list[DepartmentHeadcountItem] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# GET /manager
# ═════════════════════════════════════════════════════════════════════


class TeamMemberStatus(BaseModel):
    employee_id: uuid.UUID
    employee_code: str
    full_name: str
    designation: Optional[str] = None
    status_today: Optional[AttendanceStatus] = None
    check_in: Optional[datetime] = None


class ManagerStatsResponse(BaseModel):
    """Today's picture of the manager's team."""

    department_id: Optional[uuid.UUID] = None
    department_name: Optional[str] = None
    team_size: int
    today: TodayAttendance
    pending_approvals: int
    members: list[TeamMemberStatus] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# GET /me
# ═════════════════════════════════════════════════════════════════════


class YearAttendanceStats(BaseModel):
    present: int = 0
    absent: int = 0
    late: int = 0
    leaves: int = 0


class LeaveRemaining(BaseModel):
    annual: float = 0
    sick: float = 0
    casual: float = 0


class EmployeeSummaryResponse(BaseModel):
    """Personal dashboard card data."""

    employee_id: uuid.UUID
    year: int
    attendance: YearAttendanceStats
    leave_balance: LeaveRemaining
    last_check_in: Optional[datetime] = None
    checked_in_today: bool = False
    checked_out_today: bool = False
    pending_leave_requests: int = 0
    upcoming_holidays: list[HolidayResponse] = Field(default_factory=list)


# ═════════════════════════════════════════════════════════════════════
# GET /recent-activities
# ═════════════════════════════════════════════════════════════════════


class RecentActivityItem(BaseModel):
    id: uuid.UUID
    action: str
    entity_type: str
    entity_id: Optional[uuid.UUID] = None
    actor_id: Optional[uuid.UUID] = None
    actor_name: Optional[str] = None
    description: str
    created_at: datetime


class RecentActivitiesResponse(BaseModel):
    limit: int
    data: list[RecentActivityItem]


class AttendanceDayPoint(BaseModel):
    """Single data point in the attendance trend chart."""

    day: date
    present: int = 0
    absent: int = 0
    on_leave: int = 0
    half_day: int = 0


class AttendanceTrendResponse(BaseModel):
    start_date: date
    end_date: date
    data: list[AttendanceDayPoint]
