"""Enums and constants for the HR portal — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── People ──────────────────────────────────────────────────────────

class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    denied = "denied"
    cancelled = "cancelled"


# Codes are compared upper-cased, names lower-cased.
FEMALE_LEAVE_CODES = frozenset({"ML", "MATERNITY"})
MALE_LEAVE_CODES = frozenset({"PL", "PATERNITY"})
FEMALE_LEAVE_KEYWORD = "maternity"
MALE_LEAVE_KEYWORD = "paternity"

MIN_LEAVE_DURATION = 0.5
MAX_LEAVE_DURATION = 30
MAX_LEAVE_REASON_LENGTH = 500

# Leave codes surfaced on the employee dashboard summary
SUMMARY_LEAVE_CODES = {"annual": "AL", "sick": "SL", "casual": "CL"}


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    present = "present"
    absent = "absent"
    leave = "leave"
    holiday = "holiday"
    half_day = "half_day"
    weekend = "weekend"


# ── Schedules ───────────────────────────────────────────────────────

class ShiftType(str, enum.Enum):
    morning = "morning"
    evening = "evening"
    night = "night"


class ScheduleStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    missed = "missed"


# Local shift windows as (start_hour, end_hour); 24 means midnight.
SHIFT_HOURS: dict[ShiftType, tuple[int, int]] = {
    ShiftType.morning: (8, 16),
    ShiftType.evening: (16, 24),
    ShiftType.night: (0, 8),
}


# ── Notifications ───────────────────────────────────────────────────

class NotificationPriority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


MAX_NOTIFICATION_TITLE_LENGTH = 100
MAX_NOTIFICATION_MESSAGE_LENGTH = 500


# ── Reports ─────────────────────────────────────────────────────────

class ReportType(str, enum.Enum):
    attendance = "attendance"
    employees = "employees"
    leaves = "leaves"
    performance = "performance"


class ReportFormat(str, enum.Enum):
    json = "json"
    csv = "csv"
    xlsx = "xlsx"
    pdf = "pdf"


# ── Role-based permissions ──────────────────────────────────────────

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: [
        "profile:read_own",
        "attendance:check_in",
        "attendance:read_own",
        "leave:request",
        "leave:read_own",
        "notification:read_own",
        "schedule:read_own",
    ],
    UserRole.manager: [
        "profile:read_own",
        "profile:read_team",
        "attendance:check_in",
        "attendance:read_own",
        "attendance:read_team",
        "leave:request",
        "leave:read_own",
        "leave:read_team",
        "leave:approve",
        "notification:read_own",
        "notification:send",
        "schedule:read_own",
        "schedule:manage",
        "dashboard:team",
        "report:generate",
    ],
    UserRole.admin: [
        "profile:read_all",
        "profile:create",
        "profile:update",
        "profile:delete",
        "attendance:check_in",
        "attendance:read_own",
        "attendance:read_all",
        "attendance:manage",
        "leave:request",
        "leave:read_own",
        "leave:read_all",
        "leave:approve",
        "leave:configure",
        "notification:read_own",
        "notification:read_all",
        "notification:send",
        "notification:broadcast_all",
        "schedule:read_own",
        "schedule:manage",
        "holiday:manage",
        "dashboard:team",
        "dashboard:system",
        "report:generate",
        "system:manage_users",
    ],
}

# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%Y-%m-%d"
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
MAX_DATE_RANGE_DAYS = 366
