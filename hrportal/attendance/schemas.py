"""Attendance Pydantic schemas — records, check-in/out, summaries, holidays."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hrportal.common.constants import AttendanceStatus


# ── Records ─────────────────────────────────────────────────────────

class AttendanceRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    employee_code: str
    employee_name: str
    department: Optional[str] = None
    attendance_date: date
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: AttendanceStatus
    work_hours: float = 0.0
    is_leave: bool = False
    leave_request_id: Optional[uuid.UUID] = None
    remarks: Optional[str] = None


class PunchRequest(BaseModel):
    """Optional body for check-in and check-out."""

    remarks: Optional[str] = Field(None, max_length=500)


class _TimesMixin(BaseModel):
    @model_validator(mode="after")
    def _check_order(self):
        check_in = getattr(self, "check_in", None)
        check_out = getattr(self, "check_out", None)
        if check_in and check_out and check_out <= check_in:
            raise ValueError("check_out must be after check_in")
        return self


class AttendanceCreate(_TimesMixin):
    employee_id: uuid.UUID
    attendance_date: date
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = Field(None, max_length=500)


class AttendanceUpdate(_TimesMixin):
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    status: Optional[AttendanceStatus] = None
    remarks: Optional[str] = Field(None, max_length=500)


class BulkAttendanceCreate(BaseModel):
    records: list[AttendanceCreate] = Field(..., min_length=1, max_length=500)


class BulkRowError(BaseModel):
    index: int
    employee_id: uuid.UUID
    attendance_date: date
    detail: str


class BulkAttendanceResult(BaseModel):
    created: list[AttendanceRecordResponse]
    errors: list[BulkRowError]


class AttendanceSummary(BaseModel):
    employee_id: uuid.UUID
    year: int
    present: int = 0
    half_day: int = 0
    absent: int = 0
    late: int = 0
    leaves: int = 0
    holidays: int = 0
    total_work_hours: float = 0.0


class DayAttendanceResponse(BaseModel):
    date: date
    total: int
    present: int
    absent: int
    on_leave: int
    records: list[AttendanceRecordResponse]


# ── Holidays ────────────────────────────────────────────────────────

class HolidayCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    holiday_date: date
    description: Optional[str] = None
    is_optional: bool = False
    applicable_departments: Optional[list[uuid.UUID]] = Field(
        None, description="Omit or null for every department"
    )


class HolidayUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    holiday_date: Optional[date] = None
    description: Optional[str] = None
    is_optional: Optional[bool] = None
    applicable_departments: Optional[list[uuid.UUID]] = None


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    holiday_date: date
    description: Optional[str] = None
    is_optional: bool = False
    applicable_departments: Optional[list[uuid.UUID]] = None
