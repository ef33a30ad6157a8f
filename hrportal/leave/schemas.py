"""Leave Pydantic schemas — types, balances, requests, decisions."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from hrportal.common.constants import (
    MAX_LEAVE_DURATION,
    MAX_LEAVE_REASON_LENGTH,
    MIN_LEAVE_DURATION,
    GenderType,
    LeaveStatus,
)


# ═════════════════════════════════════════════════════════════════════
# Leave types
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    default_annual_quota: float = Field(0, ge=0, le=365)
    is_carry_forward: bool = False
    requires_approval: bool = True
    max_consecutive_days: int = Field(0, ge=0, description="0 = unlimited")
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()


class LeaveTypeUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=20)
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    default_annual_quota: Optional[float] = Field(None, ge=0, le=365)
    is_carry_forward: Optional[bool] = None
    requires_approval: Optional[bool] = None
    max_consecutive_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def _upper_code(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value


class LeaveTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    code: str
    name: str
    description: Optional[str] = None
    default_annual_quota: float
    is_carry_forward: bool
    requires_approval: bool
    max_consecutive_days: int
    is_active: bool
    applicable_gender: Optional[GenderType] = None


# ═════════════════════════════════════════════════════════════════════
# Balances
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceResponse(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    leave_code: str
    leave_name: str
    year: int
    allocated_leaves: float
    carried_forward: float
    used_leaves: float
    pending_leaves: float
    remaining: float
    applicable_gender: Optional[GenderType] = None


class LeaveBalanceUpsert(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int = Field(..., ge=2000, le=2100)
    allocated_leaves: Optional[float] = Field(None, ge=0, le=365)
    carried_forward: Optional[float] = Field(None, ge=0, le=365)


# ═════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    duration: Optional[float] = Field(
        None,
        ge=MIN_LEAVE_DURATION,
        le=MAX_LEAVE_DURATION,
        description="Days requested; defaults to the inclusive day count",
    )
    is_half_day: bool = False
    reason: str = Field(..., min_length=1, max_length=MAX_LEAVE_REASON_LENGTH)
    contact_during_leave: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def _check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        if self.is_half_day and self.end_date != self.start_date:
            raise ValueError("a half-day leave must start and end on the same date")
        return self


class LeaveRequestUpdate(BaseModel):
    leave_type_id: Optional[uuid.UUID] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    duration: Optional[float] = Field(None, ge=MIN_LEAVE_DURATION, le=MAX_LEAVE_DURATION)
    is_half_day: Optional[bool] = None
    reason: Optional[str] = Field(None, min_length=1, max_length=MAX_LEAVE_REASON_LENGTH)
    contact_during_leave: Optional[str] = Field(None, max_length=100)


class LeaveApprove(BaseModel):
    remarks: Optional[str] = Field(None, max_length=500)


class LeaveDeny(BaseModel):
    rejection_reason: str = Field(..., min_length=1, max_length=500)


class LeaveRequestResponse(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    employee_code: str
    employee_name: str
    department: Optional[str] = None
    leave_type_id: uuid.UUID
    leave_code: str
    leave_name: str
    start_date: date
    end_date: date
    duration: float
    is_half_day: bool
    reason: str
    contact_during_leave: Optional[str] = None
    status: LeaveStatus
    applied_at: datetime
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
