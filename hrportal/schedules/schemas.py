"""Schedule Pydantic schemas."""

import uuid
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from hrportal.common.constants import ScheduleStatus, ShiftType


class ScheduleCreate(BaseModel):
    employee_id: uuid.UUID
    schedule_date: date
    shift: ShiftType = ShiftType.morning
    notes: Optional[str] = Field(None, max_length=500)


class ScheduleUpdate(BaseModel):
    schedule_date: Optional[date] = None
    shift: Optional[ShiftType] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[str] = Field(None, max_length=500)


class ScheduleResponse(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    employee_code: str
    employee_name: str
    department_id: Optional[uuid.UUID] = None
    department: Optional[str] = None
    schedule_date: date
    shift: ShiftType
    shift_hours: str
    status: ScheduleStatus
    notes: Optional[str] = None
