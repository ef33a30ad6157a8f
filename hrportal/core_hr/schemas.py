"""Core HR Pydantic schemas — departments and employees."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from hrportal.common.constants import GenderType


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class DepartmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    head_user_id: Optional[uuid.UUID] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    head_user_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None


class DepartmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    head_user_id: Optional[uuid.UUID] = None
    head_name: Optional[str] = None
    employee_count: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class EmployeeCreate(BaseModel):
    user_id: uuid.UUID
    employee_code: str = Field(..., min_length=1, max_length=20)
    department_id: Optional[uuid.UUID] = None
    designation: Optional[str] = Field(None, max_length=150)
    hire_date: date
    reporting_manager_id: Optional[uuid.UUID] = None

    @field_validator("employee_code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return value.strip().upper()


class EmployeeUpdate(BaseModel):
    employee_code: Optional[str] = Field(None, min_length=1, max_length=20)
    department_id: Optional[uuid.UUID] = None
    designation: Optional[str] = Field(None, max_length=150)
    hire_date: Optional[date] = None
    reporting_manager_id: Optional[uuid.UUID] = None
    is_active: Optional[bool] = None

    @field_validator("employee_code")
    @classmethod
    def _upper_code(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value else value


class ManagerAssignment(BaseModel):
    reporting_manager_id: Optional[uuid.UUID] = None


class EmployeeSummary(BaseModel):
    """Compact employee card used in lists and nested references."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    full_name: str
    email: str
    designation: Optional[str] = None
    department: Optional[DepartmentBrief] = None


class EmployeeDetail(EmployeeSummary):
    user_id: uuid.UUID
    hire_date: date
    is_active: bool = True
    gender: Optional[GenderType] = None
    contact_number: Optional[str] = None
    reporting_manager: Optional[EmployeeSummary] = None
    direct_reports_count: int = 0
