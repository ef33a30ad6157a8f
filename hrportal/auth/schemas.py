"""Auth Pydantic schemas for request / response validation."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from hrportal.common.constants import GenderType, UserRole


# ── Requests ────────────────────────────────────────────────────────

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50, pattern=r"^[A-Za-z0-9_.-]+$")
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=150)
    gender: Optional[GenderType] = None
    contact_number: Optional[str] = Field(None, max_length=20)


class AdminUserCreate(RegisterRequest):
    join_date: Optional[date] = None
    roles: list[UserRole] = Field(default_factory=list)


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="Username or email")
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    gender: Optional[GenderType] = None
    contact_number: Optional[str] = Field(None, max_length=20)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


class RoleUpdate(BaseModel):
    roles: list[UserRole]


class UserStatusUpdate(BaseModel):
    is_active: bool


# ── Embedded / Shared ──────────────────────────────────────────────

class DeptBrief(BaseModel):
    id: uuid.UUID
    name: str


class UserInfo(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    full_name: str
    gender: Optional[GenderType] = None
    contact_number: Optional[str] = None
    is_active: bool = True
    roles: list[str]
    is_admin: bool
    is_manager: bool
    employee_id: Optional[uuid.UUID] = None
    employee_code: Optional[str] = None
    designation: Optional[str] = None
    department: Optional[DeptBrief] = None
    last_login: Optional[datetime] = None


# ── Responses ───────────────────────────────────────────────────────

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserInfo


class MeResponse(UserInfo):
    role: str
    permissions: list[str]
    direct_reports_count: int = 0
