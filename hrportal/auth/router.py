"""Auth router — register, login, logout, profile; admin user management."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth import service
from hrportal.auth.dependencies import extract_bearer, get_current_user, require_role
from hrportal.auth.models import User
from hrportal.auth.schemas import (
    AdminUserCreate,
    LoginRequest,
    MeResponse,
    PasswordChange,
    ProfileUpdate,
    RegisterRequest,
    RoleUpdate,
    TokenResponse,
    UserInfo,
    UserStatusUpdate,
)
from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import PERMISSIONS, UserRole
from hrportal.common.pagination import PaginatedResponse, PaginationParams
from hrportal.common.rate_limit import limiter
from hrportal.config import settings
from hrportal.core_hr.models import Employee
from hrportal.database import get_db

router = APIRouter(prefix="", tags=["auth"])
users_router = APIRouter(prefix="", tags=["users"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# ── POST /register ──────────────────────────────────────────────────

@router.post("/register", response_model=UserInfo, status_code=201)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await service.register_user(db, **body.model_dump())
    return await service.user_info(db, user)


# ── POST /login ─────────────────────────────────────────────────────

@router.post("/login", response_model=TokenResponse)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await service.authenticate(db, body.identifier, body.password)
    roles = await service.get_user_roles(db, user.id)
    access_token, expires_in = await service.create_session(
        db,
        user,
        service.highest_role(roles),
        _client_ip(request),
        request.headers.get("user-agent"),
    )
    return TokenResponse(
        access_token=access_token,
        expires_in=expires_in,
        user=service.build_user_info(user, roles),
    )


# ── POST /logout — Revoke current session ──────────────────────────

@router.post("/logout")
async def logout(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.revoke_session(db, service.hash_token(extract_bearer(request)))
    await create_audit_entry(
        db,
        action="logout",
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        ip_address=_client_ip(request),
    )
    return {"message": "Logged out successfully"}


# ── GET /me — Current user profile ─────────────────────────────────

@router.get("/me", response_model=MeResponse)
async def me(
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    role: UserRole = request.state.user_role
    info = await service.user_info(db, user)

    direct_reports_count = 0
    if user.employee is not None:
        result = await db.execute(
            select(func.count()).select_from(Employee).where(
                Employee.reporting_manager_id == user.employee.id,
                Employee.is_active.is_(True),
            ),
        )
        direct_reports_count = result.scalar() or 0

    return MeResponse(
        **info.model_dump(),
        role=role.value,
        permissions=PERMISSIONS.get(role, []),
        direct_reports_count=direct_reports_count,
    )


@router.put("/me", response_model=UserInfo)
async def update_me(
    body: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await service.update_profile(db, user, body.model_dump(exclude_unset=True, exclude_none=True))
    return await service.user_info(db, user)


@router.post("/change-password")
async def change_password(
    body: PasswordChange,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await service.change_password(db, user, body.current_password, body.new_password)
    return {"message": "Password updated successfully"}


# ═════════════════════════════════════════════════════════════════════
# Admin user management (/users)
# ═════════════════════════════════════════════════════════════════════


@users_router.get("", response_model=PaginatedResponse[UserInfo])
async def list_users(
    search: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    pagination: PaginationParams = Depends(),
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    users, meta = await service.list_users(db, pagination, search=search, is_active=is_active)
    data = [await service.user_info(db, u) for u in users]
    return PaginatedResponse(data=data, meta=meta)


@users_router.post("", response_model=UserInfo, status_code=201)
async def create_user(
    body: AdminUserCreate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    user = await service.register_user(db, **body.model_dump(), actor_id=admin.id)
    return await service.user_info(db, user)


@users_router.get("/{user_id}", response_model=UserInfo)
async def get_user(
    user_id: uuid.UUID,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    return await service.user_info(db, await service.get_user(db, user_id))


@users_router.patch("/{user_id}/status", response_model=UserInfo)
async def set_user_status(
    user_id: uuid.UUID,
    body: UserStatusUpdate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    user = await service.set_user_active(db, user_id, body.is_active, actor_id=admin.id)
    return await service.user_info(db, user)


@users_router.put("/{user_id}/roles", response_model=UserInfo)
async def set_user_roles(
    user_id: uuid.UUID,
    body: RoleUpdate,
    admin: User = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    await service.set_user_roles(db, user_id, body.roles, actor_id=admin.id)
    return await service.user_info(db, await service.get_user(db, user_id))
