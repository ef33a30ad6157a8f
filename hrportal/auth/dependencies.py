"""Auth dependencies — JWT validation, RBAC enforcement."""

from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Callable

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.models import User, UserSession
from hrportal.common.constants import PERMISSIONS, UserRole
from hrportal.common.exceptions import ForbiddenException, UnauthorizedException
from hrportal.config import settings
from hrportal.core_hr.models import Employee
from hrportal.database import get_db

# Role hierarchy — each role implicitly includes lower roles
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.admin: {UserRole.admin, UserRole.manager, UserRole.employee},
    UserRole.manager: {UserRole.manager, UserRole.employee},
    UserRole.employee: {UserRole.employee},
}


def effective_roles(role: UserRole) -> set[UserRole]:
    return _ROLE_HIERARCHY.get(role, {role})


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedException("Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Validate JWT, verify session, return the authenticated User."""
    token = extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise UnauthorizedException("Token has expired.")
    except JWTError:
        raise UnauthorizedException("Invalid token.")

    if payload.get("type") != "access":
        raise UnauthorizedException("Invalid token type.")

    result = await db.execute(
        select(UserSession).where(
            UserSession.token_hash == _hash_token(token),
            UserSession.is_revoked.is_(False),
            UserSession.expires_at > datetime.now(timezone.utc),
        ),
    )
    if result.scalars().first() is None:
        raise UnauthorizedException("Session invalid or expired.")

    user_result = await db.execute(
        select(User)
        .where(User.id == uuid.UUID(payload["sub"]), User.is_active.is_(True))
        .options(selectinload(User.employee).selectinload(Employee.department)),
    )
    user = user_result.scalars().first()
    if user is None:
        raise UnauthorizedException("User account is inactive or not found.")

    try:
        role = UserRole(payload.get("role", UserRole.employee.value))
    except ValueError:
        role = UserRole.employee
    request.state.user_role = role

    return user


async def get_current_employee(
    user: User = Depends(get_current_user),
) -> Employee:
    """The authenticated user's employee record (required for HR operations)."""
    if user.employee is None:
        raise ForbiddenException(detail="No employee record is linked to this account.")
    return user.employee


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. admin can access manager endpoints.
    """

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        user_role: UserRole = request.state.user_role
        if not effective_roles(user_role).intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user_role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


# ── Permission-based dependency ─────────────────────────────────────

def require_permission(permission: str) -> Callable:
    """Return a FastAPI dependency that enforces a specific permission string."""

    async def _check(
        request: Request,
        user: User = Depends(get_current_user),
    ) -> User:
        user_role: UserRole = request.state.user_role
        if permission not in PERMISSIONS.get(user_role, []):
            raise ForbiddenException(
                detail=f"Permission '{permission}' is not granted to role '{user_role.value}'.",
            )
        return user

    return _check


def is_admin(request: Request) -> bool:
    return request.state.user_role == UserRole.admin
