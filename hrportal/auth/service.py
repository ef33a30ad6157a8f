"""Auth service — password hashing, JWT management, session lifecycle, users."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from jose import jwt
from passlib.context import CryptContext
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hrportal.auth.models import RoleAssignment, User, UserSession
from hrportal.auth.schemas import DeptBrief, UserInfo
from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import UserRole
from hrportal.common.exceptions import (
    ConflictError,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from hrportal.common.filters import apply_search
from hrportal.common.pagination import PaginationMeta, PaginationParams, paginate
from hrportal.config import settings
from hrportal.core_hr.models import Employee

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Role priority — higher index = higher privilege
_ROLE_PRIORITY: list[UserRole] = [
    UserRole.employee,
    UserRole.manager,
    UserRole.admin,
]


# ── Passwords ───────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _validate_password(password: str, field: str = "password") -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationException(
            {field: [f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters."]}
        )


# ── Roles ───────────────────────────────────────────────────────────

async def get_user_roles(db: AsyncSession, user_id: uuid.UUID) -> list[UserRole]:
    """Return the user's roles ordered lowest → highest (default: employee)."""
    result = await db.execute(
        select(RoleAssignment.role).where(RoleAssignment.user_id == user_id),
    )
    roles = {row[0] for row in result.all()}
    if not roles:
        return [UserRole.employee]
    return sorted(roles, key=_ROLE_PRIORITY.index)


def highest_role(roles: Iterable[UserRole]) -> UserRole:
    best = UserRole.employee
    for role in roles:
        if _ROLE_PRIORITY.index(role) > _ROLE_PRIORITY.index(best):
            best = role
    return best


async def set_user_roles(
    db: AsyncSession,
    user_id: uuid.UUID,
    roles: list[UserRole],
    *,
    actor_id: uuid.UUID,
) -> list[UserRole]:
    """Replace a user's role assignments. Every user keeps ``employee``.

    A changed role set revokes the user's open sessions.
    """
    user = await get_user(db, user_id)
    old_roles = await get_user_roles(db, user.id)
    wanted = set(roles) | {UserRole.employee}

    result = await db.execute(
        select(RoleAssignment).where(RoleAssignment.user_id == user.id),
    )
    for assignment in result.scalars().all():
        if assignment.role not in wanted:
            await db.delete(assignment)
        else:
            wanted.discard(assignment.role)

    for role in wanted:
        db.add(RoleAssignment(user_id=user.id, role=role, assigned_by=actor_id))
    await db.flush()

    new_roles = await get_user_roles(db, user.id)
    if set(new_roles) != set(old_roles):
        await revoke_all_user_sessions(db, user.id)
    await create_audit_entry(
        db,
        action="update_roles",
        entity_type="user",
        entity_id=user.id,
        actor_id=actor_id,
        old_values={"roles": [r.value for r in old_roles]},
        new_values={"roles": [r.value for r in new_roles]},
    )
    logger.info("Roles for user %s set to %s", user.id, [r.value for r in new_roles])
    return new_roles


# ── Users ───────────────────────────────────────────────────────────

async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.employee).selectinload(Employee.department))
        .execution_options(populate_existing=True),
    )
    user = result.scalars().first()
    if user is None:
        raise NotFoundException(entity_type="User", entity_id=str(user_id))
    return user


async def _ensure_unique(
    db: AsyncSession,
    *,
    username: Optional[str] = None,
    email: Optional[str] = None,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    for field, column, value in (
        ("username", User.username, username),
        ("email", User.email, email),
    ):
        if value is None:
            continue
        query = select(User.id).where(func.lower(column) == value.lower())
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError(field, value)


async def register_user(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    password: str,
    full_name: str,
    gender=None,
    contact_number: Optional[str] = None,
    join_date=None,
    roles: Optional[list[UserRole]] = None,
    actor_id: Optional[uuid.UUID] = None,
) -> User:
    """Create a user with the ``employee`` role plus any extra *roles*."""
    _validate_password(password)
    await _ensure_unique(db, username=username, email=email)

    user = User(
        username=username,
        email=email.lower(),
        password_hash=hash_password(password),
        full_name=full_name,
        gender=gender,
        contact_number=contact_number,
        join_date=join_date,
        is_active=True,
    )
    db.add(user)
    await db.flush()

    for role in {UserRole.employee, *(roles or [])}:
        db.add(RoleAssignment(user_id=user.id, role=role, assigned_by=actor_id))
    await db.flush()

    await create_audit_entry(
        db,
        action="register",
        entity_type="user",
        entity_id=user.id,
        actor_id=actor_id or user.id,
        new_values={"username": username, "email": user.email},
    )
    logger.info("Registered user %s (%s)", user.username, user.id)
    return await get_user(db, user.id)


async def authenticate(db: AsyncSession, identifier: str, password: str) -> User:
    """Resolve *identifier* (username or email) and verify the password."""
    ident = identifier.strip().lower()
    result = await db.execute(
        select(User).where(
            or_(func.lower(User.username) == ident, func.lower(User.email) == ident)
        ),
    )
    user = result.scalars().first()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Failed login for %r", identifier)
        raise UnauthorizedException("Invalid username or password.")
    if not user.is_active:
        raise UnauthorizedException("User account is inactive.")

    user.last_login = datetime.now(timezone.utc)
    await db.flush()
    return await get_user(db, user.id)


async def update_profile(
    db: AsyncSession,
    user: User,
    changes: dict,
) -> User:
    if "email" in changes and changes["email"] is not None:
        changes["email"] = changes["email"].lower()
        await _ensure_unique(db, email=changes["email"], exclude_id=user.id)

    old_values = {k: _jsonable(getattr(user, k)) for k in changes}
    for key, value in changes.items():
        setattr(user, key, value)
    await db.flush()

    await create_audit_entry(
        db,
        action="update_profile",
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
        old_values=old_values,
        new_values={k: _jsonable(v) for k, v in changes.items()},
    )
    return await get_user(db, user.id)


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ValidationException({"current_password": ["Current password is incorrect."]})
    _validate_password(new_password, "new_password")
    user.password_hash = hash_password(new_password)
    await db.flush()
    await create_audit_entry(
        db,
        action="change_password",
        entity_type="user",
        entity_id=user.id,
        actor_id=user.id,
    )


async def set_user_active(
    db: AsyncSession,
    user_id: uuid.UUID,
    is_active: bool,
    *,
    actor_id: uuid.UUID,
) -> User:
    """Activate or deactivate a user; deactivation revokes open sessions."""
    user = await get_user(db, user_id)
    old = user.is_active
    user.is_active = is_active
    if not is_active:
        await revoke_all_user_sessions(db, user.id)
    await db.flush()

    await create_audit_entry(
        db,
        action="activate" if is_active else "deactivate",
        entity_type="user",
        entity_id=user.id,
        actor_id=actor_id,
        old_values={"is_active": old},
        new_values={"is_active": is_active},
    )
    return user


async def list_users(
    db: AsyncSession,
    params: PaginationParams,
    *,
    search: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> tuple[list[User], PaginationMeta]:
    query = select(User).order_by(User.full_name)
    if is_active is not None:
        query = query.where(User.is_active.is_(is_active))
    query = apply_search(query, search, [User.username, User.email, User.full_name])
    rows, meta = await paginate(
        db,
        query,
        params,
        model=User,
        options=[selectinload(User.employee).selectinload(Employee.department)],
    )
    return list(rows), meta


def _jsonable(value):
    if hasattr(value, "value"):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


# ── JWT helpers ─────────────────────────────────────────────────────

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def create_access_token(user_id: uuid.UUID, role: UserRole) -> tuple[str, int]:
    """Return (encoded_jwt, expires_in_seconds)."""
    expires_in = settings.JWT_EXPIRY_HOURS * 3600
    payload = {
        "sub": str(user_id),
        "role": role.value,
        "type": "access",
        "jti": uuid.uuid4().hex,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRY_HOURS),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_in


# ── Session management ──────────────────────────────────────────────

async def create_session(
    db: AsyncSession,
    user: User,
    role: UserRole,
    ip: Optional[str],
    user_agent: Optional[str],
) -> tuple[str, int]:
    """Issue an access token and persist its session. Returns (token, expires_in)."""
    access_token, expires_in = create_access_token(user.id, role)

    session = UserSession(
        user_id=user.id,
        token_hash=hash_token(access_token),
        ip_address=ip,
        user_agent=user_agent,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    )
    db.add(session)
    await db.flush()

    await create_audit_entry(
        db,
        action="login",
        entity_type="user_session",
        entity_id=session.id,
        actor_id=user.id,
        new_values={"user_agent": user_agent},
        ip_address=ip,
    )
    logger.info("User %s logged in as %s", user.username, role.value)
    return access_token, expires_in


async def revoke_session(db: AsyncSession, token_hash: str) -> None:
    """Mark a session as revoked by its token hash."""
    result = await db.execute(
        select(UserSession).where(UserSession.token_hash == token_hash),
    )
    session = result.scalars().first()
    if session:
        session.is_revoked = True
        await db.flush()


async def revoke_all_user_sessions(db: AsyncSession, user_id: uuid.UUID) -> None:
    result = await db.execute(
        select(UserSession).where(
            UserSession.user_id == user_id,
            UserSession.is_revoked.is_(False),
        ),
    )
    for session in result.scalars().all():
        session.is_revoked = True
    await db.flush()


# ── Response builders ───────────────────────────────────────────────

def build_user_info(user: User, roles: list[UserRole]) -> UserInfo:
    employee = user.employee
    department = employee.department if employee is not None else None
    return UserInfo(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        gender=user.gender,
        contact_number=user.contact_number,
        is_active=user.is_active,
        roles=[r.value for r in roles],
        is_admin=UserRole.admin in roles,
        is_manager=UserRole.manager in roles or UserRole.admin in roles,
        employee_id=employee.id if employee else None,
        employee_code=employee.employee_code if employee else None,
        designation=employee.designation if employee else None,
        department=DeptBrief(id=department.id, name=department.name) if department else None,
        last_login=user.last_login,
    )


async def user_info(db: AsyncSession, user: User) -> UserInfo:
    return build_user_info(user, await get_user_roles(db, user.id))
