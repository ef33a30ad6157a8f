"""Shared test fixtures — async DB, client, auth helpers, factories.

Reusable across all test modules (auth, core_hr, attendance, leave, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrportal.auth.service import create_access_token, hash_password, hash_token
from hrportal.common.constants import GenderType, UserRole
from hrportal.config import settings
from hrportal.database import Base, get_db
from hrportal.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrportal.auth.models  # noqa: F401
import hrportal.common.audit  # noqa: F401
import hrportal.core_hr.models  # noqa: F401
import hrportal.attendance.models  # noqa: F401
import hrportal.leave.models  # noqa: F401
import hrportal.notifications.models  # noqa: F401
import hrportal.schedules.models  # noqa: F401

from hrportal.auth.models import RoleAssignment, User, UserSession
from hrportal.core_hr.models import Department, Employee

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S.%f"),
    )
    # Enforce FK constraints (ON DELETE CASCADE) like PostgreSQL does
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrportal.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

TEST_PASSWORD = "password123"
_PASSWORD_HASH: Optional[str] = None


def _password_hash() -> str:
    """bcrypt once per run; hashing per user would slow every test."""
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(TEST_PASSWORD)
    return _PASSWORD_HASH


def _make_department(*, name: str = "Engineering") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        description=f"{name} department",
        is_active=True,
    )


def _make_user(
    *,
    username: str = "test.user",
    full_name: str = "Test User",
    gender: Optional[GenderType] = None,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        username=username,
        email=f"{username}@example.com",
        password_hash=_password_hash(),
        full_name=full_name,
        gender=gender,
        join_date=date(2024, 1, 15),
        is_active=is_active,
    )


def _make_employee(
    *,
    user_id: uuid.UUID,
    department_id: Optional[uuid.UUID] = None,
    reporting_manager_id: Optional[uuid.UUID] = None,
    designation: str = "Engineer",
) -> dict:
    return dict(
        id=uuid.uuid4(),
        user_id=user_id,
        employee_code=f"EMP-{uuid.uuid4().hex[:6].upper()}",
        department_id=department_id,
        reporting_manager_id=reporting_manager_id,
        designation=designation,
        hire_date=date(2024, 1, 15),
        is_active=True,
    )


async def seed_department(db: AsyncSession, name: str = "Engineering") -> Department:
    dept = Department(**_make_department(name=name))
    db.add(dept)
    await db.commit()
    return dept


async def seed_person(
    db: AsyncSession,
    *,
    username: str,
    full_name: Optional[str] = None,
    roles: tuple[UserRole, ...] = (UserRole.employee,),
    gender: Optional[GenderType] = None,
    department_id: Optional[uuid.UUID] = None,
    reporting_manager_id: Optional[uuid.UUID] = None,
    with_employee: bool = True,
    is_active: bool = True,
) -> tuple[User, Optional[Employee]]:
    """Insert a user with role assignments and (by default) an employee record."""
    user = User(**_make_user(
        username=username,
        full_name=full_name or username.replace(".", " ").title(),
        gender=gender,
        is_active=is_active,
    ))
    db.add(user)
    await db.flush()

    for role in {UserRole.employee, *roles}:
        db.add(RoleAssignment(user_id=user.id, role=role))

    employee = None
    if with_employee:
        employee = Employee(**_make_employee(
            user_id=user.id,
            department_id=department_id,
            reporting_manager_id=reporting_manager_id,
        ))
        db.add(employee)
    await db.commit()

    if employee is not None:
        await db.refresh(employee)
    return user, employee


# ── Auth helpers ────────────────────────────────────────────────────

async def login_headers(
    db: AsyncSession,
    user: User,
    role: UserRole = UserRole.employee,
    *,
    expired: bool = False,
) -> dict[str, str]:
    """Bearer headers backed by a persisted session for *user*."""
    token, expires_in = create_access_token(user.id, role)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    if expired:
        expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
    db.add(UserSession(
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=expires_at,
        is_revoked=False,
    ))
    await db.commit()
    return {"Authorization": f"Bearer {token}"}


# ── Common actors ───────────────────────────────────────────────────

@pytest.fixture
async def department(db) -> Department:
    return await seed_department(db)


@pytest.fixture
async def manager(db, department) -> tuple[User, Employee]:
    return await seed_person(
        db,
        username="mona.manager",
        roles=(UserRole.manager,),
        gender=GenderType.female,
        department_id=department.id,
    )


@pytest.fixture
async def employee(db, department, manager) -> tuple[User, Employee]:
    """A regular employee reporting to ``manager`` in ``department``."""
    return await seed_person(
        db,
        username="eric.employee",
        gender=GenderType.male,
        department_id=department.id,
        reporting_manager_id=manager[1].id,
    )


@pytest.fixture
async def admin(db) -> tuple[User, Employee]:
    return await seed_person(db, username="ada.admin", roles=(UserRole.admin,))


@pytest.fixture
async def auth_headers(db, employee) -> dict[str, str]:
    return await login_headers(db, employee[0])


@pytest.fixture
async def manager_headers(db, manager) -> dict[str, str]:
    return await login_headers(db, manager[0], UserRole.manager)


@pytest.fixture
async def admin_headers(db, admin) -> dict[str, str]:
    return await login_headers(db, admin[0], UserRole.admin)
