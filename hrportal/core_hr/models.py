"""Core HR ORM models: Department, Employee.

SQLAlchemy 2.0 async-compatible models with Mapped[] annotations.
Column names match the PostgreSQL schema defined in 001_initial_schema.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.audit import TimestampMixin
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.auth.models import User


# ═════════════════════════════════════════════════════════════════════
# Department
# ═════════════════════════════════════════════════════════════════════


class Department(Base, TimestampMixin):
    """Organisational department with an optional head."""

    __tablename__ = "departments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    head_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", name="fk_dept_head", ondelete="SET NULL"),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    # ── Relationships ───────────────────────────────────────────────
    head: Mapped[Optional[User]] = relationship(foreign_keys=[head_user_id])
    employees: Mapped[list[Employee]] = relationship(
        back_populates="department", foreign_keys="Employee.department_id",
    )

    def __repr__(self) -> str:
        return f"<Department {self.name!r}>"


# ═════════════════════════════════════════════════════════════════════
# Employee
# ═════════════════════════════════════════════════════════════════════


class Employee(Base, TimestampMixin):
    """Employment record attached to a login user."""

    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    employee_code: Mapped[str] = mapped_column(
        sa.String(20), unique=True, nullable=False,
    )
    department_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("departments.id"),
    )
    designation: Mapped[Optional[str]] = mapped_column(sa.String(150))
    hire_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    reporting_manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", name="fk_employee_manager", ondelete="SET NULL"),
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )

    # ── Relationships ───────────────────────────────────────────────
    user: Mapped[User] = relationship(
        back_populates="employee", foreign_keys=[user_id], lazy="joined",
    )
    department: Mapped[Optional[Department]] = relationship(
        back_populates="employees", foreign_keys=[department_id], lazy="joined",
    )
    reporting_manager: Mapped[Optional[Employee]] = relationship(
        remote_side=[id], foreign_keys=[reporting_manager_id],
    )

    @property
    def full_name(self) -> str:
        return self.user.full_name

    @property
    def email(self) -> str:
        return self.user.email

    def __repr__(self) -> str:
        return f"<Employee {self.employee_code}>"
