"""Attendance ORM models: AttendanceRecord, Holiday."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.audit import TimestampMixin
from hrportal.common.constants import AttendanceStatus
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.core_hr.models import Employee


class AttendanceRecord(Base, TimestampMixin):
    """One row per employee per calendar day."""

    __tablename__ = "attendance_records"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "attendance_date", name="uq_attendance_emp_date"),
        sa.Index("ix_attendance_date", "attendance_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    attendance_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    check_in: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    check_out: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status", create_type=False),
        nullable=False,
        default=AttendanceStatus.absent,
        server_default="absent",
    )
    work_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 2), default=Decimal("0"), server_default=sa.text("0")
    )
    is_leave: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    leave_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="SET NULL"),
    )
    remarks: Mapped[Optional[str]] = mapped_column(sa.Text)

    employee: Mapped[Employee] = relationship(lazy="joined")


class Holiday(Base, TimestampMixin):
    """Company holiday, optionally restricted to some departments."""

    __tablename__ = "holidays"
    __table_args__ = (
        sa.UniqueConstraint("name", "holiday_date", name="uq_holiday_name_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    holiday_date: Mapped[date] = mapped_column(sa.Date, nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_optional: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    # NULL = every department; otherwise a list of department id strings
    applicable_departments: Mapped[Optional[list]] = mapped_column(JSONB)

    def applies_to(self, department_id: Optional[uuid.UUID]) -> bool:
        if not self.applicable_departments:
            return True
        if department_id is None:
            return False
        return str(department_id) in self.applicable_departments
