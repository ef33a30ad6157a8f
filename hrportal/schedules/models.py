"""Schedule ORM model: one shift per employee per day."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.audit import TimestampMixin
from hrportal.common.constants import ScheduleStatus, ShiftType
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.core_hr.models import Employee


class ScheduleItem(Base, TimestampMixin):
    __tablename__ = "schedule_items"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "schedule_date", name="uq_schedule_emp_date"),
        sa.Index("ix_schedule_items_date", "schedule_date"),
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
    schedule_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    shift: Mapped[ShiftType] = mapped_column(
        sa.Enum(ShiftType, name="shift_type", create_type=False),
        nullable=False,
        default=ShiftType.morning,
        server_default="morning",
    )
    status: Mapped[ScheduleStatus] = mapped_column(
        sa.Enum(ScheduleStatus, name="schedule_status", create_type=False),
        nullable=False,
        default=ScheduleStatus.scheduled,
        server_default="scheduled",
    )
    notes: Mapped[Optional[str]] = mapped_column(sa.String(500))
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")
    )

    employee: Mapped[Employee] = relationship(lazy="joined")
