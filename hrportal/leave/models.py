"""Leave ORM models: LeaveType, LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hrportal.common.audit import TimestampMixin
from hrportal.common.constants import LeaveStatus
from hrportal.database import Base

if TYPE_CHECKING:
    from hrportal.core_hr.models import Employee


class LeaveType(Base, TimestampMixin):
    __tablename__ = "leave_types"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    code: Mapped[str] = mapped_column(sa.String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    default_annual_quota: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    is_carry_forward: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    requires_approval: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )
    # 0 = unlimited
    max_consecutive_days: Mapped[int] = mapped_column(
        sa.Integer, default=0, server_default=sa.text("0")
    )
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE")
    )

    balances: Mapped[list[LeaveBalance]] = relationship(back_populates="leave_type")
    requests: Mapped[list[LeaveRequest]] = relationship(back_populates="leave_type")


class LeaveBalance(Base, TimestampMixin):
    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint(
            "employee_id", "leave_type_id", "year", name="uq_leave_balance"
        ),
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
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    allocated_leaves: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    carried_forward: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    used_leaves: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )
    pending_leaves: Mapped[Decimal] = mapped_column(
        sa.Numeric(5, 1), default=Decimal("0"), server_default=sa.text("0")
    )

    leave_type: Mapped[LeaveType] = relationship(back_populates="balances", lazy="joined")

    @property
    def remaining(self) -> Decimal:
        return (
            Decimal(self.allocated_leaves or 0)
            + Decimal(self.carried_forward or 0)
            - Decimal(self.used_leaves or 0)
            - Decimal(self.pending_leaves or 0)
        )


class LeaveRequest(Base, TimestampMixin):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.Index("ix_leave_requests_employee_status", "employee_id", "status"),
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
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("leave_types.id"), nullable=False
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    duration: Mapped[Decimal] = mapped_column(sa.Numeric(4, 1), nullable=False)
    is_half_day: Mapped[bool] = mapped_column(
        sa.Boolean, default=False, server_default=sa.text("FALSE")
    )
    reason: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    contact_during_leave: Mapped[Optional[str]] = mapped_column(sa.String(100))
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        nullable=False,
        default=LeaveStatus.pending,
        server_default="pending",
    )
    applied_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="SET NULL")
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))

    employee: Mapped[Employee] = relationship(lazy="joined")
    leave_type: Mapped[LeaveType] = relationship(back_populates="requests", lazy="joined")
