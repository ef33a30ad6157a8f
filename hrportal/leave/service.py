"""Leave service layer — leave types, balance bookkeeping, request lifecycle.

Business logic:
  - Gender-specific leave types are classified by code and name
  - Balances are created on demand from the type's annual quota
  - remaining = allocated + carried_forward - used - pending
  - Apply / update / cancel / approve / deny keep pending and used in step
  - Approval marks every day of the range as leave in attendance;
    cancelling an approved request reverts those days to absent
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import extract, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.attendance.models import AttendanceRecord
from hrportal.common.audit import create_audit_entry
from hrportal.common.constants import (
    FEMALE_LEAVE_CODES,
    FEMALE_LEAVE_KEYWORD,
    MALE_LEAVE_CODES,
    MALE_LEAVE_KEYWORD,
    MAX_LEAVE_DURATION,
    AttendanceStatus,
    GenderType,
    LeaveStatus,
)
from hrportal.common.exceptions import (
    BusinessRuleError,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrportal.common.pagination import PaginationMeta, PaginationParams, paginate
from hrportal.common.timeutils import as_utc, iter_days, utc_now
from hrportal.core_hr.models import Department, Employee
from hrportal.core_hr.service import manages, team_condition
from hrportal.leave.models import LeaveBalance, LeaveRequest, LeaveType
from hrportal.leave.schemas import (
    LeaveBalanceResponse,
    LeaveBalanceUpsert,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
    LeaveTypeUpdate,
)
from hrportal.notifications.service import (
    notify_leave_approved,
    notify_leave_denied,
    notify_leave_request,
)

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (LeaveStatus.pending, LeaveStatus.approved)
_HALF = Decimal("0.5")


# ── Gender classification ───────────────────────────────────────────

def classify_leave_gender(code: Optional[str], name: Optional[str]) -> Optional[GenderType]:
    """Return the gender a leave type is reserved for, or None if it is general.

    A code in the maternity list or a name containing "maternity" is
    female-only; the paternity equivalents are male-only.
    """
    code_u = (code or "").strip().upper()
    name_l = (name or "").lower()
    if code_u in FEMALE_LEAVE_CODES or FEMALE_LEAVE_KEYWORD in name_l:
        return GenderType.female
    if code_u in MALE_LEAVE_CODES or MALE_LEAVE_KEYWORD in name_l:
        return GenderType.male
    return None


def is_visible_to(leave_type: LeaveType, gender: Optional[GenderType]) -> bool:
    """General types are visible to everyone; gendered ones only to a match."""
    reserved = classify_leave_gender(leave_type.code, leave_type.name)
    return reserved is None or reserved == gender


def _employee_gender(employee: Employee) -> Optional[GenderType]:
    return employee.user.gender if employee.user is not None else None


def _dec(value) -> Decimal:
    return Decimal(str(value or 0))


# ── Response builders ───────────────────────────────────────────────

def _type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    response = LeaveTypeResponse.model_validate(leave_type)
    response.applicable_gender = classify_leave_gender(leave_type.code, leave_type.name)
    return response


def _balance_response(balance: LeaveBalance) -> LeaveBalanceResponse:
    leave_type = balance.leave_type
    return LeaveBalanceResponse(
        id=balance.id,
        employee_id=balance.employee_id,
        leave_type_id=balance.leave_type_id,
        leave_code=leave_type.code,
        leave_name=leave_type.name,
        year=balance.year,
        allocated_leaves=float(balance.allocated_leaves or 0),
        carried_forward=float(balance.carried_forward or 0),
        used_leaves=float(balance.used_leaves or 0),
        pending_leaves=float(balance.pending_leaves or 0),
        remaining=float(balance.remaining),
        applicable_gender=classify_leave_gender(leave_type.code, leave_type.name),
    )


def to_request_response(req: LeaveRequest) -> LeaveRequestResponse:
    employee = req.employee
    return LeaveRequestResponse(
        id=req.id,
        employee_id=req.employee_id,
        employee_code=employee.employee_code,
        employee_name=employee.full_name,
        department=employee.department.name if employee.department else None,
        leave_type_id=req.leave_type_id,
        leave_code=req.leave_type.code,
        leave_name=req.leave_type.name,
        start_date=req.start_date,
        end_date=req.end_date,
        duration=float(req.duration),
        is_half_day=req.is_half_day,
        reason=req.reason,
        contact_during_leave=req.contact_during_leave,
        status=req.status,
        applied_at=as_utc(req.applied_at),
        reviewed_by=req.reviewed_by,
        reviewed_at=as_utc(req.reviewed_at),
        rejection_reason=req.rejection_reason,
        cancelled_at=as_utc(req.cancelled_at),
    )


def resolve_duration(
    start: date,
    end: date,
    is_half_day: bool,
    requested: Optional[float],
) -> Decimal:
    """Days charged for a request.

    Half days are always 0.5; otherwise an explicit duration wins and the
    inclusive calendar-day count is the default.
    """
    if is_half_day:
        return _HALF
    span = Decimal((end - start).days + 1)
    duration = _dec(requested) if requested is not None else span
    if duration > span:
        raise ValidationException(
            {"duration": [f"Duration cannot exceed the {span} day(s) between the dates."]}
        )
    if duration > MAX_LEAVE_DURATION:
        raise ValidationException(
            {"duration": [f"A single request cannot exceed {MAX_LEAVE_DURATION} days."]}
        )
    if duration % _HALF:
        raise ValidationException({"duration": ["Duration must be a multiple of 0.5 days."]})
    return duration


# ═════════════════════════════════════════════════════════════════════
# LeaveTypeService
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeService:

    @staticmethod
    async def _get(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        leave_type = await db.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return leave_type

    @staticmethod
    async def list_types(
        db: AsyncSession,
        *,
        include_inactive: bool = False,
        gender: Optional[GenderType] = None,
        filter_gender: bool = False,
    ) -> list[LeaveTypeResponse]:
        """All leave types; with *filter_gender*, only those visible to *gender*."""
        query = select(LeaveType).order_by(LeaveType.code)
        if not include_inactive:
            query = query.where(LeaveType.is_active.is_(True))
        types = (await db.execute(query)).scalars().all()
        if filter_gender:
            types = [t for t in types if is_visible_to(t, gender)]
        return [_type_response(t) for t in types]

    @staticmethod
    async def _ensure_unique_code(
        db: AsyncSession, code: str, exclude_id: Optional[uuid.UUID] = None
    ) -> None:
        query = select(LeaveType.id).where(LeaveType.code == code)
        if exclude_id is not None:
            query = query.where(LeaveType.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError("code", code)

    @staticmethod
    async def create_type(
        db: AsyncSession,
        data: LeaveTypeCreate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeResponse:
        await LeaveTypeService._ensure_unique_code(db, data.code)
        values = data.model_dump()
        values["default_annual_quota"] = _dec(values["default_annual_quota"])
        leave_type = LeaveType(**values)
        db.add(leave_type)
        await db.flush()

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=data.model_dump(mode="json"),
        )
        logger.info("Created leave type %s", leave_type.code)
        return _type_response(leave_type)

    @staticmethod
    async def update_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        data: LeaveTypeUpdate,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveTypeResponse:
        leave_type = await LeaveTypeService._get(db, leave_type_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "code" in changes:
            await LeaveTypeService._ensure_unique_code(db, changes["code"], leave_type.id)
        if "default_annual_quota" in changes:
            changes["default_annual_quota"] = _dec(changes["default_annual_quota"])

        for key, value in changes.items():
            setattr(leave_type, key, value)
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            new_values=data.model_dump(exclude_unset=True, mode="json"),
        )
        return _type_response(leave_type)

    @staticmethod
    async def deactivate_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Leave types are referenced by history, so deletion only deactivates."""
        leave_type = await LeaveTypeService._get(db, leave_type_id)
        leave_type.is_active = False
        await db.flush()
        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="leave_type",
            entity_id=leave_type.id,
            actor_id=actor_id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Balances and the leave request lifecycle."""

    # ── Balances ────────────────────────────────────────────────────

    @staticmethod
    async def _find_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await db.execute(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )
        return result.scalars().first()

    @staticmethod
    async def get_or_create_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        year: int,
    ) -> LeaveBalance:
        """Fetch the (employee, type, year) balance, seeding it from the quota.

        The insert runs in a savepoint; losing a race against a concurrent
        first read falls back to the row the other session created.
        """
        balance = await LeaveService._find_balance(db, employee_id, leave_type.id, year)
        if balance is not None:
            return balance

        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            year=year,
            allocated_leaves=_dec(leave_type.default_annual_quota),
            carried_forward=Decimal("0"),
            used_leaves=Decimal("0"),
            pending_leaves=Decimal("0"),
        )
        try:
            async with db.begin_nested():
                db.add(balance)
                await db.flush()
        except IntegrityError:
            existing = await LeaveService._find_balance(db, employee_id, leave_type.id, year)
            if existing is None:
                raise
            logger.info(
                "%s balance for employee %s (%d) created concurrently",
                leave_type.code, employee_id, year,
            )
            return existing

        balance.leave_type = leave_type
        logger.info(
            "Created %s balance for employee %s (%d)", leave_type.code, employee_id, year
        )
        return balance

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        employee: Employee,
        year: int,
    ) -> list[LeaveBalanceResponse]:
        """One balance per active leave type visible to the employee's gender."""
        types = (
            await db.execute(
                select(LeaveType)
                .where(LeaveType.is_active.is_(True))
                .order_by(LeaveType.code)
            )
        ).scalars().all()
        gender = _employee_gender(employee)

        balances = []
        for leave_type in types:
            if not is_visible_to(leave_type, gender):
                continue
            balance = await LeaveService.get_or_create_balance(
                db, employee.id, leave_type, year
            )
            balances.append(_balance_response(balance))
        return balances

    @staticmethod
    async def upsert_balance(
        db: AsyncSession,
        data: LeaveBalanceUpsert,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> LeaveBalanceResponse:
        """Admin override of allocated and carried-forward days."""
        if await db.get(Employee, data.employee_id) is None:
            raise NotFoundException("Employee", str(data.employee_id))
        leave_type = await LeaveTypeService._get(db, data.leave_type_id)
        balance = await LeaveService.get_or_create_balance(
            db, data.employee_id, leave_type, data.year
        )
        old = {
            "allocated_leaves": float(balance.allocated_leaves),
            "carried_forward": float(balance.carried_forward),
        }
        if data.allocated_leaves is not None:
            balance.allocated_leaves = _dec(data.allocated_leaves)
        if data.carried_forward is not None:
            if data.carried_forward and not leave_type.is_carry_forward:
                raise BusinessRuleError(
                    detail=f"Leave type {leave_type.code} does not allow carry forward."
                )
            balance.carried_forward = _dec(data.carried_forward)
        await db.flush()

        await create_audit_entry(
            db,
            action="update_balance",
            entity_type="leave_balance",
            entity_id=balance.id,
            actor_id=actor_id,
            old_values=old,
            new_values={
                "allocated_leaves": float(balance.allocated_leaves),
                "carried_forward": float(balance.carried_forward),
            },
        )
        return _balance_response(balance)

    # ── Lookups ─────────────────────────────────────────────────────

    @staticmethod
    async def get_request(db: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return req

    @staticmethod
    async def _check_overlap(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        query = select(LeaveRequest.id).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_(_ACTIVE_STATUSES),
            LeaveRequest.start_date <= end,
            LeaveRequest.end_date >= start,
        )
        if exclude_id is not None:
            query = query.where(LeaveRequest.id != exclude_id)
        if (await db.execute(query)).first():
            raise ConflictError(
                "date_range",
                f"{start.isoformat()}..{end.isoformat()}",
                detail="You already have a pending or approved leave in this period.",
            )

    @staticmethod
    async def _usable_type(
        db: AsyncSession,
        employee: Employee,
        leave_type_id: uuid.UUID,
        duration: Decimal,
    ) -> LeaveType:
        leave_type = await LeaveTypeService._get(db, leave_type_id)
        if not leave_type.is_active:
            raise BusinessRuleError(detail=f"Leave type {leave_type.code} is not active.")
        if not is_visible_to(leave_type, _employee_gender(employee)):
            raise ForbiddenException(detail=f"Leave type {leave_type.code} is not available to you.")
        if leave_type.max_consecutive_days and duration > leave_type.max_consecutive_days:
            raise BusinessRuleError(
                detail=(
                    f"{leave_type.name} allows at most "
                    f"{leave_type.max_consecutive_days} consecutive day(s)."
                )
            )
        return leave_type

    @staticmethod
    def _ensure_available(balance: LeaveBalance, duration: Decimal) -> None:
        if duration > balance.remaining:
            raise BusinessRuleError(
                detail=(
                    f"Insufficient {balance.leave_type.code} balance: "
                    f"{balance.remaining} day(s) remaining, {duration} requested."
                )
            )

    @staticmethod
    async def _approver_user_id(
        db: AsyncSession, employee: Employee
    ) -> Optional[uuid.UUID]:
        """Reporting manager's user, falling back to the department head."""
        if employee.reporting_manager_id is not None:
            manager = await db.get(Employee, employee.reporting_manager_id)
            if manager is not None and manager.is_active:
                return manager.user_id
        if employee.department_id is not None:
            department = await db.get(Department, employee.department_id)
            if department is not None and department.head_user_id not in (None, employee.user_id):
                return department.head_user_id
        return None

    # ── Attendance sync ─────────────────────────────────────────────

    @staticmethod
    async def _mark_attendance(db: AsyncSession, req: LeaveRequest) -> int:
        """Set every day of an approved request to ``leave``."""
        existing = {
            r.attendance_date: r
            for r in (
                await db.execute(
                    select(AttendanceRecord).where(
                        AttendanceRecord.employee_id == req.employee_id,
                        AttendanceRecord.attendance_date >= req.start_date,
                        AttendanceRecord.attendance_date <= req.end_date,
                    )
                )
            ).scalars().all()
        }
        count = 0
        for day in iter_days(req.start_date, req.end_date):
            record = existing.get(day)
            if record is None:
                record = AttendanceRecord(
                    employee_id=req.employee_id,
                    attendance_date=day,
                    work_hours=Decimal("0"),
                )
                db.add(record)
            record.status = AttendanceStatus.leave
            record.is_leave = True
            record.leave_request_id = req.id
            count += 1
        await db.flush()
        return count

    @staticmethod
    async def _revert_attendance(db: AsyncSession, req: LeaveRequest) -> int:
        """Days marked as leave for *req* go back to ``absent``."""
        records = (
            await db.execute(
                select(AttendanceRecord).where(
                    AttendanceRecord.leave_request_id == req.id,
                    AttendanceRecord.status == AttendanceStatus.leave,
                )
            )
        ).scalars().all()
        for record in records:
            record.status = AttendanceStatus.absent
            record.is_leave = False
            record.leave_request_id = None
        await db.flush()
        return len(records)

    # ── Apply ───────────────────────────────────────────────────────

    @staticmethod
    async def apply_leave(
        db: AsyncSession,
        employee: Employee,
        data: LeaveRequestCreate,
    ) -> LeaveRequestResponse:
        """Submit a leave request and reserve its days as pending.

        Types that do not require approval are approved immediately.
        """
        duration = resolve_duration(
            data.start_date, data.end_date, data.is_half_day, data.duration
        )
        leave_type = await LeaveService._usable_type(db, employee, data.leave_type_id, duration)
        await LeaveService._check_overlap(db, employee.id, data.start_date, data.end_date)

        balance = await LeaveService.get_or_create_balance(
            db, employee.id, leave_type, data.start_date.year
        )
        LeaveService._ensure_available(balance, duration)

        req = LeaveRequest(
            employee_id=employee.id,
            leave_type_id=leave_type.id,
            start_date=data.start_date,
            end_date=data.end_date,
            duration=duration,
            is_half_day=data.is_half_day,
            reason=data.reason,
            contact_during_leave=data.contact_during_leave,
            status=LeaveStatus.pending,
            applied_at=utc_now(),
        )
        db.add(req)
        await db.flush()

        if leave_type.requires_approval:
            balance.pending_leaves = _dec(balance.pending_leaves) + duration
            await db.flush()
            approver = await LeaveService._approver_user_id(db, employee)
            if approver is not None:
                await notify_leave_request(db, req, approver, employee.full_name)
        else:
            balance.used_leaves = _dec(balance.used_leaves) + duration
            req.status = LeaveStatus.approved
            req.reviewed_at = utc_now()
            await db.flush()
            await LeaveService._mark_attendance(db, req)

        await create_audit_entry(
            db,
            action="apply",
            entity_type="leave_request",
            entity_id=req.id,
            actor_id=employee.user_id,
            new_values={
                "leave_type": leave_type.code,
                "start_date": data.start_date.isoformat(),
                "end_date": data.end_date.isoformat(),
                "duration": float(duration),
                "status": req.status.value,
            },
        )
        logger.info(
            "Leave %s (%s, %s day(s)) by employee %s is %s",
            req.id, leave_type.code, duration, employee.employee_code, req.status.value,
        )
        return to_request_response(await LeaveService.get_request(db, req.id))

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_leave(
        db: AsyncSession,
        employee: Employee,
        request_id: uuid.UUID,
        data: LeaveRequestUpdate,
    ) -> LeaveRequestResponse:
        """Edit one's own request while it is still pending."""
        req = await LeaveService.get_request(db, request_id)
        if req.employee_id != employee.id:
            raise ForbiddenException(detail="You can only edit your own leave requests.")
        if req.status != LeaveStatus.pending:
            raise BusinessRuleError(detail="Only pending leave requests can be edited.")

        changes = data.model_dump(exclude_unset=True)
        start = changes.get("start_date") or req.start_date
        end = changes.get("end_date") or req.end_date
        if end < start:
            raise ValidationException({"end_date": ["end_date must be on or after start_date."]})
        is_half_day = changes.get("is_half_day")
        if is_half_day is None:
            is_half_day = req.is_half_day
        if is_half_day and start != end:
            raise ValidationException(
                {"is_half_day": ["A half-day leave must start and end on the same date."]}
            )
        if "duration" in changes and changes["duration"] is not None:
            requested = changes["duration"]
        elif {"start_date", "end_date"} & changes.keys():
            requested = None
        else:
            requested = float(req.duration)
        duration = resolve_duration(start, end, is_half_day, requested)

        new_type = await LeaveService._usable_type(
            db, employee, changes.get("leave_type_id") or req.leave_type_id, duration
        )
        await LeaveService._check_overlap(db, employee.id, start, end, exclude_id=req.id)

        old_balance = await LeaveService.get_or_create_balance(
            db, employee.id, req.leave_type, req.start_date.year
        )
        old_balance.pending_leaves = max(
            _dec(old_balance.pending_leaves) - _dec(req.duration), Decimal("0")
        )
        await db.flush()

        new_balance = await LeaveService.get_or_create_balance(
            db, employee.id, new_type, start.year
        )
        if duration > new_balance.remaining:
            # restore the reservation before refusing
            old_balance.pending_leaves = _dec(old_balance.pending_leaves) + _dec(req.duration)
            await db.flush()
            LeaveService._ensure_available(new_balance, duration)
        new_balance.pending_leaves = _dec(new_balance.pending_leaves) + duration

        old_values = {
            "leave_type": req.leave_type.code,
            "start_date": req.start_date.isoformat(),
            "end_date": req.end_date.isoformat(),
            "duration": float(req.duration),
        }
        req.leave_type_id = new_type.id
        req.start_date = start
        req.end_date = end
        req.duration = duration
        req.is_half_day = is_half_day
        if changes.get("reason") is not None:
            req.reason = changes["reason"]
        if "contact_during_leave" in changes:
            req.contact_during_leave = changes["contact_during_leave"]
        await db.flush()

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_request",
            entity_id=req.id,
            actor_id=employee.user_id,
            old_values=old_values,
            new_values={
                "leave_type": new_type.code,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "duration": float(duration),
            },
        )
        return to_request_response(await LeaveService.get_request(db, req.id))

    # ── Cancel ──────────────────────────────────────────────────────

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        employee: Employee,
        request_id: uuid.UUID,
    ) -> LeaveRequestResponse:
        """Cancel one's own pending or approved request and restore the balance."""
        req = await LeaveService.get_request(db, request_id)
        if req.employee_id != employee.id:
            raise ForbiddenException(detail="You can only cancel your own leave requests.")
        if req.status not in _ACTIVE_STATUSES:
            raise BusinessRuleError(
                detail=f"Cannot cancel a leave request with status '{req.status.value}'."
            )

        balance = await LeaveService.get_or_create_balance(
            db, req.employee_id, req.leave_type, req.start_date.year
        )
        old_status = req.status
        if old_status == LeaveStatus.pending:
            balance.pending_leaves = max(
                _dec(balance.pending_leaves) - _dec(req.duration), Decimal("0")
            )
        else:
            balance.used_leaves = max(
                _dec(balance.used_leaves) - _dec(req.duration), Decimal("0")
            )
            await LeaveService._revert_attendance(db, req)

        req.status = LeaveStatus.cancelled
        req.cancelled_at = utc_now()
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=req.id,
            actor_id=employee.user_id,
            old_values={"status": old_status.value},
            new_values={"status": LeaveStatus.cancelled.value},
        )
        logger.info("Leave %s cancelled (was %s)", req.id, old_status.value)
        return to_request_response(await LeaveService.get_request(db, req.id))

    # ── Review ──────────────────────────────────────────────────────

    @staticmethod
    async def _reviewable(
        db: AsyncSession,
        request_id: uuid.UUID,
        reviewer_user_id: uuid.UUID,
        reviewer_employee: Optional[Employee],
        reviewer_is_admin: bool,
    ) -> LeaveRequest:
        req = await LeaveService.get_request(db, request_id)
        if req.employee.user_id == reviewer_user_id:
            raise ForbiddenException(detail="You cannot review your own leave request.")
        if not reviewer_is_admin:
            if reviewer_employee is None or not await manages(
                db, reviewer_employee, req.employee_id
            ):
                raise ForbiddenException(
                    detail="You can only review leave requests from your team."
                )
        if req.status != LeaveStatus.pending:
            raise BusinessRuleError(
                detail=f"Leave request is already {req.status.value}."
            )
        return req

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        reviewer_user_id: uuid.UUID,
        reviewer_employee: Optional[Employee] = None,
        reviewer_is_admin: bool = False,
        remarks: Optional[str] = None,
    ) -> LeaveRequestResponse:
        """Approve a pending request: pending moves to used, attendance becomes leave."""
        req = await LeaveService._reviewable(
            db, request_id, reviewer_user_id, reviewer_employee, reviewer_is_admin
        )
        balance = await LeaveService.get_or_create_balance(
            db, req.employee_id, req.leave_type, req.start_date.year
        )
        balance.pending_leaves = max(
            _dec(balance.pending_leaves) - _dec(req.duration), Decimal("0")
        )
        balance.used_leaves = _dec(balance.used_leaves) + _dec(req.duration)

        req.status = LeaveStatus.approved
        req.reviewed_by = reviewer_user_id
        req.reviewed_at = utc_now()
        await db.flush()

        days = await LeaveService._mark_attendance(db, req)
        await notify_leave_approved(db, req, req.employee.user_id)

        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=req.id,
            actor_id=reviewer_user_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.approved.value, "remarks": remarks},
        )
        logger.info("Leave %s approved by %s (%d attendance day(s))", req.id, reviewer_user_id, days)
        return to_request_response(await LeaveService.get_request(db, req.id))

    @staticmethod
    async def deny_leave(
        db: AsyncSession,
        request_id: uuid.UUID,
        rejection_reason: str,
        *,
        reviewer_user_id: uuid.UUID,
        reviewer_employee: Optional[Employee] = None,
        reviewer_is_admin: bool = False,
    ) -> LeaveRequestResponse:
        """Deny a pending request and release its reserved days."""
        req = await LeaveService._reviewable(
            db, request_id, reviewer_user_id, reviewer_employee, reviewer_is_admin
        )
        balance = await LeaveService.get_or_create_balance(
            db, req.employee_id, req.leave_type, req.start_date.year
        )
        balance.pending_leaves = max(
            _dec(balance.pending_leaves) - _dec(req.duration), Decimal("0")
        )

        req.status = LeaveStatus.denied
        req.rejection_reason = rejection_reason
        req.reviewed_by = reviewer_user_id
        req.reviewed_at = utc_now()
        await db.flush()

        await notify_leave_denied(db, req, req.employee.user_id)
        await create_audit_entry(
            db,
            action="deny",
            entity_type="leave_request",
            entity_id=req.id,
            actor_id=reviewer_user_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={
                "status": LeaveStatus.denied.value,
                "rejection_reason": rejection_reason,
            },
        )
        logger.info("Leave %s denied by %s", req.id, reviewer_user_id)
        return to_request_response(await LeaveService.get_request(db, req.id))

    # ── Listing ─────────────────────────────────────────────────────

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[LeaveStatus] = None,
        year: Optional[int] = None,
        leave_type_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        team_of: Optional[Employee] = None,
    ) -> tuple[list[LeaveRequestResponse], PaginationMeta]:
        query = select(LeaveRequest).order_by(LeaveRequest.applied_at.desc())
        if employee_id is not None:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        if year is not None:
            query = query.where(extract("year", LeaveRequest.start_date) == year)
        if leave_type_id is not None:
            query = query.where(LeaveRequest.leave_type_id == leave_type_id)
        if department_id is not None or team_of is not None:
            emp_ids = select(Employee.id)
            if department_id is not None:
                emp_ids = emp_ids.where(Employee.department_id == department_id)
            if team_of is not None:
                emp_ids = emp_ids.where(team_condition(team_of))
            query = query.where(LeaveRequest.employee_id.in_(emp_ids))

        rows, meta = await paginate(db, query, pagination, model=LeaveRequest)
        return [to_request_response(r) for r in rows], meta

    @staticmethod
    async def pending_approvals(
        db: AsyncSession,
        reviewer: Optional[Employee],
        *,
        reviewer_is_admin: bool = False,
    ) -> list[LeaveRequestResponse]:
        """Pending requests the reviewer may act on, oldest first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .order_by(LeaveRequest.applied_at)
        )
        if not reviewer_is_admin:
            if reviewer is None:
                return []
            query = query.where(
                LeaveRequest.employee_id.in_(select(Employee.id).where(team_condition(reviewer)))
            )
        elif reviewer is not None:
            query = query.where(LeaveRequest.employee_id != reviewer.id)
        rows: Sequence[LeaveRequest] = (await db.execute(query)).scalars().unique().all()
        return [to_request_response(r) for r in rows]

    @staticmethod
    async def requests_between(
        db: AsyncSession,
        start: date,
        end: date,
        *,
        department_id: Optional[uuid.UUID] = None,
    ) -> list[LeaveRequest]:
        """Requests overlapping [start, end], for reports."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.start_date <= end, LeaveRequest.end_date >= start)
            .order_by(LeaveRequest.start_date)
        )
        if department_id is not None:
            query = query.where(
                LeaveRequest.employee_id.in_(
                    select(Employee.id).where(Employee.department_id == department_id)
                )
            )
        return list((await db.execute(query)).scalars().unique().all())
