"""Notification service — targeted broadcast, read state, and system notices."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.models import User
from hrportal.common.constants import NotificationPriority
from hrportal.common.exceptions import (
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from hrportal.common.pagination import PaginationParams, build_meta
from hrportal.common.timeutils import as_utc, utc_now
from hrportal.config import settings
from hrportal.core_hr.models import Employee
from hrportal.notifications.models import Notification, NotificationRecipient
from hrportal.notifications.schemas import (
    NotificationAdminListResponse,
    NotificationAdminResponse,
    NotificationCreate,
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


def _default_expiry() -> datetime:
    return utc_now() + timedelta(days=settings.NOTIFICATION_EXPIRY_DAYS)


def _to_response(
    notification: Notification,
    recipient: Optional[NotificationRecipient] = None,
) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        title=notification.title,
        message=notification.message,
        priority=notification.priority,
        sender_id=notification.sender_id,
        sender_name=notification.sender.full_name if notification.sender else None,
        department_id=notification.department_id,
        department_name=notification.department.name if notification.department else None,
        all_employees=notification.all_employees,
        entity_type=notification.entity_type,
        entity_id=notification.entity_id,
        is_read=recipient.is_read if recipient else False,
        read_at=as_utc(recipient.read_at) if recipient else None,
        expires_at=as_utc(notification.expires_at),
        created_at=as_utc(notification.created_at) or utc_now(),
    )


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    # ── Creation ────────────────────────────────────────────────────

    @staticmethod
    async def _active_user_ids(
        db: AsyncSession,
        *,
        user_ids: Optional[Iterable[uuid.UUID]] = None,
        department_id: Optional[uuid.UUID] = None,
        everyone: bool = False,
    ) -> set[uuid.UUID]:
        """Resolve one target into the ids of active users it covers."""
        query = select(User.id).where(User.is_active.is_(True))
        if everyone:
            pass
        elif department_id is not None:
            query = query.join(Employee, Employee.user_id == User.id).where(
                Employee.department_id == department_id,
                Employee.is_active.is_(True),
            )
        elif user_ids is not None:
            ids = list(user_ids)
            if not ids:
                return set()
            query = query.where(User.id.in_(ids))
        else:
            return set()
        return {row[0] for row in (await db.execute(query)).all()}

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_ids: Iterable[uuid.UUID],
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.medium,
        sender_id: Optional[uuid.UUID] = None,
        department_id: Optional[uuid.UUID] = None,
        all_employees: bool = False,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        expires_at: Optional[datetime] = None,
    ) -> Notification:
        """Persist a notification with one recipient row per user."""
        notification = Notification(
            title=title[:100],
            message=message[:500],
            priority=priority,
            sender_id=sender_id,
            department_id=department_id,
            all_employees=all_employees,
            entity_type=entity_type,
            entity_id=entity_id,
            expires_at=expires_at or _default_expiry(),
            created_at=utc_now(),
        )
        db.add(notification)
        await db.flush()

        for user_id in dict.fromkeys(recipient_ids):
            db.add(NotificationRecipient(notification_id=notification.id, user_id=user_id))
        await db.flush()
        return notification

    @staticmethod
    async def broadcast(
        db: AsyncSession,
        sender: User,
        data: NotificationCreate,
        *,
        sender_is_admin: bool,
    ) -> NotificationAdminResponse:
        """Send an announcement.

        At least one target is required. ``all_employees`` is admin-only and
        a manager may only address their own department. Inactive users never
        receive anything.
        """
        if not (data.recipient_ids or data.department_id or data.all_employees):
            raise ValidationException(
                {"recipients": ["Specify recipients, a department, or all employees."]}
            )
        if data.all_employees and not sender_is_admin:
            raise ForbiddenException(detail="Only admins can notify all employees.")
        if data.department_id is not None and not sender_is_admin:
            own_dept = sender.employee.department_id if sender.employee else None
            if own_dept != data.department_id:
                raise ForbiddenException(
                    detail="Managers can only notify their own department."
                )
        if data.expires_at is not None and as_utc(data.expires_at) <= utc_now():
            raise ValidationException({"expires_at": ["Expiry must be in the future."]})

        recipients: set[uuid.UUID] = set()
        if data.all_employees:
            recipients |= await NotificationService._active_user_ids(db, everyone=True)
        if data.department_id is not None:
            recipients |= await NotificationService._active_user_ids(
                db, department_id=data.department_id
            )
        if data.recipient_ids:
            recipients |= await NotificationService._active_user_ids(
                db, user_ids=data.recipient_ids
            )
        if not recipients:
            raise ValidationException({"recipients": ["No active users match the target."]})

        notification = await NotificationService.create_notification(
            db,
            recipient_ids=sorted(recipients, key=str),
            title=data.title,
            message=data.message,
            priority=data.priority,
            sender_id=sender.id,
            department_id=data.department_id,
            all_employees=data.all_employees,
            expires_at=data.expires_at,
        )
        logger.info(
            "Notification %s sent by %s to %d user(s)",
            notification.id, sender.username, len(recipients),
        )
        return await NotificationService._admin_view(db, notification.id)

    # ── Reads ───────────────────────────────────────────────────────

    @staticmethod
    def _visible_for(user_id: uuid.UUID):
        return (
            select(Notification, NotificationRecipient)
            .join(NotificationRecipient, NotificationRecipient.notification_id == Notification.id)
            .where(
                NotificationRecipient.user_id == user_id,
                Notification.expires_at > utc_now(),
            )
        )

    @staticmethod
    async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(NotificationRecipient)
            .join(Notification, NotificationRecipient.notification_id == Notification.id)
            .where(
                NotificationRecipient.user_id == user_id,
                NotificationRecipient.is_read.is_(False),
                Notification.expires_at > utc_now(),
            )
        )
        return result.scalar() or 0

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        page: int = 1,
        page_size: Optional[int] = None,
        unread_only: bool = False,
    ) -> NotificationListResponse:
        """Non-expired notifications for a user, newest first, with unread count."""
        page_size = page_size or settings.NOTIFICATION_PAGE_SIZE
        query = NotificationService._visible_for(user_id)
        if unread_only:
            query = query.where(NotificationRecipient.is_read.is_(False))

        count_q = select(func.count()).select_from(query.order_by(None).subquery())
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.order_by(Notification.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
            )
        ).all()

        meta = build_meta(page, page_size, total)
        return NotificationListResponse(
            data=[_to_response(n, r) for n, r in rows],
            meta=NotificationListMeta(
                **meta.model_dump(),
                unread=await NotificationService.get_unread_count(db, user_id),
            ),
        )

    @staticmethod
    async def _admin_view(
        db: AsyncSession,
        notification_id: uuid.UUID,
    ) -> NotificationAdminResponse:
        result = await db.execute(
            select(Notification)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True)
        )
        notification = result.scalars().first()
        if notification is None:
            raise NotFoundException("Notification", str(notification_id))
        return await NotificationService._with_stats(db, notification)

    @staticmethod
    async def _with_stats(
        db: AsyncSession,
        notification: Notification,
    ) -> NotificationAdminResponse:
        stats = await db.execute(
            select(
                func.count(NotificationRecipient.id),
                func.count(NotificationRecipient.read_at),
            ).where(NotificationRecipient.notification_id == notification.id)
        )
        total, read = stats.one()
        return NotificationAdminResponse(
            **_to_response(notification).model_dump(),
            recipient_count=total or 0,
            read_count=read or 0,
        )

    @staticmethod
    async def list_all(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        include_expired: bool = True,
    ) -> NotificationAdminListResponse:
        """Admin view of every notification with delivery statistics."""
        query = select(Notification)
        if not include_expired:
            query = query.where(Notification.expires_at > utc_now())

        count_q = select(func.count()).select_from(query.subquery())
        total: int = (await db.execute(count_q)).scalar_one()
        rows = (
            await db.execute(
                query.order_by(Notification.created_at.desc())
                .offset(pagination.offset)
                .limit(pagination.page_size)
            )
        ).scalars().all()

        return NotificationAdminListResponse(
            data=[await NotificationService._with_stats(db, n) for n in rows],
            meta=build_meta(pagination.page, pagination.page_size, total),
        )

    # ── Read state ──────────────────────────────────────────────────

    @staticmethod
    async def _recipient_row(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> NotificationRecipient:
        if await db.get(Notification, notification_id) is None:
            raise NotFoundException("Notification", str(notification_id))
        result = await db.execute(
            select(NotificationRecipient).where(
                NotificationRecipient.notification_id == notification_id,
                NotificationRecipient.user_id == user_id,
            )
        )
        row = result.scalars().first()
        if row is None:
            raise ForbiddenException(detail="You are not a recipient of this notification.")
        return row

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> NotificationResponse:
        """Mark one notification as read for the calling recipient."""
        row = await NotificationService._recipient_row(db, notification_id, user_id)
        if not row.is_read:
            row.is_read = True
            row.read_at = utc_now()
            await db.flush()

        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return _to_response(result.scalars().one(), row)

    @staticmethod
    async def mark_all_read(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Mark every unread notification as read. Returns number updated."""
        result = await db.execute(
            update(NotificationRecipient)
            .where(
                NotificationRecipient.user_id == user_id,
                NotificationRecipient.is_read.is_(False),
            )
            .values(is_read=True, read_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount

    # ── Delete ──────────────────────────────────────────────────────

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        is_admin: bool,
    ) -> bool:
        """Admins delete outright; a recipient only removes their own copy.

        Returns True when the notification itself was deleted (for a
        recipient, once nobody else still holds it).
        """
        if is_admin:
            notification = await db.get(Notification, notification_id)
            if notification is None:
                raise NotFoundException("Notification", str(notification_id))
            await db.delete(notification)
            await db.flush()
            return True

        row = await NotificationService._recipient_row(db, notification_id, user_id)
        await db.delete(row)
        await db.flush()

        remaining = await db.execute(
            select(func.count())
            .select_from(NotificationRecipient)
            .where(NotificationRecipient.notification_id == notification_id)
        )
        if remaining.scalar():
            return False
        notification = await db.get(Notification, notification_id)
        await db.delete(notification)
        await db.flush()
        return True


# ── Cross-module helpers ────────────────────────────────────────────


async def notify_leave_request(
    db: AsyncSession,
    leave_request,  # hrportal.leave.models.LeaveRequest
    approver_user_id: uuid.UUID,
    employee_name: str,
) -> Notification:
    """Notify the approver that a new leave request needs review."""
    return await NotificationService.create_notification(
        db,
        recipient_ids=[approver_user_id],
        priority=NotificationPriority.high,
        title="New Leave Request",
        message=(
            f"{employee_name} requested leave from {leave_request.start_date} to "
            f"{leave_request.end_date} ({leave_request.duration} day(s))."
        ),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_approved(
    db: AsyncSession,
    leave_request,
    employee_user_id: uuid.UUID,
) -> Notification:
    """Notify the employee that their leave request was approved."""
    return await NotificationService.create_notification(
        db,
        recipient_ids=[employee_user_id],
        title="Leave Request Approved",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} has been approved."
        ),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_leave_denied(
    db: AsyncSession,
    leave_request,
    employee_user_id: uuid.UUID,
) -> Notification:
    """Notify the employee that their leave request was denied."""
    reason = f" Reason: {leave_request.rejection_reason}" if leave_request.rejection_reason else ""
    return await NotificationService.create_notification(
        db,
        recipient_ids=[employee_user_id],
        priority=NotificationPriority.high,
        title="Leave Request Denied",
        message=(
            f"Your leave request from {leave_request.start_date} to "
            f"{leave_request.end_date} was denied.{reason}"
        ),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )
