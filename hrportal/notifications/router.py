"""Notification endpoints — inbox, read state, broadcast, delete."""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from hrportal.auth.dependencies import get_current_user, is_admin, require_permission
from hrportal.auth.models import User
from hrportal.common.pagination import PaginationParams
from hrportal.config import settings
from hrportal.database import get_db
from hrportal.notifications.schemas import (
    NotificationAdminListResponse,
    NotificationAdminResponse,
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
)
from hrportal.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — current user's inbox ────────────────────────────────────

@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.NOTIFICATION_PAGE_SIZE, ge=1, le=100),
    unread_only: bool = Query(default=False),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Non-expired notifications for the authenticated user, newest first."""
    return await NotificationService.get_notifications(
        db, user.id, page=page, page_size=page_size, unread_only=unread_only
    )


# ── POST / — send an announcement ───────────────────────────────────

@router.post("", response_model=NotificationAdminResponse, status_code=201)
async def send_notification(
    body: NotificationCreate,
    request: Request,
    user: User = Depends(require_permission("notification:send")),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.broadcast(
        db, user, body, sender_is_admin=is_admin(request)
    )


# NOTE: Static paths below MUST be registered before /{notification_id}.

@router.get("/unread-count")
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, user.id)
    return {"data": {"count": count}}


@router.get("/all", response_model=NotificationAdminListResponse)
async def list_all_notifications(
    include_expired: bool = Query(default=True),
    pagination: PaginationParams = Depends(),
    user: User = Depends(require_permission("notification:read_all")),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.list_all(
        db, pagination, include_expired=include_expired
    )


@router.put("/read-all")
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


# ── Per-notification ────────────────────────────────────────────────

@router.put("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.mark_read(db, notification_id, user.id)


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins delete for everyone; other users remove it from their inbox."""
    deleted = await NotificationService.delete_notification(
        db, notification_id, user.id, is_admin=is_admin(request)
    )
    return {"message": "Notification removed", "data": {"deleted": deleted}}
