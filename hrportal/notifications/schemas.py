"""Notification Pydantic schemas for request / response validation."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from hrportal.common.constants import (
    MAX_NOTIFICATION_MESSAGE_LENGTH,
    MAX_NOTIFICATION_TITLE_LENGTH,
    NotificationPriority,
)
from hrportal.common.pagination import PaginationMeta


# ── Requests ────────────────────────────────────────────────────────

class NotificationCreate(BaseModel):
    """Announcement targeted at users, a department, or everyone."""

    title: str = Field(..., min_length=1, max_length=MAX_NOTIFICATION_TITLE_LENGTH)
    message: str = Field(..., min_length=1, max_length=MAX_NOTIFICATION_MESSAGE_LENGTH)
    priority: NotificationPriority = NotificationPriority.medium
    recipient_ids: list[uuid.UUID] = Field(default_factory=list)
    department_id: Optional[uuid.UUID] = None
    all_employees: bool = False
    expires_at: Optional[datetime] = None


# ── Responses ───────────────────────────────────────────────────────

class NotificationResponse(BaseModel):
    """A notification as seen by one recipient."""

    id: uuid.UUID
    title: str
    message: str
    priority: NotificationPriority
    sender_id: Optional[uuid.UUID] = None
    sender_name: Optional[str] = None
    department_id: Optional[uuid.UUID] = None
    department_name: Optional[str] = None
    all_employees: bool = False
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime


class NotificationAdminResponse(NotificationResponse):
    """Sender/admin view with delivery statistics."""

    recipient_count: int = 0
    read_count: int = 0


class NotificationListMeta(PaginationMeta):
    """Extends standard pagination meta with unread count."""

    unread: int


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    meta: NotificationListMeta


class NotificationAdminListResponse(BaseModel):
    data: list[NotificationAdminResponse]
    meta: PaginationMeta
