"""Notification schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.models.notification import NotificationPriority, NotificationType
from app.schemas.common import CamelModel


class NotificationOut(CamelModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    action_url: Optional[str] = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(CamelModel):
    notifications: List[NotificationOut]
    unread_count: int
