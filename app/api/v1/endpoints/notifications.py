"""
Notifications API
In-app notifications and the live Server-Sent Events stream
"""

import json
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_notification_service, require_participant
from app.core.notification_bus import notification_bus
from app.models.user import User
from app.schemas.notification import NotificationListResponse, NotificationOut
from app.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

router = APIRouter()

SSE_HEARTBEAT_SECONDS = 25.0


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread: bool = Query(False, description="Only unread notifications"),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(require_participant),
    notifications: NotificationService = Depends(get_notification_service),
):
    """
    Notifications of the current user, newest first

    **Auth**: Any role
    """
    items = await notifications.list_for_user(current_user.id, unread_only=unread, limit=limit)
    return {
        "notifications": items,
        "unread_count": await notifications.unread_count(current_user.id),
    }


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_notification_read(
    notification_id: UUID,
    current_user: User = Depends(require_participant),
    notifications: NotificationService = Depends(get_notification_service),
    db: AsyncSession = Depends(get_db),
):
    """Mark one of the current user's notifications as read."""
    notification = await notifications.mark_read(notification_id, current_user.id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    await db.commit()
    return notification


@router.get("/stream")
async def stream_notifications(
    request: Request,
    current_user: User = Depends(require_participant),
):
    """
    Live notifications as Server-Sent Events

    **Auth**: Any role

    Each event's `data` is the notification JSON. A comment line is sent
    every 25 seconds of silence to keep proxies from closing the connection.
    """
    user_id = str(current_user.id)

    async def event_source():
        logger.info("notification_stream_opened", user_id=user_id)
        yield ": connected\n\n"
        try:
            async for payload in notification_bus.stream(user_id, heartbeat=SSE_HEARTBEAT_SECONDS):
                if await request.is_disconnected():
                    break
                if payload is None:
                    yield ": keep-alive\n\n"
                else:
                    yield f"event: notification\ndata: {json.dumps(payload)}\n\n"
        finally:
            logger.info("notification_stream_closed", user_id=user_id)

    return StreamingResponse(
        event_source(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
