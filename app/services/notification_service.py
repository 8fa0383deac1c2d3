"""
Notification fan-out.

Notifications are persisted, pushed live to connected users through the
in-process notification bus, and mailed when priority is HIGH or URGENT.
Live pushes and emails are held until the surrounding transaction commits,
so a rolled back request never produces either.
"""

from datetime import datetime, timedelta
from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.notification_bus import NotificationBus, notification_bus
from app.db.hooks import on_commit
from app.models.labour import DecisionStatus, LabourAssignment, Stage
from app.models.notification import Notification, NotificationPriority, NotificationType
from app.models.user import User, UserRole
from app.services.email_service import EmailService
from app.services.stage_pipeline import stage_label

logger = structlog.get_logger(__name__)

EMAIL_PRIORITIES = (NotificationPriority.HIGH, NotificationPriority.URGENT)


class NotificationService:
    """Persist, publish and (for urgent items) email notifications."""

    def __init__(
        self,
        db: AsyncSession,
        bus: Optional[NotificationBus] = None,
        email: Optional[EmailService] = None,
    ):
        self.db = db
        self.bus = bus or notification_bus
        self.email = email or EmailService()

    async def notify(
        self,
        recipient: User,
        type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        action_url: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient.id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            action_url=action_url,
            is_read=False,
        )
        self.db.add(notification)
        await self.db.flush()

        payload = notification.to_payload()
        recipient_id = recipient.id
        on_commit(self.db, lambda: self.bus.publish(recipient_id, payload))

        if priority in EMAIL_PRIORITIES and self.email.enabled and recipient.email:
            email = recipient.email
            on_commit(self.db, lambda: self.email.send_notification_later(email, title, message, action_url))

        logger.info(
            "notification_created",
            recipient_id=str(recipient.id),
            type=type.value,
            priority=priority.value,
        )
        return notification

    async def notify_role(
        self,
        role: UserRole,
        type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.NORMAL,
        action_url: Optional[str] = None,
    ) -> List[Notification]:
        """Notify every active user holding ``role``."""
        result = await self.db.execute(
            select(User).where(User.role == role, User.is_active.is_(True))
        )
        return [
            await self.notify(user, type, title, message, priority, action_url)
            for user in result.scalars().all()
        ]

    async def list_for_user(self, user_id, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = select(Notification).where(Notification.recipient_id == user_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def unread_count(self, user_id) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    async def mark_read(self, notification_id, user_id) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is not None and not notification.is_read:
            notification.is_read = True
            await self.db.flush()
        return notification


async def send_stage_reminders(db: AsyncSession, days: int, service: Optional[NotificationService] = None) -> int:
    """Remind client and agency about assignments stuck in one stage.

    An assignment is stuck when it is neither deployed nor rejected and has
    not been updated for more than ``days`` days. Returns the number of
    assignments reminded about.
    """
    service = service or NotificationService(db)
    cutoff = datetime.utcnow() - timedelta(days=days)
    last_update = func.coalesce(LabourAssignment.updated_at, LabourAssignment.created_at)

    result = await db.execute(
        select(LabourAssignment).where(
            LabourAssignment.current_stage != Stage.DEPLOYED,
            LabourAssignment.admin_status != DecisionStatus.REJECTED,
            LabourAssignment.client_status != DecisionStatus.REJECTED,
            last_update < cutoff,
        )
    )
    assignments = result.scalars().all()

    for assignment in assignments:
        role = assignment.job_role
        label = stage_label(assignment.current_stage)
        title = f"Action pending: {label}"
        message = (
            f"{assignment.labour.name} ({role.title}) has been in stage "
            f"'{label}' for more than {days} days."
        )

        recipients = [assignment.agency.user, role.requirement.client.user]
        for recipient in recipients:
            if recipient is None:
                continue
            await service.notify(
                recipient,
                NotificationType.STAGE_PENDING_ACTION,
                title,
                message,
                priority=NotificationPriority.HIGH,
                action_url=f"/assignments/{assignment.id}/timeline",
            )

    logger.info("stage_reminders_sent", count=len(assignments), days=days)
    return len(assignments)
