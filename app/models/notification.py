"""In-app notification and audit log models."""

import enum

from sqlalchemy import Boolean, Column, ForeignKey, String, Text, Uuid

from app.db.base import Base, JSONType, enum_type


class NotificationPriority(str, enum.Enum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationType(str, enum.Enum):
    REQUIREMENT_CREATED = "REQUIREMENT_CREATED"
    REQUIREMENT_STATUS_CHANGED = "REQUIREMENT_STATUS_CHANGED"
    REQUIREMENT_FORWARDED_TO_AGENCY = "REQUIREMENT_FORWARDED_TO_AGENCY"
    REQUIREMENT_NEEDS_REVISION = "REQUIREMENT_NEEDS_REVISION"
    FORWARDING_RESPONSE = "FORWARDING_RESPONSE"
    ASSIGNMENT_CREATED = "ASSIGNMENT_CREATED"
    ASSIGNMENT_STATUS_CHANGED = "ASSIGNMENT_STATUS_CHANGED"
    STAGE_COMPLETED = "STAGE_COMPLETED"
    STAGE_FAILED = "STAGE_FAILED"
    STAGE_PENDING_ACTION = "STAGE_PENDING_ACTION"
    LABOUR_DEPLOYED = "LABOUR_DEPLOYED"
    LABOUR_PROFILE_STATUS_CHANGED = "LABOUR_PROFILE_STATUS_CHANGED"


class Notification(Base):
    """Persisted notification; also pushed live over the notification bus."""

    __tablename__ = "notifications"

    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(enum_type(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(enum_type(NotificationPriority), default=NotificationPriority.NORMAL, nullable=False)
    action_url = Column(String(500))
    is_read = Column(Boolean, default=False, nullable=False, index=True)

    def to_payload(self) -> dict:
        return {
            "id": str(self.id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "priority": self.priority.value,
            "actionUrl": self.action_url,
            "isRead": self.is_read,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class AuditLog(Base):
    """Before/after snapshot of a workflow mutation."""

    __tablename__ = "audit_logs"

    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(String(64), nullable=False, index=True)
    performed_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    description = Column(Text)
    old_data = Column(JSONType, default=dict)
    new_data = Column(JSONType, default=dict)
