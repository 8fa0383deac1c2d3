"""Database models."""

# Import all models in dependency order to ensure proper relationship initialization
# This prevents SQLAlchemy circular dependency errors

# Base models (no foreign keys)
from app.models.user import User, UserRole

# Models with foreign keys to base models
from app.models.client import Client
from app.models.agency import Agency, AgencyStatus

# Workflow models
from app.models.requirement import (
    Requirement,
    RequirementStatus,
    JobRole,
    JobRoleStatus,
    JobRoleForwarding,
    ForwardingStatus,
    OfferLetterDetails,
)
from app.models.labour import (
    LabourProfile,
    LabourProfileStatus,
    VerificationStatus,
    LabourAssignment,
    DecisionStatus,
    LabourStageHistory,
    Stage,
    StageStatus,
)
from app.models.notification import Notification, NotificationPriority, NotificationType, AuditLog

# Export all models
__all__ = [
    "User",
    "UserRole",
    "Client",
    "Agency",
    "AgencyStatus",
    "Requirement",
    "RequirementStatus",
    "JobRole",
    "JobRoleStatus",
    "JobRoleForwarding",
    "ForwardingStatus",
    "OfferLetterDetails",
    "LabourProfile",
    "LabourProfileStatus",
    "VerificationStatus",
    "LabourAssignment",
    "DecisionStatus",
    "LabourStageHistory",
    "Stage",
    "StageStatus",
    "Notification",
    "NotificationPriority",
    "NotificationType",
    "AuditLog",
]
