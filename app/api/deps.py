"""
API Dependencies
Common dependencies for API endpoints (authentication, authorization, services)
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.security import (  # noqa: F401
    get_current_agency,
    get_current_client,
    get_current_user,
    require_admin,
    require_role,
)
from app.db.session import get_db  # noqa: F401
from app.models.user import UserRole
from app.services.assignment_service import AssignmentService
from app.services.forwarding_service import ForwardingService
from app.services.labour_profile_service import LabourProfileService
from app.services.notification_service import NotificationService
from app.services.offer_letter_service import OfferLetterService
from app.services.requirement_service import RequirementService

# Any authenticated workflow participant
require_participant = require_role(
    UserRole.RECRUITMENT_ADMIN,
    UserRole.CLIENT_ADMIN,
    UserRole.RECRUITMENT_AGENCY,
)


def get_requirement_service(db: AsyncSession = Depends(get_db)) -> RequirementService:
    return RequirementService(db)


def get_forwarding_service(db: AsyncSession = Depends(get_db)) -> ForwardingService:
    return ForwardingService(db)


def get_assignment_service(db: AsyncSession = Depends(get_db)) -> AssignmentService:
    return AssignmentService(db)


def get_labour_profile_service(db: AsyncSession = Depends(get_db)) -> LabourProfileService:
    return LabourProfileService(db)


def get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


def get_offer_letter_service(db: AsyncSession = Depends(get_db)) -> OfferLetterService:
    return OfferLetterService(db)


async def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)) -> None:
    """
    Guard for externally triggered jobs (cron, EventBridge)
    """
    if not settings.CRON_SECRET:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron endpoint is not configured",
        )
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.CRON_SECRET):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )
