"""
Labour profiles: agency submissions and admin review.

Profiles start RECEIVED with verification PENDING. Only APPROVED profiles
that are at least partially verified can be assigned to a job role; once
placed (SHORTLISTED) or DEPLOYED the assignment workflow owns the status.
"""

from typing import List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTransitionError, NotFoundError
from app.models.agency import Agency
from app.models.labour import LabourProfile, LabourProfileStatus, VerificationStatus
from app.models.notification import NotificationPriority, NotificationType
from app.models.user import User
from app.schemas.labour import LabourProfileCreate
from app.services.audit_service import record_audit
from app.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

# Statuses set by the assignment workflow, not by review
PLACED_STATUSES = frozenset({LabourProfileStatus.SHORTLISTED, LabourProfileStatus.DEPLOYED})


class LabourProfileService:
    def __init__(self, db: AsyncSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    async def get(self, profile_id) -> LabourProfile:
        profile = await self.db.get(LabourProfile, profile_id)
        if profile is None:
            raise NotFoundError("Labour profile", profile_id)
        return profile

    async def list_profiles(self, agency_id=None, status: Optional[LabourProfileStatus] = None) -> List[LabourProfile]:
        query = select(LabourProfile)
        if agency_id is not None:
            query = query.where(LabourProfile.agency_id == agency_id)
        if status is not None:
            query = query.where(LabourProfile.status == status)
        result = await self.db.execute(query.order_by(LabourProfile.created_at.desc()))
        return list(result.scalars().all())

    async def create(self, agency: Agency, data: LabourProfileCreate, actor: User) -> LabourProfile:
        profile = LabourProfile(
            agency_id=agency.id,
            agency=agency,
            name=data.name.strip(),
            email=data.email,
            phone=data.phone,
            nationality=data.nationality,
            passport_number=data.passport_number,
            date_of_birth=data.date_of_birth,
            languages=list(data.languages),
            experience_years=data.experience_years,
            status=LabourProfileStatus.RECEIVED,
            verification_status=VerificationStatus.PENDING,
        )
        self.db.add(profile)
        await self.db.flush()

        await record_audit(
            self.db,
            "LABOUR_PROFILE_CREATED",
            "LabourProfile",
            profile.id,
            performed_by_id=actor.id,
            description=f"{agency.agency_name} added labour profile {profile.name}",
            new_data={"name": profile.name, "status": profile.status},
        )
        logger.info("labour_profile_created", profile_id=str(profile.id), agency_id=str(agency.id))
        return profile

    async def review(
        self,
        profile_id,
        status: LabourProfileStatus,
        actor: User,
        verification_status: Optional[VerificationStatus] = None,
    ) -> LabourProfile:
        """Admin review; placed or deployed labour is left to the assignment workflow."""
        profile = await self.get(profile_id)
        if profile.status in PLACED_STATUSES:
            raise InvalidTransitionError(
                f"Labour profile is {profile.status.value.lower()} and cannot be reviewed",
                current=profile.status,
                requested=status,
            )

        old = {"status": profile.status, "verificationStatus": profile.verification_status}
        profile.status = status
        if verification_status is not None:
            profile.verification_status = verification_status
        await self.db.flush()

        await record_audit(
            self.db,
            "LABOUR_PROFILE_STATUS_CHANGE",
            "LabourProfile",
            profile.id,
            performed_by_id=actor.id,
            description=f"Labour profile {profile.name} set to {status.value}",
            old_data=old,
            new_data={"status": profile.status, "verificationStatus": profile.verification_status},
        )

        agency_user = profile.agency.user if profile.agency else None
        if agency_user is not None and old["status"] != status:
            await self.notifications.notify(
                agency_user,
                NotificationType.LABOUR_PROFILE_STATUS_CHANGED,
                "Labour profile reviewed",
                f"{profile.name} is now {status.value.replace('_', ' ').lower()}.",
                priority=NotificationPriority.HIGH if status == LabourProfileStatus.REJECTED else NotificationPriority.NORMAL,
                action_url="/agency/labour-profiles",
            )

        logger.info(
            "labour_profile_reviewed",
            profile_id=str(profile.id),
            old_status=old["status"].value,
            new_status=status.value,
        )
        return profile
