"""
Requirement store and status state machine.

Status changes go through ``REQUIREMENT_TRANSITIONS``. Explicit changes
(PATCH by admin or client) are strict and raise ``InvalidTransitionError``;
changes made as a side effect of forwarding or assignment decisions use
``apply_status`` and are skipped, with a warning, when the table does not
allow them.
"""

from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.core.cache import CacheManager, get_cache_manager, requirement_key
from app.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from app.db.hooks import on_commit
from app.models.client import Client
from app.models.labour import LabourAssignment
from app.models.notification import NotificationPriority, NotificationType
from app.models.requirement import JobRole, JobRoleStatus, Requirement, RequirementStatus
from app.models.user import User, UserRole
from app.schemas.requirement import JobRoleCreate, RequirementDetail
from app.services.audit_service import record_audit
from app.services.notification_service import NotificationService

logger = structlog.get_logger(__name__)

S = RequirementStatus

REQUIREMENT_TRANSITIONS: Dict[RequirementStatus, FrozenSet[RequirementStatus]] = {
    S.DRAFT: frozenset({S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.UNDER_REVIEW, S.FORWARDED, S.REJECTED}),
    S.UNDER_REVIEW: frozenset({S.FORWARDED, S.REJECTED, S.CLIENT_REVIEW, S.ACCEPTED}),
    S.FORWARDED: frozenset({S.UNDER_REVIEW, S.ACCEPTED, S.REJECTED, S.CLIENT_REVIEW}),
    S.CLIENT_REVIEW: frozenset({S.UNDER_REVIEW, S.FORWARDED, S.ACCEPTED, S.REJECTED, S.COMPLETED}),
    S.ACCEPTED: frozenset({S.UNDER_REVIEW, S.CLIENT_REVIEW, S.COMPLETED}),
    S.REJECTED: frozenset(),
    S.COMPLETED: frozenset(),
}

# Statuses each role may set directly through PATCH
MANUAL_TARGETS = {
    UserRole.CLIENT_ADMIN: frozenset({S.SUBMITTED}),
    UserRole.RECRUITMENT_ADMIN: frozenset({S.UNDER_REVIEW, S.REJECTED, S.COMPLETED}),
}

# Requirements in these statuses cannot receive new forwards or assignments
CLOSED_STATUSES = frozenset({S.DRAFT, S.REJECTED, S.COMPLETED})

REQUIREMENT_TREE = (
    selectinload(Requirement.job_roles).selectinload(JobRole.forwardings),
    selectinload(Requirement.job_roles).selectinload(JobRole.assignments).selectinload(LabourAssignment.labour),
    selectinload(Requirement.job_roles).selectinload(JobRole.assignments).selectinload(LabourAssignment.stage_history),
)


def can_transition(current: RequirementStatus, new: RequirementStatus) -> bool:
    return new in REQUIREMENT_TRANSITIONS.get(current, frozenset())


def check_transition(current: RequirementStatus, new: RequirementStatus, reason: Optional[str] = None) -> None:
    """Raise unless ``current -> new`` is a legal move with its required data."""
    if not can_transition(current, new):
        raise InvalidTransitionError(
            f"Cannot change requirement status from {current.value} to {new.value}",
            current=current,
            requested=new,
        )
    if new == S.REJECTED and not (reason and reason.strip()):
        raise ValidationError("A reason is required to reject a requirement")


def parse_statuses(raw: Optional[str]) -> List[RequirementStatus]:
    """``"SUBMITTED,UNDER_REVIEW"`` -> [SUBMITTED, UNDER_REVIEW]."""
    if not raw:
        return []
    statuses = []
    for part in raw.split(","):
        part = part.strip().upper()
        if not part:
            continue
        try:
            statuses.append(RequirementStatus(part))
        except ValueError:
            raise ValidationError(f"Unknown requirement status: {part}")
    return statuses


def _build_role(data: JobRoleCreate, sort_order: int) -> JobRole:
    return JobRole(
        title=data.title,
        quantity=data.quantity,
        sort_order=sort_order,
        nationality=data.nationality,
        salary=data.salary,
        food_allowance=data.food_allowance,
        housing_allowance=data.housing_allowance,
        transportation_allowance=data.transportation_allowance,
        languages=list(data.languages),
        min_experience=data.min_experience,
        max_age=data.max_age,
        notes=data.notes,
        agency_status=JobRoleStatus.PENDING,
        admin_status=JobRoleStatus.PENDING,
        forwarded_quantity=0,
        needs_more_labour=False,
        forwardings=[],
        assignments=[],
    )


class RequirementService:
    """Client requirements: creation, drafts, listing and status changes."""

    def __init__(
        self,
        db: AsyncSession,
        notifications: Optional[NotificationService] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.cache = cache or get_cache_manager()

    # ==================== Reads ====================

    async def get(self, requirement_id) -> Requirement:
        """Load the whole requirement tree into the session.

        Roles, forwardings and assignments reached from an assignment or a
        forwarding are not eager-loaded (the relationship cycle stops the
        selectin chain), so every workflow operation enters through here
        before touching those collections.
        """
        # Pending edits would be overwritten by populate_existing
        await self.db.flush()
        result = await self.db.execute(
            select(Requirement)
            .where(Requirement.id == requirement_id)
            .options(*REQUIREMENT_TREE)
            .execution_options(populate_existing=True)
        )
        requirement = result.scalar_one_or_none()
        if requirement is None:
            raise NotFoundError("Requirement", requirement_id)
        return requirement

    async def get_detail(self, requirement_id) -> dict:
        """Full requirement tree, read through the cache."""

        async def load():
            requirement = await self.get(requirement_id)
            return serialize_requirement(requirement)

        return await self.cache.get_or_load(
            requirement_key(requirement_id), load, ttl=settings.CACHE_REQUIREMENT_TTL
        )

    async def list_requirements(
        self,
        client_id=None,
        statuses: Sequence[RequirementStatus] = (),
        include_drafts: bool = False,
    ) -> List[Requirement]:
        query = select(Requirement)
        if client_id is not None:
            query = query.where(Requirement.client_id == client_id)
        if statuses:
            query = query.where(Requirement.status.in_(list(statuses)))
        if not include_drafts:
            query = query.where(Requirement.status != S.DRAFT)
        query = query.order_by(Requirement.created_at.desc())
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ==================== Writes ====================

    async def create(self, client: Client, roles: Iterable[JobRoleCreate], actor: User, submit: bool = True) -> Requirement:
        job_roles = [_build_role(data, index) for index, data in enumerate(roles)]
        if not job_roles:
            raise ValidationError("At least one job role is required")

        requirement = Requirement(
            client_id=client.id,
            client=client,
            status=S.SUBMITTED if submit else S.DRAFT,
            job_roles=job_roles,
            offer_letter_details=None,
        )
        self.db.add(requirement)
        await self.db.flush()

        await record_audit(
            self.db,
            "REQUIREMENT_CREATED",
            "Requirement",
            requirement.id,
            performed_by_id=actor.id,
            description=f"{client.company_name} created a requirement with {len(job_roles)} job role(s)",
            new_data={"status": requirement.status, "jobRoles": len(job_roles)},
        )
        if submit:
            await self._notify_submitted(requirement, client)

        logger.info(
            "requirement_created",
            requirement_id=str(requirement.id),
            status=requirement.status.value,
            roles=len(job_roles),
        )
        return requirement

    async def update_draft(self, requirement: Requirement, roles: Iterable[JobRoleCreate], actor: User, submit: bool = False) -> Requirement:
        """Replace the job roles of a DRAFT; optionally submit it in the same call."""
        if requirement.status != S.DRAFT:
            raise InvalidTransitionError(
                "Only draft requirements can be edited",
                current=requirement.status,
            )

        new_roles = [_build_role(data, index) for index, data in enumerate(roles)]
        if not new_roles:
            raise ValidationError("At least one job role is required")

        requirement.job_roles = new_roles
        await self.db.flush()

        if submit:
            await self.change_status(requirement, S.SUBMITTED, actor)
        else:
            self.invalidate(requirement.id)

        logger.info("requirement_draft_updated", requirement_id=str(requirement.id), roles=len(new_roles))
        return requirement

    async def change_status(
        self,
        requirement: Requirement,
        new_status: RequirementStatus,
        actor: User,
        reason: Optional[str] = None,
    ) -> Requirement:
        """Explicit status change requested by a user."""
        allowed = MANUAL_TARGETS.get(actor.role, frozenset())
        if new_status not in allowed:
            raise ForbiddenError(f"{actor.role.value} cannot set requirement status to {new_status.value}")

        check_transition(requirement.status, new_status, reason)
        await self._set_status(requirement, new_status, actor, reason)

        if new_status == S.SUBMITTED:
            await self._notify_submitted(requirement, requirement.client)
        return requirement

    async def apply_status(
        self,
        requirement: Requirement,
        new_status: RequirementStatus,
        actor: Optional[User] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Side-effect status change. Returns True when the status moved."""
        current = requirement.status
        if current == new_status:
            return False
        if not can_transition(current, new_status):
            logger.warning(
                "requirement_status_change_skipped",
                requirement_id=str(requirement.id),
                current=current.value,
                requested=new_status.value,
            )
            return False
        await self._set_status(requirement, new_status, actor, reason)
        return True

    async def _set_status(self, requirement: Requirement, new_status: RequirementStatus, actor: Optional[User], reason: Optional[str]) -> None:
        old_status = requirement.status
        requirement.status = new_status
        if new_status == S.REJECTED:
            requirement.rejection_reason = (reason or "").strip() or None
        await self.db.flush()

        await record_audit(
            self.db,
            "REQUIREMENT_STATUS_CHANGE",
            "Requirement",
            requirement.id,
            performed_by_id=actor.id if actor else None,
            description=f"Requirement status changed from {old_status.value} to {new_status.value}",
            old_data={"status": old_status},
            new_data={"status": new_status, "reason": reason},
        )

        client_user = requirement.client.user if requirement.client else None
        if client_user is not None and new_status != S.SUBMITTED:
            message = f"Your requirement is now {new_status.value.replace('_', ' ').lower()}."
            if new_status == S.REJECTED:
                message += f" Reason: {requirement.rejection_reason}"
            await self.notifications.notify(
                client_user,
                NotificationType.REQUIREMENT_STATUS_CHANGED,
                "Requirement status updated",
                message,
                priority=NotificationPriority.HIGH if new_status == S.REJECTED else NotificationPriority.NORMAL,
                action_url=f"/requirements/{requirement.id}",
            )

        self.invalidate(requirement.id)
        logger.info(
            "requirement_status_changed",
            requirement_id=str(requirement.id),
            old_status=old_status.value,
            new_status=new_status.value,
        )

    async def _notify_submitted(self, requirement: Requirement, client: Client) -> None:
        total = sum(role.quantity for role in requirement.job_roles)
        await self.notifications.notify_role(
            UserRole.RECRUITMENT_ADMIN,
            NotificationType.REQUIREMENT_CREATED,
            "New requirement submitted",
            f"{client.company_name} submitted a requirement for {total} labourer(s).",
            action_url=f"/requirements/{requirement.id}",
        )

    def invalidate(self, requirement_id) -> None:
        """Drop the cached tree once the current transaction commits."""
        on_commit(self.db, lambda: self.cache.invalidate_requirement(requirement_id))


def serialize_requirement(requirement: Requirement) -> dict:
    return RequirementDetail.model_validate(requirement).model_dump(mode="json", by_alias=True)
