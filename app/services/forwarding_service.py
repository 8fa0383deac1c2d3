"""
Forwarding of requirement job roles to recruitment agencies.

Persists a ForwardingPlan: one ``job_role_forwardings`` row per
(role, agency), upserted on every forward. Agencies answer each row with
ACCEPTED or REJECTED; a rejecting agency is never offered that role again.
"""

from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from app.models.agency import Agency, AgencyStatus
from app.models.notification import NotificationPriority, NotificationType
from app.models.requirement import (
    ForwardingStatus,
    JobRole,
    JobRoleForwarding,
    JobRoleStatus,
    Requirement,
    RequirementStatus,
)
from app.models.user import User, UserRole
from app.services.audit_service import record_audit
from app.services.forwarding_plan import (
    ForwardingLine,
    ForwardingMode,
    ForwardingPlan,
    available_agencies,
    validate_plan,
)
from app.services.notification_service import NotificationService
from app.services.requirement_service import CLOSED_STATUSES, RequirementService

logger = structlog.get_logger(__name__)


def active_forwardings(role: JobRole) -> List[JobRoleForwarding]:
    return [f for f in role.forwardings if f.status != ForwardingStatus.REJECTED]


def forwarded_total(role: JobRole) -> int:
    """Quantity currently committed to agencies (rejected rows excluded)."""
    return sum(f.quantity for f in active_forwardings(role))


def _role_is_forwarded(role: JobRole) -> bool:
    return any(f.quantity > 0 for f in active_forwardings(role))


class ForwardingService:
    def __init__(
        self,
        db: AsyncSession,
        requirements: Optional[RequirementService] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.requirements = requirements or RequirementService(db, notifications=self.notifications)

    # ==================== Agency directory ====================

    async def list_agencies(self, status=None) -> List[Agency]:
        query = select(Agency).order_by(Agency.agency_name)
        if status is not None:
            query = query.where(Agency.status == status)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _load_agencies(self, agency_ids) -> Dict[str, Agency]:
        if not agency_ids:
            return {}
        try:
            ids = [UUID(str(agency_id)) for agency_id in agency_ids]
        except ValueError:
            raise ValidationError("Invalid agency id")
        result = await self.db.execute(select(Agency).where(Agency.id.in_(ids)))
        return {str(agency.id): agency for agency in result.scalars().all()}

    # ==================== Forwarding ====================

    async def forwarding_options(self, requirement_id, editing_agency_id=None) -> Tuple[Requirement, List[dict]]:
        """Per role: current allocations and the verified agencies that can still be added.

        ``editing_agency_id`` keeps that agency selectable while its quantity is changed.
        """
        requirement = await self.requirements.get(requirement_id)
        agencies = await self.list_agencies(AgencyStatus.VERIFIED)
        plan = ForwardingPlan(
            ForwardingLine(f.job_role_id, f.agency_id, f.quantity)
            for role in requirement.job_roles
            for f in active_forwardings(role)
        )
        allocations = plan.by_role()
        options = [
            {
                "job_role_id": role.id,
                "title": role.title,
                "quantity": role.quantity,
                "forwarded_quantity": plan.total_assigned(role.id),
                "allocations": allocations.get(str(role.id), []),
                "available_agencies": available_agencies(
                    role.id, agencies, plan, role.rejected_agency_ids, editing_agency_id=editing_agency_id
                ),
            }
            for role in requirement.job_roles
        ]
        return requirement, options

    def build_plan(
        self,
        requirement: Requirement,
        mode: Optional[ForwardingMode],
        lines: Sequence[dict],
        agency_id=None,
        quantities: Optional[Dict[str, int]] = None,
    ) -> ForwardingPlan:
        """Plan for a forward request; validated when a mode is given."""
        if mode == ForwardingMode.SINGLE:
            plan = ForwardingPlan()
            if agency_id:
                plan = ForwardingPlan.single_agency(requirement.job_roles, agency_id, quantities)
        else:
            plan = ForwardingPlan.from_payload(lines)

        if mode is not None:
            validate_plan(mode, plan, requirement.job_roles, agency_id)
        return plan

    async def forward_requirement(
        self,
        requirement_id,
        lines: Sequence[ForwardingLine],
        actor: User,
        forward_all: bool = False,
    ) -> Tuple[Requirement, int]:
        """Commit quantities of job roles to agencies.

        Returns the requirement and the number of forwarding rows written.
        """
        requirement = await self.requirements.get(requirement_id)
        if requirement.status in CLOSED_STATUSES:
            raise InvalidTransitionError(
                f"Requirement cannot be forwarded while {requirement.status.value}",
                current=requirement.status,
                requested=RequirementStatus.FORWARDED,
            )
        if not lines:
            raise ValidationError("No job roles to forward")

        roles = {str(role.id): role for role in requirement.job_roles}
        agencies = await self._load_agencies({line.agency_id for line in lines})
        old_roles = [
            {"id": str(role.id), "assignedAgencyId": str(role.assigned_agency_id or ""), "agencyStatus": role.agency_status.value}
            for role in requirement.job_roles
        ]

        # Validate everything before touching any row
        for line in lines:
            role = roles.get(str(line.job_role_id))
            if role is None:
                raise ValidationError(f"Job role {line.job_role_id} not found in requirement")
            agency = agencies.get(str(line.agency_id))
            if agency is None:
                raise ValidationError(f"Agency {line.agency_id} not found")
            if not agency.is_verified:
                raise ValidationError(f"Agency {agency.agency_name} is not verified")
            if agency.id in role.rejected_agency_ids:
                raise ValidationError(f"Agency {agency.agency_name} has declined {role.title}")
            if line.quantity < 0:
                raise ValidationError(f"Quantity for {role.title} cannot be negative")

        per_agency = defaultdict(list)
        for line in lines:
            role = roles[str(line.job_role_id)]
            agency = agencies[str(line.agency_id)]

            forwarding = next((f for f in role.forwardings if f.agency_id == agency.id), None)
            if forwarding is None:
                role.forwardings.append(
                    JobRoleForwarding(
                        job_role_id=role.id,
                        agency_id=agency.id,
                        agency=agency,
                        quantity=line.quantity,
                        status=ForwardingStatus.FORWARDED,
                    )
                )
            else:
                forwarding.quantity = line.quantity

            role.assigned_agency_id = agency.id
            role.assigned_agency = agency
            role.agency_status = JobRoleStatus.FORWARDED
            role.forwarded_quantity = forwarded_total(role)

            if role.forwarded_quantity > role.quantity:
                logger.warning(
                    "job_role_over_forwarded",
                    job_role_id=str(role.id),
                    requested=role.quantity,
                    forwarded=role.forwarded_quantity,
                )
            per_agency[agency].append((role, line.quantity))

        await self.db.flush()

        all_forwarded = all(_role_is_forwarded(role) for role in requirement.job_roles)
        if all_forwarded or forward_all:
            await self.requirements.apply_status(requirement, RequirementStatus.FORWARDED, actor)

        await record_audit(
            self.db,
            "REQUIREMENT_FORWARDED",
            "Requirement",
            requirement.id,
            performed_by_id=actor.id,
            description=f"Forwarded {len(lines)} job role allocation(s) to {len(per_agency)} agency(ies)",
            old_data={"jobRoles": old_roles},
            new_data={
                "status": requirement.status,
                "forwardedRoles": [line.to_payload() for line in lines],
            },
        )

        for agency, allocations in per_agency.items():
            summary = ", ".join(f"{role.title} x{quantity}" for role, quantity in allocations)
            await self.notifications.notify(
                agency.user,
                NotificationType.REQUIREMENT_FORWARDED_TO_AGENCY,
                "New requirement forwarded",
                f"You have been asked to source: {summary}.",
                priority=NotificationPriority.HIGH,
                action_url=f"/agency/requirements/{requirement.id}",
            )

        self.requirements.invalidate(requirement.id)
        logger.info(
            "requirement_forwarded",
            requirement_id=str(requirement.id),
            lines=len(lines),
            agencies=len(per_agency),
            status=requirement.status.value,
        )
        return requirement, len(lines)

    # ==================== Agency response ====================

    async def get_forwarding(self, forwarding_id) -> JobRoleForwarding:
        """The forwarding row, with its requirement tree loaded."""
        row = (
            await self.db.execute(
                select(JobRole.requirement_id, JobRoleForwarding.job_role_id)
                .join(JobRoleForwarding, JobRoleForwarding.job_role_id == JobRole.id)
                .where(JobRoleForwarding.id == forwarding_id)
            )
        ).first()
        if row is None:
            raise NotFoundError("Forwarding", forwarding_id)
        requirement = await self.requirements.get(row.requirement_id)
        role = next(role for role in requirement.job_roles if role.id == row.job_role_id)
        return next(f for f in role.forwardings if f.id == forwarding_id)

    async def list_for_agency(self, agency: Agency) -> List[JobRoleForwarding]:
        result = await self.db.execute(
            select(JobRoleForwarding)
            .where(JobRoleForwarding.agency_id == agency.id)
            .order_by(JobRoleForwarding.created_at.desc())
        )
        return list(result.scalars().all())

    async def respond(
        self,
        forwarding_id,
        agency: Agency,
        status: ForwardingStatus,
        reason: Optional[str] = None,
    ) -> JobRoleForwarding:
        """Agency accepts or declines a forwarded quantity."""
        forwarding = await self.get_forwarding(forwarding_id)
        if forwarding.agency_id != agency.id:
            raise ForbiddenError("This forwarding belongs to another agency")
        if forwarding.status == ForwardingStatus.REJECTED:
            raise InvalidTransitionError(
                "Forwarding has already been declined",
                current=forwarding.status,
                requested=status,
            )
        if status not in (ForwardingStatus.ACCEPTED, ForwardingStatus.REJECTED):
            raise ValidationError("Status must be ACCEPTED or REJECTED")

        role = forwarding.job_role
        forwarding.status = status
        if status == ForwardingStatus.REJECTED:
            forwarding.rejection_reason = reason
            role.forwarded_quantity = forwarded_total(role)
            role.needs_more_labour = True

            remaining = active_forwardings(role)
            if role.assigned_agency_id == agency.id:
                replacement = remaining[-1].agency if remaining else None
                role.assigned_agency = replacement
                role.assigned_agency_id = replacement.id if replacement else None
            if not remaining:
                role.agency_status = JobRoleStatus.PENDING

            title = "Agency declined a job role"
            message = (
                f"{agency.agency_name} declined {role.title} (x{forwarding.quantity}). "
                f"Please forward it to another agency."
            )
            if reason:
                message += f" Reason: {reason}"
            priority = NotificationPriority.HIGH
        else:
            title = "Agency accepted a job role"
            message = f"{agency.agency_name} accepted {role.title} (x{forwarding.quantity})."
            priority = NotificationPriority.NORMAL

        await self.db.flush()

        await record_audit(
            self.db,
            "FORWARDING_RESPONSE",
            "JobRoleForwarding",
            forwarding.id,
            performed_by_id=agency.user_id,
            description=message,
            new_data={"status": status, "reason": reason},
        )
        await self.notifications.notify_role(
            UserRole.RECRUITMENT_ADMIN,
            NotificationType.FORWARDING_RESPONSE,
            title,
            message,
            priority=priority,
            action_url=f"/requirements/{role.requirement_id}",
        )

        self.requirements.invalidate(role.requirement_id)
        logger.info(
            "forwarding_response",
            forwarding_id=str(forwarding.id),
            agency_id=str(agency.id),
            status=status.value,
        )
        return forwarding
