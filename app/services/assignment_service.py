"""
Labour assignment tracker.

Agencies place labour profiles against the job roles forwarded to them;
admins and clients accept or reject each placement, and accepted labour
then moves through the onboarding stages in ``stage_pipeline``.

Assignments beyond a role's quantity are kept as backups. When a primary
assignment is rejected the oldest admin-accepted backup takes its place.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Sequence, Tuple
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from app.db.hooks import on_commit, on_rollback
from app.models.agency import Agency
from app.models.labour import (
    DecisionStatus,
    LabourAssignment,
    LabourProfile,
    LabourProfileStatus,
    LabourStageHistory,
    Stage,
    StageStatus,
    VerificationStatus,
)
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
from app.services.document_storage import DocumentStorage, get_document_storage
from app.services.notification_service import NotificationService
from app.services.requirement_service import CLOSED_STATUSES, RequirementService
from app.services.stage_pipeline import (
    STAGE_ORDER,
    TRAVEL_OUTCOME_ACTIONS,
    StageAction,
    Transition,
    allowed_actions,
    ensure_offer_letter_ready,
    offer_letter_blocked,
    resolve,
    stage_label,
)
from app.utils.constants import ARRIVAL_CONFIRMED, REQUIRED_TRAVEL_DOCUMENTS, UPLOAD_FOLDERS

logger = structlog.get_logger(__name__)

ASSIGNABLE_VERIFICATION = (VerificationStatus.PARTIALLY_VERIFIED, VerificationStatus.VERIFIED)

# Feedback recorded on the assignment when it leaves the pipeline
FAILURE_FEEDBACK = {
    StageAction.REFUSE_CONTRACT: "Contract refused by labour",
    StageAction.MARK_MEDICAL_UNFIT: "Medical check failed",
    StageAction.MARK_FINGERPRINT_FAIL: "Fingerprint check failed",
    StageAction.CANCEL_TRAVEL: "Travel cancelled by agency",
}

FULFILLED_FEEDBACK = "Not selected - requirement fulfilled"
BACKUP_FULFILLED_FEEDBACK = "Backup candidate - requirement fulfilled"


def active_assignments(role: JobRole) -> List[LabourAssignment]:
    """Assignments not rejected by admin or client, oldest first."""
    return [a for a in role.assignments if not a.is_rejected]


def primary_accepted(role: JobRole) -> List[LabourAssignment]:
    return [
        a for a in role.assignments
        if a.admin_status == DecisionStatus.ACCEPTED and not a.is_backup and not a.is_rejected
    ]


def client_accepted(role: JobRole) -> List[LabourAssignment]:
    return [a for a in role.assignments if a.client_status == DecisionStatus.ACCEPTED]


def _document_label(kind: str) -> str:
    return kind.replace("_", " ").capitalize()


def _as_uuid(value, label: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {label} id")


class AssignmentService:
    """Placement of labour profiles and their onboarding stages."""

    def __init__(
        self,
        db: AsyncSession,
        requirements: Optional[RequirementService] = None,
        notifications: Optional[NotificationService] = None,
        storage: Optional[DocumentStorage] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.requirements = requirements or RequirementService(db, notifications=self.notifications)
        self.storage = storage or get_document_storage()

    # ==================== Loading ====================

    async def _role_in_tree(self, requirement_id, role_id: UUID) -> JobRole:
        requirement = await self.requirements.get(requirement_id)
        return next(role for role in requirement.job_roles if role.id == role_id)

    async def get_role(self, job_role_id) -> JobRole:
        role_id = _as_uuid(job_role_id, "job role")
        requirement_id = await self.db.scalar(
            select(JobRole.requirement_id).where(JobRole.id == role_id)
        )
        if requirement_id is None:
            raise NotFoundError("Job role", job_role_id)
        return await self._role_in_tree(requirement_id, role_id)

    async def get(self, assignment_id) -> LabourAssignment:
        assignment_uuid = _as_uuid(assignment_id, "assignment")
        row = (
            await self.db.execute(
                select(JobRole.requirement_id, LabourAssignment.job_role_id)
                .join(LabourAssignment, LabourAssignment.job_role_id == JobRole.id)
                .where(LabourAssignment.id == assignment_uuid)
            )
        ).first()
        if row is None:
            raise NotFoundError("Assignment")
        role = await self._role_in_tree(row.requirement_id, row.job_role_id)
        return next(a for a in role.assignments if a.id == assignment_uuid)

    async def get_for_user(self, assignment_id, user: User) -> LabourAssignment:
        """Assignment visible to ``user``; 404 for anyone else's."""
        assignment = await self.get(assignment_id)
        if user.role == UserRole.RECRUITMENT_ADMIN:
            return assignment
        if user.role == UserRole.CLIENT_ADMIN and user.client_profile is not None:
            if assignment.job_role.requirement.client_id == user.client_profile.id:
                return assignment
        if user.role == UserRole.RECRUITMENT_AGENCY and user.agency_profile is not None:
            if assignment.agency_id == user.agency_profile.id:
                return assignment
        raise NotFoundError("Assignment")

    async def list_role_assignments(self, job_role_id, agency: Optional[Agency] = None) -> List[LabourAssignment]:
        role = await self.get_role(job_role_id)
        return [a for a in role.assignments if agency is None or a.agency_id == agency.id]

    # ==================== Assignment ====================

    async def assign_profiles(
        self,
        job_role_id,
        agency: Agency,
        profile_ids: Sequence,
        actor: User,
    ) -> Tuple[JobRole, List[LabourAssignment]]:
        """Place the agency's labour profiles against a forwarded job role."""
        role = await self.get_role(job_role_id)
        requirement = role.requirement
        if requirement.status in CLOSED_STATUSES:
            raise InvalidTransitionError(
                f"Labour cannot be assigned while the requirement is {requirement.status.value}",
                current=requirement.status,
            )

        ids = list(dict.fromkeys(_as_uuid(pid, "profile") for pid in profile_ids))
        if not ids:
            raise ValidationError("At least one profile is required")

        result = await self.db.execute(
            select(LabourProfile).where(
                LabourProfile.id.in_(ids),
                LabourProfile.agency_id == agency.id,
                LabourProfile.status == LabourProfileStatus.APPROVED,
                LabourProfile.verification_status.in_(ASSIGNABLE_VERIFICATION),
            )
        )
        profiles = {profile.id: profile for profile in result.scalars().all()}
        if len(profiles) != len(ids):
            raise ValidationError(
                "Some profiles don't belong to your agency or aren't available",
                details={
                    "requested": len(ids),
                    "found": len(profiles),
                    "missing": [str(pid) for pid in ids if pid not in profiles],
                },
            )

        forwarding = self._forwarding_for(role, agency)
        if forwarding is None or forwarding.status == ForwardingStatus.REJECTED:
            raise ValidationError("No forwarding record found for this agency and job role")

        mine = [a for a in role.assignments if a.agency_id == agency.id]
        current = [a for a in mine if not a.is_rejected]
        rejected = [a for a in mine if a.is_rejected]
        remaining = forwarding.quantity - len(current)
        if len(ids) > remaining:
            raise ValidationError(
                "Exceeds available slots for this agency",
                details={
                    "current": len(current),
                    "adding": len(ids),
                    "remaining": max(remaining, 0),
                    "max": forwarding.quantity,
                },
            )

        old_status = role.agency_status
        previous_needs = role.needs_more_labour

        # Rejected placements make room; their labour becomes assignable again
        for assignment in rejected:
            assignment.labour.status = LabourProfileStatus.APPROVED
            role.assignments.remove(assignment)

        created = []
        for pid in ids:
            profile = profiles[pid]
            assignment = LabourAssignment(
                labour_id=profile.id,
                labour=profile,
                agency_id=agency.id,
                agency=agency,
                agency_status=DecisionStatus.ACCEPTED,
                admin_status=DecisionStatus.PENDING,
                client_status=DecisionStatus.PENDING,
                is_backup=False,
                current_stage=Stage.OFFER_LETTER_SIGN,
                additional_documents_urls=[],
                stage_history=[
                    LabourStageHistory(
                        stage=Stage.OFFER_LETTER_SIGN,
                        status=StageStatus.PENDING,
                        notes="New assignment - awaiting offer letter signature",
                    )
                ],
            )
            role.assignments.append(assignment)
            profile.status = LabourProfileStatus.SHORTLISTED
            created.append(assignment)

        total = len(current) + len(created)
        filled = total >= forwarding.quantity
        role.agency_status = JobRoleStatus.SUBMITTED if filled else JobRoleStatus.PARTIALLY_SUBMITTED
        role.needs_more_labour = total < forwarding.quantity
        await self.db.flush()

        if filled and all(
            r.agency_status in (JobRoleStatus.SUBMITTED, JobRoleStatus.ACCEPTED) for r in requirement.job_roles
        ):
            await self.requirements.apply_status(requirement, RequirementStatus.UNDER_REVIEW, actor)

        await record_audit(
            self.db,
            "LABOUR_ASSIGNED",
            "JobRole",
            role.id,
            performed_by_id=actor.id,
            description=f"{agency.agency_name} assigned {len(created)} profile(s) to {role.title}",
            old_data={"agencyStatus": old_status, "assignments": len(current)},
            new_data={
                "agencyStatus": role.agency_status,
                "newAssignments": [
                    {"id": str(a.id), "labourId": str(a.labour_id), "labourName": a.labour.name}
                    for a in created
                ],
                "removedRejected": len(rejected),
                "totalAssignments": total,
            },
        )
        await self.notifications.notify_role(
            UserRole.RECRUITMENT_ADMIN,
            NotificationType.ASSIGNMENT_CREATED,
            "New labour profiles submitted",
            f"{agency.agency_name} submitted {len(created)} profile(s) for {role.title}.",
            action_url=f"/requirements/{requirement.id}",
        )
        await self._notify_needs_more_labour(role, previous_needs, agency)

        self.requirements.invalidate(requirement.id)
        logger.info(
            "labour_assigned",
            job_role_id=str(role.id),
            agency_id=str(agency.id),
            added=len(created),
            total=total,
            slots=forwarding.quantity,
        )
        return role, created

    @staticmethod
    def _forwarding_for(role: JobRole, agency: Agency) -> Optional[JobRoleForwarding]:
        return next((f for f in role.forwardings if f.agency_id == agency.id), None)

    # ==================== Decisions ====================

    async def admin_decide(
        self,
        assignment_id,
        status: DecisionStatus,
        feedback: Optional[str],
        actor: User,
    ) -> LabourAssignment:
        """Admin screening of a submitted profile."""
        assignment = await self.get(assignment_id)
        feedback = self._check_decision(assignment, status, feedback)
        role = assignment.job_role
        requirement = role.requirement
        previous_needs = role.needs_more_labour
        old_status = assignment.admin_status

        assignment.admin_status = status
        if status == DecisionStatus.ACCEPTED:
            assignment.admin_feedback = None
            assignment.agency_status = DecisionStatus.ACCEPTED
            assignment.labour.status = LabourProfileStatus.SHORTLISTED
            self._rank_accepted(role)
        else:
            assignment.admin_feedback = feedback
            if assignment.client_status not in (DecisionStatus.ACCEPTED, DecisionStatus.REJECTED):
                assignment.client_status = DecisionStatus.PENDING
            assignment.labour.status = LabourProfileStatus.REJECTED
            if not assignment.is_backup:
                self._promote_backup(role)

        if len(primary_accepted(role)) >= role.quantity:
            role.admin_status = JobRoleStatus.ACCEPTED
        elif any(a.is_rejected for a in role.assignments):
            role.admin_status = JobRoleStatus.NEEDS_REVISION
        self._refresh_needs_more_labour(role)
        await self.db.flush()

        if status == DecisionStatus.ACCEPTED and all(
            len(primary_accepted(r)) >= r.quantity for r in requirement.job_roles
        ):
            await self.requirements.apply_status(requirement, RequirementStatus.CLIENT_REVIEW, actor)

        await self._record_decision(assignment, "ADMIN", old_status, status, feedback, actor)
        await self._notify_decision(assignment, "Admin", status, feedback)
        if status == DecisionStatus.ACCEPTED and not assignment.is_backup:
            client_user = requirement.client.user
            if client_user is not None:
                await self.notifications.notify(
                    client_user,
                    NotificationType.ASSIGNMENT_STATUS_CHANGED,
                    "Candidate ready for review",
                    f"{assignment.labour.name} has been shortlisted for {role.title}.",
                    action_url=f"/requirements/{requirement.id}",
                )
        await self._notify_needs_more_labour(role, previous_needs, assignment.agency)

        self.requirements.invalidate(requirement.id)
        logger.info(
            "assignment_admin_decision",
            assignment_id=str(assignment.id),
            status=status.value,
            is_backup=assignment.is_backup,
        )
        return assignment

    async def client_decide(
        self,
        assignment_id,
        status: DecisionStatus,
        feedback: Optional[str],
        actor: User,
    ) -> LabourAssignment:
        """Client selection among admin-approved profiles."""
        assignment = await self.get_for_user(assignment_id, actor)
        feedback = self._check_decision(assignment, status, feedback)
        if assignment.admin_status != DecisionStatus.ACCEPTED:
            raise InvalidTransitionError(
                "Assignment has not been approved by admin yet",
                current=assignment.admin_status,
                requested=status,
            )

        role = assignment.job_role
        requirement = role.requirement
        previous_needs = role.needs_more_labour
        old_status = assignment.client_status

        assignment.client_status = status
        if status == DecisionStatus.ACCEPTED:
            assignment.admin_status = DecisionStatus.ACCEPTED
            assignment.agency_status = DecisionStatus.ACCEPTED
            assignment.client_feedback = None
            assignment.admin_feedback = None
            assignment.is_backup = False
        else:
            assignment.admin_status = DecisionStatus.REJECTED
            assignment.client_feedback = feedback
            assignment.labour.status = LabourProfileStatus.REJECTED
            if not assignment.is_backup:
                self._promote_backup(role)

        if len(client_accepted(role)) >= role.quantity:
            # Role is fulfilled; everyone still waiting is released
            for other in role.assignments:
                if other.client_status in (DecisionStatus.ACCEPTED, DecisionStatus.REJECTED):
                    continue
                other.client_status = DecisionStatus.REJECTED
                other.client_feedback = BACKUP_FULFILLED_FEEDBACK if other.is_backup else FULFILLED_FEEDBACK
                other.labour.status = LabourProfileStatus.APPROVED
            role.admin_status = JobRoleStatus.ACCEPTED
        self._refresh_needs_more_labour(role)
        await self.db.flush()

        if all(len(client_accepted(r)) >= r.quantity for r in requirement.job_roles):
            await self.requirements.apply_status(requirement, RequirementStatus.ACCEPTED, actor)

        await self._record_decision(assignment, "CLIENT", old_status, status, feedback, actor)
        await self._notify_decision(assignment, "Client", status, feedback)
        await self._notify_needs_more_labour(role, previous_needs, assignment.agency)

        self.requirements.invalidate(requirement.id)
        logger.info(
            "assignment_client_decision",
            assignment_id=str(assignment.id),
            status=status.value,
        )
        return assignment

    async def bulk_admin_decide(self, assignment_ids: Sequence, status: DecisionStatus, feedback: Optional[str],
                                actor: User) -> List[LabourAssignment]:
        """``admin_decide`` over several assignments; any failure fails them all."""
        ids = await self._existing_ids(assignment_ids)
        return [await self.admin_decide(assignment_id, status, feedback, actor) for assignment_id in ids]

    async def bulk_client_decide(self, assignment_ids: Sequence, status: DecisionStatus, feedback: Optional[str],
                                 actor: User) -> List[LabourAssignment]:
        ids = await self._existing_ids(assignment_ids)
        return [await self.client_decide(assignment_id, status, feedback, actor) for assignment_id in ids]

    async def _existing_ids(self, assignment_ids: Sequence) -> List[UUID]:
        ids = list(dict.fromkeys(_as_uuid(aid, "assignment") for aid in assignment_ids))
        if not ids:
            raise ValidationError("Invalid assignment IDs provided")
        found = await self.db.scalars(select(LabourAssignment.id).where(LabourAssignment.id.in_(ids)))
        if len(set(found)) != len(ids):
            raise NotFoundError("Some assignments")
        return ids

    @staticmethod
    def _check_decision(assignment: LabourAssignment, status: DecisionStatus, feedback: Optional[str]) -> Optional[str]:
        if status not in (DecisionStatus.ACCEPTED, DecisionStatus.REJECTED):
            raise ValidationError("Status must be ACCEPTED or REJECTED")
        feedback = (feedback or "").strip() or None
        if status == DecisionStatus.REJECTED and not feedback:
            raise ValidationError("Feedback is required for rejection")
        if assignment.is_deployed:
            raise InvalidTransitionError("Labour is already deployed", current=assignment.current_stage)
        return feedback

    @staticmethod
    def _rank_accepted(role: JobRole) -> None:
        """First ``quantity`` admin-accepted assignments go to the client; the rest wait as backups."""
        accepted = [
            a for a in role.assignments
            if a.admin_status == DecisionStatus.ACCEPTED and a.client_status != DecisionStatus.REJECTED
        ]
        for index, assignment in enumerate(accepted):
            primary = index < role.quantity
            assignment.is_backup = not primary
            if assignment.client_status == DecisionStatus.ACCEPTED:
                continue
            assignment.client_status = DecisionStatus.SUBMITTED if primary else DecisionStatus.PENDING

    @staticmethod
    def _promote_backup(role: JobRole) -> Optional[LabourAssignment]:
        backup = next(
            (
                a for a in role.assignments
                if a.is_backup and a.admin_status == DecisionStatus.ACCEPTED and not a.is_rejected
            ),
            None,
        )
        if backup is not None:
            backup.is_backup = False
            backup.client_status = DecisionStatus.SUBMITTED
            logger.info("backup_promoted", assignment_id=str(backup.id), job_role_id=str(role.id))
        return backup

    @staticmethod
    def _refresh_needs_more_labour(role: JobRole) -> None:
        role.needs_more_labour = len(active_assignments(role)) < role.quantity

    async def _notify_needs_more_labour(self, role: JobRole, previous: bool, agency: Optional[Agency]) -> None:
        if previous or not role.needs_more_labour:
            return
        agency = role.assigned_agency or agency
        if agency is None or agency.user is None:
            return
        client = role.requirement.client
        await self.notifications.notify(
            agency.user,
            NotificationType.REQUIREMENT_NEEDS_REVISION,
            f"Urgent: More Labour Needed for {role.title}",
            f"The requirement for {client.company_name} needs more labour profiles "
            f"for the job role: {role.title}. Please take action immediately.",
            priority=NotificationPriority.HIGH,
            action_url="/agency/requirements",
        )

    async def _record_decision(self, assignment, side: str, old_status, status, feedback, actor: User) -> None:
        await record_audit(
            self.db,
            f"ASSIGNMENT_{side}_DECISION",
            "LabourAssignment",
            assignment.id,
            performed_by_id=actor.id,
            description=f"{side.title()} {status.value.lower()} {assignment.labour.name}",
            old_data={"status": old_status},
            new_data={"status": status, "feedback": feedback, "isBackup": assignment.is_backup},
        )

    async def _notify_decision(self, assignment: LabourAssignment, who: str, status: DecisionStatus, feedback) -> None:
        agency_user = assignment.agency.user
        if agency_user is None:
            return
        message = f"{who} {status.value.lower()} {assignment.labour.name} for {assignment.job_role.title}."
        if feedback:
            message += f" Feedback: {feedback}"
        await self.notifications.notify(
            agency_user,
            NotificationType.ASSIGNMENT_STATUS_CHANGED,
            f"Profile {status.value.lower()}",
            message,
            priority=NotificationPriority.HIGH if status == DecisionStatus.REJECTED else NotificationPriority.NORMAL,
            action_url=f"/agency/requirements/{assignment.job_role.requirement_id}",
        )

    # ==================== Stage actions ====================

    def _check_action(self, assignment: LabourAssignment, action: StageAction, user: User) -> Transition:
        if assignment.is_rejected:
            raise InvalidTransitionError(
                "Assignment has been rejected",
                current=assignment.current_stage,
                requested=action,
            )
        if assignment.client_status != DecisionStatus.ACCEPTED:
            raise InvalidTransitionError(
                "Labour has not been accepted by the client yet",
                current=assignment.current_stage,
                requested=action,
            )
        transition = resolve(assignment.current_stage, action, user.role)
        ensure_offer_letter_ready(transition, assignment.job_role.requirement.offer_letter_details)
        return transition

    async def perform_action(
        self,
        assignment_id,
        action: StageAction,
        user: User,
        notes: Optional[str] = None,
        document=None,
        travel_date: Optional[date] = None,
    ) -> LabourAssignment:
        """Run one onboarding action for ``user`` on an assignment they can see."""
        assignment = await self.get_for_user(assignment_id, user)
        transition = self._check_action(assignment, action, user)
        feedback = None

        if action == StageAction.UPLOAD_SIGNED_OFFER_LETTER:
            if document is None:
                raise ValidationError("Signed offer letter file is required")
            data = await self.storage.read(document, label="Signed offer letter")
            assignment.signed_offer_letter_url = self._store(
                data, "signed_offer_letter", assignment, "Signed offer letter",
                replaces=assignment.signed_offer_letter_url,
            )
        elif action == StageAction.VERIFY_OFFER_LETTER:
            if not assignment.signed_offer_letter_url:
                raise ValidationError("No signed offer letter found")
        elif action == StageAction.UPLOAD_VISA:
            if document is None:
                raise ValidationError("Visa file is required")
            data = await self.storage.read(document, label="Visa")
            assignment.visa_url = self._store(data, "visa", assignment, "Visa", replaces=assignment.visa_url)
        elif action == StageAction.RESCHEDULE_TRAVEL:
            if travel_date is None:
                raise ValidationError("Rescheduled travel date is required when status is RESCHEDULED")
            assignment.travel_date = travel_date
            assignment.flight_ticket_url = None
        elif transition.is_reset:
            feedback = FAILURE_FEEDBACK.get(action)

        await self._apply_transition(assignment, transition, user, notes, feedback)
        return assignment

    async def confirm_travel(self, assignment_id, outcome: str, user: User, travel_date: Optional[date] = None,
                             notes: Optional[str] = None) -> LabourAssignment:
        action = TRAVEL_OUTCOME_ACTIONS.get((outcome or "").upper())
        if action is None:
            raise ValidationError("Invalid status. Must be TRAVELED, RESCHEDULED or CANCELED")
        return await self.perform_action(assignment_id, action, user, notes=notes, travel_date=travel_date)

    async def confirm_arrival(self, assignment_id, status: str, user: User, notes: Optional[str] = None) -> LabourAssignment:
        if (status or "").upper() != ARRIVAL_CONFIRMED:
            raise ValidationError(f"Invalid status. Must be {ARRIVAL_CONFIRMED}")
        return await self.perform_action(assignment_id, StageAction.CONFIRM_ARRIVAL, user, notes=notes)

    async def upload_travel_documents(
        self,
        assignment_id,
        documents: Dict[str, object],
        user: User,
        additional: Sequence = (),
        notes: Optional[str] = None,
    ) -> Tuple[LabourAssignment, List[str]]:
        """Store travel documents; the stage advances once all required ones exist.

        Returns the assignment and the required documents still missing.
        """
        assignment = await self.get_for_user(assignment_id, user)
        transition = self._check_action(assignment, StageAction.UPLOAD_TRAVEL_DOCUMENTS, user)

        given = [kind for kind in REQUIRED_TRAVEL_DOCUMENTS if documents.get(kind) is not None]
        if not given and not additional:
            raise ValidationError("No documents provided")

        # Nothing is stored until every file has passed validation
        contents = {}
        for kind in given:
            contents[kind] = await self.storage.read(documents[kind], label=_document_label(kind))
        extra = []
        for upload in additional:
            extra.append(await self.storage.read(upload, label="Additional document"))

        uploaded = []
        for kind in given:
            attr = f"{kind}_url"
            url = self._store(contents[kind], kind, assignment, _document_label(kind), replaces=getattr(assignment, attr))
            setattr(assignment, attr, url)
            uploaded.append(kind)
        if extra:
            urls = list(assignment.additional_documents_urls or [])
            for data in extra:
                urls.append(self._store(data, "additional", assignment, "Additional document"))
            assignment.additional_documents_urls = urls

        missing = [kind for kind in REQUIRED_TRAVEL_DOCUMENTS if not getattr(assignment, f"{kind}_url")]
        if missing:
            assignment.updated_at = datetime.utcnow()
            await self.db.flush()
            await record_audit(
                self.db,
                "TRAVEL_DOCUMENTS_UPLOADED",
                "LabourAssignment",
                assignment.id,
                performed_by_id=user.id,
                description=f"Uploaded {', '.join(uploaded) or 'additional documents'}",
                new_data={"uploaded": uploaded, "missing": missing},
            )
            self.requirements.invalidate(assignment.job_role.requirement_id)
            logger.info("travel_documents_partial", assignment_id=str(assignment.id), missing=missing)
            return assignment, missing

        await self._apply_transition(assignment, transition, user, notes, None)
        return assignment, []

    def _store(self, data: bytes, kind: str, assignment: LabourAssignment, label: str,
               replaces: Optional[str] = None) -> str:
        """Write a validated document tied to the current transaction.

        The new file is removed if the transaction rolls back; the file it
        replaces is removed only once the transaction commits.
        """
        url = self.storage.write(data, UPLOAD_FOLDERS[kind], f"{kind.replace('_', '-')}-{assignment.id}", label)
        on_rollback(self.db, lambda: self.storage.delete(url))
        if replaces:
            on_commit(self.db, lambda: self.storage.delete(replaces))
        return url

    async def update_travel_date(self, assignment_id, travel_date: Optional[date], user: User) -> LabourAssignment:
        if travel_date is None:
            raise ValidationError("Travel date is required")
        assignment = await self.get_for_user(assignment_id, user)
        if assignment.is_deployed:
            raise InvalidTransitionError("Labour is already deployed", current=assignment.current_stage)
        if assignment.is_rejected:
            raise InvalidTransitionError("Assignment has been rejected", current=assignment.current_stage)

        old_date = assignment.travel_date
        assignment.travel_date = travel_date
        await self.db.flush()

        await record_audit(
            self.db,
            "TRAVEL_DATE_UPDATED",
            "LabourAssignment",
            assignment.id,
            performed_by_id=user.id,
            description=f"Travel date for {assignment.labour.name} set to {travel_date.isoformat()}",
            old_data={"travelDate": old_date.isoformat() if old_date else None},
            new_data={"travelDate": travel_date.isoformat()},
        )
        self.requirements.invalidate(assignment.job_role.requirement_id)
        logger.info("travel_date_updated", assignment_id=str(assignment.id), travel_date=travel_date.isoformat())
        return assignment

    async def timeline(self, assignment_id, user: User) -> dict:
        assignment = await self.get_for_user(assignment_id, user)
        actor = None if user.role == UserRole.RECRUITMENT_ADMIN else user.role
        actions = []
        if not assignment.is_rejected and assignment.client_status == DecisionStatus.ACCEPTED:
            actions = [a.value for a in allowed_actions(assignment.current_stage, actor)]
        return {
            "assignment": assignment,
            "stage_order": STAGE_ORDER,
            "allowed_actions": actions,
            "offer_letter_blocked": offer_letter_blocked(assignment.job_role.requirement.offer_letter_details),
        }

    # ==================== Transition execution ====================

    @staticmethod
    def _open_row(assignment: LabourAssignment) -> Optional[LabourStageHistory]:
        rows = [
            row for row in assignment.stage_history
            if row.stage == assignment.current_stage and row.completed_at is None
        ]
        return rows[-1] if rows else None

    async def _apply_transition(
        self,
        assignment: LabourAssignment,
        transition: Transition,
        user: User,
        notes: Optional[str],
        feedback: Optional[str],
    ) -> None:
        now = datetime.utcnow()
        from_stage = assignment.current_stage
        role = assignment.job_role
        requirement = role.requirement

        row = self._open_row(assignment)
        if row is None:
            row = LabourStageHistory(stage=from_stage, status=StageStatus.PENDING)
            assignment.stage_history.append(row)
        row.status = transition.history_status
        if notes:
            row.notes = notes
        if not transition.keeps_row_open:
            row.completed_at = now

        if transition.is_reset:
            self._leave_pipeline(assignment, role, feedback or notes)
        elif transition.stays:
            if not transition.keeps_row_open:
                assignment.stage_history.append(
                    LabourStageHistory(stage=from_stage, status=StageStatus.PENDING)
                )
        else:
            assignment.current_stage = transition.to_stage
            if transition.to_stage == Stage.DEPLOYED:
                assignment.stage_history.append(
                    LabourStageHistory(stage=Stage.DEPLOYED, status=StageStatus.COMPLETED, completed_at=now, notes=notes)
                )
                assignment.labour.status = LabourProfileStatus.DEPLOYED
            else:
                assignment.stage_history.append(
                    LabourStageHistory(stage=transition.to_stage, status=StageStatus.PENDING)
                )
        assignment.updated_at = now
        await self.db.flush()

        if transition.is_reset:
            await self.requirements.apply_status(requirement, RequirementStatus.UNDER_REVIEW, user)
        elif transition.to_stage == Stage.DEPLOYED and self._requirement_deployed(requirement):
            await self.requirements.apply_status(requirement, RequirementStatus.COMPLETED, user)

        await record_audit(
            self.db,
            "STAGE_TRANSITION",
            "LabourAssignment",
            assignment.id,
            performed_by_id=user.id,
            description=f"{transition.action.value} on {assignment.labour.name}",
            old_data={"stage": from_stage},
            new_data={
                "stage": assignment.current_stage,
                "action": transition.action,
                "historyStatus": transition.history_status,
                "feedback": feedback,
            },
        )
        await self._notify_transition(assignment, transition, user, from_stage, feedback)

        self.requirements.invalidate(requirement.id)
        logger.info(
            "assignment_stage_advanced",
            assignment_id=str(assignment.id),
            action=transition.action.value,
            from_stage=from_stage.value,
            to_stage=transition.to_stage.value if transition.to_stage else None,
        )

    def _leave_pipeline(self, assignment: LabourAssignment, role: JobRole, feedback: Optional[str]) -> None:
        assignment.admin_status = DecisionStatus.REJECTED
        assignment.admin_feedback = feedback
        assignment.labour.status = LabourProfileStatus.APPROVED
        if not assignment.is_backup:
            self._promote_backup(role)
        role.needs_more_labour = True
        role.admin_status = JobRoleStatus.NEEDS_REVISION

    @staticmethod
    def _requirement_deployed(requirement: Requirement) -> bool:
        return all(
            sum(1 for a in role.assignments if a.is_deployed) >= role.quantity
            for role in requirement.job_roles
        )

    async def _notify_transition(
        self,
        assignment: LabourAssignment,
        transition: Transition,
        user: User,
        from_stage: Stage,
        feedback: Optional[str],
    ) -> None:
        requirement = assignment.job_role.requirement
        if user.role == UserRole.CLIENT_ADMIN:
            counterparty = assignment.agency.user
        else:
            counterparty = requirement.client.user
        name = assignment.labour.name
        label = stage_label(from_stage)
        action_url = f"/assignments/{assignment.id}/timeline"

        if transition.is_reset:
            title = f"{name} left the pipeline at {label}"
            message = f"{name} ({assignment.job_role.title}) could not continue: {feedback or transition.history_status.value}."
            await self.notifications.notify_role(
                UserRole.RECRUITMENT_ADMIN, NotificationType.STAGE_FAILED, title, message,
                priority=NotificationPriority.HIGH, action_url=action_url,
            )
            if counterparty is not None:
                await self.notifications.notify(
                    counterparty, NotificationType.STAGE_FAILED, title, message,
                    priority=NotificationPriority.HIGH, action_url=action_url,
                )
            return

        if transition.to_stage == Stage.DEPLOYED:
            title = f"{name} has been deployed"
            message = f"{name} arrived and is now deployed as {assignment.job_role.title}."
            await self.notifications.notify_role(
                UserRole.RECRUITMENT_ADMIN, NotificationType.LABOUR_DEPLOYED, title, message, action_url=action_url,
            )
            if assignment.agency.user is not None:
                await self.notifications.notify(
                    assignment.agency.user, NotificationType.LABOUR_DEPLOYED, title, message, action_url=action_url,
                )
            return

        if transition.stays:
            title = f"{name}: {label} updated"
            message = f"{transition.action.value.replace('_', ' ').capitalize()} for {name}."
        else:
            title = f"{name}: {label} completed"
            message = f"{name} moved to {stage_label(transition.to_stage)}."
        if counterparty is not None:
            await self.notifications.notify(
                counterparty, NotificationType.STAGE_COMPLETED, title, message, action_url=action_url,
            )
