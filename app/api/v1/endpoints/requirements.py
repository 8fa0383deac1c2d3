"""
Requirements API
Client staffing requests, forwarding to agencies, labour assignment and
offer-letter details
"""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_assignment_service,
    get_current_agency,
    get_current_client,
    get_db,
    get_forwarding_service,
    get_offer_letter_service,
    get_requirement_service,
    require_admin,
    require_participant,
    require_role,
)
from app.models.agency import Agency
from app.models.client import Client
from app.models.user import User, UserRole
from app.schemas.assignment import AssignmentListResponse, AssignProfilesRequest
from app.schemas.forwarding import ForwardingOptionsResponse, ForwardRequest, ForwardResponse
from app.schemas.requirement import (
    AssignmentOut,
    JobRoleOut,
    OfferLetterDetailsIn,
    OfferLetterDetailsOut,
    ReconciliationResponse,
    RequirementCreate,
    RequirementDetail,
    RequirementListResponse,
    RequirementPatch,
)
from app.services.assignment_service import AssignmentService
from app.services.forwarding_service import ForwardingService
from app.services.offer_letter_service import OfferLetterService
from app.services.reconciliation_service import reconcile_requirement
from app.services.requirement_service import RequirementService, parse_statuses, serialize_requirement

logger = structlog.get_logger(__name__)

router = APIRouter()


def _agency_view(detail: dict, agency_id: str) -> Optional[dict]:
    """Requirement tree restricted to what one agency was forwarded."""
    roles = []
    for role in detail["jobRoles"]:
        forwardings = [f for f in role["forwardings"] if f["agencyId"] == agency_id]
        if not forwardings:
            continue
        roles.append({
            **role,
            "forwardings": forwardings,
            "assignments": [a for a in role["assignments"] if a["agencyId"] == agency_id],
        })
    if not roles:
        return None
    return {**detail, "jobRoles": roles}


async def _load_detail(requirement_id: UUID, user: User, requirements: RequirementService) -> dict:
    detail = await requirements.get_detail(requirement_id)
    if user.role == UserRole.CLIENT_ADMIN:
        if user.client_profile is None or detail["clientId"] != str(user.client_profile.id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Requirement not found")
    elif user.role == UserRole.RECRUITMENT_AGENCY:
        view = _agency_view(detail, str(user.agency_profile.id)) if user.agency_profile else None
        if view is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Requirement not found")
        return view
    return detail


@router.post("", response_model=RequirementDetail, status_code=status.HTTP_201_CREATED)
async def create_requirement(
    body: RequirementCreate,
    client: Client = Depends(get_current_client),
    requirements: RequirementService = Depends(get_requirement_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Create a requirement

    **Auth**: Client admin

    `submit=false` keeps it as a DRAFT (autosave); otherwise it is SUBMITTED
    and recruitment admins are notified.
    """
    requirement = await requirements.create(client, body.job_roles, client.user, submit=body.submit)
    await db.commit()
    requirement = await requirements.get(requirement.id)
    return serialize_requirement(requirement)


@router.get("", response_model=RequirementListResponse)
async def list_requirements(
    status_filter: Optional[str] = Query(None, alias="status", description="Comma-separated statuses, e.g. SUBMITTED,UNDER_REVIEW"),
    current_user: User = Depends(require_participant),
    requirements: RequirementService = Depends(get_requirement_service),
):
    """
    List requirements

    **Auth**: Any role. Clients see their own (drafts included), admins see
    every non-draft requirement, agencies see requirements forwarded to them.
    """
    statuses = parse_statuses(status_filter)

    if current_user.role == UserRole.CLIENT_ADMIN:
        if current_user.client_profile is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client profile not found")
        items = await requirements.list_requirements(
            client_id=current_user.client_profile.id, statuses=statuses, include_drafts=True
        )
    else:
        items = await requirements.list_requirements(statuses=statuses)
        if current_user.role == UserRole.RECRUITMENT_AGENCY:
            agency_id = current_user.agency_profile.id if current_user.agency_profile else None
            items = [
                r for r in items
                if any(f.agency_id == agency_id for role in r.job_roles for f in role.forwardings)
            ]

    return {"requirements": items}


@router.post("/forward", response_model=ForwardResponse)
async def forward_requirement(
    body: ForwardRequest,
    current_user: User = Depends(require_admin),
    forwarding: ForwardingService = Depends(get_forwarding_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Forward job roles to agencies

    **Auth**: Recruitment admin

    Accepts the flat `forwardedRoles` list. With `mode` (`single` or `split`)
    the plan is validated first: single mode forwards every role to
    `agencyId` (optional per-role `quantities`), split mode requires a
    positive quantity for every role.
    """
    requirement = await forwarding.requirements.get(body.requirement_id)
    plan = forwarding.build_plan(
        requirement,
        body.mode,
        [line.model_dump(mode="json", by_alias=True) for line in body.forwarded_roles],
        agency_id=str(body.agency_id) if body.agency_id else None,
        quantities=body.quantities,
    )
    lines = plan.committed_lines() if body.mode else plan.lines

    requirement, count = await forwarding.forward_requirement(
        requirement.id, lines, current_user, forward_all=body.forward_all
    )
    await db.commit()

    requirement = await forwarding.requirements.get(requirement.id)
    return {
        "success": True,
        "forwarded_count": count,
        "requirement": serialize_requirement(requirement),
    }


@router.get("/{requirement_id}", response_model=RequirementDetail)
async def get_requirement(
    requirement_id: UUID,
    current_user: User = Depends(require_participant),
    requirements: RequirementService = Depends(get_requirement_service),
):
    """
    Requirement with job roles, forwardings, assignments and offer-letter details

    **Auth**: Admin, owning client, or an agency the requirement was forwarded to
    """
    return await _load_detail(requirement_id, current_user, requirements)


@router.patch("/{requirement_id}", response_model=RequirementDetail)
async def update_requirement(
    requirement_id: UUID,
    body: RequirementPatch,
    current_user: User = Depends(require_role(UserRole.RECRUITMENT_ADMIN, UserRole.CLIENT_ADMIN)),
    requirements: RequirementService = Depends(get_requirement_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Change status or edit a draft

    **Auth**: Client admin (own requirement: edit draft, submit) or
    recruitment admin (UNDER_REVIEW, REJECTED with reason, COMPLETED)
    """
    requirement = await requirements.get(requirement_id)
    if current_user.role == UserRole.CLIENT_ADMIN:
        if current_user.client_profile is None or requirement.client_id != current_user.client_profile.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Requirement not found")

    if body.job_roles is not None:
        if current_user.role != UserRole.CLIENT_ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the client can edit a draft")
        await requirements.update_draft(requirement, body.job_roles, current_user, submit=body.submit)
    else:
        await requirements.change_status(requirement, body.status, current_user, body.reason)

    await db.commit()
    requirement = await requirements.get(requirement_id)
    return serialize_requirement(requirement)


@router.get("/{requirement_id}/reconciliation", response_model=ReconciliationResponse)
async def get_reconciliation(
    requirement_id: UUID,
    current_user: User = Depends(require_admin),
    requirements: RequirementService = Depends(get_requirement_service),
):
    """
    Per-role rejection counts, shortfall and re-forwarding priority

    **Auth**: Recruitment admin
    """
    requirement = await requirements.get(requirement_id)
    return {
        "requirement_id": requirement.id,
        "roles": [item.to_dict() for item in reconcile_requirement(requirement)],
    }


@router.get("/{requirement_id}/forwarding-options", response_model=ForwardingOptionsResponse)
async def get_forwarding_options(
    requirement_id: UUID,
    editing_agency_id: Optional[UUID] = Query(None, alias="editingAgencyId"),
    current_user: User = Depends(require_admin),
    forwarding: ForwardingService = Depends(get_forwarding_service),
):
    """
    Current allocations and the agencies still available for each job role

    **Auth**: Recruitment admin

    Agencies that declined a role, or already hold it, are not offered again.
    Pass editingAgencyId to keep the agency whose allocation is being edited.
    """
    requirement, roles = await forwarding.forwarding_options(requirement_id, editing_agency_id)
    return {"requirement_id": requirement.id, "roles": roles}


@router.get("/{job_role_id}/assign", response_model=AssignmentListResponse)
async def list_assignments(
    job_role_id: UUID,
    current_user: User = Depends(require_role(UserRole.RECRUITMENT_ADMIN, UserRole.RECRUITMENT_AGENCY)),
    assignments: AssignmentService = Depends(get_assignment_service),
):
    """
    Assignments of a job role

    **Auth**: Recruitment admin (all agencies) or agency (its own)
    """
    agency = current_user.agency_profile if current_user.role == UserRole.RECRUITMENT_AGENCY else None
    if current_user.role == UserRole.RECRUITMENT_AGENCY and agency is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Agency profile not found")
    items = await assignments.list_role_assignments(job_role_id, agency=agency)
    return {"assignments": items}


@router.post("/{job_role_id}/assign")
async def assign_profiles(
    job_role_id: UUID,
    body: AssignProfilesRequest,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Assign labour profiles to a forwarded job role

    **Auth**: Recruitment agency

    Profiles must be APPROVED and at least partially verified. The number
    of live assignments may not exceed the quantity forwarded to the agency.
    Previously rejected assignments of this agency are cleared.
    """
    role, created = await assignments.assign_profiles(job_role_id, agency, body.profile_ids, agency.user)
    await db.commit()

    role = await assignments.get_role(role.id)
    return {
        "jobRole": JobRoleOut.model_validate(role).model_dump(mode="json", by_alias=True),
        "assignments": [AssignmentOut.model_validate(a).model_dump(mode="json", by_alias=True) for a in created],
    }


@router.get("/{requirement_id}/offer-letter-details", response_model=OfferLetterDetailsOut)
async def get_offer_letter_details(
    requirement_id: UUID,
    current_user: User = Depends(require_participant),
    requirements: RequirementService = Depends(get_requirement_service),
    offer_letters: OfferLetterService = Depends(get_offer_letter_service),
):
    """
    Offer-letter details of a requirement

    **Auth**: Any role with access to the requirement
    """
    await _load_detail(requirement_id, current_user, requirements)
    return await offer_letters.get(requirement_id)


@router.post("/{requirement_id}/offer-letter-details", response_model=OfferLetterDetailsOut)
async def save_offer_letter_details(
    requirement_id: UUID,
    body: OfferLetterDetailsIn,
    client: Client = Depends(get_current_client),
    requirements: RequirementService = Depends(get_requirement_service),
    offer_letters: OfferLetterService = Depends(get_offer_letter_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Create or update offer-letter details

    **Auth**: Client admin (own requirement)

    Numbers are stored with their unit: `8` -> "8 Hours", `6` -> "6 days",
    leave salary `0` -> "No leave salary provided", `30` -> "30 days per year".
    """
    requirement = await requirements.get(requirement_id)
    if requirement.client_id != client.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Requirement not found")

    details = await offer_letters.upsert(requirement, **body.model_dump())
    requirements.invalidate(requirement.id)
    await db.commit()
    return details
