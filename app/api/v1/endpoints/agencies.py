"""
Agencies API
Agency directory, forwarding responses, labour profiles and agency-side onboarding actions
"""

from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_assignment_service,
    get_current_agency,
    get_db,
    get_forwarding_service,
    get_labour_profile_service,
    require_admin,
)
from app.models.agency import Agency, AgencyStatus
from app.models.requirement import ForwardingStatus
from app.models.user import User
from app.schemas.assignment import StageActionRequest, StageActionResponse, TravelConfirmation
from app.schemas.forwarding import (
    AgencyForwardingListResponse,
    AgencyForwardingOut,
    AgencyListResponse,
    ForwardingStatusUpdate,
)
from app.schemas.labour import LabourProfileCreate, LabourProfileListResponse, LabourProfileOut
from app.services.assignment_service import AssignmentService
from app.services.forwarding_service import ForwardingService
from app.services.labour_profile_service import LabourProfileService
from app.services.stage_pipeline import StageAction, stage_label

logger = structlog.get_logger(__name__)

router = APIRouter()


async def stage_response(assignments: AssignmentService, assignment_id, message: str) -> dict:
    """Reloaded assignment after commit, in the stage action response shape."""
    assignment = await assignments.get(assignment_id)
    return {"success": True, "message": message, "assignment": assignment}


async def run_stage_action(
    assignments: AssignmentService,
    db: AsyncSession,
    assignment_id: UUID,
    action: StageAction,
    user: User,
    body: Optional[StageActionRequest],
) -> dict:
    assignment = await assignments.perform_action(assignment_id, action, user, notes=body.notes if body else None)
    await db.commit()
    return await stage_response(
        assignments, assignment.id, f"{action.value.replace('_', ' ').capitalize()} recorded"
    )


# ==================== Directory ====================

@router.get("", response_model=AgencyListResponse)
async def list_agencies(
    status: Optional[AgencyStatus] = Query(None, description="Filter by status, e.g. VERIFIED"),
    current_user: User = Depends(require_admin),
    forwarding: ForwardingService = Depends(get_forwarding_service),
):
    """
    List agencies

    **Auth**: Recruitment admin. Only VERIFIED agencies can receive forwards.
    """
    return {"agencies": await forwarding.list_agencies(status)}


# ==================== Forwardings ====================

@router.get("/forwardings", response_model=AgencyForwardingListResponse)
async def list_forwardings(
    agency: Agency = Depends(get_current_agency),
    forwarding: ForwardingService = Depends(get_forwarding_service),
):
    """
    Job roles forwarded to the current agency

    **Auth**: Recruitment agency
    """
    return {"forwardings": await forwarding.list_for_agency(agency)}


@router.put("/forwardings/{forwarding_id}/status", response_model=AgencyForwardingOut)
async def respond_to_forwarding(
    forwarding_id: UUID,
    body: ForwardingStatusUpdate,
    agency: Agency = Depends(get_current_agency),
    forwarding: ForwardingService = Depends(get_forwarding_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept or decline a forwarded job role

    **Auth**: Recruitment agency (owner of the forwarding)

    A declined role is never offered to the same agency again; admins are
    notified to re-forward it.
    """
    row = await forwarding.respond(forwarding_id, agency, ForwardingStatus(body.status), body.reason)
    await db.commit()
    return await forwarding.get_forwarding(row.id)


# ==================== Labour profiles ====================

@router.get("/labour-profiles", response_model=LabourProfileListResponse)
async def list_labour_profiles(
    agency: Agency = Depends(get_current_agency),
    profiles: LabourProfileService = Depends(get_labour_profile_service),
):
    """
    The current agency's labour profiles, newest first

    **Auth**: Recruitment agency
    """
    return {"labour_profiles": await profiles.list_profiles(agency_id=agency.id)}


@router.post("/labour-profiles", response_model=LabourProfileOut, status_code=201)
async def create_labour_profile(
    body: LabourProfileCreate,
    agency: Agency = Depends(get_current_agency),
    profiles: LabourProfileService = Depends(get_labour_profile_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a labour profile

    **Auth**: Recruitment agency

    New profiles are RECEIVED and unverified; an admin must approve and
    verify them before they can be assigned to a job role.
    """
    profile = await profiles.create(agency, body, agency.user)
    await db.commit()
    return profile


# ==================== Onboarding actions ====================

@router.post("/assignments/{assignment_id}/upload-offer-letter", response_model=StageActionResponse)
async def upload_offer_letter(
    assignment_id: UUID,
    file: UploadFile = File(..., description="Signed offer letter (PDF)"),
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload the signed offer letter

    **Auth**: Recruitment agency

    Blocked until the client has filled the offer-letter details. The stage
    stays at Offer Letter Signing until the client verifies the letter.
    """
    assignment = await assignments.perform_action(
        assignment_id, StageAction.UPLOAD_SIGNED_OFFER_LETTER, agency.user, document=file
    )
    await db.commit()
    return await stage_response(assignments, assignment.id, "Offer letter uploaded successfully")


@router.post("/assignments/{assignment_id}/approve-contract", response_model=StageActionResponse)
async def approve_contract(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """Labour signed the contract."""
    return await run_stage_action(assignments, db, assignment_id, StageAction.APPROVE_CONTRACT, agency.user, body)


@router.post("/assignments/{assignment_id}/refuse-contract", response_model=StageActionResponse)
async def refuse_contract(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """Labour refused the contract; the assignment leaves the pipeline."""
    return await run_stage_action(assignments, db, assignment_id, StageAction.REFUSE_CONTRACT, agency.user, body)


@router.post("/assignments/{assignment_id}/mark-medical-fit", response_model=StageActionResponse)
async def mark_medical_fit(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    return await run_stage_action(assignments, db, assignment_id, StageAction.MARK_MEDICAL_FIT, agency.user, body)


@router.post("/assignments/{assignment_id}/mark-medical-unfit", response_model=StageActionResponse)
async def mark_medical_unfit(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    return await run_stage_action(assignments, db, assignment_id, StageAction.MARK_MEDICAL_UNFIT, agency.user, body)


@router.post("/assignments/{assignment_id}/mark-fingerprint-pass", response_model=StageActionResponse)
async def mark_fingerprint_pass(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    return await run_stage_action(assignments, db, assignment_id, StageAction.MARK_FINGERPRINT_PASS, agency.user, body)


@router.post("/assignments/{assignment_id}/mark-fingerprint-fail", response_model=StageActionResponse)
async def mark_fingerprint_fail(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    return await run_stage_action(assignments, db, assignment_id, StageAction.MARK_FINGERPRINT_FAIL, agency.user, body)


@router.post("/assignments/{assignment_id}/travel-documents")
async def upload_travel_documents(
    assignment_id: UUID,
    flight_ticket: Optional[UploadFile] = File(None, alias="flightTicket"),
    medical_certificate: Optional[UploadFile] = File(None, alias="medicalCertificate"),
    police_clearance: Optional[UploadFile] = File(None, alias="policeClearance"),
    employment_contract: Optional[UploadFile] = File(None, alias="employmentContract"),
    additional_documents: Optional[List[UploadFile]] = File(None, alias="additionalDocuments"),
    notes: Optional[str] = Form(None),
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload travel documents

    **Auth**: Recruitment agency

    Documents may arrive over several calls. The assignment moves to Travel
    Confirmation once flight ticket, medical certificate, police clearance
    and employment contract are all on file.
    """
    documents = {
        "flight_ticket": flight_ticket,
        "medical_certificate": medical_certificate,
        "police_clearance": police_clearance,
        "employment_contract": employment_contract,
    }
    assignment, missing = await assignments.upload_travel_documents(
        assignment_id,
        {kind: upload for kind, upload in documents.items() if upload is not None},
        agency.user,
        additional=additional_documents or [],
        notes=notes,
    )
    await db.commit()

    if missing:
        message = f"Documents uploaded; still required: {', '.join(missing)}"
    else:
        message = "All travel documents uploaded"
    response = await stage_response(assignments, assignment.id, message)
    return {
        **StageActionResponse.model_validate(response).model_dump(mode="json", by_alias=True),
        "missingDocuments": missing,
    }


@router.post("/assignments/{assignment_id}/travel-confirmation", response_model=StageActionResponse)
async def confirm_travel(
    assignment_id: UUID,
    body: TravelConfirmation,
    agency: Agency = Depends(get_current_agency),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Report the travel outcome

    **Auth**: Recruitment agency

    - `TRAVELED`: moves to Arrival Confirmation
    - `RESCHEDULED`: requires `rescheduledTravelDate`; the flight ticket must be re-uploaded
    - `CANCELED`: the assignment leaves the pipeline
    """
    assignment = await assignments.confirm_travel(
        assignment_id,
        body.status,
        agency.user,
        travel_date=body.rescheduled_travel_date,
        notes=body.notes,
    )
    await db.commit()
    return await stage_response(
        assignments,
        assignment.id,
        f"Travel marked as {body.status.lower()} ({stage_label(assignment.current_stage)})",
    )
