"""
Client Assignments API
Client selection of candidates and client-side onboarding actions
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_assignment_service, get_current_client, get_db
from app.api.v1.endpoints.agencies import run_stage_action, stage_response
from app.models.client import Client
from app.models.labour import DecisionStatus
from app.schemas.assignment import (
    ArrivalConfirmation,
    AssignmentDecision,
    AssignmentListResponse,
    BulkAssignmentDecision,
    StageActionRequest,
    StageActionResponse,
    TravelDateUpdate,
)
from app.schemas.requirement import AssignmentOut
from app.services.assignment_service import AssignmentService
from app.services.stage_pipeline import StageAction

router = APIRouter()


@router.put("/assignments/bulk-status", response_model=AssignmentListResponse)
async def client_bulk_decide(
    body: BulkAssignmentDecision,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept or reject several candidates at once

    **Auth**: Client admin (own requirements)

    All decisions apply in one transaction: an unknown id (404) or a refused
    decision leaves every assignment unchanged.
    """
    decided = await assignments.bulk_client_decide(
        body.assignment_ids, DecisionStatus(body.status), body.feedback, client.user
    )
    await db.commit()
    return {"assignments": [await assignments.get(a.id) for a in decided]}


@router.put("/assignments/{assignment_id}/status", response_model=AssignmentOut)
async def decide_assignment(
    assignment_id: UUID,
    body: AssignmentDecision,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept or reject an admin-approved candidate

    **Auth**: Client admin (own requirement)

    Rejection requires `feedback`. Once a role has as many accepted
    candidates as requested, the remaining candidates are released.
    """
    assignment = await assignments.client_decide(
        assignment_id, DecisionStatus(body.status), body.feedback, client.user
    )
    await db.commit()
    return await assignments.get(assignment.id)


@router.post("/assignments/{assignment_id}/verify-offer-letter", response_model=StageActionResponse)
async def verify_offer_letter(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """Confirm the signed offer letter uploaded by the agency."""
    return await run_stage_action(assignments, db, assignment_id, StageAction.VERIFY_OFFER_LETTER, client.user, body)


@router.post("/assignments/{assignment_id}/mark-visa-applied", response_model=StageActionResponse)
async def mark_visa_applied(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    return await run_stage_action(assignments, db, assignment_id, StageAction.MARK_VISA_APPLIED, client.user, body)


@router.post("/assignments/{assignment_id}/mark-qvc-paid", response_model=StageActionResponse)
async def mark_qvc_paid(
    assignment_id: UUID,
    body: Optional[StageActionRequest] = None,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    return await run_stage_action(assignments, db, assignment_id, StageAction.MARK_QVC_PAID, client.user, body)


@router.post("/assignments/{assignment_id}/upload-visa", response_model=StageActionResponse)
async def upload_visa(
    assignment_id: UUID,
    file: UploadFile = File(..., description="Printed visa (PDF)"),
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Upload the printed visa

    **Auth**: Client admin
    """
    assignment = await assignments.perform_action(assignment_id, StageAction.UPLOAD_VISA, client.user, document=file)
    await db.commit()
    return await stage_response(assignments, assignment.id, "Visa uploaded successfully")


@router.post("/assignments/{assignment_id}/confirm-arrival", response_model=StageActionResponse)
async def confirm_arrival(
    assignment_id: UUID,
    body: ArrivalConfirmation,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Confirm the labour arrived

    **Auth**: Client admin

    Body `{"status": "ARRIVED"}`; the labour becomes DEPLOYED.
    """
    assignment = await assignments.confirm_arrival(assignment_id, body.status, client.user, notes=body.notes)
    await db.commit()
    return await stage_response(assignments, assignment.id, "Arrival confirmed; labour deployed")


@router.put("/assignments/{assignment_id}/travel-date")
async def update_travel_date(
    assignment_id: UUID,
    body: TravelDateUpdate,
    client: Client = Depends(get_current_client),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Set the planned travel date

    **Auth**: Client admin. Allowed at any stage before deployment.
    """
    assignment = await assignments.update_travel_date(assignment_id, body.travel_date, client.user)
    await db.commit()
    return {
        "success": True,
        "message": "Travel date updated successfully",
        "data": {"travelDate": assignment.travel_date.isoformat()},
    }
