"""
Assignments API
Admin screening of submitted profiles and the shared stage timeline
"""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_assignment_service, get_db, require_admin, require_participant
from app.models.labour import DecisionStatus
from app.models.user import User
from app.schemas.assignment import (
    AssignmentDecision,
    AssignmentListResponse,
    BulkAssignmentDecision,
    TimelineResponse,
)
from app.schemas.requirement import AssignmentOut
from app.services.assignment_service import AssignmentService

admin_router = APIRouter()
router = APIRouter()


@admin_router.put("/assignments/bulk-status", response_model=AssignmentListResponse)
async def admin_bulk_decide(
    body: BulkAssignmentDecision,
    current_user: User = Depends(require_admin),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept or reject several profiles at once

    **Auth**: Recruitment admin

    All decisions apply in one transaction: an unknown id (404) or a refused
    decision leaves every assignment unchanged.
    """
    decided = await assignments.bulk_admin_decide(
        body.assignment_ids, DecisionStatus(body.status), body.feedback, current_user
    )
    await db.commit()
    return {"assignments": [await assignments.get(a.id) for a in decided]}


@admin_router.put("/assignments/{assignment_id}/status", response_model=AssignmentOut)
async def admin_decide_assignment(
    assignment_id: UUID,
    body: AssignmentDecision,
    current_user: User = Depends(require_admin),
    assignments: AssignmentService = Depends(get_assignment_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept or reject a submitted profile

    **Auth**: Recruitment admin

    Accepted profiles beyond the role quantity are kept as backups. Rejecting
    a primary profile promotes the oldest backup. Rejection requires `feedback`.
    """
    assignment = await assignments.admin_decide(
        assignment_id, DecisionStatus(body.status), body.feedback, current_user
    )
    await db.commit()
    return await assignments.get(assignment.id)


@router.get("/{assignment_id}/timeline", response_model=TimelineResponse)
async def get_timeline(
    assignment_id: UUID,
    current_user: User = Depends(require_participant),
    assignments: AssignmentService = Depends(get_assignment_service),
):
    """
    Stage history and the actions the caller can take next

    **Auth**: Admin, owning client or owning agency
    """
    return await assignments.timeline(assignment_id, current_user)
