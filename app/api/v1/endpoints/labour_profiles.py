"""
Labour Profiles API
Admin review of agency-submitted labour profiles
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_labour_profile_service, require_admin
from app.models.labour import LabourProfileStatus
from app.models.user import User
from app.schemas.labour import LabourProfileListResponse, LabourProfileOut, LabourProfileReview
from app.services.labour_profile_service import LabourProfileService

router = APIRouter()


@router.get("", response_model=LabourProfileListResponse)
async def list_labour_profiles(
    status: Optional[LabourProfileStatus] = Query(None, description="Filter by status, e.g. RECEIVED"),
    agency_id: Optional[UUID] = Query(None, alias="agencyId"),
    current_user: User = Depends(require_admin),
    profiles: LabourProfileService = Depends(get_labour_profile_service),
):
    """
    Labour profiles across agencies, newest first

    **Auth**: Recruitment admin
    """
    return {"labour_profiles": await profiles.list_profiles(agency_id=agency_id, status=status)}


@router.put("/{profile_id}/status", response_model=LabourProfileOut)
async def review_labour_profile(
    profile_id: UUID,
    body: LabourProfileReview,
    current_user: User = Depends(require_admin),
    profiles: LabourProfileService = Depends(get_labour_profile_service),
    db: AsyncSession = Depends(get_db),
):
    """
    Review a labour profile

    **Auth**: Recruitment admin

    Approved profiles that are at least partially verified become
    assignable. Shortlisted or deployed labour cannot be reviewed (409).
    """
    profile = await profiles.review(
        profile_id, LabourProfileStatus(body.status), current_user, body.verification_status
    )
    await db.commit()
    return profile
