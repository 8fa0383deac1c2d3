"""Labour profile schemas."""

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import EmailStr, Field

from app.models.labour import LabourProfileStatus, VerificationStatus
from app.schemas.common import CamelModel
from app.schemas.requirement import AgencyBrief


class LabourProfileCreate(CamelModel):
    """Candidate biodata submitted by an agency."""
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    nationality: Optional[str] = Field(None, max_length=100)
    passport_number: Optional[str] = Field(None, max_length=50)
    date_of_birth: Optional[date] = None
    languages: List[str] = Field(default_factory=list)
    experience_years: Optional[str] = Field(None, max_length=20)


class LabourProfileReview(CamelModel):
    status: Literal["RECEIVED", "UNDER_REVIEW", "APPROVED", "REJECTED"]
    verification_status: Optional[VerificationStatus] = None


class LabourProfileOut(CamelModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    nationality: Optional[str] = None
    passport_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    languages: Optional[List[str]] = None
    experience_years: Optional[str] = None
    status: LabourProfileStatus
    verification_status: VerificationStatus
    agency: Optional[AgencyBrief] = None
    created_at: datetime


class LabourProfileListResponse(CamelModel):
    labour_profiles: List[LabourProfileOut]
