"""Requirement, job role and reconciliation schemas."""

from datetime import date, datetime
from typing import List, Optional, Union
from uuid import UUID

from pydantic import Field, model_validator

from app.models.labour import DecisionStatus, LabourProfileStatus, Stage, StageStatus
from app.models.requirement import ForwardingStatus, JobRoleStatus, RequirementStatus
from app.schemas.common import CamelModel
from app.services.stage_pipeline import offer_letter_blocked as details_incomplete


# ==================== Input ====================

class JobRoleCreate(CamelModel):
    """One position of a requirement."""
    title: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(..., gt=0)
    nationality: Optional[str] = None
    salary: Optional[str] = None
    food_allowance: Optional[str] = None
    housing_allowance: Optional[str] = None
    transportation_allowance: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    min_experience: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, gt=0)
    notes: Optional[str] = None


class RequirementCreate(CamelModel):
    job_roles: List[JobRoleCreate] = Field(..., min_length=1)
    submit: bool = True  # False keeps the requirement as a DRAFT


class RequirementPatch(CamelModel):
    """Either a status change or a draft edit, never both."""
    status: Optional[RequirementStatus] = None
    reason: Optional[str] = None
    job_roles: Optional[List[JobRoleCreate]] = Field(None, min_length=1)
    submit: bool = False

    @model_validator(mode="after")
    def one_change(self):
        if (self.status is None) == (self.job_roles is None):
            raise ValueError("Provide either status or jobRoles")
        return self


# Client forms send numbers; stored values are display strings
NumberOrText = Union[int, float, str, None]


class OfferLetterDetailsIn(CamelModel):
    working_hours: NumberOrText = None
    working_days: NumberOrText = None
    leave_salary: NumberOrText = None
    end_of_service: NumberOrText = None
    probation_period: NumberOrText = None


# ==================== Output ====================

class ClientBrief(CamelModel):
    id: UUID
    company_name: str


class AgencyBrief(CamelModel):
    id: UUID
    agency_name: str
    country: Optional[str] = None


class LabourBrief(CamelModel):
    id: UUID
    name: str
    nationality: Optional[str] = None
    passport_number: Optional[str] = None
    status: LabourProfileStatus


class StageHistoryOut(CamelModel):
    id: UUID
    stage: Stage
    status: StageStatus
    notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime


class AssignmentOut(CamelModel):
    id: UUID
    labour_id: UUID
    job_role_id: UUID
    agency_id: UUID
    labour: LabourBrief
    agency_status: DecisionStatus
    admin_status: DecisionStatus
    client_status: DecisionStatus
    admin_feedback: Optional[str] = None
    client_feedback: Optional[str] = None
    is_backup: bool
    current_stage: Stage
    signed_offer_letter_url: Optional[str] = None
    visa_url: Optional[str] = None
    flight_ticket_url: Optional[str] = None
    medical_certificate_url: Optional[str] = None
    police_clearance_url: Optional[str] = None
    employment_contract_url: Optional[str] = None
    additional_documents_urls: Optional[List[str]] = None
    travel_date: Optional[date] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class AssignmentDetail(AssignmentOut):
    stage_history: List[StageHistoryOut] = Field(default_factory=list)


class ForwardingOut(CamelModel):
    id: UUID
    job_role_id: UUID
    agency_id: UUID
    agency: AgencyBrief
    quantity: int
    status: ForwardingStatus
    rejection_reason: Optional[str] = None


class JobRoleOut(CamelModel):
    id: UUID
    title: str
    quantity: int
    nationality: Optional[str] = None
    salary: Optional[str] = None
    food_allowance: Optional[str] = None
    housing_allowance: Optional[str] = None
    transportation_allowance: Optional[str] = None
    languages: Optional[List[str]] = None
    min_experience: Optional[int] = None
    max_age: Optional[int] = None
    notes: Optional[str] = None
    assigned_agency_id: Optional[UUID] = None
    agency_status: JobRoleStatus
    admin_status: JobRoleStatus
    forwarded_quantity: int
    needs_more_labour: bool
    forwardings: List[ForwardingOut] = Field(default_factory=list)
    assignments: List[AssignmentOut] = Field(default_factory=list)


class OfferLetterDetailsOut(CamelModel):
    id: UUID
    requirement_id: UUID
    working_hours: Optional[str] = None
    working_days: Optional[str] = None
    leave_salary: Optional[str] = None
    end_of_service: Optional[str] = None
    probation_period: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return all([
            self.working_hours,
            self.working_days,
            self.leave_salary,
            self.end_of_service,
            self.probation_period,
        ])


class RequirementOut(CamelModel):
    id: UUID
    client_id: UUID
    client: ClientBrief
    status: RequirementStatus
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    job_roles: List[JobRoleOut] = Field(default_factory=list)


class RequirementDetail(RequirementOut):
    offer_letter_details: Optional[OfferLetterDetailsOut] = None
    offer_letter_blocked: bool = True

    @model_validator(mode="after")
    def derive_offer_letter_blocked(self):
        self.offer_letter_blocked = details_incomplete(self.offer_letter_details)
        return self


# ==================== Reconciliation ====================

class RejectedProfileOut(CamelModel):
    labour_id: str
    name: str
    rejected_by: str
    feedback: Optional[str] = None


class RoleReconciliationOut(CamelModel):
    job_role_id: str
    title: str
    requested_quantity: int
    forwarded_quantity: int
    admin_rejected_count: int
    client_rejected_count: int
    accepted_count: int
    rejection_threshold: int
    total_needed: int
    shortfall: int
    needs_more_labour: bool
    priority: bool
    rejected_profiles: List[RejectedProfileOut] = Field(default_factory=list)


class ReconciliationResponse(CamelModel):
    requirement_id: UUID
    roles: List[RoleReconciliationOut]


class RequirementListResponse(CamelModel):
    requirements: List[RequirementOut]
