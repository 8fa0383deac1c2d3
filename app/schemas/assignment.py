"""Labour assignment and stage action schemas."""

from datetime import date
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import Field

from app.models.labour import Stage
from app.schemas.common import CamelModel
from app.schemas.requirement import AssignmentDetail, AssignmentOut


class AssignProfilesRequest(CamelModel):
    profile_ids: List[UUID] = Field(..., min_length=1)


class AssignmentListResponse(CamelModel):
    assignments: List[AssignmentOut]


class AssignmentDecision(CamelModel):
    status: Literal["ACCEPTED", "REJECTED"]
    feedback: Optional[str] = None


class BulkAssignmentDecision(CamelModel):
    assignment_ids: List[UUID] = Field(..., min_length=1)
    status: Literal["ACCEPTED", "REJECTED"]
    feedback: Optional[str] = None


class ArrivalConfirmation(CamelModel):
    status: str
    notes: Optional[str] = None


class TravelConfirmation(CamelModel):
    status: Literal["TRAVELED", "RESCHEDULED", "CANCELED"]
    rescheduled_travel_date: Optional[date] = None
    notes: Optional[str] = None


class TravelDateUpdate(CamelModel):
    travel_date: Optional[date] = None


class StageActionRequest(CamelModel):
    notes: Optional[str] = None


class StageActionResponse(CamelModel):
    success: bool = True
    message: str
    assignment: AssignmentDetail


class TimelineResponse(CamelModel):
    assignment: AssignmentDetail
    stage_order: List[Stage]
    allowed_actions: List[str]
    offer_letter_blocked: bool
