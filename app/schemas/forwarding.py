"""Forwarding request/response schemas."""

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field

from app.models.agency import AgencyStatus
from app.models.requirement import ForwardingStatus
from app.schemas.common import CamelModel
from app.schemas.requirement import RequirementDetail
from app.services.forwarding_plan import ForwardingMode


class ForwardedRoleIn(CamelModel):
    job_role_id: UUID
    agency_id: UUID
    quantity: int = Field(..., ge=0)


class ForwardRequest(CamelModel):
    """Flat forwarding payload.

    Without ``mode`` the lines are persisted as sent. With ``mode`` the plan
    is validated first: ``single`` builds one line per role for ``agencyId``
    (``quantities`` may lower a role's count), ``split`` checks that every
    role has a positive quantity.
    """
    requirement_id: UUID
    forwarded_roles: List[ForwardedRoleIn] = Field(default_factory=list)
    forward_all: bool = False
    mode: Optional[ForwardingMode] = None
    agency_id: Optional[UUID] = None
    quantities: Dict[str, int] = Field(default_factory=dict)


class ForwardResponse(CamelModel):
    success: bool = True
    forwarded_count: int
    requirement: RequirementDetail


class ForwardingStatusUpdate(CamelModel):
    status: Literal["ACCEPTED", "REJECTED"]
    reason: Optional[str] = None


class AgencyOut(CamelModel):
    id: UUID
    agency_name: str
    country: Optional[str] = None
    status: AgencyStatus


class AgencyListResponse(CamelModel):
    agencies: List[AgencyOut]


class ForwardedJobRole(CamelModel):
    id: UUID
    requirement_id: UUID
    title: str
    quantity: int
    nationality: Optional[str] = None
    salary: Optional[str] = None
    needs_more_labour: bool


class AgencyForwardingOut(CamelModel):
    """A forwarding as the receiving agency sees it."""
    id: UUID
    quantity: int
    status: ForwardingStatus
    rejection_reason: Optional[str] = None
    created_at: datetime
    job_role: ForwardedJobRole


class AgencyForwardingListResponse(CamelModel):
    forwardings: List[AgencyForwardingOut]


class AllocationOut(CamelModel):
    agency_id: UUID
    quantity: int


class RoleForwardingOptions(CamelModel):
    job_role_id: UUID
    title: str
    quantity: int
    forwarded_quantity: int
    allocations: List[AllocationOut]
    available_agencies: List[AgencyOut]


class ForwardingOptionsResponse(CamelModel):
    requirement_id: UUID
    roles: List[RoleForwardingOptions]
