"""Requirement, job role and forwarding models."""

import enum

from sqlalchemy import Column, ForeignKey, Integer, String, Text, Boolean, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base, JSONType, enum_type


class RequirementStatus(str, enum.Enum):
    """Lifecycle of a client's staffing request."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    FORWARDED = "FORWARDED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    CLIENT_REVIEW = "CLIENT_REVIEW"
    COMPLETED = "COMPLETED"


class JobRoleStatus(str, enum.Enum):
    """Per-role progress, tracked separately for the agency and admin sides."""
    PENDING = "PENDING"
    FORWARDED = "FORWARDED"
    PARTIALLY_SUBMITTED = "PARTIALLY_SUBMITTED"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    NEEDS_REVISION = "NEEDS_REVISION"


class ForwardingStatus(str, enum.Enum):
    """Agency response to a forwarded quantity."""
    FORWARDED = "FORWARDED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Requirement(Base):
    """Client staffing request. Never hard-deleted."""

    __tablename__ = "requirements"

    client_id = Column(Uuid(as_uuid=True), ForeignKey("clients.id"), nullable=False, index=True)
    status = Column(enum_type(RequirementStatus), default=RequirementStatus.DRAFT, nullable=False, index=True)
    rejection_reason = Column(Text)

    # Relationships
    client = relationship("Client", back_populates="requirements", lazy="selectin")
    job_roles = relationship(
        "JobRole",
        back_populates="requirement",
        cascade="all, delete-orphan",
        order_by="JobRole.sort_order",
        lazy="selectin",
    )
    offer_letter_details = relationship(
        "OfferLetterDetails",
        back_populates="requirement",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Requirement {self.id} ({self.status.value})>"


class JobRole(Base):
    """A position within a requirement with a target headcount."""

    __tablename__ = "job_roles"

    requirement_id = Column(Uuid(as_uuid=True), ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    # Candidate attributes
    nationality = Column(String(100))
    salary = Column(String(100))  # "1500 QAR"
    food_allowance = Column(String(100))
    housing_allowance = Column(String(100))
    transportation_allowance = Column(String(100))
    languages = Column(JSONType, default=list)  # ["English", "Arabic"]
    min_experience = Column(Integer)  # years
    max_age = Column(Integer)
    notes = Column(Text)

    # Forwarding (single-agency convenience fields are denormalized)
    assigned_agency_id = Column(Uuid(as_uuid=True), ForeignKey("agencies.id"), nullable=True, index=True)
    agency_status = Column(enum_type(JobRoleStatus), default=JobRoleStatus.PENDING, nullable=False)
    admin_status = Column(enum_type(JobRoleStatus), default=JobRoleStatus.PENDING, nullable=False)
    forwarded_quantity = Column(Integer, default=0, nullable=False)
    needs_more_labour = Column(Boolean, default=False, nullable=False)

    # Relationships
    requirement = relationship("Requirement", back_populates="job_roles", lazy="selectin")
    assigned_agency = relationship("Agency", lazy="selectin")
    forwardings = relationship(
        "JobRoleForwarding",
        back_populates="job_role",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    assignments = relationship(
        "LabourAssignment",
        back_populates="job_role",
        cascade="all, delete-orphan",
        order_by="LabourAssignment.created_at",
        lazy="selectin",
    )

    @property
    def rejected_agency_ids(self) -> set:
        """Agencies that declined this role; never offered it again."""
        return {f.agency_id for f in self.forwardings if f.status == ForwardingStatus.REJECTED}

    def __repr__(self):
        return f"<JobRole {self.title} x{self.quantity}>"


class JobRoleForwarding(Base):
    """Quantity of a job role committed to one agency."""

    __tablename__ = "job_role_forwardings"
    __table_args__ = (
        UniqueConstraint("job_role_id", "agency_id", name="uq_job_role_forwarding_role_agency"),
    )

    job_role_id = Column(Uuid(as_uuid=True), ForeignKey("job_roles.id", ondelete="CASCADE"), nullable=False, index=True)
    agency_id = Column(Uuid(as_uuid=True), ForeignKey("agencies.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False, default=0)
    status = Column(enum_type(ForwardingStatus), default=ForwardingStatus.FORWARDED, nullable=False)
    rejection_reason = Column(Text)

    # Relationships
    job_role = relationship("JobRole", back_populates="forwardings", lazy="selectin")
    agency = relationship("Agency", lazy="selectin")

    def __repr__(self):
        return f"<JobRoleForwarding role={self.job_role_id} agency={self.agency_id} qty={self.quantity}>"


class OfferLetterDetails(Base):
    """Contract terms the client must fill before offer letters can be issued."""

    __tablename__ = "offer_letter_details"

    requirement_id = Column(Uuid(as_uuid=True), ForeignKey("requirements.id", ondelete="CASCADE"), nullable=False, unique=True)
    working_hours = Column(String(100))
    working_days = Column(String(100))
    leave_salary = Column(String(255))
    end_of_service = Column(String(255))
    probation_period = Column(String(255))

    requirement = relationship("Requirement", back_populates="offer_letter_details")

    REQUIRED_FIELDS = (
        "working_hours",
        "working_days",
        "leave_salary",
        "end_of_service",
        "probation_period",
    )

    @property
    def is_complete(self) -> bool:
        return all(getattr(self, name) for name in self.REQUIRED_FIELDS)
