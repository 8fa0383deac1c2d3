"""Labour profile, assignment and stage history models."""

import enum

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base, JSONType, enum_type


class LabourProfileStatus(str, enum.Enum):
    RECEIVED = "RECEIVED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SHORTLISTED = "SHORTLISTED"
    DEPLOYED = "DEPLOYED"


class VerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIALLY_VERIFIED = "PARTIALLY_VERIFIED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class DecisionStatus(str, enum.Enum):
    """Admin/client/agency verdict on an assignment."""
    PENDING = "PENDING"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class Stage(str, enum.Enum):
    """Onboarding milestones, in pipeline order."""
    OFFER_LETTER_SIGN = "OFFER_LETTER_SIGN"
    VISA_APPLYING = "VISA_APPLYING"
    QVC_PAYMENT = "QVC_PAYMENT"
    CONTRACT_SIGN = "CONTRACT_SIGN"
    MEDICAL_STATUS = "MEDICAL_STATUS"
    FINGERPRINT = "FINGERPRINT"
    VISA_PRINTING = "VISA_PRINTING"
    READY_TO_TRAVEL = "READY_TO_TRAVEL"
    TRAVEL_CONFIRMATION = "TRAVEL_CONFIRMATION"
    ARRIVAL_CONFIRMATION = "ARRIVAL_CONFIRMATION"
    DEPLOYED = "DEPLOYED"


class StageStatus(str, enum.Enum):
    PENDING = "PENDING"
    SIGNED = "SIGNED"
    COMPLETED = "COMPLETED"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUSED = "REFUSED"
    TRAVELED = "TRAVELED"
    RESCHEDULED = "RESCHEDULED"
    CANCELED = "CANCELED"


class LabourProfile(Base):
    """Candidate biodata owned by an agency."""

    __tablename__ = "labour_profiles"

    agency_id = Column(Uuid(as_uuid=True), ForeignKey("agencies.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(30))
    nationality = Column(String(100))
    passport_number = Column(String(50), index=True)
    date_of_birth = Column(Date)
    languages = Column(JSONType, default=list)
    experience_years = Column(String(20))

    status = Column(enum_type(LabourProfileStatus), default=LabourProfileStatus.RECEIVED, nullable=False, index=True)
    verification_status = Column(enum_type(VerificationStatus), default=VerificationStatus.PENDING, nullable=False)

    agency = relationship("Agency", lazy="selectin")

    def __repr__(self):
        return f"<LabourProfile {self.name} ({self.status.value})>"


class LabourAssignment(Base):
    """A labour profile placed against a forwarded job role."""

    __tablename__ = "labour_assignments"

    labour_id = Column(Uuid(as_uuid=True), ForeignKey("labour_profiles.id"), nullable=False, index=True)
    job_role_id = Column(Uuid(as_uuid=True), ForeignKey("job_roles.id", ondelete="CASCADE"), nullable=False, index=True)
    agency_id = Column(Uuid(as_uuid=True), ForeignKey("agencies.id"), nullable=False, index=True)

    agency_status = Column(enum_type(DecisionStatus), default=DecisionStatus.ACCEPTED, nullable=False)
    admin_status = Column(enum_type(DecisionStatus), default=DecisionStatus.PENDING, nullable=False)
    client_status = Column(enum_type(DecisionStatus), default=DecisionStatus.PENDING, nullable=False)
    admin_feedback = Column(Text)
    client_feedback = Column(Text)
    is_backup = Column(Boolean, default=False, nullable=False)

    current_stage = Column(enum_type(Stage), default=Stage.OFFER_LETTER_SIGN, nullable=False, index=True)

    # Documents collected along the pipeline
    signed_offer_letter_url = Column(String(500))
    visa_url = Column(String(500))
    flight_ticket_url = Column(String(500))
    medical_certificate_url = Column(String(500))
    police_clearance_url = Column(String(500))
    employment_contract_url = Column(String(500))
    additional_documents_urls = Column(JSONType, default=list)
    travel_date = Column(Date)

    # Relationships
    labour = relationship("LabourProfile", lazy="selectin")
    job_role = relationship("JobRole", back_populates="assignments", lazy="selectin")
    agency = relationship("Agency", lazy="selectin")
    stage_history = relationship(
        "LabourStageHistory",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="LabourStageHistory.created_at",
        lazy="selectin",
    )

    @property
    def is_rejected(self) -> bool:
        return DecisionStatus.REJECTED in (self.admin_status, self.client_status)

    @property
    def is_deployed(self) -> bool:
        return self.current_stage == Stage.DEPLOYED

    def __repr__(self):
        return f"<LabourAssignment labour={self.labour_id} role={self.job_role_id} {self.current_stage.value}>"


class LabourStageHistory(Base):
    """One row per stage visit; the open row has status PENDING."""

    __tablename__ = "labour_stage_history"

    assignment_id = Column(Uuid(as_uuid=True), ForeignKey("labour_assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    stage = Column(enum_type(Stage), nullable=False)
    status = Column(enum_type(StageStatus), default=StageStatus.PENDING, nullable=False)
    notes = Column(Text)
    completed_at = Column(DateTime)

    assignment = relationship("LabourAssignment", back_populates="stage_history")
