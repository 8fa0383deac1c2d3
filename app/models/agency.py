"""Recruitment agency model."""

import enum

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base, enum_type


class AgencyStatus(str, enum.Enum):
    """Agency account verification status."""
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    SUSPENDED = "SUSPENDED"


class Agency(Base):
    """Agency eligible to receive forwarded job roles once VERIFIED."""

    __tablename__ = "agencies"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    agency_name = Column(String(255), nullable=False, index=True)
    country = Column(String(100))
    status = Column(enum_type(AgencyStatus), default=AgencyStatus.PENDING, nullable=False, index=True)

    # Relationships
    user = relationship("User", back_populates="agency_profile", lazy="selectin")

    @property
    def is_verified(self) -> bool:
        return self.status == AgencyStatus.VERIFIED

    def __repr__(self):
        return f"<Agency {self.agency_name} ({self.status.value})>"
