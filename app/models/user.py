"""User model."""

import enum

from sqlalchemy import Boolean, Column, String
from sqlalchemy.orm import relationship

from app.db.base import Base, enum_type


class UserRole(str, enum.Enum):
    """Platform roles."""
    RECRUITMENT_ADMIN = "RECRUITMENT_ADMIN"
    CLIENT_ADMIN = "CLIENT_ADMIN"
    RECRUITMENT_AGENCY = "RECRUITMENT_AGENCY"


class User(Base):
    """User account. Credentials live in the auth service."""

    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False, default="")
    role = Column(enum_type(UserRole), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    client_profile = relationship("Client", back_populates="user", uselist=False, lazy="selectin")
    agency_profile = relationship("Agency", back_populates="user", uselist=False, lazy="selectin")

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
