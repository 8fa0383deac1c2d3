"""Client (employer company) model."""

from sqlalchemy import Column, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class Client(Base):
    """Client company submitting staffing requirements."""

    __tablename__ = "clients"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    company_name = Column(String(255), nullable=False)

    # Relationships
    user = relationship("User", back_populates="client_profile", lazy="selectin")
    requirements = relationship("Requirement", back_populates="client")

    def __repr__(self):
        return f"<Client {self.company_name}>"
