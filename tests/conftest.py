"""Shared fixtures: a throwaway SQLite database, seed helpers and auth headers.

Environment must be set before anything under ``app`` is imported, because
settings, the async engine and the upload mount are created at import time.
"""

import os
import tempfile
from datetime import datetime, timedelta

TEST_DIR = tempfile.mkdtemp(prefix="labour-placement-tests-")
DB_PATH = os.path.join(TEST_DIR, "test.db")
UPLOAD_DIR = os.path.join(TEST_DIR, "uploads")
CRON_SECRET = "test-cron-secret"

os.environ.update({
    "DATABASE_URL": f"sqlite+aiosqlite:///{DB_PATH}",
    "DB_AUTO_CREATE": "false",
    "CACHE_ENABLED": "false",
    "SCHEDULER_ENABLED": "false",
    "EMAIL_ENABLED": "false",
    "SENTRY_DSN": "",
    "LOG_FORMAT": "console",
    "LOG_LEVEL": "WARNING",
    "UPLOAD_DIR": UPLOAD_DIR,
    "CRON_SECRET": CRON_SECRET,
    "SECRET_KEY": "test-secret-key",
})

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, select  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from app.core.security import create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.main import app  # noqa: E402
from app.models import (  # noqa: E402
    Agency,
    AgencyStatus,
    Client,
    DecisionStatus,
    ForwardingStatus,
    JobRole,
    JobRoleForwarding,
    JobRoleStatus,
    LabourAssignment,
    LabourProfile,
    LabourProfileStatus,
    LabourStageHistory,
    Notification,
    NotificationPriority,
    NotificationType,
    OfferLetterDetails,
    Requirement,
    RequirementStatus,
    Stage,
    StageStatus,
    User,
    UserRole,
    VerificationStatus,
)

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"

COMPLETE_OFFER_LETTER = {
    "working_hours": "8 Hours",
    "working_days": "6 days",
    "leave_salary": "30 days per year",
    "end_of_service": "21 days per year",
    "probation_period": "3 months",
}


def headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def pdf_upload(name: str = "document.pdf") -> tuple:
    return (name, PDF_BYTES, "application/pdf")


class Seeder:
    """Writes fixtures straight to the database through a sync session."""

    def __init__(self, engine):
        self.engine = engine
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def _save(self, *objects):
        with Session(self.engine, expire_on_commit=False) as session:
            session.add_all(objects)
            session.commit()
        return objects[0] if len(objects) == 1 else objects

    # ==================== Accounts ====================

    def user(self, role: UserRole, email: str = None, full_name: str = "") -> User:
        n = self._next()
        return self._save(User(
            email=email or f"{role.value.lower()}{n}@example.com",
            full_name=full_name or f"{role.value.title()} {n}",
            role=role,
            is_active=True,
        ))

    def admin(self) -> User:
        return self.user(UserRole.RECRUITMENT_ADMIN)

    def client(self, company_name: str = "Gulf Builders"):
        user = self.user(UserRole.CLIENT_ADMIN)
        client = self._save(Client(user_id=user.id, company_name=company_name))
        return user, client

    def agency(self, agency_name: str = "Kathmandu Manpower", status: AgencyStatus = AgencyStatus.VERIFIED):
        user = self.user(UserRole.RECRUITMENT_AGENCY)
        agency = self._save(Agency(user_id=user.id, agency_name=agency_name, country="Nepal", status=status))
        return user, agency

    def profile(
        self,
        agency: Agency,
        name: str = None,
        status: LabourProfileStatus = LabourProfileStatus.APPROVED,
        verification: VerificationStatus = VerificationStatus.VERIFIED,
    ) -> LabourProfile:
        n = self._next()
        return self._save(LabourProfile(
            agency_id=agency.id,
            name=name or f"Worker {n}",
            nationality="Nepali",
            passport_number=f"PA{n:06d}",
            languages=["English"],
            status=status,
            verification_status=verification,
        ))

    def profiles(self, agency: Agency, count: int, **kwargs) -> list:
        return [self.profile(agency, **kwargs) for _ in range(count)]

    # ==================== Requirements ====================

    def requirement(
        self,
        client: Client,
        roles=(("Mason", 2),),
        status: RequirementStatus = RequirementStatus.SUBMITTED,
        offer_letter: bool = True,
    ):
        requirement = self._save(Requirement(client_id=client.id, status=status))
        job_roles = [
            JobRole(
                requirement_id=requirement.id,
                title=title,
                quantity=quantity,
                sort_order=index,
                salary="1500 QAR",
                languages=[],
            )
            for index, (title, quantity) in enumerate(roles)
        ]
        self._save(*job_roles)
        if offer_letter:
            self._save(OfferLetterDetails(requirement_id=requirement.id, **COMPLETE_OFFER_LETTER))
        return requirement, job_roles

    def forward(
        self,
        role: JobRole,
        agency: Agency,
        quantity: int = None,
        status: ForwardingStatus = ForwardingStatus.FORWARDED,
    ) -> JobRoleForwarding:
        quantity = role.quantity if quantity is None else quantity
        with Session(self.engine, expire_on_commit=False) as session:
            forwarding = JobRoleForwarding(
                job_role_id=role.id, agency_id=agency.id, quantity=quantity, status=status
            )
            session.add(forwarding)
            db_role = session.get(JobRole, role.id)
            db_role.assigned_agency_id = agency.id
            db_role.agency_status = JobRoleStatus.FORWARDED
            db_role.forwarded_quantity = (db_role.forwarded_quantity or 0) + quantity
            session.commit()
        return forwarding

    def assignment(
        self,
        role: JobRole,
        agency: Agency,
        profile: LabourProfile,
        admin_status: DecisionStatus = DecisionStatus.ACCEPTED,
        client_status: DecisionStatus = DecisionStatus.ACCEPTED,
        stage: Stage = Stage.OFFER_LETTER_SIGN,
        is_backup: bool = False,
        age: timedelta = timedelta(0),
        **fields,
    ) -> LabourAssignment:
        stamp = datetime.utcnow() - age
        assignment = self._save(LabourAssignment(
            labour_id=profile.id,
            job_role_id=role.id,
            agency_id=agency.id,
            agency_status=DecisionStatus.ACCEPTED,
            admin_status=admin_status,
            client_status=client_status,
            is_backup=is_backup,
            current_stage=stage,
            additional_documents_urls=[],
            created_at=stamp,
            updated_at=stamp,
            **fields,
        ))
        self._save(LabourStageHistory(
            assignment_id=assignment.id,
            stage=stage,
            status=StageStatus.PENDING,
            created_at=stamp,
        ))
        return assignment

    def notification(
        self,
        user: User,
        title: str = "Heads up",
        is_read: bool = False,
        age: timedelta = timedelta(0),
    ) -> Notification:
        return self._save(Notification(
            recipient_id=user.id,
            type=NotificationType.STAGE_COMPLETED,
            title=title,
            message=f"{title} for {user.full_name}",
            priority=NotificationPriority.NORMAL,
            is_read=is_read,
            created_at=datetime.utcnow() - age,
        ))

    # ==================== Reads ====================

    def get(self, model, object_id):
        with Session(self.engine, expire_on_commit=False) as session:
            return session.get(model, object_id)

    def notifications(self, user: User) -> list:
        with Session(self.engine, expire_on_commit=False) as session:
            result = session.execute(
                select(Notification)
                .where(Notification.recipient_id == user.id)
                .order_by(Notification.created_at)
            )
            return list(result.scalars().all())


@pytest.fixture
def engine():
    sync_engine = create_engine(f"sqlite:///{DB_PATH}", poolclass=NullPool)
    Base.metadata.drop_all(sync_engine)
    Base.metadata.create_all(sync_engine)
    yield sync_engine
    sync_engine.dispose()


@pytest.fixture
def seed(engine) -> Seeder:
    return Seeder(engine)


@pytest.fixture
def client(engine) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth():
    """``auth(user)`` -> Authorization header for that user."""
    return headers


@pytest.fixture
def pdf():
    """``pdf("name.pdf")`` -> multipart file tuple holding a minimal PDF."""
    return pdf_upload
