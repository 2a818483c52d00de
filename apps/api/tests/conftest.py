"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created and dropped per test
- Users, lead sources and email templates for workflow tests
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncGenerator, Generator
from uuid import UUID

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["RESEND_API_KEY"] = ""
os.environ["WORKFLOW_REQUIRE_SOURCE_AND_EMAIL"] = "true"

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

from leadflow.main import app
from leadflow.core.deps import get_db, COOKIE_NAME
from leadflow.core.security import create_session_token
from leadflow.db.base import Base
from leadflow.db.enums import JobStatus, JobType
from leadflow.db.models import EmailTemplate, LeadSource, User
from leadflow.db.session import engine, SessionLocal
from leadflow.schemas.auth import UserSession
from leadflow.services.job_queue import DatabaseJobQueue


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code may commit freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def queue(db: Session) -> DatabaseJobQueue:
    return DatabaseJobQueue(db)


@pytest.fixture(scope="function")
def test_user(db: Session) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"owner-{uuid.uuid4().hex[:8]}@test.com",
        display_name="Test Owner",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def other_user(db: Session) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"other-{uuid.uuid4().hex[:8]}@test.com",
        display_name="Other Owner",
    )
    db.add(user)
    db.commit()
    return user


@pytest.fixture(scope="function")
def session_ctx(test_user: User) -> UserSession:
    return UserSession(
        user_id=test_user.id,
        email=test_user.email,
        display_name=test_user.display_name,
    )


@pytest.fixture(scope="function")
def make_lead_source(db: Session, test_user: User):
    """Factory: lead source stored as-is (no schema validation)."""
    def _make(contacts: list[dict], user_id: UUID | None = None, name: str = "Leads") -> LeadSource:
        lead_source = LeadSource(
            user_id=user_id or test_user.id,
            name=name,
            contacts=contacts,
        )
        db.add(lead_source)
        db.commit()
        db.refresh(lead_source)
        return lead_source

    return _make


@pytest.fixture(scope="function")
def make_template(db: Session, test_user: User):
    def _make(
        subject: str = "Hello",
        body: str = "Hi there",
        user_id: UUID | None = None,
        name: str = "Intro",
    ) -> EmailTemplate:
        template = EmailTemplate(
            user_id=user_id or test_user.id,
            name=name,
            subject=subject,
            body=body,
        )
        db.add(template)
        db.commit()
        db.refresh(template)
        return template

    return _make


# =============================================================================
# Graph builders
# =============================================================================

def source_node(node_id: str, lead_source_id) -> dict:
    return {
        "id": node_id,
        "type": "leadSource",
        "position": {"x": 0, "y": 0},
        "data": {"leadSourceId": str(lead_source_id) if lead_source_id else None},
    }


def wait_node(node_id: str, days: int = 0, hours: int = 0, minutes: int = 0) -> dict:
    return {
        "id": node_id,
        "type": "wait",
        "position": {"x": 0, "y": 100},
        "data": {"days": days, "hours": hours, "minutes": minutes},
    }


def email_node(node_id: str, template_id) -> dict:
    return {
        "id": node_id,
        "type": "coldEmail",
        "position": {"x": 0, "y": 200},
        "data": {"emailTemplateId": str(template_id) if template_id else None},
    }


def edge(source: str, target: str) -> dict:
    return {"id": f"{source}-{target}", "source": source, "target": target}


# =============================================================================
# Fake job queue
# =============================================================================

class FakeJobQueue:
    """
    In-memory JobQueue with deterministic firing.

    fail_schedule / fail_cancel / cancel_returns_zero simulate queue faults.
    """

    def __init__(self) -> None:
        self.jobs: dict[UUID, dict] = {}
        self.cancel_calls: list[UUID] = []
        self.fail_schedule = False
        self.fail_cancel = False
        self.cancel_returns_zero = False

    def schedule(self, run_at: datetime, job_type: JobType, payload: dict) -> UUID:
        if self.fail_schedule:
            raise RuntimeError("queue unavailable")
        job_id = uuid.uuid4()
        self.jobs[job_id] = {
            "run_at": run_at,
            "job_type": job_type,
            "payload": payload,
            "status": JobStatus.PENDING,
        }
        return job_id

    def cancel(self, job_id: UUID) -> int:
        self.cancel_calls.append(job_id)
        if self.fail_cancel:
            raise RuntimeError("queue unavailable")
        if self.cancel_returns_zero:
            return 0
        job = self.jobs.get(job_id)
        if not job or job["status"] != JobStatus.PENDING:
            return 0
        job["status"] = JobStatus.CANCELED
        return 1

    def get_status(self, job_id: UUID) -> JobStatus | None:
        job = self.jobs.get(job_id)
        return job["status"] if job else None

    def pending_job_ids(self, flow_id: UUID) -> list[UUID]:
        return [
            job_id
            for job_id, job in self.jobs.items()
            if job["status"] == JobStatus.PENDING and job["payload"].get("flow_id") == str(flow_id)
        ]


@pytest.fixture(scope="function")
def fake_queue() -> FakeJobQueue:
    return FakeJobQueue()


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


@pytest.fixture(scope="function")
def test_auth(test_user: User) -> TestAuth:
    """Create JWT token for test user."""
    token = create_session_token(
        user_id=test_user.id,
        email=test_user.email,
        token_version=test_user.token_version,
    )
    return TestAuth(user=test_user, token=token)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated AsyncClient with JWT cookie and CSRF header."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()
