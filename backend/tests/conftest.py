"""Pytest configuration and shared fixtures.

This module provides centralized test fixtures for:
- Test database engine and sessions (PostgreSQL via DATABASE_TEST_URL,
  otherwise a file-backed SQLite database)
- Journey service wired to a recording notification sender
- HTTP client with real bearer tokens for patient, admin and super admin
- Builders for patients at any journey status, plans and reviews
"""

import os
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import app.models  # noqa: F401
from app.auth import CallerContext
from app.database import Base, get_db
from app.errors import NotificationFailure
from app.main import app
from app.models import (
    AuthSession,
    Patient,
    PatientStatus,
    TreatmentPlan,
    TreatmentReview,
    TreatmentType,
    UserProfile,
    UserRole,
)
from app.services.change_feed import ChangeFeed, get_change_feed
from app.services.journey import JourneyService
from app.services.notifications import NotificationTemplate, get_notification_sender

PATIENT_USER_ID = "patient-user-1"
ADMIN_USER_ID = "admin-user-1"
SUPER_ADMIN_USER_ID = "super-admin-user-1"


# =============================================================================
# Notification Fixtures
# =============================================================================


class RecordingSender:
    """Notification sender that records every email instead of sending it."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, NotificationTemplate, dict[str, Any]]] = []

    async def send(self, recipient: str, template: NotificationTemplate, data: dict[str, Any]) -> None:
        if self.fail:
            raise NotificationFailure("SMTP unavailable")
        self.sent.append((recipient, template, data))

    @property
    def templates(self) -> list[NotificationTemplate]:
        return [template for _, template, _ in self.sent]


@pytest.fixture
def sender() -> RecordingSender:
    """Recording sender that always succeeds."""
    return RecordingSender()


@pytest.fixture
def failing_sender() -> RecordingSender:
    """Recording sender whose every send fails."""
    return RecordingSender(fail=True)


@pytest.fixture
def feed() -> ChangeFeed:
    """Fresh change feed per test."""
    return ChangeFeed()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create test database engine with automatic schema management.

    Creates all tables before tests, drops them after.
    Uses DATABASE_TEST_URL env var if set, otherwise a SQLite file under tmp_path.
    """
    db_url = os.environ.get("DATABASE_TEST_URL") or f"sqlite+aiosqlite:///{tmp_path / 'radnav_test.db'}"
    engine = create_async_engine(db_url, echo=False)

    if engine.dialect.name == "sqlite":
        # SQLAlchemy-managed BEGIN for savepoints; IMMEDIATE serializes writers
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test database."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncSession:
    """Create test database session with automatic rollback."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def service(db_session, sender, feed) -> JourneyService:
    """Journey service over the test session with a recording sender."""
    return JourneyService(db_session, sender, feed)


# =============================================================================
# Callers
# =============================================================================


@pytest.fixture
def patient_caller() -> CallerContext:
    return CallerContext(user_id=PATIENT_USER_ID, role=UserRole.PATIENT)


@pytest.fixture
def admin_caller() -> CallerContext:
    return CallerContext(user_id=ADMIN_USER_ID, role=UserRole.ADMIN)


@pytest.fixture
def super_admin_caller() -> CallerContext:
    return CallerContext(user_id=SUPER_ADMIN_USER_ID, role=UserRole.SUPER_ADMIN)


# =============================================================================
# Record Builders
# =============================================================================


def utc_in(days: int) -> datetime:
    """A UTC datetime ``days`` from now."""
    return datetime.now(timezone.utc) + timedelta(days=days)


async def create_patient(
    session: AsyncSession,
    status: PatientStatus = PatientStatus.REGISTERED,
    user_id: str | None = None,
    email: str | None = "patient@example.com",
) -> Patient:
    """Insert a patient already sitting in ``status``."""
    onboarded = status is not PatientStatus.REGISTERED
    patient = Patient(
        user_id=user_id or f"user-{uuid.uuid4()}",
        mrn=f"RT-2026-{uuid.uuid4().int % 1_000_000:06d}",
        full_name="Tendai Moyo",
        dob=date(1970, 5, 17),
        email=email,
        admission_date=date.today(),
        current_status=status,
        onboarding_completed=onboarded,
        medical_history={"diagnosis": "Cervical carcinoma"} if onboarded else None,
        risk_flags=[],
    )
    session.add(patient)
    await session.commit()
    return patient


async def create_plan(
    session: AsyncSession,
    patient: Patient,
    published: bool = True,
) -> TreatmentPlan:
    """Insert a treatment plan for ``patient``."""
    plan = TreatmentPlan(
        patient_id=patient.id,
        treatment_type=TreatmentType.EXTERNAL_BEAM,
        num_sessions=25,
        start_date=utc_in(7),
        side_effects=["Fatigue"],
        skin_care_dos=[],
        skin_care_donts=[],
        is_published=published,
        created_by=ADMIN_USER_ID,
    )
    session.add(plan)
    await session.commit()
    return plan


async def create_reviews(
    session: AsyncSession,
    patient: Patient,
    plan: TreatmentPlan,
    completed: int = 0,
) -> list[TreatmentReview]:
    """Insert the three reviews of ``plan``, the first ``completed`` already done."""
    reviews = [
        TreatmentReview(
            patient_id=patient.id,
            treatment_plan_id=plan.id,
            review_number=number,
            review_date=utc_in(number * 30),
            office_location="Oncology Clinic B",
            is_completed=number <= completed,
        )
        for number in (1, 2, 3)
    ]
    session.add_all(reviews)
    await session.commit()
    return reviews


# =============================================================================
# Payloads
# =============================================================================


@pytest.fixture
def intake_payload() -> dict[str, Any]:
    """Valid intake form body."""
    return {
        "marital_status": "married",
        "national_id": "63-123456-A-42",
        "residential_address": "12 Samora Machel Avenue, Harare",
        "occupation": "Teacher",
        "employer_name": "Ministry of Education",
        "diagnosis": "Cervical carcinoma stage IIB",
        "current_symptoms": "Pelvic pain",
        "mobility_status": "walking",
        "admission_date": date.today().isoformat(),
        "conditions": ["pacemaker", "allergies", "diabetes"],
        "allergy_details": "Penicillin",
        "next_of_kin": {
            "name": "Rudo Moyo",
            "relationship": "Sister",
            "phone": "+263 77 123 4567",
        },
        "consent_given": True,
    }


@pytest.fixture
def plan_payload() -> dict[str, Any]:
    """Valid treatment plan body."""
    return {
        "treatment_type": "External Beam",
        "num_sessions": 25,
        "start_date": utc_in(7).isoformat(),
        "prep_instructions": "Arrive with a comfortably full bladder.",
        "side_effects": ["Fatigue", "Skin irritation"],
        "skin_care_dos": ["Use mild soap"],
        "skin_care_donts": ["Do not use perfumed lotions"],
    }


@pytest.fixture
def reviews_payload() -> dict[str, Any]:
    """Valid review schedule body."""
    return {
        "reviews": [
            {"review_number": n, "review_date": utc_in(n * 30).isoformat(), "office_location": "Clinic B"}
            for n in (1, 2, 3)
        ]
    }


# =============================================================================
# HTTP Client Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def tokens(session_maker) -> dict[UserRole, str]:
    """Seed one profile and live session per role; return their bearer tokens."""
    users = {
        UserRole.PATIENT: PATIENT_USER_ID,
        UserRole.ADMIN: ADMIN_USER_ID,
        UserRole.SUPER_ADMIN: SUPER_ADMIN_USER_ID,
    }
    result: dict[UserRole, str] = {}
    async with session_maker() as session:
        for role, user_id in users.items():
            token = f"token-{role.value.lower()}"
            session.add(UserProfile(id=user_id, email=f"{user_id}@example.com", role=role))
            session.add(
                AuthSession(
                    id=f"session-{user_id}",
                    token=token,
                    user_id=user_id,
                    expires_at=utc_in(1),
                )
            )
            result[role] = token
        await session.commit()
    return result


@pytest.fixture
def patient_headers(tokens) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens[UserRole.PATIENT]}"}


@pytest.fixture
def admin_headers(tokens) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens[UserRole.ADMIN]}"}


@pytest.fixture
def super_admin_headers(tokens) -> dict[str, str]:
    return {"Authorization": f"Bearer {tokens[UserRole.SUPER_ADMIN]}"}


@pytest_asyncio.fixture
async def client(session_maker, sender, feed):
    """Async test client for FastAPI app with test database.

    Overrides the app's get_db dependency to use the test database and
    swaps in the recording sender and a per-test change feed.
    """

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_sender] = lambda: sender
    app.dependency_overrides[get_change_feed] = lambda: feed

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_notification_sender, None)
    app.dependency_overrides.pop(get_change_feed, None)
