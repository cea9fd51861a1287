"""Tests for MRN generation and collision handling."""

import re
from datetime import date

import pytest
from sqlalchemy import func, select

from app.errors import MrnGenerationError, StatusGuardViolation
from app.models import Patient, PatientStatus
from app.repositories.patient import PatientRepository
from app.services.mrn import generate_mrn, insert_patient_with_mrn
from tests.conftest import create_patient


def build_for(user_id: str):
    def build(mrn: str) -> Patient:
        return Patient(
            user_id=user_id,
            mrn=mrn,
            full_name="Chipo Banda",
            dob=date(1985, 3, 2),
            email="chipo@example.com",
            current_status=PatientStatus.REGISTERED,
            onboarding_completed=False,
            risk_flags=[],
        )

    return build


def candidates(*mrns: str):
    return iter(mrns).__next__


async def patient_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(Patient))).scalar()


class TestGenerateMrn:
    def test_format(self):
        assert re.fullmatch(r"RT-\d{4}-\d{6}", generate_mrn())

    def test_prefix_and_year(self):
        mrn = generate_mrn(prefix="RAD", year=2031)
        assert mrn.startswith("RAD-2031-")
        assert len(mrn.rsplit("-", 1)[1]) == 6


class TestInsertPatientWithMrn:
    """Tests for the insert-with-retry loop."""

    async def test_first_candidate_used(self, db_session):
        patient = await insert_patient_with_mrn(
            db_session, build_for("user-a"), generate=candidates("RT-2026-111111")
        )
        await db_session.commit()

        assert patient.mrn == "RT-2026-111111"
        assert patient.id is not None

    async def test_skips_existing_mrn(self, db_session):
        taken = await create_patient(db_session)

        patient = await insert_patient_with_mrn(
            db_session, build_for("user-b"), generate=candidates(taken.mrn, "RT-2026-222222")
        )
        await db_session.commit()

        assert patient.mrn == "RT-2026-222222"

    async def test_exhaustion_inserts_nothing(self, db_session):
        taken = await create_patient(db_session)

        with pytest.raises(MrnGenerationError, match="Unable to generate a unique Medical Record Number"):
            await insert_patient_with_mrn(
                db_session,
                build_for("user-c"),
                generate=lambda: taken.mrn,
                max_attempts=3,
            )
        await db_session.rollback()

        assert await patient_count(db_session) == 1

    async def test_insert_race_retries_in_savepoint(self, db_session, monkeypatch):
        """A unique violation on insert is treated as a collision, not a failure."""
        taken = await create_patient(db_session)

        async def never_exists(self, mrn):
            return False

        monkeypatch.setattr(PatientRepository, "mrn_exists", never_exists)

        patient = await insert_patient_with_mrn(
            db_session, build_for("user-d"), generate=candidates(taken.mrn, "RT-2026-333333")
        )
        await db_session.commit()

        assert patient.mrn == "RT-2026-333333"
        assert await patient_count(db_session) == 2

    async def test_duplicate_account_is_guard_violation(self, db_session, monkeypatch):
        await create_patient(db_session, user_id="user-e")

        async def never_exists(self, mrn):
            return False

        monkeypatch.setattr(PatientRepository, "mrn_exists", never_exists)

        with pytest.raises(StatusGuardViolation, match="already exists for this account"):
            await insert_patient_with_mrn(
                db_session, build_for("user-e"), generate=candidates("RT-2026-444444")
            )
        await db_session.rollback()

        assert await patient_count(db_session) == 1
