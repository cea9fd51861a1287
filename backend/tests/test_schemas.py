"""Tests for request schemas."""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from app.schemas.patient import IntakeSubmission, NextOfKin, PatientRegister
from app.schemas.treatment import ScanLogCreate, ScheduleReviewsRequest, TreatmentPlanCreate


class TestPatientRegister:
    """Tests for registration input."""

    def test_valid(self):
        payload = PatientRegister(full_name="  Tendai Moyo ", dob=date(1970, 5, 17), email="t@example.com")
        assert payload.full_name == "Tendai Moyo"

    def test_dob_must_be_in_past(self):
        with pytest.raises(ValidationError, match="Date of birth must be in the past"):
            PatientRegister(full_name="Tendai Moyo", dob=date.today(), email="t@example.com")

    def test_email_format(self):
        with pytest.raises(ValidationError):
            PatientRegister(full_name="Tendai Moyo", dob=date(1970, 5, 17), email="not-an-email")


class TestIntakeSubmission:
    """Tests for the intake questionnaire."""

    def test_consent_required(self, intake_payload):
        intake_payload["consent_given"] = False
        with pytest.raises(ValidationError, match="You must provide consent to continue"):
            IntakeSubmission.model_validate(intake_payload)

    def test_unknown_condition_rejected(self, intake_payload):
        intake_payload["conditions"] = ["pacemaker", "broken_leg"]
        with pytest.raises(ValidationError):
            IntakeSubmission.model_validate(intake_payload)

    def test_risk_flags_from_conditions(self, intake_payload):
        intake = IntakeSubmission.model_validate(intake_payload)
        assert intake.risk_flags() == ["Pacemaker", "Allergies"]

    def test_medical_history_document(self, intake_payload):
        intake = IntakeSubmission.model_validate(intake_payload)
        consent_date = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
        history = intake.to_medical_history(consent_date)

        assert history["diagnosis"] == "Cervical carcinoma stage IIB"
        assert history["conditions"]["pacemaker"] is True
        assert history["conditions"]["claustrophobia"] is False
        assert len(history["conditions"]) == 9
        assert history["allergy_details"] == "Penicillin"
        assert history["consent_date"] == consent_date.isoformat()
        assert history["next_of_kin"]["name"] == "Rudo Moyo"

    def test_allergy_details_dropped_without_allergy_condition(self, intake_payload):
        intake_payload["conditions"] = ["diabetes"]
        intake = IntakeSubmission.model_validate(intake_payload)
        history = intake.to_medical_history(datetime.now(timezone.utc))
        assert "allergy_details" not in history

    @pytest.mark.parametrize("phone", ["12345", "call me maybe", "0" * 21])
    def test_next_of_kin_phone(self, phone):
        with pytest.raises(ValidationError):
            NextOfKin(name="Rudo Moyo", phone=phone)


class TestTreatmentSchemas:
    """Tests for scan, plan and review inputs."""

    def test_scan_notes_minimum_length(self):
        with pytest.raises(ValidationError):
            ScanLogCreate(machine_room="CT-1", notes="ok")

    @pytest.mark.parametrize("sessions", [0, 51])
    def test_plan_session_range(self, sessions):
        with pytest.raises(ValidationError):
            TreatmentPlanCreate(
                treatment_type="External Beam",
                num_sessions=sessions,
                start_date=datetime.now(timezone.utc) + timedelta(days=3),
            )

    def test_plan_treatment_type_values(self):
        plan = TreatmentPlanCreate(
            treatment_type="Brachytherapy",
            num_sessions=5,
            start_date=datetime.now(timezone.utc) + timedelta(days=3),
        )
        assert plan.treatment_type.value == "Brachytherapy"
        with pytest.raises(ValidationError):
            TreatmentPlanCreate(
                treatment_type="Proton",
                num_sessions=5,
                start_date=datetime.now(timezone.utc) + timedelta(days=3),
            )

    def test_review_number_must_be_one_to_three(self):
        with pytest.raises(ValidationError):
            ScheduleReviewsRequest.model_validate(
                {
                    "reviews": [
                        {"review_number": 4, "review_date": "2030-01-01T09:00:00Z", "office_location": "B"}
                    ]
                }
            )
