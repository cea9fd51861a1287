"""Tests for the patient roadmap projection."""

import pytest

from app.journey.roadmap import STATUS_LABELS, build_roadmap, is_status_at_least, status_label
from app.models.patient import PatientStatus

S = PatientStatus


def _states(status: PatientStatus, **rooms) -> list[str]:
    return [step.status for step in build_roadmap(status, **rooms)]


class TestRoadmap:
    """Tests for build_roadmap."""

    def test_seven_steps_in_order(self):
        labels = [step.label for step in build_roadmap(S.REGISTERED)]
        assert labels == [
            "Intake Form",
            "Consultation",
            "CT Scan",
            "Treatment Planning",
            "Treatment",
            "Post-Treatment Reviews",
            "Outcome",
        ]

    def test_registered_patient_must_fill_intake(self):
        steps = build_roadmap(S.REGISTERED)
        assert steps[0].status == "active"
        assert steps[0].action_required is True
        assert steps[0].action_label == "Complete Intake Form"
        assert all(step.status == "locked" for step in steps[1:])

    def test_consultation_step_shows_room(self):
        steps = build_roadmap(S.INTAKE_COMPLETED, consultant_room="Room 104")
        consultation = steps[1]
        assert consultation.status == "active"
        assert consultation.description == "Please proceed to Room 104"
        assert consultation.room == "Room 104"
        assert consultation.action_required is True

    def test_consultation_step_without_room(self):
        consultation = build_roadmap(S.INTAKE_COMPLETED)[1]
        assert consultation.description == "Please proceed to the consultation room"
        assert consultation.room is None

    def test_scan_room_only_while_scan_is_active(self):
        assert build_roadmap(S.CONSULTATION_COMPLETED, scan_room="Room S234")[2].room == "Room S234"
        assert build_roadmap(S.SCANNED, scan_room="Room S234")[2].room is None

    def test_staff_steps_never_require_patient_action(self):
        steps = build_roadmap(S.CONSULTATION_COMPLETED)
        assert steps[2].status == "active"
        assert steps[2].action_required is False
        assert steps[2].action_label is None

    @pytest.mark.parametrize(
        "status,expected",
        [
            (S.SCANNED, ["completed"] * 3 + ["active"] + ["locked"] * 3),
            (S.PLANNING, ["completed"] * 3 + ["active"] + ["locked"] * 3),
            (S.PLAN_READY, ["completed"] * 4 + ["active"] + ["locked"] * 2),
            (S.TREATING, ["completed"] * 4 + ["active"] + ["locked"] * 2),
            (S.TREATMENT_COMPLETED, ["completed"] * 5 + ["active", "locked"]),
            (S.REVIEW_2_PENDING, ["completed"] * 5 + ["active", "locked"]),
            (S.REVIEWS_COMPLETED, ["completed"] * 6 + ["active"]),
            (S.JOURNEY_COMPLETE, ["completed"] * 7),
        ],
    )
    def test_step_states(self, status, expected):
        assert _states(status) == expected

    def test_at_most_one_active_step(self):
        for status in PatientStatus:
            assert _states(status).count("active") <= 1


class TestStatusHelpers:
    """Tests for status ordering and labels."""

    def test_is_status_at_least(self):
        assert is_status_at_least(S.PLAN_READY, S.SCANNED)
        assert is_status_at_least(S.SCANNED, S.SCANNED)
        assert not is_status_at_least(S.REGISTERED, S.INTAKE_COMPLETED)

    def test_every_status_has_a_label(self):
        assert set(STATUS_LABELS) == set(PatientStatus)
        assert status_label(S.REVIEWS_COMPLETED) == "Awaiting Final Decision"
