"""Tests for patient email notifications."""

from unittest.mock import patch

import pytest

from app.errors import NotificationFailure
from app.services.notifications import (
    DisabledNotificationSender,
    Notification,
    NotificationTemplate,
    ResendNotificationSender,
    dispatch_notifications,
    get_notification_sender,
    render,
)
from tests.conftest import RecordingSender


class TestRender:
    """Tests for email templates."""

    def test_every_template_renders(self):
        data = {
            "patient_name": "Tendai Moyo",
            "treatment_type": "External Beam",
            "num_sessions": 25,
            "start_date": "2026-11-02",
            "reviews": [{"review_number": 1, "review_date": "2026-12-01", "office_location": "Clinic B"}],
            "review_number": 1,
            "reason": "Residual disease",
        }
        for template in NotificationTemplate:
            subject, html = render(template, data)
            assert subject
            assert "Dear Tendai Moyo" in html
            assert "/dashboard" in html

    def test_plan_ready_contents(self):
        subject, html = render(
            NotificationTemplate.PLAN_READY,
            {
                "patient_name": "Tendai Moyo",
                "treatment_type": "Brachytherapy",
                "num_sessions": 5,
                "start_date": "2026-11-02",
                "prep_instructions": "Empty bladder before each session",
            },
        )
        assert subject == "Update: Radiotherapy Plan Ready"
        assert "Brachytherapy" in html
        assert "Empty bladder before each session" in html

    def test_values_are_escaped(self):
        _, html = render(
            NotificationTemplate.TREATMENT_RESTART,
            {"patient_name": "<script>", "reason": "a < b & c"},
        )
        assert "<script>" not in html
        assert "a &lt; b &amp; c" in html

    def test_review_completed_with_and_without_next_review(self):
        _, html = render(
            NotificationTemplate.REVIEW_COMPLETED,
            {
                "patient_name": "Tendai",
                "review_number": 1,
                "next_review_date": "2027-01-05",
                "next_review_location": "Clinic B",
            },
        )
        assert "Your next review is on 2027-01-05 at Clinic B" in html

        subject, html = render(
            NotificationTemplate.REVIEW_COMPLETED,
            {"patient_name": "Tendai", "review_number": 3, "next_review_date": None},
        )
        assert subject == "Review 3 Completed"
        assert "All reviews are complete" in html


class TestDispatch:
    """Tests for best-effort dispatch after commit."""

    async def test_success_has_no_warning(self):
        sender = RecordingSender()
        warning = await dispatch_notifications(
            sender,
            [Notification("p@example.com", NotificationTemplate.TREATMENT_COMPLETED, {"patient_name": "P"})],
        )
        assert warning is None
        assert sender.templates == [NotificationTemplate.TREATMENT_COMPLETED]

    async def test_failure_becomes_warning(self):
        warning = await dispatch_notifications(
            RecordingSender(fail=True),
            [
                Notification(
                    "p@example.com",
                    NotificationTemplate.PLAN_READY,
                    failure_warning="Plan published, but the patient could not be notified.",
                )
            ],
        )
        assert warning == "Plan published, but the patient could not be notified."

    async def test_missing_recipient_is_not_sent(self):
        sender = RecordingSender()
        warning = await dispatch_notifications(
            sender, [Notification(None, NotificationTemplate.TREATMENT_SUCCESS)]
        )
        assert warning is not None
        assert sender.sent == []

    async def test_unexpected_error_is_contained(self):
        class BrokenSender:
            async def send(self, recipient, template, data):
                raise RuntimeError("boom")

        warning = await dispatch_notifications(
            BrokenSender(), [Notification("p@example.com", NotificationTemplate.TREATMENT_SUCCESS)]
        )
        assert warning is not None

    async def test_duplicate_warnings_collapse(self):
        notification = Notification("p@example.com", NotificationTemplate.TREATMENT_SUCCESS)
        warning = await dispatch_notifications(RecordingSender(fail=True), [notification, notification])
        assert warning == notification.failure_warning


class TestSenders:
    """Tests for the Resend-backed and disabled senders."""

    async def test_resend_sender_builds_params(self):
        sender = ResendNotificationSender("re_test_key", "RadNav <noreply@example.com>")

        with patch("resend.Emails.send") as mock_send:
            await sender.send(
                "p@example.com",
                NotificationTemplate.TREATMENT_COMPLETED,
                {"patient_name": "Tendai"},
            )

        params = mock_send.call_args.args[0]
        assert params["from"] == "RadNav <noreply@example.com>"
        assert params["to"] == ["p@example.com"]
        assert params["subject"] == "Radiotherapy Treatment Completed"
        assert "Dear Tendai" in params["html"]

    async def test_resend_error_becomes_notification_failure(self):
        sender = ResendNotificationSender("re_test_key", "noreply@example.com")

        with patch("resend.Emails.send", side_effect=RuntimeError("rate limited")):
            with pytest.raises(NotificationFailure, match="rate limited"):
                await sender.send(
                    "p@example.com",
                    NotificationTemplate.TREATMENT_SUCCESS,
                    {"patient_name": "Tendai"},
                )

    async def test_disabled_sender_always_fails(self):
        with pytest.raises(NotificationFailure, match="not configured"):
            await DisabledNotificationSender().send("p@example.com", NotificationTemplate.PLAN_READY, {})

    def test_dependency_without_credentials(self, monkeypatch):
        monkeypatch.setattr("app.services.notifications.settings.resend_api_key", "")
        assert isinstance(get_notification_sender(), DisabledNotificationSender)
