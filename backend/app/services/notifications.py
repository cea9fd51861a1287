"""Patient email notifications.

Notifications are collected while a transition runs and dispatched only
after its transaction has committed. Delivery is best effort: a failed send
is logged and reported back as a warning string, never as an error, and
never undoes the committed transition.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from html import escape
from typing import Any, Protocol

import resend

from app.config import settings
from app.errors import NotificationFailure

logger = logging.getLogger(__name__)


class NotificationTemplate(str, enum.Enum):
    """Emails the journey can send to a patient."""

    PLAN_READY = "plan_ready"
    TREATMENT_COMPLETED = "treatment_completed"
    REVIEW_SCHEDULE = "review_schedule"
    REVIEW_COMPLETED = "review_completed"
    TREATMENT_SUCCESS = "treatment_success"
    TREATMENT_RESTART = "treatment_restart"


@dataclass(frozen=True)
class Notification:
    """One queued patient email.

    Attributes:
        recipient: Patient email address, None when the patient has none on file.
        template: Which email to render.
        data: Template variables.
        failure_warning: Warning reported to the caller if delivery fails.
    """

    recipient: str | None
    template: NotificationTemplate
    data: dict[str, Any] = field(default_factory=dict)
    failure_warning: str = "Action completed, but the patient could not be notified by email."


class NotificationSender(Protocol):
    """Anything that can deliver a rendered patient email."""

    async def send(self, recipient: str, template: NotificationTemplate, data: dict[str, Any]) -> None:
        """Deliver one email.

        Raises:
            NotificationFailure: If the email could not be delivered.
        """
        ...


# =============================================================================
# Templates
# =============================================================================


def _dashboard_link() -> str:
    url = f"{settings.app_url.rstrip('/')}/dashboard"
    return f'<p><a href="{url}">View your dashboard</a></p>'


def _greeting(data: dict[str, Any]) -> str:
    return f"<p>Dear {escape(str(data.get('patient_name') or 'Patient'))},</p>"


def _plan_ready(data: dict[str, Any]) -> tuple[str, str]:
    body = (
        _greeting(data)
        + "<p>Your radiotherapy treatment plan has been finalized and is ready.</p>"
        + f"<p><strong>Treatment:</strong> {escape(str(data['treatment_type']))}<br>"
        + f"<strong>Sessions:</strong> {data['num_sessions']}<br>"
        + f"<strong>Start date:</strong> {escape(str(data['start_date']))}</p>"
    )
    if data.get("prep_instructions"):
        body += f"<p><strong>Preparation:</strong> {escape(data['prep_instructions'])}</p>"
    return "Update: Radiotherapy Plan Ready", body + _dashboard_link()


def _treatment_completed(data: dict[str, Any]) -> tuple[str, str]:
    body = (
        _greeting(data)
        + "<p>Congratulations on completing your radiotherapy treatment course.</p>"
        + "<p>Your care team will schedule three follow-up reviews to monitor your recovery.</p>"
    )
    return "Radiotherapy Treatment Completed", body + _dashboard_link()


def _review_schedule(data: dict[str, Any]) -> tuple[str, str]:
    rows = "".join(
        f"<li>Review {review['review_number']}: {escape(str(review['review_date']))}"
        f" at {escape(review['office_location'])}</li>"
        for review in data["reviews"]
    )
    body = (
        _greeting(data)
        + "<p>Your follow-up reviews have been scheduled:</p>"
        + f"<ul>{rows}</ul>"
        + "<p>Please arrive 15 minutes early and bring your hospital card.</p>"
    )
    return "Your Follow-Up Review Schedule", body + _dashboard_link()


def _review_completed(data: dict[str, Any]) -> tuple[str, str]:
    number = data["review_number"]
    body = _greeting(data) + f"<p>Review {number} of 3 has been completed.</p>"
    if data.get("notes"):
        body += f"<p><strong>Notes:</strong> {escape(data['notes'])}</p>"
    if data.get("next_review_date"):
        body += (
            f"<p>Your next review is on {escape(str(data['next_review_date']))}"
            f" at {escape(str(data.get('next_review_location') or ''))}.</p>"
        )
    else:
        body += "<p>All reviews are complete. Your care team will contact you with the outcome.</p>"
    return f"Review {number} Completed", body + _dashboard_link()


def _treatment_success(data: dict[str, Any]) -> tuple[str, str]:
    body = (
        _greeting(data)
        + "<p>Your care team has confirmed that your treatment journey was successful.</p>"
    )
    if data.get("outcome_notes"):
        body += f"<p>{escape(data['outcome_notes'])}</p>"
    return "Treatment Journey Successfully Completed", body + _dashboard_link()


def _treatment_restart(data: dict[str, Any]) -> tuple[str, str]:
    body = (
        _greeting(data)
        + "<p>Following your reviews, your care team has decided that a new course of "
        + "treatment is needed. A new plan will be prepared for you.</p>"
        + f"<p><strong>Reason:</strong> {escape(str(data['reason']))}</p>"
    )
    return "Treatment Plan Update Required", body + _dashboard_link()


_RENDERERS = {
    NotificationTemplate.PLAN_READY: _plan_ready,
    NotificationTemplate.TREATMENT_COMPLETED: _treatment_completed,
    NotificationTemplate.REVIEW_SCHEDULE: _review_schedule,
    NotificationTemplate.REVIEW_COMPLETED: _review_completed,
    NotificationTemplate.TREATMENT_SUCCESS: _treatment_success,
    NotificationTemplate.TREATMENT_RESTART: _treatment_restart,
}


def render(template: NotificationTemplate, data: dict[str, Any]) -> tuple[str, str]:
    """Render ``template`` into an email subject and HTML body."""
    return _RENDERERS[template](data)


# =============================================================================
# Senders
# =============================================================================


class ResendNotificationSender:
    """Deliver notifications through the Resend email API."""

    def __init__(self, api_key: str, from_address: str):
        resend.api_key = api_key
        self.from_address = from_address

    async def send(self, recipient: str, template: NotificationTemplate, data: dict[str, Any]) -> None:
        subject, html = render(template, data)
        params = {
            "from": self.from_address,
            "to": [recipient],
            "subject": subject,
            "html": html,
        }
        try:
            # The Resend client is synchronous
            await asyncio.to_thread(resend.Emails.send, params)
        except Exception as e:
            raise NotificationFailure(f"Email delivery failed: {e}") from e


class DisabledNotificationSender:
    """Sender used when no email credentials are configured; every send fails."""

    async def send(self, recipient: str, template: NotificationTemplate, data: dict[str, Any]) -> None:
        raise NotificationFailure("Email delivery is not configured")


def get_notification_sender() -> NotificationSender:
    """FastAPI dependency returning the configured sender."""
    if settings.email_enabled:
        return ResendNotificationSender(settings.resend_api_key, settings.email_from)
    return DisabledNotificationSender()


async def dispatch_notifications(
    sender: NotificationSender,
    notifications: list[Notification],
) -> str | None:
    """Send queued notifications after commit.

    Args:
        sender: Delivery backend.
        notifications: Emails queued by a committed transition.

    Returns:
        A warning for the caller if any notification failed, else None.
    """
    warnings: list[str] = []
    for notification in notifications:
        if not notification.recipient:
            logger.warning("No email on file, skipping %s notification", notification.template.value)
            warnings.append(notification.failure_warning)
            continue
        try:
            await sender.send(notification.recipient, notification.template, notification.data)
        except NotificationFailure as e:
            logger.warning("Failed to send %s notification: %s", notification.template.value, e.message)
            warnings.append(notification.failure_warning)
        except Exception:
            logger.exception("Unexpected error sending %s notification", notification.template.value)
            warnings.append(notification.failure_warning)
        else:
            logger.info("Sent %s notification", notification.template.value)

    return " ".join(dict.fromkeys(warnings)) or None
