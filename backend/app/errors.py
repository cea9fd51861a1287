"""Domain errors raised by the journey services.

Each error carries a human-readable message that is safe to show to the
caller. Routes convert them into ``{"success": false, "error": ...}`` bodies
through the exception handlers registered in ``app.main``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.models.patient import PatientStatus


class JourneyError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "journey_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(JourneyError):
    """Malformed or missing input, rejected before any guard check."""

    code = "validation_error"
    status_code = 400


class StatusGuardViolation(JourneyError):
    """Input is well-formed but the patient's current status forbids the action."""

    code = "guard_violation"
    status_code = 409

    def __init__(self, action: str, current_status: PatientStatus | None, message: str):
        super().__init__(message)
        self.action = action
        self.current_status = current_status


class NotFoundError(JourneyError):
    """Referenced patient, plan or review does not exist or is not visible."""

    code = "not_found"
    status_code = 404


class AuthorizationError(JourneyError):
    """Caller lacks the role required for the action."""

    code = "forbidden"
    status_code = 403


class MrnGenerationError(JourneyError):
    """No unique Medical Record Number could be generated within the retry budget."""

    code = "mrn_unavailable"
    status_code = 503


class NotificationFailure(JourneyError):
    """A patient notification could not be delivered.

    Raised by notification senders only. The journey service downgrades it to
    a warning on an otherwise successful result.
    """

    code = "notification_failed"
    status_code = 502
