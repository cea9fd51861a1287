"""Patient journey transition table.

Every status change in the system is looked up here. An action is legal
only if the patient's current status is one of the action's source states
and the caller holds one of the action's roles. Anything else is rejected
with a status-specific message the UI can show as guidance.
"""

import enum
from dataclasses import dataclass

from app.errors import AuthorizationError, StatusGuardViolation
from app.models.auth import STAFF_ROLES, UserRole
from app.models.patient import PatientStatus

S = PatientStatus


class JourneyAction(str, enum.Enum):
    """Actions that move a patient along the journey."""

    SUBMIT_INTAKE = "submit_intake"
    COMPLETE_CONSULTATION = "complete_consultation"
    LOG_SCAN = "log_scan"
    PUBLISH_PLAN = "publish_plan"
    COMPLETE_TREATMENT = "complete_treatment"
    SCHEDULE_REVIEWS = "schedule_reviews"
    COMPLETE_REVIEW = "complete_review"
    FINALIZE_SUCCESS = "finalize_success"
    RESTART_TREATMENT = "restart_treatment"


@dataclass(frozen=True)
class Transition:
    """One edge (or fan-in of edges) of the journey graph."""

    action: JourneyAction
    sources: frozenset[PatientStatus]
    target: PatientStatus
    roles: frozenset[UserRole]


_PATIENT = frozenset({UserRole.PATIENT})
_STAFF = frozenset(STAFF_ROLES)


def _t(action: JourneyAction, sources: set[PatientStatus], target: PatientStatus, roles) -> Transition:
    return Transition(action=action, sources=frozenset(sources), target=target, roles=roles)


TRANSITIONS: tuple[Transition, ...] = (
    _t(JourneyAction.SUBMIT_INTAKE, {S.REGISTERED}, S.INTAKE_COMPLETED, _PATIENT),
    _t(JourneyAction.COMPLETE_CONSULTATION, {S.INTAKE_COMPLETED}, S.CONSULTATION_COMPLETED, _PATIENT),
    _t(JourneyAction.LOG_SCAN, {S.REGISTERED, S.CONSULTATION_COMPLETED}, S.SCANNED, _STAFF),
    _t(JourneyAction.PUBLISH_PLAN, {S.SCANNED, S.PLANNING}, S.PLAN_READY, _STAFF),
    _t(JourneyAction.COMPLETE_TREATMENT, {S.PLAN_READY, S.TREATING}, S.TREATMENT_COMPLETED, _STAFF),
    _t(JourneyAction.SCHEDULE_REVIEWS, {S.TREATMENT_COMPLETED}, S.REVIEW_1_PENDING, _STAFF),
    _t(JourneyAction.COMPLETE_REVIEW, {S.REVIEW_1_PENDING}, S.REVIEW_2_PENDING, _STAFF),
    _t(JourneyAction.COMPLETE_REVIEW, {S.REVIEW_2_PENDING}, S.REVIEW_3_PENDING, _STAFF),
    _t(JourneyAction.COMPLETE_REVIEW, {S.REVIEW_3_PENDING}, S.REVIEWS_COMPLETED, _STAFF),
    _t(JourneyAction.FINALIZE_SUCCESS, {S.REVIEWS_COMPLETED}, S.JOURNEY_COMPLETE, _STAFF),
    # Restart edge: back to the planning queue so a new plan can be published
    _t(JourneyAction.RESTART_TREATMENT, {S.REVIEWS_COMPLETED}, S.SCANNED, _STAFF),
)

# Review number that is outstanding while the patient sits in each review state
PENDING_REVIEW_NUMBER: dict[PatientStatus, int] = {
    S.REVIEW_1_PENDING: 1,
    S.REVIEW_2_PENDING: 2,
    S.REVIEW_3_PENDING: 3,
}

# Status-specific guidance shown when an action is attempted from the wrong state
_GUARD_MESSAGES: dict[JourneyAction, dict[PatientStatus, str]] = {
    JourneyAction.COMPLETE_CONSULTATION: {
        S.REGISTERED: "Please complete your intake form first",
        S.CONSULTATION_COMPLETED: "You have already completed the consultation",
    },
    JourneyAction.COMPLETE_TREATMENT: {
        S.TREATMENT_COMPLETED: "Treatment has already been marked as complete",
    },
    JourneyAction.SCHEDULE_REVIEWS: {
        S.REVIEW_1_PENDING: "Reviews have already been scheduled for this patient",
        S.REVIEW_2_PENDING: "Reviews have already been scheduled for this patient",
        S.REVIEW_3_PENDING: "Reviews have already been scheduled for this patient",
    },
    JourneyAction.FINALIZE_SUCCESS: {
        S.JOURNEY_COMPLETE: "Treatment outcome has already been recorded",
    },
}

_DEFAULT_GUARD_MESSAGES: dict[JourneyAction, str] = {
    JourneyAction.SUBMIT_INTAKE: "Intake form has already been submitted",
    JourneyAction.COMPLETE_CONSULTATION: "Consultation already completed",
    JourneyAction.LOG_SCAN: "Patient is already in {status} status. Cannot log scan.",
    JourneyAction.PUBLISH_PLAN: (
        "Patient must be in SCANNED or PLANNING status to publish a plan. Current status: {status}"
    ),
    JourneyAction.COMPLETE_TREATMENT: (
        "Cannot mark treatment complete - patient is in '{status}' status. "
        "A published plan must be in progress."
    ),
    JourneyAction.SCHEDULE_REVIEWS: (
        "Cannot schedule reviews - patient is in '{status}' status. "
        "Treatment must be marked complete first."
    ),
    JourneyAction.COMPLETE_REVIEW: "No review is pending - patient is in '{status}' status.",
    JourneyAction.FINALIZE_SUCCESS: (
        "Cannot finalize treatment - patient is in '{status}' status. "
        "All reviews must be completed first."
    ),
    JourneyAction.RESTART_TREATMENT: (
        "Cannot restart treatment - patient is in '{status}' status. "
        "All reviews must be completed first."
    ),
}


def guard_message(action: JourneyAction, status: PatientStatus) -> str:
    """Human-readable reason why ``action`` is not possible from ``status``."""
    specific = _GUARD_MESSAGES.get(action, {}).get(status)
    if specific:
        return specific
    return _DEFAULT_GUARD_MESSAGES[action].format(status=status.value)


def find_transition(action: JourneyAction, current: PatientStatus) -> Transition | None:
    """Return the transition for ``action`` out of ``current``, if one exists."""
    for transition in TRANSITIONS:
        if transition.action is action and current in transition.sources:
            return transition
    return None


def resolve_transition(action: JourneyAction, current: PatientStatus) -> Transition:
    """Look up the transition or raise a guard violation.

    Raises:
        StatusGuardViolation: If ``action`` is not legal from ``current``.
    """
    transition = find_transition(action, current)
    if transition is None:
        raise StatusGuardViolation(action.value, current, guard_message(action, current))
    return transition


def require_actor(action: JourneyAction, role: UserRole) -> None:
    """Raise if ``role`` may not perform ``action`` at all.

    Raises:
        AuthorizationError: If no transition for the action accepts the role.
    """
    allowed = {r for t in TRANSITIONS if t.action is action for r in t.roles}
    if role not in allowed:
        if allowed == set(_STAFF):
            raise AuthorizationError("Forbidden: Admin access required")
        raise AuthorizationError("Forbidden: only the patient can perform this action")


def is_legal_move(current: PatientStatus, target: PatientStatus) -> bool:
    """Whether the journey graph contains an edge ``current -> target``."""
    return any(current in t.sources and t.target is target for t in TRANSITIONS)


def available_actions(current: PatientStatus, role: UserRole) -> list[JourneyAction]:
    """Actions ``role`` could attempt from ``current``, in table order."""
    actions: list[JourneyAction] = []
    for transition in TRANSITIONS:
        if current in transition.sources and role in transition.roles and transition.action not in actions:
            actions.append(transition.action)
    return actions
