"""Patient-facing roadmap derived from the journey status.

The roadmap is a pure projection of ``current_status``: each step is
completed once the patient has reached the step's completion status,
active while the patient sits in one of the step's working states, and
locked otherwise.
"""

from dataclasses import dataclass
from typing import Literal

from app.models.patient import PatientStatus

S = PatientStatus

StepState = Literal["completed", "active", "locked"]

# Journey order used for "at least" comparisons
STATUS_ORDER: tuple[PatientStatus, ...] = tuple(PatientStatus)

STATUS_LABELS: dict[PatientStatus, str] = {
    S.REGISTERED: "Registration Complete",
    S.INTAKE_COMPLETED: "Intake Complete",
    S.CONSULTATION_COMPLETED: "Consultation Complete",
    S.SCANNED: "Planning In Progress",
    S.PLANNING: "Planning In Progress",
    S.PLAN_READY: "Ready to Begin Treatment",
    S.TREATING: "Receiving Treatment",
    S.TREATMENT_COMPLETED: "Treatment Completed",
    S.REVIEW_1_PENDING: "Review 1 Pending",
    S.REVIEW_2_PENDING: "Review 2 Pending",
    S.REVIEW_3_PENDING: "Review 3 Pending",
    S.REVIEWS_COMPLETED: "Awaiting Final Decision",
    S.JOURNEY_COMPLETE: "Journey Complete",
}


@dataclass(frozen=True)
class _StepDefinition:
    id: int
    label: str
    icon: str
    controlled_by: Literal["patient", "admin"]
    completed_at: PatientStatus
    active_in: frozenset[PatientStatus]
    completed_text: str
    active_text: str
    locked_text: str
    action_label: str | None = None


@dataclass(frozen=True)
class RoadmapStep:
    """One rendered step of the patient's roadmap."""

    id: int
    label: str
    status: StepState
    description: str
    icon: str
    controlled_by: Literal["patient", "admin"]
    action_required: bool
    action_label: str | None = None
    room: str | None = None


_STEPS: tuple[_StepDefinition, ...] = (
    _StepDefinition(
        id=1,
        label="Intake Form",
        icon="check",
        controlled_by="patient",
        completed_at=S.INTAKE_COMPLETED,
        active_in=frozenset({S.REGISTERED}),
        completed_text="Medical intake completed",
        active_text="Complete your medical history form",
        locked_text="Complete your medical history form",
        action_label="Complete Intake Form",
    ),
    _StepDefinition(
        id=2,
        label="Consultation",
        icon="user",
        controlled_by="patient",
        completed_at=S.CONSULTATION_COMPLETED,
        active_in=frozenset({S.INTAKE_COMPLETED}),
        completed_text="Consultation completed",
        active_text="Please proceed to {room}",
        locked_text="Complete intake form first",
        action_label="Mark Consultation as Completed",
    ),
    _StepDefinition(
        id=3,
        label="CT Scan",
        icon="scan",
        controlled_by="admin",
        completed_at=S.SCANNED,
        active_in=frozenset({S.CONSULTATION_COMPLETED}),
        completed_text="Scan completed",
        active_text="Our staff will schedule and perform your scan",
        locked_text="Complete consultation first",
    ),
    _StepDefinition(
        id=4,
        label="Treatment Planning",
        icon="clock",
        controlled_by="admin",
        completed_at=S.PLAN_READY,
        active_in=frozenset({S.SCANNED, S.PLANNING}),
        completed_text="Treatment plan ready",
        active_text="Our team is creating your personalized treatment plan",
        locked_text="Waiting for scan completion",
    ),
    _StepDefinition(
        id=5,
        label="Treatment",
        icon="heart",
        controlled_by="admin",
        completed_at=S.TREATMENT_COMPLETED,
        active_in=frozenset({S.PLAN_READY, S.TREATING}),
        completed_text="Treatment course completed",
        active_text="Follow your treatment schedule and preparation instructions",
        locked_text="Waiting for your treatment plan",
    ),
    _StepDefinition(
        id=6,
        label="Post-Treatment Reviews",
        icon="user",
        controlled_by="admin",
        completed_at=S.REVIEWS_COMPLETED,
        active_in=frozenset(
            {S.TREATMENT_COMPLETED, S.REVIEW_1_PENDING, S.REVIEW_2_PENDING, S.REVIEW_3_PENDING}
        ),
        completed_text="All follow-up reviews completed",
        active_text="Attend your scheduled follow-up reviews",
        locked_text="Available after treatment",
    ),
    _StepDefinition(
        id=7,
        label="Outcome",
        icon="check",
        controlled_by="admin",
        completed_at=S.JOURNEY_COMPLETE,
        active_in=frozenset({S.REVIEWS_COMPLETED}),
        completed_text="Treatment journey complete",
        active_text="Your care team is reviewing your results",
        locked_text="Available after your reviews",
    ),
)


def is_status_at_least(current: PatientStatus, required: PatientStatus) -> bool:
    """Whether ``current`` is at or beyond ``required`` in journey order."""
    return STATUS_ORDER.index(current) >= STATUS_ORDER.index(required)


def status_label(status: PatientStatus) -> str:
    """Patient-facing label for a journey status."""
    return STATUS_LABELS[status]


def build_roadmap(
    current_status: PatientStatus,
    consultant_room: str | None = None,
    scan_room: str | None = None,
) -> list[RoadmapStep]:
    """Render the roadmap for a patient in ``current_status``.

    Args:
        current_status: The patient's journey status.
        consultant_room: Room shown on the consultation step while it is active.
        scan_room: Room shown on the CT scan step while it is active.

    Returns:
        Ordered roadmap steps.
    """
    rooms = {2: consultant_room, 3: scan_room}
    steps: list[RoadmapStep] = []

    for definition in _STEPS:
        if is_status_at_least(current_status, definition.completed_at):
            state: StepState = "completed"
            description = definition.completed_text
        elif current_status in definition.active_in:
            state = "active"
            room = rooms.get(definition.id) or "the consultation room"
            description = definition.active_text.format(room=room)
        else:
            state = "locked"
            description = definition.locked_text

        action_required = state == "active" and definition.controlled_by == "patient"
        steps.append(
            RoadmapStep(
                id=definition.id,
                label=definition.label,
                status=state,
                description=description,
                icon=definition.icon,
                controlled_by=definition.controlled_by,
                action_required=action_required,
                action_label=definition.action_label if action_required else None,
                room=rooms.get(definition.id) if state == "active" else None,
            )
        )

    return steps
