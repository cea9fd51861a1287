"""Patient journey state machine: transition table and roadmap projection."""

from app.journey.roadmap import RoadmapStep, build_roadmap, status_label
from app.journey.transitions import (
    PENDING_REVIEW_NUMBER,
    TRANSITIONS,
    JourneyAction,
    Transition,
    available_actions,
    is_legal_move,
    require_actor,
    resolve_transition,
)

__all__ = [
    "PENDING_REVIEW_NUMBER",
    "TRANSITIONS",
    "JourneyAction",
    "RoadmapStep",
    "Transition",
    "available_actions",
    "build_roadmap",
    "is_legal_move",
    "require_actor",
    "resolve_transition",
    "status_label",
]
