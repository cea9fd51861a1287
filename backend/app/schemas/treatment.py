"""Pydantic schemas for scan logging, treatment plans and reviews.

Field-level limits are enforced here. Cross-field and date-window rules
(review ordering, plan start date window) are enforced by the journey
service so they are reported as validation errors before any guard check.
"""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.constants import MAX_TREATMENT_SESSIONS, MIN_TREATMENT_SESSIONS
from app.models.treatment import TreatmentType


# === Scan logging ===


class ScanLogCreate(BaseModel):
    """Schema for logging a CT simulation scan."""

    model_config = ConfigDict(str_strip_whitespace=True)

    machine_room: str = Field(min_length=1, max_length=100)
    notes: str = Field(min_length=5, max_length=2000)
    position: str | None = Field(default=None, max_length=100)
    immobilization: list[str] = Field(default_factory=list, max_length=20)
    bladder_protocol: str | None = Field(default=None, max_length=100)
    metal_implants: bool = False
    headshell: bool = False


class ScanLogResponse(BaseModel):
    """Schema for a scan log in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    machine_room: str
    scan_notes: str
    position: str | None
    immobilization: list[str]
    bladder_protocol: str | None
    metal_implants: bool
    headshell: bool
    performed_by: str
    scan_date: datetime
    created_at: datetime


# === Treatment plans ===


class PrescriptionComponents(BaseModel):
    """Optional structured prescription recorded with the plan."""

    patient_demographics: str | None = None
    primary_diagnosis: str | None = None
    treatment_intent: str | None = None
    anatomical_target: str | None = None
    energy_modality: str | None = None
    absorbed_dose: str | None = None
    fractionation_schedule: str | None = None
    volume_definitions: str | None = None
    technique: str | None = None
    image_guidance: str | None = None


class TreatmentPlanCreate(BaseModel):
    """Schema for publishing a treatment plan."""

    model_config = ConfigDict(str_strip_whitespace=True)

    treatment_type: TreatmentType
    num_sessions: int = Field(ge=MIN_TREATMENT_SESSIONS, le=MAX_TREATMENT_SESSIONS)
    start_date: datetime
    prep_instructions: str | None = Field(default=None, max_length=2000)
    side_effects: list[str] = Field(default_factory=list)

    # Care guidance
    nutritional_interventions: dict[str, str | None] | None = None
    skin_care_dos: list[str] = Field(default_factory=list)
    skin_care_donts: list[str] = Field(default_factory=list)
    immobilization_device: str | None = Field(default=None, max_length=200)
    setup_considerations: str | None = Field(default=None, max_length=1000)

    prescription: PrescriptionComponents | None = None


class TreatmentPlanResponse(BaseModel):
    """Schema for a treatment plan in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    treatment_type: TreatmentType
    num_sessions: int
    start_date: datetime
    prep_instructions: str | None
    prescription: dict | None
    side_effects: list[str]
    nutritional_interventions: dict | None
    skin_care_dos: list[str]
    skin_care_donts: list[str]
    immobilization_device: str | None
    setup_considerations: str | None
    is_published: bool
    is_successful: bool | None
    outcome_notes: str | None
    outcome_decided_at: datetime | None
    outcome_decided_by: str | None
    created_by: str
    created_at: datetime
    updated_at: datetime


# === Reviews ===


class ReviewSlot(BaseModel):
    """One review appointment in a scheduling request."""

    model_config = ConfigDict(str_strip_whitespace=True)

    review_number: Literal[1, 2, 3]
    review_date: datetime
    office_location: str = Field(max_length=200)


class ScheduleReviewsRequest(BaseModel):
    """Schema for scheduling the three post-treatment reviews."""

    reviews: list[ReviewSlot]


class ReviewCompleteRequest(BaseModel):
    """Schema for marking a review as complete."""

    notes: str | None = Field(default=None, max_length=5000)


class TreatmentReviewResponse(BaseModel):
    """Schema for a treatment review in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    treatment_plan_id: UUID
    review_number: int
    review_date: datetime
    office_location: str
    is_completed: bool
    completed_at: datetime | None
    completed_by: str | None
    review_notes: str | None
    created_at: datetime


# === Outcome ===


class FinalizeRequest(BaseModel):
    """Schema for recording a successful treatment outcome."""

    outcome_notes: str | None = Field(default=None, max_length=5000)


class RestartRequest(BaseModel):
    """Schema for restarting treatment after an unsuccessful course."""

    reason: str = Field(max_length=5000)
