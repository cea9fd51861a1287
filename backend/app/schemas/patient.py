"""Pydantic schemas for patient registration, intake and journey views."""

from datetime import date, datetime
from typing import Literal, get_args
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.patient import PatientStatus

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Intake condition checkboxes and the risk flag each one raises
Condition = Literal[
    "pacemaker",
    "previous_radiation",
    "claustrophobia",
    "metal_implants",
    "diabetes",
    "heart_disease",
    "kidney_disease",
    "pregnant",
    "allergies",
]

RISK_FLAG_CONDITIONS: dict[str, str] = {
    "pacemaker": "Pacemaker",
    "metal_implants": "Metal Implants",
    "claustrophobia": "Claustrophobia",
    "pregnant": "Pregnant",
    "allergies": "Allergies",
}


# === Registration ===


class PatientRegister(BaseModel):
    """Schema for registering the authenticated caller as a patient."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=2, max_length=200)
    dob: date
    email: str = Field(max_length=320, pattern=EMAIL_PATTERN)
    admission_date: date | None = None
    legacy_mrn: str | None = Field(default=None, max_length=64)

    @field_validator("dob")
    @classmethod
    def dob_in_past(cls, value: date) -> date:
        if value >= date.today():
            raise ValueError("Date of birth must be in the past")
        return value


# === Intake ===


class NextOfKin(BaseModel):
    """Emergency contact captured on the intake form."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=2, max_length=100)
    relationship: str | None = Field(default=None, max_length=50)
    phone: str = Field(min_length=10, max_length=20, pattern=r"^[\d\s\-\+\(\)]+$")
    address: str | None = Field(default=None, max_length=500)


class IntakeSubmission(BaseModel):
    """Medical intake questionnaire submitted by the patient."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # Demographics
    marital_status: Literal["single", "married", "divorced", "widowed", "other"]
    national_id: str = Field(min_length=1, max_length=50)
    residential_address: str = Field(min_length=5, max_length=500)
    occupation: str = Field(min_length=2, max_length=100)

    # Employer
    employer_name: str = Field(min_length=1, max_length=200)
    employer_address: str | None = Field(default=None, max_length=500)

    # Clinical
    diagnosis: str = Field(min_length=3, max_length=500)
    referring_physician: str | None = Field(default=None, max_length=200)
    current_symptoms: str = Field(max_length=2000)
    mobility_status: Literal["walking", "assistance_needed", "wheelchair", "stretcher"]
    admission_date: date
    conditions: list[Condition] = Field(default_factory=list)
    allergy_details: str | None = Field(default=None, max_length=1000)

    next_of_kin: NextOfKin
    additional_notes: str | None = Field(default=None, max_length=5000)
    consent_given: bool

    @field_validator("consent_given")
    @classmethod
    def consent_required(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must provide consent to continue")
        return value

    def risk_flags(self) -> list[str]:
        """Risk flags raised by the ticked conditions, in a stable order."""
        return [flag for condition, flag in RISK_FLAG_CONDITIONS.items() if condition in self.conditions]

    def to_medical_history(self, consent_date: datetime) -> dict:
        """Structured medical history document stored on the patient."""
        history = self.model_dump(mode="json", exclude={"conditions", "allergy_details"})
        history["conditions"] = {
            condition: condition in self.conditions for condition in get_args(Condition)
        }
        if "allergies" in self.conditions and self.allergy_details:
            history["allergy_details"] = self.allergy_details
        history["consent_date"] = consent_date.isoformat()
        return history


# === Responses ===


class PatientResponse(BaseModel):
    """Schema for a patient in API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    mrn: str
    legacy_mrn: str | None
    full_name: str
    dob: date
    email: str | None
    admission_date: date
    current_status: PatientStatus
    onboarding_completed: bool
    medical_history: dict | None
    risk_flags: list[str]
    consultant_name: str | None
    created_at: datetime
    updated_at: datetime


class PatientListResponse(BaseModel):
    """Paginated list of patients."""

    items: list[PatientResponse]
    total: int
    skip: int
    limit: int


class RoadmapStepResponse(BaseModel):
    """One step of the patient's roadmap."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    status: Literal["completed", "active", "locked"]
    description: str
    icon: str
    controlled_by: Literal["patient", "admin"]
    action_required: bool
    action_label: str | None = None
    room: str | None = None


class JourneyResponse(BaseModel):
    """Patient's journey position with roadmap and available actions."""

    patient_id: UUID
    current_status: PatientStatus
    status_label: str
    available_actions: list[str]
    roadmap: list[RoadmapStepResponse]
