"""Pydantic schemas."""

from app.schemas.admin import StaffGrantRequest, StaffProfileResponse
from app.schemas.common import ActionResponse, ErrorResponse
from app.schemas.patient import (
    IntakeSubmission,
    JourneyResponse,
    NextOfKin,
    PatientListResponse,
    PatientRegister,
    PatientResponse,
    RoadmapStepResponse,
)
from app.schemas.treatment import (
    FinalizeRequest,
    PrescriptionComponents,
    RestartRequest,
    ReviewCompleteRequest,
    ReviewSlot,
    ScanLogCreate,
    ScanLogResponse,
    ScheduleReviewsRequest,
    TreatmentPlanCreate,
    TreatmentPlanResponse,
    TreatmentReviewResponse,
)

__all__ = [
    "ActionResponse",
    "ErrorResponse",
    "FinalizeRequest",
    "IntakeSubmission",
    "JourneyResponse",
    "NextOfKin",
    "PatientListResponse",
    "PatientRegister",
    "PatientResponse",
    "PrescriptionComponents",
    "RestartRequest",
    "ReviewCompleteRequest",
    "ReviewSlot",
    "RoadmapStepResponse",
    "ScanLogCreate",
    "ScanLogResponse",
    "ScheduleReviewsRequest",
    "StaffGrantRequest",
    "StaffProfileResponse",
    "TreatmentPlanCreate",
    "TreatmentPlanResponse",
    "TreatmentReviewResponse",
]
