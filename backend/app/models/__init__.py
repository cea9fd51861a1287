"""SQLAlchemy models."""

from app.models.auth import AuthSession, UserProfile, UserRole
from app.models.patient import Patient, PatientStatus
from app.models.treatment import ScanLog, TreatmentPlan, TreatmentReview, TreatmentType

__all__ = [
    "AuthSession",
    "Patient",
    "PatientStatus",
    "ScanLog",
    "TreatmentPlan",
    "TreatmentReview",
    "TreatmentType",
    "UserProfile",
    "UserRole",
]
