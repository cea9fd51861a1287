"""Repository layer for data access.

Repositories encapsulate database operations and provide a clean interface
for the journey services and read-only routes.
"""

from app.repositories.patient import PatientRepository
from app.repositories.profile import ProfileRepository
from app.repositories.treatment import TreatmentRepository

__all__ = ["PatientRepository", "ProfileRepository", "TreatmentRepository"]
