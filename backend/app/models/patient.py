"""Patient model and the journey status enum.

A patient row is created at registration, paired 1:1 with an auth account,
and carries the ``current_status`` field driven by the journey state machine.
"""

import enum
import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Enum, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONDocument


class PatientStatus(str, enum.Enum):
    """Treatment journey states, in journey order."""

    REGISTERED = "REGISTERED"
    INTAKE_COMPLETED = "INTAKE_COMPLETED"
    CONSULTATION_COMPLETED = "CONSULTATION_COMPLETED"
    SCANNED = "SCANNED"
    PLANNING = "PLANNING"
    PLAN_READY = "PLAN_READY"
    TREATING = "TREATING"
    TREATMENT_COMPLETED = "TREATMENT_COMPLETED"
    REVIEW_1_PENDING = "REVIEW_1_PENDING"
    REVIEW_2_PENDING = "REVIEW_2_PENDING"
    REVIEW_3_PENDING = "REVIEW_3_PENDING"
    REVIEWS_COMPLETED = "REVIEWS_COMPLETED"
    JOURNEY_COMPLETE = "JOURNEY_COMPLETE"


class Patient(Base):
    """Registered patient and their position in the treatment journey."""

    __tablename__ = "patients"

    # === Identity ===
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(
        Text,
        unique=True,
        nullable=False,
        comment="Auth account this patient record belongs to",
    )
    mrn: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    legacy_mrn: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # === Demographics ===
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    admission_date: Mapped[date] = mapped_column(Date, nullable=False, default=date.today)

    # === Workflow state ===
    current_status: Mapped[PatientStatus] = mapped_column(
        Enum(PatientStatus, name="patient_status", create_constraint=True),
        nullable=False,
        default=PatientStatus.REGISTERED,
        index=True,
    )
    onboarding_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    medical_history: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Structured intake answers, null until intake is submitted",
    )
    risk_flags: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    consultant_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # === Timing ===
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("idx_patient_status_created", "current_status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, mrn={self.mrn}, status={self.current_status})>"
