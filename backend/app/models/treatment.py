"""Treatment records: scan logs, treatment plans and follow-up reviews."""

import enum
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, JSONDocument


class TreatmentType(str, enum.Enum):
    """Radiotherapy modalities offered by the department."""

    EXTERNAL_BEAM = "External Beam"
    BRACHYTHERAPY = "Brachytherapy"


class ScanLog(Base):
    """Append-only audit record of a CT simulation scan encounter."""

    __tablename__ = "scan_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    machine_room: Mapped[str] = mapped_column(String(100), nullable=False)
    scan_notes: Mapped[str] = mapped_column(Text, nullable=False)
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    immobilization: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    bladder_protocol: Mapped[str | None] = mapped_column(String(100), nullable=True)
    metal_implants: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    headshell: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    performed_by: Mapped[str] = mapped_column(Text, nullable=False)
    scan_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<ScanLog(id={self.id}, patient_id={self.patient_id}, room={self.machine_room})>"


class TreatmentPlan(Base):
    """Radiotherapy plan for one treatment course.

    Only one plan per patient may be published at a time. A restart retires
    the published plan so a new course can be planned.
    """

    __tablename__ = "treatment_plans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # === Prescription ===
    treatment_type: Mapped[TreatmentType] = mapped_column(
        Enum(TreatmentType, name="treatment_type", create_constraint=True),
        nullable=False,
    )
    num_sessions: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    prep_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    prescription: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Prescription components (intent, target, dose, fractionation...)",
    )
    side_effects: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)

    # === Care guidance ===
    nutritional_interventions: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)
    skin_care_dos: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    skin_care_donts: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    immobilization_device: Mapped[str | None] = mapped_column(String(200), nullable=True)
    setup_considerations: Mapped[str | None] = mapped_column(Text, nullable=True)

    # === Publication ===
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[str] = mapped_column(Text, nullable=False)

    # === Outcome ===
    is_successful: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    outcome_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    outcome_decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    outcome_decided_by: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        CheckConstraint("num_sessions BETWEEN 1 AND 50", name="check_num_sessions_range"),
        # At most one published plan per patient
        Index(
            "uq_plan_published_per_patient",
            "patient_id",
            unique=True,
            postgresql_where=text("is_published"),
            sqlite_where=text("is_published = 1"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TreatmentPlan(id={self.id}, patient_id={self.patient_id}, "
            f"published={self.is_published})>"
        )


class TreatmentReview(Base):
    """One of the three post-treatment follow-up reviews of a plan."""

    __tablename__ = "treatment_reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    treatment_plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("treatment_plans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    review_number: Mapped[int] = mapped_column(Integer, nullable=False)
    review_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    office_location: Mapped[str] = mapped_column(String(200), nullable=False)

    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

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
        UniqueConstraint("treatment_plan_id", "review_number", name="uq_review_plan_number"),
        CheckConstraint("review_number IN (1, 2, 3)", name="check_review_number_values"),
    )

    def __repr__(self) -> str:
        return (
            f"<TreatmentReview(id={self.id}, number={self.review_number}, "
            f"completed={self.is_completed})>"
        )
