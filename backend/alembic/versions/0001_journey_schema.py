"""journey schema: profiles, sessions, patients, scans, plans, reviews

Revision ID: 0001_journey_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence
from typing import Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_journey_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

USER_ROLE = sa.Enum("PATIENT", "ADMIN", "SUPER_ADMIN", name="user_role")
PATIENT_STATUS = sa.Enum(
    "REGISTERED",
    "INTAKE_COMPLETED",
    "CONSULTATION_COMPLETED",
    "SCANNED",
    "PLANNING",
    "PLAN_READY",
    "TREATING",
    "TREATMENT_COMPLETED",
    "REVIEW_1_PENDING",
    "REVIEW_2_PENDING",
    "REVIEW_3_PENDING",
    "REVIEWS_COMPLETED",
    "JOURNEY_COMPLETE",
    name="patient_status",
)
TREATMENT_TYPE = sa.Enum("EXTERNAL_BEAM", "BRACHYTHERAPY", name="treatment_type")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    """Create identity mirror tables and the journey tables."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("role", USER_ROLE, nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_profiles_role", "profiles", ["role"])

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Text(), nullable=False),
        sa.Column("token", sa.Text(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_auth_sessions_token", "auth_sessions", ["token"], unique=True)
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"])

    op.create_table(
        "patients",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("mrn", sa.String(32), nullable=False),
        sa.Column("legacy_mrn", sa.String(64), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("dob", sa.Date(), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("admission_date", sa.Date(), nullable=False),
        sa.Column("current_status", PATIENT_STATUS, nullable=False),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("medical_history", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("risk_flags", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("consultant_name", sa.String(200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
        sa.UniqueConstraint("mrn"),
    )
    op.create_index("ix_patients_current_status", "patients", ["current_status"])
    op.create_index("idx_patient_status_created", "patients", ["current_status", "created_at"])

    op.create_table(
        "scan_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("machine_room", sa.String(100), nullable=False),
        sa.Column("scan_notes", sa.Text(), nullable=False),
        sa.Column("position", sa.String(100), nullable=True),
        sa.Column("immobilization", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("bladder_protocol", sa.String(100), nullable=True),
        sa.Column("metal_implants", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("headshell", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("performed_by", sa.Text(), nullable=False),
        sa.Column("scan_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scan_logs_patient_id", "scan_logs", ["patient_id"])

    op.create_table(
        "treatment_plans",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("treatment_type", TREATMENT_TYPE, nullable=False),
        sa.Column("num_sessions", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("prep_instructions", sa.Text(), nullable=True),
        sa.Column("prescription", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("side_effects", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("nutritional_interventions", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("skin_care_dos", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("skin_care_donts", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("immobilization_device", sa.String(200), nullable=True),
        sa.Column("setup_considerations", sa.Text(), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("is_successful", sa.Boolean(), nullable=True),
        sa.Column("outcome_notes", sa.Text(), nullable=True),
        sa.Column("outcome_decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("outcome_decided_by", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("num_sessions BETWEEN 1 AND 50", name="check_num_sessions_range"),
    )
    op.create_index("ix_treatment_plans_patient_id", "treatment_plans", ["patient_id"])
    # At most one published plan per patient
    op.create_index(
        "uq_plan_published_per_patient",
        "treatment_plans",
        ["patient_id"],
        unique=True,
        postgresql_where=sa.text("is_published"),
    )

    op.create_table(
        "treatment_reviews",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("patient_id", sa.Uuid(), nullable=False),
        sa.Column("treatment_plan_id", sa.Uuid(), nullable=False),
        sa.Column("review_number", sa.Integer(), nullable=False),
        sa.Column("review_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("office_location", sa.String(200), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_by", sa.Text(), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["treatment_plan_id"], ["treatment_plans.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("treatment_plan_id", "review_number", name="uq_review_plan_number"),
        sa.CheckConstraint("review_number IN (1, 2, 3)", name="check_review_number_values"),
    )
    op.create_index("ix_treatment_reviews_patient_id", "treatment_reviews", ["patient_id"])
    op.create_index("ix_treatment_reviews_treatment_plan_id", "treatment_reviews", ["treatment_plan_id"])


def downgrade() -> None:
    """Drop all journey tables and enum types."""
    op.drop_table("treatment_reviews")
    op.drop_index("uq_plan_published_per_patient", table_name="treatment_plans")
    op.drop_table("treatment_plans")
    op.drop_table("scan_logs")
    op.drop_table("patients")
    op.drop_table("auth_sessions")
    op.drop_table("profiles")

    bind = op.get_bind()
    TREATMENT_TYPE.drop(bind, checkfirst=True)
    PATIENT_STATUS.drop(bind, checkfirst=True)
    USER_ROLE.drop(bind, checkfirst=True)
