"""Treatment record repository: scan logs, plans and reviews."""

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.treatment import ScanLog, TreatmentPlan, TreatmentReview


class TreatmentRepository:
    """Data access for scan logs, treatment plans and treatment reviews."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # === Scan logs ===

    async def list_scan_logs(self, patient_id: uuid.UUID) -> list[ScanLog]:
        result = await self.db.execute(
            select(ScanLog)
            .where(ScanLog.patient_id == patient_id)
            .order_by(ScanLog.scan_date.desc())
        )
        return list(result.scalars().all())

    async def latest_scan_room(self, patient_id: uuid.UUID) -> str | None:
        result = await self.db.execute(
            select(ScanLog.machine_room)
            .where(ScanLog.patient_id == patient_id)
            .order_by(ScanLog.scan_date.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # === Plans ===

    async def get_plan(self, plan_id: uuid.UUID) -> TreatmentPlan | None:
        return await self.db.get(TreatmentPlan, plan_id)

    async def get_published_plan(self, patient_id: uuid.UUID) -> TreatmentPlan | None:
        result = await self.db.execute(
            select(TreatmentPlan).where(
                TreatmentPlan.patient_id == patient_id,
                TreatmentPlan.is_published.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def list_plans(self, patient_id: uuid.UUID) -> list[TreatmentPlan]:
        """All plans for a patient, newest first."""
        result = await self.db.execute(
            select(TreatmentPlan)
            .where(TreatmentPlan.patient_id == patient_id)
            .order_by(TreatmentPlan.created_at.desc())
        )
        return list(result.scalars().all())

    # === Reviews ===

    async def get_review(self, review_id: uuid.UUID) -> TreatmentReview | None:
        return await self.db.get(TreatmentReview, review_id)

    async def list_reviews(
        self,
        patient_id: uuid.UUID,
        plan_id: uuid.UUID | None = None,
    ) -> list[TreatmentReview]:
        """Reviews for a patient ordered by plan then review number."""
        query = select(TreatmentReview).where(TreatmentReview.patient_id == patient_id)
        if plan_id is not None:
            query = query.where(TreatmentReview.treatment_plan_id == plan_id)
        query = query.order_by(TreatmentReview.created_at, TreatmentReview.review_number)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def count_reviews(self, plan_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(TreatmentReview)
            .where(TreatmentReview.treatment_plan_id == plan_id)
        )
        return result.scalar() or 0

    async def count_completed_reviews(self, plan_id: uuid.UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(TreatmentReview)
            .where(
                TreatmentReview.treatment_plan_id == plan_id,
                TreatmentReview.is_completed.is_(True),
            )
        )
        return result.scalar() or 0
