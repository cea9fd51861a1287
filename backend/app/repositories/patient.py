"""Patient repository.

Reads patients and performs the conditional status write that every
journey transition goes through.
"""

import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.patient import Patient, PatientStatus


class PatientRepository:
    """Data access for ``Patient`` rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, patient_id: uuid.UUID) -> Patient | None:
        return await self.db.get(Patient, patient_id)

    async def get_by_user_id(self, user_id: str) -> Patient | None:
        result = await self.db.execute(select(Patient).where(Patient.user_id == user_id))
        return result.scalar_one_or_none()

    async def mrn_exists(self, mrn: str) -> bool:
        result = await self.db.execute(select(Patient.id).where(Patient.mrn == mrn))
        return result.first() is not None

    async def list(
        self,
        status: PatientStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Patient], int]:
        """List patients newest first with an optional status filter.

        Returns:
            The requested page and the total number of matching patients.
        """
        query = select(Patient)
        if status is not None:
            query = query.where(Patient.current_status == status)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(Patient.created_at.desc(), Patient.id).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total

    async def compare_and_set_status(
        self,
        patient_id: uuid.UUID,
        observed: PatientStatus,
        target: PatientStatus,
        **values: Any,
    ) -> bool:
        """Move a patient from ``observed`` to ``target`` if nobody else has.

        The update only matches while ``current_status`` still equals the
        status the caller read, so of two concurrent transitions out of the
        same state exactly one succeeds. Extra column ``values`` are written
        by the same statement.

        Returns:
            True if the row was updated, False if the status had already moved.
        """
        result = await self.db.execute(
            update(Patient)
            .where(Patient.id == patient_id, Patient.current_status == observed)
            .values(current_status=target, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
