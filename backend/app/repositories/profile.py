"""User profile repository used by staff administration."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.auth import STAFF_ROLES, UserProfile


class ProfileRepository:
    """Data access for ``UserProfile`` rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> UserProfile | None:
        return await self.db.get(UserProfile, user_id)

    async def get_by_email(self, email: str) -> UserProfile | None:
        result = await self.db.execute(
            select(UserProfile).where(func.lower(UserProfile.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def list_staff(self) -> list[UserProfile]:
        result = await self.db.execute(
            select(UserProfile)
            .where(UserProfile.role.in_(STAFF_ROLES))
            .order_by(UserProfile.created_at.desc())
        )
        return list(result.scalars().all())
