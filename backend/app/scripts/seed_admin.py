"""Seed the first SUPER_ADMIN profile.

Reads ADMIN_EMAIL from environment / .env and creates (or promotes) the
profile, then issues a 7-day session token so the API can be used before
the identity provider front end is wired up.

Usage:
    python -m app.scripts.seed_admin

Idempotent: an existing SUPER_ADMIN is left untouched.
"""

import asyncio
import secrets
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from app.config import settings
from app.database import async_session_maker, engine
from app.models.auth import AuthSession, UserProfile, UserRole
from app.repositories.profile import ProfileRepository


async def seed_admin() -> None:
    email = settings.admin_email.strip().lower()
    if not email:
        print("ERROR: ADMIN_EMAIL must be set in .env")
        return

    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    print("  Database: connected")

    async with async_session_maker() as session:
        profile = await ProfileRepository(session).get_by_email(email)

        if profile is not None and profile.role is UserRole.SUPER_ADMIN:
            print(f"  Super admin already exists: {email} (id={profile.id})")
            return

        if profile is None:
            profile = UserProfile(id=str(uuid.uuid4()), email=email, role=UserRole.SUPER_ADMIN)
            session.add(profile)
            print(f"  Super admin created: {email} (id={profile.id})")
        else:
            profile.role = UserRole.SUPER_ADMIN
            print(f"  Existing account promoted to super admin: {email} (id={profile.id})")

        token = secrets.token_urlsafe(32)
        session.add(
            AuthSession(
                id=str(uuid.uuid4()),
                token=token,
                user_id=profile.id,
                expires_at=datetime.now(timezone.utc) + timedelta(days=7),
            )
        )
        await session.commit()
        print(f"  Bearer token (valid 7 days): {token}")


if __name__ == "__main__":
    asyncio.run(seed_admin())
