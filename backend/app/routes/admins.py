"""Staff administration routes (SUPER_ADMIN only)."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import CallerContext, require_super_admin
from app.database import get_db
from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.auth import UserRole
from app.repositories.profile import ProfileRepository
from app.schemas.admin import StaffGrantRequest, StaffProfileResponse
from app.schemas.common import ActionResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admins", tags=["admins"])


@router.get("", response_model=list[StaffProfileResponse])
async def list_staff(
    db: AsyncSession = Depends(get_db),
    _caller: CallerContext = Depends(require_super_admin),
) -> list[StaffProfileResponse]:
    """List all ADMIN and SUPER_ADMIN profiles, newest first."""
    profiles = await ProfileRepository(db).list_staff()
    return [StaffProfileResponse.model_validate(profile) for profile in profiles]


@router.post("", response_model=ActionResponse[StaffProfileResponse])
async def grant_admin(
    request: StaffGrantRequest,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(require_super_admin),
) -> ActionResponse[StaffProfileResponse]:
    """Grant the ADMIN role to an existing account.

    Raises:
        NotFoundError: 404 if no account uses the email.
        ValidationError: 400 if the account is already staff.
    """
    profile = await ProfileRepository(db).get_by_email(request.email)
    if profile is None:
        raise NotFoundError("No account found for that email. The user must sign up first.")
    if profile.role is not UserRole.PATIENT:
        raise ValidationError("User is already an administrator")

    profile.role = UserRole.ADMIN
    await db.commit()
    await db.refresh(profile)
    logger.info("Granted ADMIN to %s by %s", profile.id, caller.user_id)

    return ActionResponse(
        data=StaffProfileResponse.model_validate(profile),
        message=f"{profile.email} is now an administrator",
    )


@router.delete("/{user_id}", response_model=ActionResponse[StaffProfileResponse])
async def revoke_admin(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    caller: CallerContext = Depends(require_super_admin),
) -> ActionResponse[StaffProfileResponse]:
    """Revoke the ADMIN role, returning the account to PATIENT.

    Raises:
        NotFoundError: 404 if the profile does not exist.
        AuthorizationError: 403 if the target is a SUPER_ADMIN.
        ValidationError: 400 if the target is not an administrator.
    """
    profile = await ProfileRepository(db).get(user_id)
    if profile is None:
        raise NotFoundError("User not found")
    if profile.role is UserRole.SUPER_ADMIN:
        raise AuthorizationError("Super Admin access cannot be revoked")
    if profile.role is not UserRole.ADMIN:
        raise ValidationError("User is not an administrator")

    profile.role = UserRole.PATIENT
    await db.commit()
    await db.refresh(profile)
    logger.info("Revoked ADMIN from %s by %s", profile.id, caller.user_id)

    return ActionResponse(
        data=StaffProfileResponse.model_validate(profile),
        message=f"Administrator access revoked for {profile.email}",
    )
