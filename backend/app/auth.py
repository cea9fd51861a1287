"""Bearer token authentication and role gates.

Tokens are validated against the identity provider's session table and the
caller's role is read from the matching profile row. The resulting
``CallerContext`` is passed explicitly into every journey service call.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import AuthorizationError
from app.models.auth import STAFF_ROLES, AuthSession, UserProfile, UserRole

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CallerContext:
    """Authenticated caller identity."""

    user_id: str
    role: UserRole

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


async def verify_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> CallerContext:
    """Validate a bearer token against the session table.

    A user without a profile row is treated as a PATIENT; the identity
    provider creates profiles lazily on first sign-in.

    Returns:
        The authenticated caller.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
        )

    token = credentials.credentials
    result = await db.execute(
        select(AuthSession.user_id, UserProfile.role)
        .outerjoin(UserProfile, UserProfile.id == AuthSession.user_id)
        .where(
            AuthSession.token == token,
            AuthSession.expires_at > datetime.now(timezone.utc),
        )
    )
    row = result.one_or_none()

    if row is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    user_id, role = row
    return CallerContext(user_id=user_id, role=role or UserRole.PATIENT)


def require_role(*roles: UserRole):
    """Build a dependency that admits only callers holding one of ``roles``.

    Raises:
        AuthorizationError: 403 if the caller's role is not allowed.
    """
    allowed = frozenset(roles)

    async def dependency(caller: CallerContext = Depends(verify_bearer_token)) -> CallerContext:
        if caller.role not in allowed:
            if allowed == frozenset({UserRole.SUPER_ADMIN}):
                raise AuthorizationError("Forbidden: Super Admin access required")
            if allowed == frozenset(STAFF_ROLES):
                raise AuthorizationError("Forbidden: Admin access required")
            raise AuthorizationError("Forbidden: insufficient role")
        return caller

    return dependency


require_patient = require_role(UserRole.PATIENT)
require_staff = require_role(*STAFF_ROLES)
require_super_admin = require_role(UserRole.SUPER_ADMIN)
