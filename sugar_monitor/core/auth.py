"""Authentication and authorization dependencies.

Requests authenticate with an ``Authorization: Bearer <jwt>`` header.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.core.security import TokenData, decode_access_token
from sugar_monitor.database import get_db
from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.user import User, UserRole

logger = get_logger(__name__)


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the authenticated user from the bearer token.

    Raises:
        HTTPException 401: If the token is missing, invalid, or the user
            no longer exists or is disabled
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Access token required",
        headers={"WWW-Authenticate": "Bearer"},
    )

    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise credentials_exception

    payload = decode_access_token(auth_header[7:])
    if payload is None:
        raise credentials_exception

    try:
        token_data = TokenData(payload)
    except (KeyError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == token_data.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is disabled",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


class RoleChecker:
    """Dependency that rejects users whose role is not in ``allowed_roles``.

    Runs before the endpoint body, so no core logic executes for a caller
    without the required privilege.
    """

    def __init__(self, allowed_roles: list[UserRole]):
        self.allowed_roles = allowed_roles

    async def __call__(
        self,
        request: Request,
        current_user: CurrentUser,
    ) -> User:
        if current_user.role not in self.allowed_roles:
            client_ip = request.client.host if request.client else "unknown"
            logger.warning(
                "Unauthorized access attempt",
                user_id=str(current_user.id),
                user_role=current_user.role.value,
                required_roles=[r.value for r in self.allowed_roles],
                path=request.url.path,
                method=request.method,
                client_ip=client_ip,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user


def require_roles(*roles: UserRole) -> RoleChecker:
    """Create a role checker dependency for the specified roles."""
    return RoleChecker(list(roles))


require_admin = require_roles(UserRole.ADMIN)
require_provider = require_roles(UserRole.PROVIDER)

AdminUser = Annotated[User, Depends(require_admin)]
ProviderUser = Annotated[User, Depends(require_provider)]
