"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException, UnauthorizedException
from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.schemas.users import Caller, UserRole
from app.services.user_service import UserService

# Security (a missing header is reported as 401 by get_current_user_id)
security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> int:
    """
    Extract and validate the account ID from the bearer JWT.

    Args:
        credentials: Bearer token credentials

    Returns:
        Account ID from the ``sub`` claim

    Raises:
        UnauthorizedException: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise UnauthorizedException("Missing token")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedException("Invalid token")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id.isdigit():
        raise UnauthorizedException("Invalid user ID format")

    return int(user_id)


async def get_current_user(
    user_id: Annotated[int, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """
    Get current user from database.

    Raises:
        UnauthorizedException: If the account no longer exists
        ForbiddenException: If the account is deactivated
    """
    user = await UserService(db).get_user_by_id(user_id)

    if not user:
        raise UnauthorizedException("User not found")

    if not user["is_active"]:
        raise ForbiddenException("User account is deactivated")

    return user


async def get_current_caller(
    user: Annotated[dict, Depends(get_current_user)],
) -> Caller:
    """Typed caller identity handed to the core services."""
    return Caller(account_id=user["id"], role=UserRole(user["role"]))


async def require_admin(user: Annotated[dict, Depends(get_current_user)]) -> dict:
    """
    Ensure current user has admin role.

    Raises:
        ForbiddenException: If user is not admin
    """
    if user["role"] != UserRole.ADMIN.value:
        raise ForbiddenException("Admin access required")
    return user


def get_cache_manager() -> CacheManager | None:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
CurrentCaller = Annotated[Caller, Depends(get_current_caller)]
AdminUser = Annotated[dict, Depends(require_admin)]
CacheManagerDep = Annotated[CacheManager | None, Depends(get_cache_manager)]
