"""
Authentication dependencies for FastAPI route protection.

This module provides dependency functions for:
- Extracting and verifying the bearer access token
- Resolving the caller's cached authorization data
- Loading the current user from the database
- Reading the client IP address
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.authorization import UserAuthorizationProvider
from app.core.cache import CacheBackend, get_cache
from app.core.database import get_db
from app.core.errors import is_error
from app.core.jwt_tokens import REFRESH_TOKEN_TYPE, get_user_id, validate_token
from app.core.logging import get_logger, set_user_context
from app.models.user import Users
from app.schemas.auth import UserAuthorizationData

logger = get_logger(__name__)

# Security scheme for OpenAPI documentation; missing headers are handled below
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> int:
    """
    Verify the bearer access token and return its subject.

    Raises:
        HTTPException: 401 if the token is missing, invalid, expired or a refresh token
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Not authenticated")

    claims = validate_token(credentials.credentials)
    if is_error(claims):
        raise _unauthorized(claims[0].description)

    if claims.get("typ") == REFRESH_TOKEN_TYPE:
        raise _unauthorized("Refresh tokens cannot be used for authentication")

    user_id = get_user_id(claims)
    if user_id is None:
        raise _unauthorized("Could not validate credentials")

    set_user_context(user_id)
    return user_id


def get_authorization_provider(
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[CacheBackend, Depends(get_cache)],
) -> UserAuthorizationProvider:
    return UserAuthorizationProvider(db, cache)


async def get_current_authorization(
    user_id: Annotated[int, Depends(get_current_user_id)],
    provider: Annotated[UserAuthorizationProvider, Depends(get_authorization_provider)],
) -> UserAuthorizationData:
    """
    Cached authorization data of the caller.

    Raises:
        HTTPException: 401 if the token's user no longer exists
    """
    data = await provider.get_user_authorization(user_id)
    if data is None:
        raise _unauthorized("User not found")
    return data


async def get_current_user(
    user_id: Annotated[int, Depends(get_current_user_id)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Users:
    """
    Load current user from database using verified token.

    Raises:
        HTTPException: 401 if user not found
    """
    result = await db.execute(select(Users).where(Users.id == user_id))  # type: ignore[arg-type]
    user = result.scalar_one_or_none()

    if user is None:
        raise _unauthorized("User not found")

    return user


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxies/load balancers),
    falls back to direct client IP.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (client)
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Type aliases for dependency injection
CurrentUserId = Annotated[int, Depends(get_current_user_id)]
CurrentUser = Annotated[Users, Depends(get_current_user)]
CurrentAuthorization = Annotated[UserAuthorizationData, Depends(get_current_authorization)]
AuthorizationProviderDep = Annotated[
    UserAuthorizationProvider, Depends(get_authorization_provider)
]
ClientIp = Annotated[str, Depends(get_client_ip)]
