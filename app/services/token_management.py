"""
Token management: pair access tokens with refresh tokens.

Access tokens are JWTs built from the user's resolved authorization data;
refresh tokens are the database-backed opaque tokens of
app.services.refresh_tokens.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from app.config import TokenRevocationReason
from app.core.authorization import UserAuthorizationProvider
from app.core.errors import Error
from app.core.jwt_tokens import generate_access_token
from app.core.logging import get_logger
from app.core.unit_of_work import UnitOfWork
from app.models.refresh_token import RefreshTokenErrors
from app.models.role import Roles, UserRoles
from app.models.user import Users
from app.services.refresh_tokens import RefreshTokenService

logger = get_logger(__name__)

USER_NOT_FOUND = Error.not_found("User.UserNotFound", "User not found.")


@dataclass(frozen=True)
class AuthTokens:
    access_token: str
    access_token_expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime


async def is_system_user(uow: UnitOfWork, user_id: int) -> bool:
    """True when any of the user's roles is flagged as a system role."""
    result = await uow.session.execute(
        select(Roles.id)  # type: ignore[call-overload]
        .join(UserRoles, UserRoles.role_id == Roles.id)
        .where(UserRoles.user_id == user_id, Roles.is_system_role == True)  # noqa: E712
        .limit(1)
    )
    return result.first() is not None


class TokenManagementService:
    def __init__(self, uow: UnitOfWork, provider: UserAuthorizationProvider):
        self.uow = uow
        self.provider = provider
        self.refresh_tokens = RefreshTokenService(uow)

    async def _access_token_for(self, user_id: int) -> tuple[str, datetime] | list[Error]:
        data = await self.provider.get_user_authorization(user_id)
        if data is None:
            return [USER_NOT_FOUND]
        issued = generate_access_token(data)
        return issued.token, issued.expires_at.replace(tzinfo=None)

    async def authenticate(
        self,
        user: Users,
        ip_address: str,
        is_system_user: bool = False,
        remember_me: bool = False,
    ) -> AuthTokens | list[Error]:
        """Issue an access token and a new refresh token for an authenticated user."""
        assert user.id is not None
        access = await self._access_token_for(user.id)
        if isinstance(access, list):
            return access

        refresh = await self.refresh_tokens.generate(user.id, ip_address, is_system_user, remember_me)
        if isinstance(refresh, list):
            return refresh

        logger.info("user_authenticated", user_id=user.id, system_user=is_system_user)
        return AuthTokens(
            access_token=access[0],
            access_token_expires_at=access[1],
            refresh_token=refresh.token,
            refresh_token_expires_at=refresh.expires_at,
        )

    async def refresh(self, refresh_token: str, ip_address: str) -> AuthTokens | list[Error]:
        """Rotate a refresh token and issue a fresh access token for its owner."""
        current = await self.refresh_tokens.validate(refresh_token)
        if isinstance(current, list):
            return current

        system_user = await is_system_user(self.uow, current.user_id)
        rotated = await self.refresh_tokens.rotate(refresh_token, ip_address, system_user)
        if isinstance(rotated, list):
            return rotated

        access = await self._access_token_for(rotated.user_id)
        if isinstance(access, list):
            return access

        return AuthTokens(
            access_token=access[0],
            access_token_expires_at=access[1],
            refresh_token=rotated.token,
            refresh_token_expires_at=rotated.expires_at,
        )

    async def logout(
        self, user_id: int, refresh_token: str, ip_address: str
    ) -> int | list[Error]:
        """
        Revoke one refresh token of ``user_id``. Returns the owner's user id.

        A token owned by someone else is reported as NotFound and left untouched.
        """
        stored = await self.refresh_tokens.get_by_token(refresh_token) if refresh_token else None
        if stored is not None and stored.user_id != user_id:
            logger.warning("foreign_refresh_token_logout", user_id=user_id, token_id=stored.id)
            return [RefreshTokenErrors.NOT_FOUND]

        revoked = await self.refresh_tokens.revoke(
            refresh_token, ip_address, TokenRevocationReason.LOGOUT
        )
        if isinstance(revoked, list):
            return revoked
        return revoked.user_id

    async def logout_all(self, user_id: int, ip_address: str) -> int | list[Error]:
        """Revoke every active refresh token and drop the cached authorization data."""
        count = await self.refresh_tokens.revoke_all(
            user_id, ip_address, TokenRevocationReason.LOGOUT_ALL
        )
        if isinstance(count, list):
            return count
        await self.provider.invalidate_user_authorization(user_id)
        return count
