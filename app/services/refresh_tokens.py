"""
Database-backed refresh token lifecycle.

Opaque 64-character alphanumeric tokens, one row each. Rotation revokes the
presented token, links it to its replacement and inserts the replacement in
one Unit of Work transaction, so a failure leaves neither change behind.

Each user has a cap on active tokens (1 for system users, 5 for customers);
issuing or rotating into a token beyond the cap is refused with
TooManyActiveTokens. Rotation claims the presented row with a conditional
UPDATE, so two concurrent rotations of one token cannot both succeed.
"""

import secrets
import string
from datetime import timedelta

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from app.config import TokenRevocationReason, settings
from app.core.errors import Error
from app.core.logging import get_logger
from app.core.unit_of_work import UnitOfWork
from app.models.base import utc_now
from app.models.refresh_token import (
    TOKEN_LENGTH,
    TOKEN_PATTERN,
    RefreshTokenErrors,
    RefreshTokens,
)

logger = get_logger(__name__)

TOKEN_ALPHABET = string.ascii_letters + string.digits


def generate_token_value() -> str:
    """64 random alphanumeric characters from the OS CSPRNG."""
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def max_active_tokens(is_system_user: bool) -> int:
    return (
        settings.JWT_MAX_TOKENS_SYSTEM_USER
        if is_system_user
        else settings.JWT_MAX_TOKENS_CUSTOMER
    )


def token_lifetime(remember_me: bool) -> timedelta:
    days = (
        settings.JWT_REFRESH_TOKEN_EXPIRY_REMEMBER_ME_DAYS
        if remember_me
        else settings.JWT_REFRESH_TOKEN_EXPIRY_DAYS
    )
    return timedelta(days=days)


class RefreshTokenService:
    """Issue, validate, rotate, revoke and clean up refresh tokens."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow
        self.db = uow.session

    async def get_active_tokens(
        self, user_id: int, exclude_token_id: int | None = None
    ) -> list[RefreshTokens]:
        """Active tokens of a user, oldest first."""
        query = (
            select(RefreshTokens)
            .where(
                RefreshTokens.user_id == user_id,  # type: ignore[arg-type]
                RefreshTokens.is_revoked == False,  # type: ignore[arg-type]  # noqa: E712
                RefreshTokens.expires_at > utc_now(),  # type: ignore[arg-type]
            )
            .order_by(RefreshTokens.id)
        )
        if exclude_token_id is not None:
            query = query.where(RefreshTokens.id != exclude_token_id)  # type: ignore[arg-type]
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def can_have_more_tokens(
        self,
        user_id: int,
        is_system_user: bool,
        exclude_token_id: int | None = None,
    ) -> bool:
        """True while the user's active tokens are below the cap."""
        limit = max_active_tokens(is_system_user)
        active = await self.get_active_tokens(user_id, exclude_token_id)
        if len(active) < limit:
            return True
        logger.warning(
            "refresh_token_limit_reached",
            user_id=user_id,
            active=len(active),
            limit=limit,
        )
        return False

    def _new_token(self, user_id: int, ip_address: str, remember_me: bool) -> RefreshTokens:
        return RefreshTokens(
            user_id=user_id,
            token=generate_token_value(),
            expires_at=utc_now() + token_lifetime(remember_me),
            created_by_ip=ip_address,
        )

    async def generate(
        self,
        user_id: int,
        ip_address: str,
        is_system_user: bool = False,
        remember_me: bool = False,
    ) -> RefreshTokens | list[Error]:
        """
        Issue a new refresh token for a user.

        Returns:
            The persisted token, or InvalidUser / InvalidIpAddress /
            TooManyActiveTokens / GenerationFailed
        """
        if not user_id or user_id <= 0:
            return [RefreshTokenErrors.INVALID_USER]
        if not ip_address or not ip_address.strip():
            return [RefreshTokenErrors.INVALID_IP_ADDRESS]

        try:
            if not await self.can_have_more_tokens(user_id, is_system_user):
                return [RefreshTokenErrors.TOO_MANY_ACTIVE_TOKENS]
            token = self._new_token(user_id, ip_address, remember_me)
            self.db.add(token)
            await self.uow.save_changes()
        except SQLAlchemyError as e:
            logger.error("refresh_token_generation_failed", user_id=user_id, error=str(e))
            return [RefreshTokenErrors.GENERATION_FAILED]

        logger.info(
            "refresh_token_generated",
            user_id=user_id,
            token_id=token.id,
            expires_at=token.expires_at.isoformat(),
        )
        return token

    async def get_by_token(self, token: str) -> RefreshTokens | None:
        result = await self.db.execute(
            select(RefreshTokens).where(RefreshTokens.token == token)  # type: ignore[arg-type]
        )
        return result.scalar_one_or_none()

    async def validate(self, token: str | None) -> RefreshTokens | list[Error]:
        """
        Look up an active token.

        Returns:
            The token row, or Invalid / InvalidFormat / NotFound / Revoked / Expired
        """
        if not token or not token.strip():
            return [RefreshTokenErrors.INVALID]
        if len(token) != TOKEN_LENGTH or not TOKEN_PATTERN.match(token):
            return [RefreshTokenErrors.INVALID_FORMAT]

        stored = await self.get_by_token(token)
        if stored is None:
            return [RefreshTokenErrors.NOT_FOUND]
        if stored.is_revoked:
            logger.warning("revoked_refresh_token_presented", token_id=stored.id, user_id=stored.user_id)
            return [RefreshTokenErrors.REVOKED]
        if stored.is_expired():
            return [RefreshTokenErrors.EXPIRED]
        return stored

    async def rotate(
        self,
        token: str,
        ip_address: str,
        is_system_user: bool = False,
        remember_me: bool | None = None,
    ) -> RefreshTokens | list[Error]:
        """
        Replace a token with a new one in a single transaction.

        The old row is revoked with reason "Rotated" and points at the new
        row through ``replaced_by_token_id``. ``remember_me=None`` keeps the
        lifetime of the presented token.

        The old row is claimed with ``UPDATE ... WHERE is_revoked = false``
        before the replacement is inserted; when another rotation claimed it
        first the row count is 0 and the presented token is reported revoked.

        Joins the caller's transaction when one is active; otherwise opens and
        commits its own.

        Returns:
            The new token, a validation error, TooManyActiveTokens, or RotationFailed
        """
        if not ip_address or not ip_address.strip():
            return [RefreshTokenErrors.INVALID_IP_ADDRESS]

        owns_transaction = not self.uow.has_active_transaction
        if owns_transaction:
            await self.uow.begin_transaction()

        try:
            current = await self.validate(token)
            if isinstance(current, list):
                if owns_transaction:
                    await self.uow.rollback_transaction()
                return current

            if remember_me is None and current.created_at is not None:
                remember_me = (current.expires_at - current.created_at) > token_lifetime(False)

            if not await self.can_have_more_tokens(
                current.user_id, is_system_user, exclude_token_id=current.id
            ):
                if owns_transaction:
                    await self.uow.rollback_transaction()
                return [RefreshTokenErrors.TOO_MANY_ACTIVE_TOKENS]

            claimed = await self.db.execute(
                update(RefreshTokens)
                .where(
                    RefreshTokens.id == current.id,  # type: ignore[arg-type]
                    RefreshTokens.is_revoked == False,  # type: ignore[arg-type]  # noqa: E712
                )
                .values(
                    is_revoked=True,
                    revoked_at=utc_now(),
                    revoked_by_ip=ip_address,
                    revocation_reason=TokenRevocationReason.ROTATED,
                )
            )
            if claimed.rowcount != 1:
                logger.warning(
                    "refresh_token_rotation_lost_race",
                    token_id=current.id,
                    user_id=current.user_id,
                )
                if owns_transaction:
                    await self.uow.rollback_transaction()
                return [RefreshTokenErrors.REVOKED]

            replacement = self._new_token(current.user_id, ip_address, bool(remember_me))
            self.db.add(replacement)
            await self.uow.save_changes()

            current.replaced_by_token_id = replacement.id
            await self.uow.save_changes()

            if owns_transaction:
                await self.uow.commit_transaction()
        except Exception as e:
            logger.error(
                "refresh_token_rotation_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            if owns_transaction and self.uow.has_active_transaction:
                await self.uow.rollback_transaction()
            return [RefreshTokenErrors.ROTATION_FAILED]

        logger.info(
            "refresh_token_rotated",
            user_id=replacement.user_id,
            old_token_id=current.id,
            new_token_id=replacement.id,
        )
        return replacement

    async def revoke(
        self,
        token: str,
        ip_address: str,
        reason: str = TokenRevocationReason.MANUAL,
    ) -> RefreshTokens | list[Error]:
        """
        Revoke a single token.

        Returns:
            The revoked token, or Invalid / InvalidIpAddress / NotFound / Revoked / RevocationFailed
        """
        if not token or not token.strip():
            return [RefreshTokenErrors.INVALID]
        if not ip_address or not ip_address.strip():
            return [RefreshTokenErrors.INVALID_IP_ADDRESS]

        stored = await self.get_by_token(token)
        if stored is None:
            return [RefreshTokenErrors.NOT_FOUND]
        if stored.is_revoked:
            return [RefreshTokenErrors.REVOKED]

        try:
            stored.revoke(ip_address, reason or TokenRevocationReason.MANUAL)
            await self.uow.save_changes()
        except SQLAlchemyError as e:
            logger.error("refresh_token_revocation_failed", token_id=stored.id, error=str(e))
            return [RefreshTokenErrors.REVOCATION_FAILED]

        logger.info("refresh_token_revoked", token_id=stored.id, user_id=stored.user_id, reason=reason)
        return stored

    async def revoke_all(
        self,
        user_id: int,
        ip_address: str,
        reason: str = TokenRevocationReason.LOGOUT_ALL,
        except_token: str | None = None,
    ) -> int | list[Error]:
        """
        Revoke every active token of a user, optionally sparing one.

        Returns:
            Number of tokens revoked
        """
        if not ip_address or not ip_address.strip():
            return [RefreshTokenErrors.INVALID_IP_ADDRESS]

        tokens = [t for t in await self.get_active_tokens(user_id) if t.token != except_token]
        if not tokens:
            return 0

        try:
            for token in tokens:
                token.revoke(ip_address, reason or TokenRevocationReason.LOGOUT_ALL)
            await self.uow.save_changes()
        except SQLAlchemyError as e:
            logger.error("refresh_tokens_revoke_all_failed", user_id=user_id, error=str(e))
            return [RefreshTokenErrors.REVOCATION_FAILED]

        logger.info("refresh_tokens_revoked_all", user_id=user_id, count=len(tokens), reason=reason)
        return len(tokens)

    async def cleanup_expired(self) -> int:
        """
        Delete expired tokens and tokens revoked longer than JWT_MAX_TOKEN_AGE_DAYS ago.

        Runs in the caller's transaction; returns the number of rows deleted.
        """
        now = utc_now()
        revoked_before = now - timedelta(days=settings.JWT_MAX_TOKEN_AGE_DAYS)
        result = await self.db.execute(
            delete(RefreshTokens).where(
                or_(
                    RefreshTokens.expires_at < now,  # type: ignore[arg-type]
                    and_(
                        RefreshTokens.is_revoked == True,  # type: ignore[arg-type]  # noqa: E712
                        RefreshTokens.revoked_at < revoked_before,  # type: ignore[arg-type,operator]
                    ),
                )
            )
        )
        deleted = int(getattr(result, "rowcount", 0) or 0)
        logger.info("refresh_tokens_cleaned_up", deleted=deleted)
        return deleted
