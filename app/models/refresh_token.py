"""
SQLModel-based RefreshToken model.

Database-backed opaque refresh tokens (64 alphanumeric characters) used for
rotation tracking. A token is active, expired or revoked; the state is derived
from ``expires_at`` and ``is_revoked`` rather than stored. Rotation revokes the
old row and links it to its replacement through ``replaced_by_token_id``.
"""

import re
from datetime import datetime

from sqlalchemy import ForeignKeyConstraint, Index
from sqlmodel import Field, SQLModel

from app.core.errors import Error
from app.models.base import AuditFields, utc_now

TOKEN_LENGTH = 64
TOKEN_PATTERN = re.compile(r"^[a-zA-Z0-9]{64}$")


class RefreshTokenErrors:
    """Error values for the refresh token lifecycle"""

    NOT_FOUND = Error.not_found("RefreshToken.NotFound", "Refresh token not found.")
    EXPIRED = Error.validation("RefreshToken.Expired", "Refresh token has expired.")
    REVOKED = Error.validation("RefreshToken.Revoked", "Refresh token has been revoked.")
    INVALID = Error.validation("RefreshToken.Invalid", "Refresh token is invalid.")
    INVALID_FORMAT = Error.validation(
        "RefreshToken.InvalidFormat", "Refresh token format is invalid."
    )
    INVALID_IP_ADDRESS = Error.validation(
        "RefreshToken.InvalidIpAddress", "IP address is required."
    )
    INVALID_USER = Error.validation("RefreshToken.InvalidUser", "User id is required.")
    TOO_MANY_ACTIVE_TOKENS = Error.validation(
        "RefreshToken.TooManyActiveTokens", "Too many active refresh tokens."
    )
    GENERATION_FAILED = Error.failure(
        "RefreshToken.GenerationFailed", "Failed to generate refresh token."
    )
    ROTATION_FAILED = Error.failure("RefreshToken.RotationFailed", "Failed to rotate refresh token.")
    REVOCATION_FAILED = Error.failure(
        "RefreshToken.RevocationFailed", "Failed to revoke refresh token."
    )


class RefreshTokens(AuditFields, table=True):
    """
    Database table for refresh tokens.

    Security tracking:
    - created_by_ip / revoked_by_ip for auditing
    - replaced_by_token_id forms the rotation chain
    """

    __tablename__ = "refresh_tokens"

    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            ondelete="CASCADE",
            name="fk_refresh_tokens_user_id",
        ),
        Index("idx_refresh_tokens_user_id", "user_id"),
        Index("idx_refresh_tokens_token", "token", unique=True),
        Index("idx_refresh_tokens_expires_at", "expires_at"),
    )

    # Primary key
    id: int | None = Field(default=None, primary_key=True)

    user_id: int
    token: str = Field(max_length=TOKEN_LENGTH)

    expires_at: datetime
    created_by_ip: str = Field(max_length=45)  # Supports IPv6

    # Revocation
    is_revoked: bool = Field(default=False)
    revoked_at: datetime | None = Field(default=None)
    revoked_by_ip: str | None = Field(default=None, max_length=45)
    revocation_reason: str | None = Field(default=None, max_length=256)

    # Rotation chain
    replaced_by_token_id: int | None = Field(default=None)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expires_at

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def revoke(
        self,
        revoked_by_ip: str,
        reason: str,
        replaced_by_token_id: int | None = None,
    ) -> None:
        """Mark the token revoked. Revoking an already revoked token changes nothing."""
        if self.is_revoked:
            return
        self.is_revoked = True
        self.revoked_at = utc_now()
        self.revoked_by_ip = revoked_by_ip
        self.revocation_reason = reason
        self.replaced_by_token_id = replaced_by_token_id
