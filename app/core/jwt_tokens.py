"""
JWT access and refresh token issuance and validation (PyJWT, HS256).

Access tokens carry the user's identity plus ``role`` and ``permission``
list claims. Refresh JWTs carry only the subject and a ``typ=refresh``
marker but share the signing key, issuer and audience.

Validation pins the algorithm: the unverified header must say HS256 before
the signature is even checked, so a token signed with any other algorithm is
rejected even when its other claims are valid.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from app.config import CustomClaim, settings
from app.core.errors import Error
from app.core.logging import get_logger
from app.schemas.auth import UserAuthorizationData

logger = get_logger(__name__)

ALGORITHM = "HS256"
REFRESH_TOKEN_TYPE = "refresh"


class TokenErrors:
    EMPTY = Error.unauthorized("Token.Empty", "Token is empty.")
    EXPIRED = Error.unauthorized("Token.Expired", "Token has expired.")
    INVALID_ALGORITHM = Error.unauthorized("Token.InvalidAlgorithm", "Invalid token algorithm.")

    @staticmethod
    def validation_failed(reason: str) -> Error:
        return Error.unauthorized("Token.ValidationFailed", f"Token validation failed: {reason}")


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


def _now() -> datetime:
    return datetime.now(UTC)


def generate_access_token(user: UserAuthorizationData, now: datetime | None = None) -> IssuedToken:
    """
    Create a signed access token for ``user``.

    Args:
        user: Resolved authorization data (identity, roles, permissions)
        now: Issue time, defaults to the current time

    Returns:
        IssuedToken with the encoded JWT and its expiry
    """
    issued_at = now or _now()
    expires_at = issued_at + timedelta(minutes=settings.JWT_EXPIRY_MINUTES)

    payload: dict[str, Any] = {
        "sub": str(user.user_id),
        "email": user.email,
        "unique_name": user.user_name,
        "jti": str(uuid.uuid4()),
        "iat": issued_at,
        "nbf": issued_at,
        "exp": expires_at,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        CustomClaim.ROLE: list(user.roles),
        CustomClaim.PERMISSION: list(user.permissions),
    }

    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)
    return IssuedToken(token=token, expires_at=expires_at)


def generate_refresh_jwt(
    user_id: int, remember_me: bool = False, now: datetime | None = None
) -> IssuedToken:
    """Create a refresh JWT valid for 7 days, or 30 with remember-me."""
    issued_at = now or _now()
    days = (
        settings.JWT_REFRESH_TOKEN_EXPIRY_REMEMBER_ME_DAYS
        if remember_me
        else settings.JWT_REFRESH_TOKEN_EXPIRY_DAYS
    )
    expires_at = issued_at + timedelta(days=days)

    payload = {
        "sub": str(user_id),
        "jti": str(uuid.uuid4()),
        "iat": issued_at,
        "exp": expires_at,
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "typ": REFRESH_TOKEN_TYPE,
    }

    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)
    return IssuedToken(token=token, expires_at=expires_at)


def validate_token(token: str | None) -> dict[str, Any] | list[Error]:
    """
    Validate signature, algorithm, issuer, audience and lifetime.

    Returns:
        The decoded claims, or a single-element error list
    """
    if not token or not token.strip():
        return [TokenErrors.EMPTY]

    try:
        header = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as e:
        return [TokenErrors.validation_failed(str(e))]

    if header.get("alg") != ALGORITHM:
        logger.warning("token_algorithm_rejected", algorithm=header.get("alg"))
        return [TokenErrors.INVALID_ALGORITHM]

    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[ALGORITHM],
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        return [TokenErrors.EXPIRED]
    except jwt.InvalidTokenError as e:
        logger.debug("token_validation_failed", error=str(e))
        return [TokenErrors.validation_failed(str(e))]


def get_user_id(claims: dict[str, Any]) -> int | None:
    """Subject claim as an int, or None when absent or malformed."""
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None
