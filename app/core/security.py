"""
Password hashing and verification using bcrypt.

JWT handling lives in app.core.jwt_tokens; opaque refresh tokens in
app.services.refresh_tokens.
"""

import base64
import hashlib

import bcrypt

BCRYPT_MAX_BYTES = 72


def _prepare_password_for_bcrypt(password: str) -> bytes:
    """
    Bcrypt only reads the first 72 bytes. Longer passwords are SHA256 hashed
    and base64 encoded first (44 bytes) so no part of them is ignored.
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= BCRYPT_MAX_BYTES:
        return password_bytes
    return base64.b64encode(hashlib.sha256(password_bytes).digest())


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plain password against a bcrypt hash.

    Users without a password hash (external sign-in only) never match.
    """
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            _prepare_password_for_bcrypt(plain_password), hashed_password.encode("utf-8")
        )
    except ValueError:
        # Malformed hash stored for the user
        return False


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt (cost 12)."""
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(_prepare_password_for_bcrypt(password), salt).decode("utf-8")
