"""
Authentication schemas for request/response validation.

This module defines Pydantic models for authentication-related API operations:
- Password login
- Token refresh and logout
- Cached authorization data of a user
"""

from pydantic import BaseModel, EmailStr, Field

from app.schemas.base import UTCDatetime, UTCDatetimeOptional


class UserAuthorizationData(BaseModel):
    """
    Effective permissions, roles and policies of a user.

    Derived from role claims and cached as JSON under ``UserAuth_{user_id}``;
    never persisted.
    """

    user_id: int
    user_name: str
    email: str
    permissions: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=list)
    policies: list[str] = Field(default_factory=list)


class LoginRequest(BaseModel):
    """Request schema for password login."""

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=255)
    remember_me: bool = False


class RefreshRequest(BaseModel):
    """Request schema for token refresh."""

    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    """Request schema for logout (revokes one refresh token)."""

    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Response schema for successful authentication or refresh."""

    access_token: str
    access_token_expires_at: UTCDatetime
    refresh_token: str
    refresh_token_expires_at: UTCDatetime
    token_type: str = "Bearer"


class CurrentUserResponse(BaseModel):
    """Response schema for GET /auth/me."""

    user_id: int
    user_name: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    policies: list[str] = Field(default_factory=list)
    last_sign_in_at: UTCDatetimeOptional = None


class LogoutAllResponse(BaseModel):
    revoked_count: int
