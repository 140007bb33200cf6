"""
SQLModel-based User model

UserBase holds the profile fields that are safe to expose; Users adds the
credential, lockout and sign-in tracking columns. Users are never hard
deleted.
"""

from datetime import datetime, timedelta

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from app.models.base import AuditFields, utc_now

USER_NAME_PATTERN = r"^[a-zA-Z0-9._-]{3,256}$"
PHONE_NUMBER_PATTERN = r"^\+[1-9]\d{1,14}$"


class UserBase(SQLModel):
    """
    Base model with shared public fields for Users.

    These fields are safe to expose via the API.
    """

    user_name: str = Field(max_length=256)
    email: str = Field(max_length=256)
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)
    phone_number: str | None = Field(default=None, max_length=16)


class Users(UserBase, AuditFields, table=True):
    """
    Database table for users.

    Internal/sensitive fields (should NOT be exposed via public API):
    - password_hash
    - lockout state and failed attempt counter
    - sign-in IP addresses
    """

    __tablename__ = "users"

    __table_args__ = (
        Index("idx_users_user_name", "user_name", unique=True),
        Index("idx_users_email", "email", unique=True),
    )

    # Primary key
    id: int | None = Field(default=None, primary_key=True)

    email_confirmed: bool = Field(default=False)
    phone_number_confirmed: bool = Field(default=False)
    password_hash: str | None = Field(default=None, max_length=255)

    # Lockout
    access_failed_count: int = Field(default=0)
    lockout_enabled: bool = Field(default=True)
    lockout_end: datetime | None = Field(default=None)

    # Sign-in tracking
    last_sign_in_at: datetime | None = Field(default=None)
    last_sign_in_ip: str | None = Field(default=None, max_length=45)  # Supports IPv6
    current_sign_in_at: datetime | None = Field(default=None)
    current_sign_in_ip: str | None = Field(default=None, max_length=45)
    sign_in_count: int = Field(default=0)

    def is_locked_out(self, now: datetime | None = None) -> bool:
        if not self.lockout_enabled or self.lockout_end is None:
            return False
        return self.lockout_end > (now or utc_now())

    def record_failed_access(self, max_attempts: int, lockout_minutes: int) -> bool:
        """
        Count a failed password attempt.

        Returns True when this attempt locked the account; the counter is
        reset at that point.
        """
        if not self.lockout_enabled:
            return False
        self.access_failed_count += 1
        if self.access_failed_count >= max_attempts:
            self.lockout_end = utc_now() + timedelta(minutes=lockout_minutes)
            self.access_failed_count = 0
            return True
        return False

    def reset_access_failed(self) -> None:
        self.access_failed_count = 0
        self.lockout_end = None

    def record_sign_in(self, ip_address: str) -> None:
        """Shift the current sign-in to last and record a new one."""
        now = utc_now()
        self.last_sign_in_at = self.current_sign_in_at
        self.last_sign_in_ip = self.current_sign_in_ip
        self.current_sign_in_at = now
        self.current_sign_in_ip = ip_address
        self.sign_in_count += 1
