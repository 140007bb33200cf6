"""
Shared model building blocks.

Timestamps are stored as naive UTC datetimes so comparisons behave the same
on every database backend.
"""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    """Current UTC time without tzinfo (storage format for all timestamps)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Normalise an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class AuditFields(SQLModel):
    """
    Audit columns stamped by the Unit of Work on save.

    created_* on insert, updated_* on every modifying flush.
    """

    created_at: datetime | None = Field(default=None)
    created_by: str | None = Field(default=None, max_length=64)
    updated_at: datetime | None = Field(default=None)
    updated_by: str | None = Field(default=None, max_length=64)
