"""
Base schema types with UTC datetime serialization.

Timestamps are stored as naive UTC; UTCDatetime renders them with a Z suffix
so clients never have to guess the zone.
"""

from datetime import UTC, datetime
from typing import Annotated

from pydantic import PlainSerializer


def _format_utc(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(UTC)
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


# Usage: created_at: UTCDatetime instead of created_at: datetime
UTCDatetime = Annotated[datetime, PlainSerializer(_format_utc, return_type=str)]

# Optional version for nullable datetime fields
UTCDatetimeOptional = Annotated[
    datetime | None,
    PlainSerializer(_format_utc, return_type=str | None),
]
