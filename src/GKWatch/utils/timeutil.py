"""Timestamp helpers shared by storage and services.

Timestamps are stored as ISO-8601 text in UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone

from dateutil import parser as dt_parser


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; aware values are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: datetime | None) -> str | None:
    """Serialize a datetime for storage; naive values are taken as UTC."""
    if value is None:
        return None
    return as_utc(value).isoformat()


def parse_dt(value: str | None) -> datetime | None:
    """Parse a stored timestamp.

    Args:
        value: ISO-8601 text (older rows may lack an offset) or None.

    Returns:
        Timezone-aware datetime, or None when input is empty.
    """
    if not value:
        return None
    parsed = dt_parser.parse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
