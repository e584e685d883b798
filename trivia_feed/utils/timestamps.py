"""
UTC timestamp helpers.

Every timestamp the engine stores is a timezone-aware UTC datetime in memory
and an ISO 8601 string when serialized.
"""

from datetime import datetime, timezone
from typing import Optional, Union

SECONDS_PER_DAY = 86400.0


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime (or None) to ISO 8601."""
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def from_iso(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO 8601 string into an aware UTC datetime.

    Accepts datetimes unchanged (normalized to UTC) and None. A trailing "Z"
    is accepted as UTC.

    Raises:
        ValueError: If the string is not a valid ISO 8601 timestamp
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are assumed to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(earlier: Optional[datetime], later: datetime) -> float:
    """Fractional days from `earlier` to `later` (0.0 when earlier is None)."""
    if earlier is None:
        return 0.0
    delta = ensure_utc(later) - ensure_utc(earlier)
    return delta.total_seconds() / SECONDS_PER_DAY
