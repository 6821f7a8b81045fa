"""
Time helpers. Services take a clock callable so expiry can be tested.

Timestamps are persisted as ISO-8601 strings in UTC.
"""
from datetime import datetime, timezone
from typing import Callable, Optional, Union

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize naive datetimes (assumed UTC) so they compare with aware ones"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    return as_utc(value).isoformat(timespec="microseconds")


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """Read back a stored timestamp. Firestore may hand back native datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(value))
