"""Date-time helpers."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current timestamp in UTC."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive values read back from the store as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
