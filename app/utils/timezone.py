"""Datetime helpers. All timestamps are stored and compared in UTC."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_datetime(dt: datetime) -> datetime:
    """Normalize datetime to timezone-aware (UTC).

    SQLite hands back naive datetimes; they are treated as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware UTC datetime.

    Raises:
        ValueError: If the string is not a valid ISO-8601 datetime
    """
    if isinstance(value, datetime):
        return normalize_datetime(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return normalize_datetime(datetime.fromisoformat(text))


def to_epoch(dt: datetime) -> int:
    return int(normalize_datetime(dt).timestamp())


def from_epoch(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
