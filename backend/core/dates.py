"""Datetime normalization. All timestamps are stored as naive UTC."""

from datetime import datetime, timezone
from typing import Any


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_datetimes(payload: dict[str, Any]) -> dict[str, Any]:
    """Apply to_naive_utc to every datetime value of a request payload."""
    return {key: to_naive_utc(value) if isinstance(value, datetime) else value for key, value in payload.items()}
