"""Instant normalization shared by every stored timestamp."""

from __future__ import annotations

import datetime
from typing import Any


def to_utc(value: Any) -> datetime.datetime | None:
    """Normalize a stored or submitted time value to an aware UTC datetime.

    Accepts ISO 8601 strings and datetimes (including the store's own
    datetime subclass). Naive datetimes are taken to be UTC already.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value)
    if not isinstance(value, datetime.datetime):
        raise TypeError(f"Cannot interpret {value!r} as an instant")
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    result = value.astimezone(datetime.timezone.utc)
    return datetime.datetime(
        result.year,
        result.month,
        result.day,
        result.hour,
        result.minute,
        result.second,
        result.microsecond,
        tzinfo=datetime.timezone.utc,
    )
