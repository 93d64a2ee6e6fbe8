"""Shared datetime helpers for enforcing UTC awareness."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def ensure_utc(value: datetime) -> datetime:
    """Return a timezone-aware datetime in UTC.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are assumed to already be UTC.
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    """Return the current UTC datetime."""

    return datetime.now(UTC)


def isoformat_or_none(value: datetime | None) -> str | None:
    return ensure_utc(value).isoformat() if value is not None else None
