"""UTC time helpers."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Coerce a datetime to an aware UTC datetime.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; those are stored as UTC, so they are tagged rather than shifted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def month_key(now: datetime) -> str:
    """Billing-month key, e.g. ``2026-10``."""
    return as_utc(now).strftime("%Y-%m")


def utc_date(now: datetime) -> date:
    return as_utc(now).date()


def next_utc_midnight(now: datetime) -> datetime:
    tomorrow = utc_date(now) + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=timezone.utc)
