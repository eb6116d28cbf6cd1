"""Time Windows — pure helpers for the rolling windows used across domain rules.

Invariants:
    - Every comparison happens in UTC; naive datetimes are read as UTC
    - within_window() is inclusive on both ends and False for future timestamps
    - Unparsable or missing values never satisfy a window

Design Decisions:
    - Naive → UTC coercion lives here: SQLite returns naive datetimes even for
      DateTime(timezone=True) columns, PostgreSQL returns aware ones
"""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | str | None) -> datetime | None:
    """Normalize a datetime (or ISO string) to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def within_window(
    value: datetime | str | None, window: timedelta, now: datetime | None = None,
) -> bool:
    """True when 0 <= now - value <= window."""
    ts = as_utc(value)
    if ts is None:
        return False
    delta = (now or utc_now()) - ts
    return timedelta(0) <= delta <= window


def date_within_days(value: date | None, days: int, today: date) -> bool:
    """True when today - days <= value <= today (calendar dates)."""
    if value is None:
        return False
    return today - timedelta(days=days) <= value <= today
