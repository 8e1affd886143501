"""Clock helpers and calendar math for date buckets."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pendulum


def now_utc() -> datetime:
    """Return the current UTC datetime."""
    return datetime.now(UTC)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 for JSON serialization."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.isoformat()


def today_in(tz_name: str = "UTC") -> date:
    """Return the current calendar date in the given timezone."""
    return pendulum.now(tz_name).date()


def recent_dates(days: int, *, today: date | None = None, tz_name: str = "UTC") -> list[str]:
    """Return the ``YYYY-MM-DD`` names of the most recent ``days`` dates, newest first.

    ``recent_dates(2)`` is ``[today, yesterday]``.
    """
    if days < 1:
        msg = f"days must be >= 1, got {days}"
        raise ValueError(msg)
    anchor = today if today is not None else today_in(tz_name)
    return [(anchor - timedelta(days=i)).isoformat() for i in range(days)]
