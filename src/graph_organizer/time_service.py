"""Time service for consistent datetime handling across Graph Organizer.

Philosophy:
- Everything internal is timezone-aware UTC
- All internal representations use Pendulum
- All user-facing output is human-friendly
"""

from __future__ import annotations

from datetime import datetime

import pendulum
from pendulum import DateTime


class TimeService:
    """Centralized service for all datetime operations."""

    timezone = "UTC"

    @classmethod
    def now(cls) -> DateTime:
        """Get current time as Pendulum DateTime."""
        return pendulum.now(cls.timezone)

    @classmethod
    def parse(cls, dt: str | datetime | DateTime | None) -> DateTime:
        """Parse various datetime inputs to Pendulum DateTime.

        Args:
            dt: ISO string, Python datetime, Pendulum DateTime, or None (returns now())

        Returns:
            Pendulum DateTime object in the service timezone
        """
        if dt is None:
            return cls.now()
        if isinstance(dt, DateTime):
            return dt.in_timezone(cls.timezone)
        if isinstance(dt, datetime):
            # Assume naive datetimes are in UTC (common for DB storage)
            if dt.tzinfo is None:
                dt = pendulum.instance(dt, tz="UTC")
            else:
                dt = pendulum.instance(dt)
            return dt.in_timezone(cls.timezone)
        parsed = pendulum.parse(dt)
        if not isinstance(parsed, DateTime):
            raise ValueError(f"Not a datetime: {dt!r}")
        return parsed.in_timezone(cls.timezone)

    @classmethod
    def format_age(cls, dt: str | datetime | DateTime) -> str:
        """Format datetime as human-readable age (e.g., '5 minutes ago')."""
        return cls.parse(dt).diff_for_humans()

    @classmethod
    def format_date(cls, dt: str | datetime | DateTime) -> str:
        """Format as a plain date, e.g. 'July 19, 2025'."""
        return cls.parse(dt).format("MMMM D, YYYY")

    @classmethod
    def format_age_difference(
        cls, start_dt: str | datetime | DateTime, end_dt: str | datetime | DateTime
    ) -> str:
        """Format the time difference between two datetimes as human-readable.

        Returns:
            Human-readable time difference (e.g., "5 days", "2 hours", "1 minute")
        """
        diff = cls.parse(end_dt) - cls.parse(start_dt)
        total_seconds = diff.total_seconds()

        if total_seconds < 60:
            return "less than a minute"
        if total_seconds < 3600:
            minutes = int(total_seconds / 60)
            return f"{minutes} minute{'s' if minutes != 1 else ''}"
        if total_seconds < 86400:
            hours = int(total_seconds / 3600)
            return f"{hours} hour{'s' if hours != 1 else ''}"
        days = int(total_seconds / 86400)
        return f"{days} day{'s' if days != 1 else ''}"

    @classmethod
    def format_full(cls, dt: str | datetime | DateTime) -> str:
        """Format datetime in full, e.g. "Tuesday, November 19, 2024 at 2:38 PM UTC"."""
        parsed = cls.parse(dt)
        date_time_part = parsed.format("dddd, MMMM D, YYYY [at] h:mm A")
        tz_abbr = parsed.format("zz")
        return f"{date_time_part} {tz_abbr}"
