"""Date and clock utilities for aquacycle.

Provides:
- Injectable clocks (wall clock or fixed instant) so lifecycle math is
  deterministic in tests
- Calendar-day arithmetic used by the process lifecycle
- ISO-8601 UTC formatting/parsing for reading timestamps
- Human readable durations
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Protocol, TypeVar
from zoneinfo import ZoneInfo

__all__ = [
    "Clock",
    "SystemClock",
    "FixedClock",
    "add_days",
    "clamp",
    "days_between",
    "ensure_timezone",
    "format_duration",
    "format_utc_iso8601",
    "parse_date",
    "parse_instant",
    "parse_utc_iso8601",
    "resolve_timezone",
    "start_of_day",
    "to_date",
]

T = TypeVar("T", int, float)


def resolve_timezone(tz: str | tzinfo | None) -> tzinfo:
    """Resolve a timezone name or object (None means UTC).

    Raises
    ------
    ValueError
        If the timezone name is unknown
    """
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        if tz.upper() == "UTC":
            return timezone.utc
        try:
            return ZoneInfo(tz)
        except Exception as exc:
            raise ValueError(f"Invalid timezone: {tz}") from exc
    return tz


class Clock(Protocol):
    """Source of the current time."""

    tz: tzinfo

    def now(self) -> datetime:
        """Return the current instant (timezone-aware)."""
        ...

    def today(self) -> date:
        """Return the current calendar date in the clock's timezone."""
        ...


class SystemClock:
    """Wall clock in a fixed timezone."""

    def __init__(self, timezone_name: str | tzinfo | None = "UTC") -> None:
        self.tz = resolve_timezone(timezone_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock frozen at a given instant.

    Example
    -------
    >>> clock = FixedClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    >>> clock.today()
    datetime.date(2024, 1, 1)
    >>> clock.advance(days=3).today()
    datetime.date(2024, 1, 4)
    """

    def __init__(self, instant: datetime | date, timezone_name: str | tzinfo | None = "UTC") -> None:
        self.tz = resolve_timezone(timezone_name)
        if not isinstance(instant, datetime):
            instant = datetime.combine(instant, time.min)
        self._instant = ensure_timezone(instant, self.tz)

    def now(self) -> datetime:
        return self._instant.astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def set(self, instant: datetime | date) -> FixedClock:
        """Move the clock to another instant."""
        if not isinstance(instant, datetime):
            instant = datetime.combine(instant, time.min)
        self._instant = ensure_timezone(instant, self.tz)
        return self

    def advance(self, **delta: float) -> FixedClock:
        """Move the clock forward by a ``timedelta(**delta)``."""
        self._instant = self._instant + timedelta(**delta)
        return self


def ensure_timezone(dt: datetime, tz: str | tzinfo | None = None) -> datetime:
    """Ensure datetime has timezone information.

    Parameters
    ----------
    dt
        Datetime (may be naive)
    tz
        Timezone to assume if dt is naive (default: UTC)

    Returns
    -------
    datetime
        Timezone-aware datetime
    """
    if dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=resolve_timezone(tz))


def to_date(value: date | datetime, tz: str | tzinfo | None = None) -> date:
    """Reduce a date or datetime to a calendar date.

    Aware datetimes are converted to ``tz`` first; naive datetimes are
    taken as already being local to ``tz``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None and tz is not None:
            value = value.astimezone(resolve_timezone(tz))
        return value.date()
    return value


def parse_date(value: str | date | datetime) -> date:
    """Parse ``YYYY-MM-DD`` (or an ISO datetime) into a calendar date.

    Raises
    ------
    ValueError
        If the string is not a valid date
    """
    if isinstance(value, (date, datetime)):
        return to_date(value)
    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return parse_utc_iso8601(text).date()


def parse_instant(value: str, tz: str | tzinfo | None = None) -> datetime:
    """Parse a date or ISO datetime into an aware instant.

    A bare ``YYYY-MM-DD`` means midnight in ``tz``; naive datetimes are
    taken as local to ``tz``.

    Raises
    ------
    ValueError
        If the string is not a valid date or datetime
    """
    text = value.strip()
    if len(text) == 10:
        return start_of_day(date.fromisoformat(text), tz)
    dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    return ensure_timezone(dt, tz)


def days_between(start: date, end: date) -> int:
    """Whole calendar days from ``start`` to ``end`` (negative if reversed)."""
    return (to_date(end) - to_date(start)).days


def add_days(day: date, days: int) -> date:
    """Shift a calendar date by ``days``."""
    return day + timedelta(days=days)


def clamp(value: T, low: T, high: T) -> T:
    """Clamp ``value`` into ``[low, high]``."""
    return max(low, min(value, high))


def start_of_day(day: date, tz: str | tzinfo | None = None) -> datetime:
    """Midnight of ``day`` in ``tz`` (aware)."""
    return datetime.combine(day, time.min, tzinfo=resolve_timezone(tz))


def format_utc_iso8601(dt: datetime) -> str:
    """Format datetime as ISO-8601 UTC string.

    Naive datetimes are taken as UTC.

    Example
    -------
    >>> format_utc_iso8601(datetime(2025, 10, 8, 12, 30, tzinfo=timezone.utc))
    '2025-10-08T12:30:00+00:00'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.isoformat()


def parse_utc_iso8601(iso_string: str) -> datetime:
    """Parse ISO-8601 string to UTC datetime.

    Parameters
    ----------
    iso_string
        ISO-8601 formatted string (``Z`` suffix accepted)

    Returns
    -------
    datetime
        Datetime in UTC

    Raises
    ------
    ValueError
        If string is not valid ISO-8601
    """
    iso_string = iso_string.strip().replace("Z", "+00:00")

    dt = datetime.fromisoformat(iso_string)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt


def format_duration(days: int) -> str:
    """Render a day count as a human duration.

    Months are 30 days and years 365 days.

    Example
    -------
    >>> format_duration(45)
    '1 month and 15 days'
    >>> format_duration(400)
    '1 year and 1 month'
    """

    def plural(count: int, unit: str) -> str:
        return f"{count} {unit}" if count == 1 else f"{count} {unit}s"

    if days < 30:
        return plural(days, "day")
    if days < 365:
        months, rest = divmod(days, 30)
        if rest:
            return f"{plural(months, 'month')} and {plural(rest, 'day')}"
        return plural(months, "month")

    years, rest = divmod(days, 365)
    months = rest // 30
    if months:
        return f"{plural(years, 'year')} and {plural(months, 'month')}"
    return plural(years, "year")
