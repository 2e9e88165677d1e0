# backend/courtbook/services/civil_time.py
"""
Civil time conversion for the published local calendar.

Database: always stores UTC instants ("YYYY-MM-DDTHH:MM:SS.mmmZ").
API/UI:   civil dates "YYYY-MM-DD" and civil times "HH:MM", no offset.

The region has one standard offset and a daylight offset one hour ahead.
Daylight runs from the first Sunday of the start month (inclusive) to the
first Sunday of the end month (exclusive), wrapping the new year when the
start month is later than the end month (southern hemisphere).

Offset selection never looks at the runtime's own timezone, so results
are identical wherever the code runs.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache

from .errors import ValidationError


DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

SUNDAY = 0


# ── String contracts ─────────────────────────────────────────────────────


def parse_civil_date(value: str) -> tuple[int, int, int]:
    """Parse "YYYY-MM-DD" into (year, month, day)."""
    match = DATE_RE.match(value or "") if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid civil date: {value!r} (expected YYYY-MM-DD)")

    year, month, day = (int(part) for part in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= days_in_month(year, month):
        raise ValidationError(f"Invalid civil date: {value!r}")
    return year, month, day


def parse_civil_time(value: str) -> tuple[int, int]:
    """Parse "HH:MM" (24-hour) into (hour, minute)."""
    match = TIME_RE.match(value or "") if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid civil time: {value!r} (expected HH:MM)")

    hour, minute = int(match.group(1)), int(match.group(2))
    _check_hour_minute(hour, minute)
    return hour, minute


def format_civil_date(year: int, month: int, day: int) -> str:
    return f"{year:04d}-{month:02d}-{day:02d}"


def format_civil_time(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minutes since midnight."""
    hour, minute = parse_civil_time(value)
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return format_civil_time(minutes // 60, minutes % 60)


def parse_instant(value) -> datetime:
    """
    Normalize an instant to a timezone-aware UTC datetime.

    Accepts aware datetimes, naive datetimes (taken as UTC) and ISO-8601
    strings with a "Z" or numeric offset designator.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z") or raw.endswith("z"):
            raw = raw[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(raw)
        except ValueError:
            raise ValidationError(f"Invalid instant: {value!r}") from None
    else:
        raise ValidationError(f"Invalid instant: {value!r}")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_instant(value) -> str:
    """Format an instant as "YYYY-MM-DDTHH:MM:SS.mmmZ" (fixed width, sorts lexically)."""
    dt = parse_instant(value)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


# ── Calendar arithmetic ──────────────────────────────────────────────────


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(year: int, month: int) -> int:
    if month == 2:
        return 29 if is_leap_year(year) else 28
    return 30 if month in (4, 6, 9, 11) else 31


def zeller_day_of_week(year: int, month: int, day: int) -> int:
    """
    Day of week by Zeller's congruence, 0=Sunday .. 6=Saturday.

    January and February count as months 13 and 14 of the previous year.
    """
    m, y = month, year
    if m < 3:
        m += 12
        y -= 1

    k = y % 100
    j = y // 100
    # Zeller: 0=Saturday, 1=Sunday, ..., 6=Friday
    h = (day + (13 * (m + 1)) // 5 + k + k // 4 + j // 4 + 5 * j) % 7
    return (h + 6) % 7


def day_of_week(civil_date: str) -> int:
    """Day of week for a civil date string, 0=Sunday .. 6=Saturday."""
    return zeller_day_of_week(*parse_civil_date(civil_date))


def add_days(civil_date: str, days: int) -> str:
    """Add (or subtract) whole days to a civil date string."""
    year, month, day = parse_civil_date(civil_date)
    shifted = date(year, month, day) + timedelta(days=days)
    return format_civil_date(shifted.year, shifted.month, shifted.day)


def first_sunday(year: int, month: int) -> int:
    """Day-of-month of the first Sunday of the given month."""
    first_dow = zeller_day_of_week(year, month, 1)
    return 1 + (7 - first_dow) % 7


def _check_hour_minute(hour: int, minute: int) -> None:
    if not isinstance(hour, int) or not isinstance(minute, int):
        raise ValidationError(f"Hour and minute must be integers, got {hour!r}:{minute!r}")
    if not 0 <= hour <= 23 or not 0 <= minute <= 59:
        raise ValidationError(f"Invalid time of day: {hour}:{minute}")


# ── Calendar ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CivilCalendar:
    """
    The single published civil calendar.

    Attributes:
        standard_offset_minutes: UTC offset outside daylight (e.g. +600 for UTC+10)
        daylight_shift_minutes: extra offset while daylight applies
        daylight_start_month: month whose first Sunday starts daylight (inclusive)
        daylight_end_month: month whose first Sunday ends daylight (exclusive)
    """
    standard_offset_minutes: int = 600
    daylight_shift_minutes: int = 60
    daylight_start_month: int = 10
    daylight_end_month: int = 4

    def __post_init__(self):
        for month in (self.daylight_start_month, self.daylight_end_month):
            if not 1 <= month <= 12:
                raise ValueError(f"daylight months must be 1..12, got {month}")
        if self.daylight_start_month == self.daylight_end_month:
            raise ValueError("daylight start and end month must differ")

    @property
    def daylight_offset_minutes(self) -> int:
        return self.standard_offset_minutes + self.daylight_shift_minutes

    def is_daylight_ymd(self, year: int, month: int, day: int) -> bool:
        current = (month, day)
        start = (self.daylight_start_month, first_sunday(year, self.daylight_start_month))
        end = (self.daylight_end_month, first_sunday(year, self.daylight_end_month))

        if self.daylight_start_month > self.daylight_end_month:
            # Window wraps the year end: [start, Dec 31] ∪ [Jan 1, end)
            return current >= start or current < end
        return start <= current < end

    def offset_for_ymd(self, year: int, month: int, day: int) -> int:
        if self.is_daylight_ymd(year, month, day):
            return self.daylight_offset_minutes
        return self.standard_offset_minutes

    def is_daylight(self, civil_date: str) -> bool:
        return self.is_daylight_ymd(*parse_civil_date(civil_date))

    def offset_minutes(self, civil_date: str) -> int:
        return self.offset_for_ymd(*parse_civil_date(civil_date))

    # ── Civil → absolute ────────────────────────────────────────────────

    def to_absolute(self, civil_date: str, hour: int, minute: int) -> datetime:
        """Civil date + time of day → aware UTC datetime."""
        year, month, day = parse_civil_date(civil_date)
        _check_hour_minute(hour, minute)

        offset = self.offset_for_ymd(year, month, day)
        wall = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
        return wall - timedelta(minutes=offset)

    def to_absolute_iso(self, civil_date: str, hour: int, minute: int) -> str:
        return format_instant(self.to_absolute(civil_date, hour, minute))

    def day_bounds(self, civil_date: str) -> tuple[datetime, datetime]:
        """UTC instants of 00:00:00.000 and 23:59:59.999 civil time on civil_date."""
        start = self.to_absolute(civil_date, 0, 0)
        end = self.to_absolute(civil_date, 23, 59) + timedelta(seconds=59, milliseconds=999)
        return start, end

    # ── Absolute → civil ────────────────────────────────────────────────

    def to_local(self, instant) -> datetime:
        """
        Shift an instant into civil wall-clock time (returned as a naive datetime).

        The offset is chosen from the instant's own UTC calendar date. When the
        shifted wall clock lands on a date with the other offset, that offset is
        tried once; it is kept only if it is self-consistent. Inside the hour
        around a transition the first answer stands.
        """
        dt = parse_instant(instant)
        first = self.offset_for_ymd(dt.year, dt.month, dt.day)
        local = dt + timedelta(minutes=first)

        second = self.offset_for_ymd(local.year, local.month, local.day)
        if second != first:
            candidate = dt + timedelta(minutes=second)
            if self.offset_for_ymd(candidate.year, candidate.month, candidate.day) == second:
                local = candidate

        return local.replace(tzinfo=None)

    def to_civil_date(self, instant) -> str:
        local = self.to_local(instant)
        return format_civil_date(local.year, local.month, local.day)

    def to_civil_time(self, instant) -> str:
        local = self.to_local(instant)
        return format_civil_time(local.hour, local.minute)

    def today(self, now: datetime | None = None) -> str:
        return self.to_civil_date(now or datetime.now(timezone.utc))


@lru_cache
def get_civil_calendar() -> CivilCalendar:
    """Calendar built from settings (singleton)."""
    from ..config import settings

    return CivilCalendar(
        standard_offset_minutes=settings.civil_standard_offset_minutes,
        daylight_start_month=settings.civil_daylight_start_month,
        daylight_end_month=settings.civil_daylight_end_month,
    )


# ── Module-level shortcuts on the configured calendar ───────────────────


def to_absolute(civil_date: str, hour: int, minute: int) -> datetime:
    return get_civil_calendar().to_absolute(civil_date, hour, minute)


def to_absolute_iso(civil_date: str, hour: int, minute: int) -> str:
    return get_civil_calendar().to_absolute_iso(civil_date, hour, minute)


def to_civil_date(instant) -> str:
    return get_civil_calendar().to_civil_date(instant)


def to_civil_time(instant) -> str:
    return get_civil_calendar().to_civil_time(instant)


def today(now: datetime | None = None) -> str:
    return get_civil_calendar().today(now)


def civil_day_bounds(civil_date: str) -> tuple[datetime, datetime]:
    return get_civil_calendar().day_bounds(civil_date)


def is_daylight(civil_date: str) -> bool:
    return get_civil_calendar().is_daylight(civil_date)


def offset_minutes(civil_date: str) -> int:
    return get_civil_calendar().offset_minutes(civil_date)
