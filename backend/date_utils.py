"""
Date Utilities
Month boundary calculation and release-date filtering for playlist runs.

A run always collects new releases for the calendar month before the run time
(UTC). Spotify reports album release dates as "YYYY-MM-DD", "YYYY-MM" or
"YYYY"; only dates precise enough to confirm the month are accepted.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]


@dataclass(frozen=True)
class TargetMonth:
    """The calendar month a run collects releases for"""
    year: int
    month: int
    month_name: str
    start_date: datetime
    end_date: datetime
    year_month: str

    @property
    def label(self) -> str:
        """Human readable label, e.g. 'January 2026'"""
        return f"{self.month_name} {self.year}"


def _as_utc(now: Optional[datetime]) -> datetime:
    """Current time when None; naive datetimes are treated as UTC"""
    if now is None:
        return datetime.now(timezone.utc)
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc)


def month_bounds(year: int, month: int) -> TargetMonth:
    """
    Build the UTC boundaries for a given year/month

    Args:
        year: Four digit year
        month: Month number 1-12

    Returns:
        TargetMonth with start (first instant) and end (last millisecond)
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    start_date = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        next_start = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        next_start = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    end_date = next_start - timedelta(milliseconds=1)

    return TargetMonth(
        year=year,
        month=month,
        month_name=MONTH_NAMES[month - 1],
        start_date=start_date,
        end_date=end_date,
        year_month=f"{year}-{month:02d}"
    )


def get_previous_month_bounds(now: Optional[datetime] = None) -> TargetMonth:
    """
    Get the previous month's boundaries relative to a reference time

    Args:
        now: Reference time (defaults to the current UTC time). Naive
             datetimes are treated as UTC.

    Returns:
        TargetMonth for the month immediately preceding `now`

    Example:
        On 2026-02-01 this returns the January 2026 bounds.
    """
    now = _as_utc(now)
    if now.month == 1:
        return month_bounds(now.year - 1, 12)
    return month_bounds(now.year, now.month - 1)


def parse_year_month(value: str) -> TargetMonth:
    """
    Parse a 'YYYY-MM' key into a TargetMonth

    Raises:
        ValueError: If the value is not a valid year-month key
    """
    try:
        year_str, month_str = value.strip().split('-')
        if len(year_str) != 4 or len(month_str) != 2:
            raise ValueError
        return month_bounds(int(year_str), int(month_str))
    except (ValueError, AttributeError):
        raise ValueError(f"Invalid month '{value}', expected YYYY-MM")


def is_released_in_month(release_date: Optional[str], target_year_month: Optional[str]) -> bool:
    """
    Check if a release date falls within the target year-month

    A bare year ("2026") never matches: it cannot confirm the month.

    Examples:
        is_released_in_month("2026-01-15", "2026-01") -> True
        is_released_in_month("2026-01", "2026-01")    -> True
        is_released_in_month("2026", "2026-01")       -> False
    """
    if not release_date or not target_year_month:
        return False

    if len(release_date) < 7:
        return False

    return release_date.startswith(target_year_month)


def get_next_run_time(now: Optional[datetime] = None) -> datetime:
    """The next scheduled run: 00:00 UTC on the 1st of the following month"""
    now = _as_utc(now)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


def describe_next_run(now: Optional[datetime] = None) -> str:
    """
    Describe the next scheduled run for the status page

    Returns:
        'Today (...)', 'Tomorrow (...)' or 'In N days (February 1, 2026 at 00:00 UTC)'
    """
    now = _as_utc(now)
    next_run = get_next_run_time(now)
    days_until = math.ceil((next_run - now).total_seconds() / 86400)
    when = f"{MONTH_NAMES[next_run.month - 1]} {next_run.day}, {next_run.year} at 00:00 UTC"

    if days_until <= 0:
        return f"Today ({when})"
    if days_until == 1:
        return f"Tomorrow ({when})"
    return f"In {days_until} days ({when})"
