"""Datetime utilities with consistent UTC timezone handling.

All analytics run on timezone-aware datetimes. Naive values coming from task
snapshots are assumed to be UTC, and calendar-day boundaries (focus
adherence, period windows) are computed in UTC.
"""

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional


def now_utc() -> datetime:
    """Return current datetime in UTC timezone.

    Returns:
        Current datetime with timezone=UTC
    """
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt


def start_of_day(dt: datetime) -> datetime:
    """Midnight (UTC) of the day containing ``dt``."""
    dt = ensure_aware(dt).astimezone(timezone.utc)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime) -> datetime:
    """Last representable instant (UTC) of the day containing ``dt``."""
    return start_of_day(dt) + timedelta(days=1) - timedelta(microseconds=1)


def same_utc_day(a: datetime, b: datetime) -> bool:
    """True when both instants fall on the same UTC calendar day."""
    return start_of_day(a) == start_of_day(b)


def add_business_days(dt: datetime, days: int) -> datetime:
    """Add ``days`` working days (Mon-Fri) to ``dt``, keeping the time of day.

    Starting on a weekend, the first business day counted is the next Monday.
    """
    result = dt
    step = 1 if days >= 0 else -1
    remaining = abs(days)
    while remaining > 0:
        result += timedelta(days=step)
        if result.weekday() < 5:
            remaining -= 1
    return result


def business_days_between(later: datetime, earlier: datetime) -> int:
    """Number of full business days from ``earlier`` to ``later``."""
    if later < earlier:
        return -business_days_between(earlier, later)

    count = 0
    cursor = start_of_day(earlier)
    target = start_of_day(later)
    while cursor < target:
        cursor += timedelta(days=1)
        if cursor.weekday() < 5:
            count += 1
    return count


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO string (or pass through a datetime) into an aware datetime.

    Returns None for empty or unparseable values instead of raising.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info.

    Args:
        dt: Datetime to convert, or None

    Returns:
        ISO format string with timezone, or None if input was None
    """
    if dt is None:
        return None

    return ensure_aware(dt).isoformat()


def round_half_up(value: float, digits: int = 0) -> float:
    """Round with halves going up (2.5 -> 3), unlike the builtin ``round``."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor
