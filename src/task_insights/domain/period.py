"""Reporting periods and the windows used to derive them."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.datetime import end_of_day, ensure_aware, now_utc, start_of_day, to_iso_string


class AnalyticsTimeframe(Enum):
    """Time frames for analytics analysis"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PeriodMode(Enum):
    """Named week windows used by the productivity views."""
    CURRENT_WEEK = "current_week"
    LAST_WEEK = "last_week"


@dataclass(frozen=True)
class Period:
    """Inclusive ``[start, end]`` window."""
    start: datetime
    end: datetime

    def __post_init__(self):
        object.__setattr__(self, "start", ensure_aware(self.start))
        object.__setattr__(self, "end", ensure_aware(self.end))
        if self.start > self.end:
            raise ValueError(f"Period start {self.start} is after end {self.end}")

    def contains(self, moment: Optional[datetime]) -> bool:
        """True for a non-null moment inside the window (bounds included)."""
        return moment is not None and self.start <= moment <= self.end

    @property
    def duration_days(self) -> int:
        """Calendar days spanned, counting both ends."""
        return (start_of_day(self.end) - start_of_day(self.start)).days + 1

    def previous(self) -> "Period":
        """The contiguous period of equal day-length immediately before this one.

        It ends one microsecond before ``start`` rather than a whole day
        earlier, so no instant falls between the two windows.
        """
        days = self.duration_days
        return Period(
            start=self.start - timedelta(days=days),
            end=self.start - timedelta(microseconds=1),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"start": to_iso_string(self.start), "end": to_iso_string(self.end)}

    @classmethod
    def for_timeframe(cls, timeframe: AnalyticsTimeframe,
                      end_date: Optional[datetime] = None,
                      week_starts_on: int = 0) -> "Period":
        """Window from the start of the timeframe containing ``end_date`` to ``end_date``."""
        end_date = ensure_aware(end_date) if end_date else now_utc()
        day = start_of_day(end_date)

        if timeframe == AnalyticsTimeframe.DAILY:
            start = day
        elif timeframe == AnalyticsTimeframe.WEEKLY:
            days_back = (day.weekday() - week_starts_on) % 7
            start = day - timedelta(days=days_back)
        elif timeframe == AnalyticsTimeframe.MONTHLY:
            start = day.replace(day=1)
        elif timeframe == AnalyticsTimeframe.QUARTERLY:
            quarter_start_month = ((day.month - 1) // 3) * 3 + 1
            start = day.replace(month=quarter_start_month, day=1)
        else:
            start = day.replace(month=1, day=1)

        return cls(start=start, end=end_date)

    @classmethod
    def week_of(cls, moment: datetime, week_starts_on: int = 0) -> "Period":
        """Full week (start of first day to end of seventh) containing ``moment``."""
        day = start_of_day(moment)
        start = day - timedelta(days=(day.weekday() - week_starts_on) % 7)
        return cls(start=start, end=end_of_day(start + timedelta(days=6)))

    @classmethod
    def from_mode(cls, mode: PeriodMode, now: Optional[datetime] = None,
                  week_starts_on: int = 0) -> "Period":
        now = ensure_aware(now) if now else now_utc()
        if mode == PeriodMode.LAST_WEEK:
            now = now - timedelta(weeks=1)
        return cls.week_of(now, week_starts_on)
