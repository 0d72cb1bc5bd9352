"""
Reporting Time Windows

Time filters accepted by the analytics endpoints and helpers to turn
them into ``created_at >= cutoff`` predicates and calendar-day ranges.
Per-blog reports use ``day_start`` so their counts line up with the
daily series; the admin overview uses the rolling ``cutoff``.
All timestamps are naive UTC, matching the DateTime columns.
"""

import enum
from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TimeFilter(str, enum.Enum):
    LAST_24_HOURS = "24h"
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_MONTH = "1m"
    LAST_YEAR = "1y"
    TOTAL = "total"

    @property
    def days(self) -> int | None:
        return _WINDOW_DAYS[self]

    @property
    def label(self) -> str:
        return _LABELS[self]

    def cutoff(self, now: datetime) -> datetime | None:
        """Lower bound for created_at, or None for the lifetime window."""
        if self.days is None:
            return None
        return now - timedelta(days=self.days)

    def day_start(self, now: datetime) -> datetime | None:
        """Midnight opening the first calendar day of the window, or None for the lifetime window."""
        if self.days is None:
            return None
        return datetime.combine(now.date() - timedelta(days=self.days - 1), time.min)

    def previous_window(self, now: datetime) -> tuple[datetime, datetime] | None:
        """The window of equal length immediately before this one."""
        if self.days is None:
            return None
        end = now - timedelta(days=self.days)
        return end - timedelta(days=self.days), end


_WINDOW_DAYS: dict[TimeFilter, int | None] = {
    TimeFilter.LAST_24_HOURS: 1,
    TimeFilter.LAST_7_DAYS: 7,
    TimeFilter.LAST_30_DAYS: 30,
    TimeFilter.LAST_MONTH: 30,
    TimeFilter.LAST_YEAR: 365,
    TimeFilter.TOTAL: None,
}

_LABELS: dict[TimeFilter, str] = {
    TimeFilter.LAST_24_HOURS: "last 24 hours",
    TimeFilter.LAST_7_DAYS: "last 7 days",
    TimeFilter.LAST_30_DAYS: "last 30 days",
    TimeFilter.LAST_MONTH: "last 30 days",
    TimeFilter.LAST_YEAR: "last year",
    TimeFilter.TOTAL: "all time",
}


def parse_time_filter(value: str | TimeFilter | None) -> TimeFilter:
    """Parse a caller-supplied filter; anything unrecognised means the lifetime window."""
    if isinstance(value, TimeFilter):
        return value
    try:
        return TimeFilter((value or "").strip())
    except ValueError:
        return TimeFilter.TOTAL


def day_range(start: date, end: date) -> list[date]:
    """Every calendar day from start to end, inclusive."""
    if start > end:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def trailing_days(count: int, today: date) -> list[date]:
    """The last ``count`` calendar days ending with ``today``."""
    return day_range(today - timedelta(days=count - 1), today)


class TrendRange(str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"
    ALL = "all"

    @classmethod
    def parse(cls, value: str | None) -> "TrendRange":
        try:
            return cls((value or "").strip())
        except ValueError:
            return cls.WEEK

    @property
    def label(self) -> str:
        return {
            TrendRange.DAY: "last 24 hours",
            TrendRange.WEEK: "last 7 days",
            TrendRange.MONTH: "last 30 days",
            TrendRange.YEAR: "last 12 months",
            TrendRange.ALL: "last 12 months",
        }[self]


def trend_buckets(trend_range: TrendRange, now: datetime) -> tuple[datetime, list[str]]:
    """
    Bucket keys for an admin trend series.

    Returns the window start and the ordered bucket keys, oldest first:
    hourly ``YYYY-MM-DDTHH`` keys for a day, ``YYYY-MM-DD`` keys for a
    week or month, and ``YYYY-MM`` keys for a year.
    """
    if trend_range is TrendRange.DAY:
        current_hour = now.replace(minute=0, second=0, microsecond=0)
        hours = [current_hour - timedelta(hours=offset) for offset in range(23, -1, -1)]
        return hours[0], [hour_key(h) for h in hours]

    if trend_range in (TrendRange.WEEK, TrendRange.MONTH):
        count = 7 if trend_range is TrendRange.WEEK else 30
        days = trailing_days(count, now.date())
        return datetime.combine(days[0], datetime.min.time()), [d.isoformat() for d in days]

    months: list[tuple[int, int]] = []
    year, month = now.year, now.month
    for _ in range(12):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    months.reverse()
    start = datetime(months[0][0], months[0][1], 1)
    return start, [f"{y:04d}-{m:02d}" for y, m in months]


def hour_key(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H")


def bucket_key(trend_range: TrendRange, moment: datetime) -> str:
    if trend_range is TrendRange.DAY:
        return hour_key(moment)
    if trend_range in (TrendRange.WEEK, TrendRange.MONTH):
        return moment.date().isoformat()
    return moment.strftime("%Y-%m")
