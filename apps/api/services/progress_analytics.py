"""
Progress Analytics Service

Turns a user's video progress records into the learning dashboard:
totals, completion rate, per-day activity and watch streaks.

Daily activity is grouped by the calendar date of ``last_watched`` in the
caller's display timezone. Buckets are listed in the order their dates are
first seen while scanning records from most to least recently watched, and
only the first 7 are reported. That is "the 7 most recent active dates",
which skips inactive days rather than showing a continuous week.

Streaks are computed separately over every active date, so a gap always
breaks a run even when the reported buckets hide it.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional

DAILY_BUCKET_LIMIT = 7

WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass
class DailyBucket:
    """Activity on one display-calendar date."""
    date: date
    day: str                # Weekday label, e.g. "Mon"
    videos: int = 0         # Records last touched on this date
    minutes: int = 0        # Sum of per-record rounded watched minutes
    watched_seconds: int = 0

    @property
    def is_active(self) -> bool:
        return self.videos > 0 and self.watched_seconds > 0


@dataclass
class StreakState:
    current_streak: int = 0
    longest_streak: int = 0


@dataclass
class ProgressAnalytics:
    total_videos: int = 0
    completed_videos: int = 0
    total_watch_time: int = 0       # seconds
    total_duration: int = 0         # seconds
    completion_rate: float = 0.0    # percent
    daily_progress: List[DailyBucket] = field(default_factory=list)
    current_streak: int = 0
    longest_streak: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_videos": self.total_videos,
            "completed_videos": self.completed_videos,
            "total_watch_time": self.total_watch_time,
            "total_duration": self.total_duration,
            "completion_rate": self.completion_rate,
            "daily_progress": [
                {
                    "date": b.date.isoformat(),
                    "day": b.day,
                    "videos": b.videos,
                    "minutes": b.minutes,
                }
                for b in self.daily_progress
            ],
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
        }


def display_timezone(offset_minutes: Optional[int]) -> tzinfo:
    """Fixed-offset timezone for a UTC offset in minutes (east positive)."""
    if not offset_minutes:
        return timezone.utc
    return timezone(timedelta(minutes=offset_minutes))


def watched_minutes(seconds: Any) -> int:
    """Seconds to whole minutes, rounding halves up (90s -> 2, 89s -> 1)."""
    value = float(seconds or 0)
    if not math.isfinite(value) or value <= 0:
        return 0
    return int(math.floor(value / 60 + 0.5))


def _as_utc(moment: datetime) -> datetime:
    # Stored timestamps are UTC; SQLite drops the offset
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _local_date(moment: datetime, tz: tzinfo) -> date:
    return _as_utc(moment).astimezone(tz).date()


def build_daily_buckets(records: Iterable[Any], tz: tzinfo = timezone.utc) -> List[DailyBucket]:
    """
    Group records into per-date buckets, in first-seen order of a
    most-recent-first scan. Not truncated.
    """
    ordered = sorted(
        (r for r in records if r.last_watched is not None),
        key=lambda r: _as_utc(r.last_watched),
        reverse=True,
    )

    buckets: Dict[date, DailyBucket] = {}
    for record in ordered:
        day = _local_date(record.last_watched, tz)
        bucket = buckets.get(day)
        if bucket is None:
            bucket = DailyBucket(date=day, day=WEEKDAY_LABELS[day.weekday()])
            buckets[day] = bucket
        watched = int(record.watched_seconds or 0)
        bucket.videos += 1
        bucket.minutes += watched_minutes(watched)
        bucket.watched_seconds += watched

    # dicts keep insertion order, which is the scan order
    return list(buckets.values())


def compute_streaks(buckets: Iterable[DailyBucket], today: date) -> StreakState:
    """
    Current and longest runs of consecutive active days.

    A run only continues from one active day to the next calendar day; any
    missing or inactive day resets it. The current streak is the run ending on
    the last active day, counted only if that day is today or yesterday.
    """
    active_days = sorted({b.date for b in buckets if b.is_active})
    if not active_days:
        return StreakState()

    longest = 0
    run = 0
    previous: Optional[date] = None
    for day in active_days:
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day

    last_active = active_days[-1]
    current = run if (today - last_active).days in (0, 1) else 0
    return StreakState(current_streak=current, longest_streak=longest)


def summarize_progress(
    records: Iterable[Any],
    now: Optional[datetime] = None,
    tz: tzinfo = timezone.utc,
) -> ProgressAnalytics:
    """
    Aggregate progress records into dashboard analytics.

    Args:
        records: progress records (watched_seconds, total_seconds, completed,
            last_watched), in any order
        now: computation moment, defaults to the current UTC time
        tz: display timezone for calendar dates
    """
    records = list(records)
    if not records:
        return ProgressAnalytics()

    now = now or datetime.now(timezone.utc)
    today = _local_date(now, tz)

    total_videos = len(records)
    completed_videos = sum(1 for r in records if r.completed)
    buckets = build_daily_buckets(records, tz)
    streaks = compute_streaks(buckets, today)

    return ProgressAnalytics(
        total_videos=total_videos,
        completed_videos=completed_videos,
        total_watch_time=sum(int(r.watched_seconds or 0) for r in records),
        total_duration=sum(int(r.total_seconds or 0) for r in records),
        completion_rate=(completed_videos / total_videos) * 100,
        daily_progress=buckets[:DAILY_BUCKET_LIMIT],
        current_streak=streaks.current_streak,
        longest_streak=streaks.longest_streak,
    )
