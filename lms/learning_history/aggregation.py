"""Aggregations over access logs and daily activity.

These are plain functions over in-memory values so they can be reused by the
report service, the time-tracking service and the CSV export, and tested
without a database. Timestamps are bucketed in the timezone passed in; all
breakdowns are sparse (buckets with no activity are omitted).
"""

from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Literal
from zoneinfo import ZoneInfo

from lms.shared.utils.dates import to_local

from .schemas import (
    AccessSummary,
    DailyBucket,
    HourlyBucket,
    LearningPattern,
    MaterialBreakdown,
    StreakDay,
    StreakStats,
    WeeklyBucket,
)


DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
STREAK_HISTORY_DAYS = 30

Interval = Literal["day", "week", "month"]


@dataclass(frozen=True)
class AccessRecord:
    """One access-log entry, detached from the ORM."""

    accessed_at: datetime
    session_duration: int | None = None
    access_type: str = "VIEW"
    material_id: int | None = None
    material_title: str | None = None
    resource_id: int | None = None
    resource_title: str | None = None

    @property
    def minutes(self) -> int:
        return self.session_duration or 0


@dataclass(frozen=True)
class DailyActivity:
    """Study activity on one local calendar day."""

    day: date
    minutes_studied: int = 0
    materials_completed: int = 0
    lessons_completed: int = 0

    @property
    def is_active(self) -> bool:
        return self.minutes_studied > 0 or self.materials_completed > 0 or self.lessons_completed > 0


def day_of_week(value: datetime | date) -> int:
    """Weekday index with Sunday = 0."""
    return (value.weekday() + 1) % 7


def bucket_key(day: date, interval: Interval) -> str:
    """Bucket label for time series: ISO day, Sunday of the week, or ``YYYY-MM``."""
    if interval == "day":
        return day.isoformat()
    if interval == "week":
        return (day - timedelta(days=day_of_week(day))).isoformat()
    if interval == "month":
        return f"{day.year:04d}-{day.month:02d}"
    msg = f"Unknown interval: {interval}"
    raise ValueError(msg)


def _most_common(counts: Counter) -> int | None:
    # Ties go to the smallest key so results are deterministic
    if not counts:
        return None
    return max(counts, key=lambda k: (counts[k], -k))


def summarize_accesses(records: Sequence[AccessRecord], tz: ZoneInfo) -> AccessSummary:
    """Totals, average session length and most active hour/day."""
    if not records:
        return AccessSummary()

    total_time = sum(r.minutes for r in records)
    local_times = [to_local(r.accessed_at, tz) for r in records]
    top_hour = _most_common(Counter(t.hour for t in local_times))
    top_day = _most_common(Counter(day_of_week(t) for t in local_times))

    return AccessSummary(
        total_accesses=len(records),
        total_session_time=total_time,
        average_session_time=round(total_time / len(records), 2),
        most_active_hour=top_hour or 0,
        most_active_day=DAY_NAMES[top_day or 0],
    )


def hourly_breakdown(records: Iterable[AccessRecord], tz: ZoneInfo) -> list[HourlyBucket]:
    counts: Counter = Counter()
    minutes: Counter = Counter()
    for record in records:
        hour = to_local(record.accessed_at, tz).hour
        counts[hour] += 1
        minutes[hour] += record.minutes
    return [HourlyBucket(hour=h, access_count=counts[h], total_time=minutes[h]) for h in sorted(counts)]


def weekly_breakdown(records: Iterable[AccessRecord], tz: ZoneInfo) -> list[WeeklyBucket]:
    counts: Counter = Counter()
    minutes: Counter = Counter()
    for record in records:
        dow = day_of_week(to_local(record.accessed_at, tz))
        counts[dow] += 1
        minutes[dow] += record.minutes
    return [
        WeeklyBucket(day_of_week=DAY_NAMES[d], access_count=counts[d], total_time=minutes[d]) for d in sorted(counts)
    ]


def daily_breakdown(records: Iterable[AccessRecord], tz: ZoneInfo) -> list[DailyBucket]:
    """Per-local-day study time, distinct items touched and access count."""
    minutes: Counter = Counter()
    sessions: Counter = Counter()
    targets: dict[date, set[tuple[str, int | None]]] = defaultdict(set)
    for record in records:
        day = to_local(record.accessed_at, tz).date()
        minutes[day] += record.minutes
        sessions[day] += 1
        if record.material_id is not None:
            targets[day].add(("material", record.material_id))
        elif record.resource_id is not None:
            targets[day].add(("resource", record.resource_id))
    return [
        DailyBucket(
            date=day.isoformat(),
            study_time=minutes[day],
            materials_accessed=len(targets[day]),
            sessions_count=sessions[day],
        )
        for day in sorted(sessions)
    ]


def learning_patterns(records: Iterable[AccessRecord], tz: ZoneInfo) -> list[LearningPattern]:
    """Hour x weekday cells, busiest first."""
    counts: Counter = Counter()
    minutes: Counter = Counter()
    for record in records:
        local = to_local(record.accessed_at, tz)
        cell = (local.hour, day_of_week(local))
        counts[cell] += 1
        minutes[cell] += record.minutes

    cells = sorted(counts, key=lambda c: (-counts[c], c[1], c[0]))
    return [
        LearningPattern(
            hour_of_day=hour,
            day_of_week=dow,
            access_count=counts[(hour, dow)],
            average_session_duration=round(minutes[(hour, dow)] / counts[(hour, dow)], 2),
        )
        for hour, dow in cells
    ]


def material_breakdown(records: Iterable[AccessRecord]) -> list[MaterialBreakdown]:
    """Per-material access count and time, most accessed first. Resources are skipped."""
    counts: Counter = Counter()
    minutes: Counter = Counter()
    titles: dict[int, str] = {}
    for record in records:
        if record.material_id is None:
            continue
        counts[record.material_id] += 1
        minutes[record.material_id] += record.minutes
        titles.setdefault(record.material_id, record.material_title or "Unknown")

    ordered = sorted(counts, key=lambda m: (-counts[m], m))
    return [
        MaterialBreakdown(
            material_id=material_id,
            material_title=titles[material_id],
            access_count=counts[material_id],
            total_time=minutes[material_id],
            average_time=round(minutes[material_id] / counts[material_id], 2),
        )
        for material_id in ordered
    ]


def merge_daily_activity(days: Iterable[DailyActivity]) -> dict[date, DailyActivity]:
    """Collapse duplicate days by summing their counters."""
    merged: dict[date, DailyActivity] = {}
    for activity in days:
        previous = merged.get(activity.day)
        if previous is None:
            merged[activity.day] = activity
            continue
        merged[activity.day] = DailyActivity(
            day=activity.day,
            minutes_studied=previous.minutes_studied + activity.minutes_studied,
            materials_completed=previous.materials_completed + activity.materials_completed,
            lessons_completed=previous.lessons_completed + activity.lessons_completed,
        )
    return merged


def compute_streak_stats(days: Iterable[DailyActivity], today: date) -> StreakStats:
    """Current and longest run of consecutive study days.

    A day counts when it has study minutes or completions. The current streak
    runs backwards from ``today``; it is 0 when today has no activity.
    """
    merged = merge_daily_activity(days)
    active = sorted(day for day, activity in merged.items() if activity.is_active)
    if not active:
        return StreakStats()

    active_set = set(active)
    current = 0
    cursor = today
    while cursor in active_set:
        current += 1
        cursor -= timedelta(days=1)

    longest = run = 1
    for previous, day in zip(active, active[1:], strict=False):
        run = run + 1 if day - previous == timedelta(days=1) else 1
        longest = max(longest, run)

    total_minutes = sum(merged[day].minutes_studied for day in active)
    history = [
        StreakDay(
            date=day.isoformat(),
            minutes_studied=merged[day].minutes_studied,
            materials_completed=merged[day].materials_completed,
            lessons_completed=merged[day].lessons_completed,
        )
        for day in reversed(active[-STREAK_HISTORY_DAYS:])
    ]

    return StreakStats(
        current_streak=current,
        longest_streak=longest,
        total_study_days=len(active),
        average_minutes_per_day=round(total_minutes / len(active), 2),
        streak_history=history,
    )
