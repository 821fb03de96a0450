from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from lms.learning_history.aggregation import (
    AccessRecord,
    DailyActivity,
    bucket_key,
    compute_streak_stats,
    daily_breakdown,
    day_of_week,
    hourly_breakdown,
    learning_patterns,
    material_breakdown,
    summarize_accesses,
    weekly_breakdown,
)


UTC_TZ = ZoneInfo("UTC")


def _at(day: int, hour: int, minute: int = 0) -> datetime:
    # October 2026: the 18th is a Sunday
    return datetime(2026, 10, day, hour, minute, tzinfo=UTC)


@pytest.fixture
def records() -> list[AccessRecord]:
    return [
        AccessRecord(accessed_at=_at(19, 9), session_duration=30, material_id=1, material_title="Intro video"),
        AccessRecord(accessed_at=_at(19, 9, 40), session_duration=10, material_id=2, material_title="Slides"),
        AccessRecord(accessed_at=_at(19, 14), session_duration=None, access_type="DOWNLOAD", material_id=1),
        AccessRecord(accessed_at=_at(20, 9), session_duration=20, material_id=1, material_title="Intro video"),
        AccessRecord(accessed_at=_at(18, 21), session_duration=5, resource_id=7, resource_title="Cheat sheet"),
    ]


def test_day_of_week_starts_on_sunday() -> None:
    assert day_of_week(date(2026, 10, 18)) == 0
    assert day_of_week(date(2026, 10, 19)) == 1
    assert day_of_week(date(2026, 10, 24)) == 6


@pytest.mark.parametrize(
    ("interval", "expected"),
    [("day", "2026-10-21"), ("week", "2026-10-18"), ("month", "2026-10")],
)
def test_bucket_key(interval: str, expected: str) -> None:
    assert bucket_key(date(2026, 10, 21), interval) == expected


def test_bucket_key_unknown_interval() -> None:
    with pytest.raises(ValueError, match="Unknown interval"):
        bucket_key(date(2026, 10, 21), "year")  # type: ignore[arg-type]


def test_summary_of_empty_log_is_zero_filled() -> None:
    summary = summarize_accesses([], UTC_TZ)
    assert summary.total_accesses == 0
    assert summary.total_session_time == 0
    assert summary.average_session_time == 0.0
    assert summary.most_active_hour == 0
    assert summary.most_active_day == "Sunday"


def test_summary(records: list[AccessRecord]) -> None:
    summary = summarize_accesses(records, UTC_TZ)

    assert summary.total_accesses == 5
    assert summary.total_session_time == 65
    assert summary.average_session_time == 13.0
    assert summary.most_active_hour == 9
    assert summary.most_active_day == "Monday"


def test_summary_buckets_in_configured_timezone() -> None:
    # 02:00 UTC Monday is 22:00 Sunday in New York
    record = AccessRecord(accessed_at=_at(19, 2), session_duration=10)
    summary = summarize_accesses([record], ZoneInfo("America/New_York"))

    assert summary.most_active_hour == 22
    assert summary.most_active_day == "Sunday"


def test_most_active_ties_go_to_earliest() -> None:
    records = [AccessRecord(accessed_at=_at(20, 15)), AccessRecord(accessed_at=_at(19, 8))]
    summary = summarize_accesses(records, UTC_TZ)

    assert summary.most_active_hour == 8
    assert summary.most_active_day == "Monday"


def test_hourly_and_weekly_breakdowns_are_sparse(records: list[AccessRecord]) -> None:
    hourly = hourly_breakdown(records, UTC_TZ)
    weekly = weekly_breakdown(records, UTC_TZ)

    assert [(h.hour, h.access_count, h.total_time) for h in hourly] == [(9, 3, 60), (14, 1, 0), (21, 1, 5)]
    assert [(w.day_of_week, w.access_count, w.total_time) for w in weekly] == [
        ("Sunday", 1, 5),
        ("Monday", 3, 40),
        ("Tuesday", 1, 20),
    ]


def test_daily_breakdown_counts_distinct_items(records: list[AccessRecord]) -> None:
    daily = daily_breakdown(records, UTC_TZ)

    assert [d.date for d in daily] == ["2026-10-18", "2026-10-19", "2026-10-20"]
    monday = daily[1]
    assert monday.study_time == 40
    assert monday.sessions_count == 3
    assert monday.materials_accessed == 2


def test_learning_patterns_busiest_first(records: list[AccessRecord]) -> None:
    patterns = learning_patterns(records, UTC_TZ)

    top = patterns[0]
    assert (top.hour_of_day, top.day_of_week, top.access_count) == (9, 1, 2)
    assert top.average_session_duration == 20.0
    assert sum(p.access_count for p in patterns) == len(records)


def test_material_breakdown_skips_resources(records: list[AccessRecord]) -> None:
    breakdown = material_breakdown(records)

    assert [m.material_id for m in breakdown] == [1, 2]
    intro = breakdown[0]
    assert intro.material_title == "Intro video"
    assert intro.access_count == 3
    assert intro.total_time == 50
    assert intro.average_time == pytest.approx(16.67)


# === Streaks ===


def _days(*entries: tuple[int, int]) -> list[DailyActivity]:
    return [DailyActivity(day=date(2026, 10, d), minutes_studied=m) for d, m in entries]


def test_streak_without_activity() -> None:
    stats = compute_streak_stats([], date(2026, 10, 19))
    assert stats.current_streak == 0
    assert stats.longest_streak == 0
    assert stats.total_study_days == 0
    assert stats.streak_history == []


def test_current_and_longest_streak() -> None:
    days = _days((1, 10), (2, 10), (3, 10), (4, 10), (10, 5), (17, 20), (18, 30), (19, 45))
    stats = compute_streak_stats(days, date(2026, 10, 19))

    assert stats.current_streak == 3
    assert stats.longest_streak == 4
    assert stats.total_study_days == 8
    assert stats.average_minutes_per_day == 17.5
    assert stats.streak_history[0].date == "2026-10-19"
    assert stats.streak_history[-1].date == "2026-10-01"


def test_current_streak_is_zero_when_today_is_idle() -> None:
    stats = compute_streak_stats(_days((17, 20), (18, 30)), date(2026, 10, 19))
    assert stats.current_streak == 0
    assert stats.longest_streak == 2


def test_completion_only_day_counts_as_active() -> None:
    days = [
        DailyActivity(day=date(2026, 10, 18), minutes_studied=15),
        DailyActivity(day=date(2026, 10, 19), materials_completed=1),
    ]
    assert compute_streak_stats(days, date(2026, 10, 19)).current_streak == 2


def test_zero_day_breaks_streak() -> None:
    days = _days((17, 10), (18, 0), (19, 10))
    stats = compute_streak_stats(days, date(2026, 10, 19))

    assert stats.current_streak == 1
    assert stats.total_study_days == 2


def test_streak_history_keeps_last_30_active_days() -> None:
    first = date(2026, 8, 1)
    days = [DailyActivity(day=first + timedelta(days=i), minutes_studied=5) for i in range(45)]
    stats = compute_streak_stats(days, days[-1].day)

    assert stats.current_streak == 45
    assert len(stats.streak_history) == 30
    assert stats.streak_history[0].date == days[-1].day.isoformat()
