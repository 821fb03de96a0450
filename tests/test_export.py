import csv
import io
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from lms.learning_history.export import Section, format_minutes, format_timestamp, render_csv, write_sections
from lms.learning_history.models import AccessType
from lms.learning_history.schemas import (
    AccessHistoryItem,
    AccessHistoryPage,
    AccessSummary,
    DailyBucket,
    LearningStatsReport,
    StreakDay,
    StreakStats,
    TimeSeriesPoint,
    TimeSeriesReport,
)
from lms.shared.schemas import PaginationMeta


UTC_TZ = ZoneInfo("UTC")
PERIOD_START = datetime(2026, 10, 1, tzinfo=UTC)
PERIOD_END = datetime(2026, 10, 19, 23, 59, tzinfo=UTC)


@pytest.mark.parametrize(
    ("minutes", "expected"),
    [(0, "0:00"), (5, "0:05"), (60, "1:00"), (125, "2:05"), (59.6, "1:00"), (None, "")],
)
def test_format_minutes(minutes: float | None, expected: str) -> None:
    assert format_minutes(minutes) == expected


def test_format_timestamp_uses_local_time() -> None:
    value = datetime(2026, 10, 19, 2, 5, tzinfo=UTC)
    assert format_timestamp(value, UTC_TZ) == "2026/10/19 02:05"
    assert format_timestamp(value, ZoneInfo("America/New_York")) == "2026/10/18 22:05"
    # Naive values read back from SQLite are UTC
    assert format_timestamp(value.replace(tzinfo=None), UTC_TZ) == "2026/10/19 02:05"


def test_write_sections_quotes_only_when_needed() -> None:
    csv_text = write_sections(
        [Section(headers=["title", "note"], rows=[["Intro, part 1", 'He said "hi"'], ["Plain", None]])]
    )

    assert csv_text == 'title,note\n"Intro, part 1","He said ""hi"""\nPlain,\n'


def test_write_sections_separates_sections_and_skips_empty_ones() -> None:
    csv_text = write_sections(
        [
            Section(headers=["metric", "value"], rows=[["Total", 3]], title="SUMMARY"),
            Section(headers=["date"], rows=[], title="EMPTY"),
            Section(headers=["date"], rows=[["2026-10-19"]], title="DAYS"),
        ]
    )

    assert csv_text.split("\n") == ["SUMMARY", "metric,value", "Total,3", "", "DAYS", "date", "2026-10-19", ""]


def test_empty_leading_section_keeps_its_headers() -> None:
    assert write_sections([Section(headers=["a", "b"])]) == "a,b\n"


def test_render_access_history() -> None:
    report = AccessHistoryPage(
        data=[
            AccessHistoryItem(
                id=1,
                user_id=1,
                material_id=3,
                material_title="Intro, part 1",
                access_type=AccessType.VIEW,
                session_duration=75,
                ip_address="10.0.0.1",
                user_agent="pytest",
                accessed_at=datetime(2026, 10, 19, 9, 30, tzinfo=UTC),
            )
        ],
        pagination=PaginationMeta(page=1, limit=20, total=1, total_pages=1, has_next=False, has_prev=False),
    )

    lines = render_csv(report, UTC_TZ).splitlines()

    assert lines[0] == "accessedAt,materialTitle,resourceTitle,accessType,sessionDuration,ipAddress,userAgent"
    assert lines[1] == '2026/10/19 09:30,"Intro, part 1",,VIEW,1:15,10.0.0.1,pytest'


def test_render_summary_of_empty_period() -> None:
    report = AccessSummary(period_start=PERIOD_START, period_end=PERIOD_END)

    lines = render_csv(report, UTC_TZ).splitlines()

    assert lines[:3] == ["LEARNING SUMMARY", "metric,value", "Total Accesses,0"]
    assert "Most Active Hour,0:00" in lines
    assert "Most Active Day,Sunday" in lines
    assert "Period Start,2026/10/01 00:00" in lines


def test_render_stats_report_sections() -> None:
    report = LearningStatsReport(
        user_id=1,
        period_start=PERIOD_START,
        period_end=PERIOD_END,
        total_study_time=95,
        total_materials_accessed=4,
        unique_materials_accessed=2,
        average_daily_study_time=5.0,
        longest_study_session=60,
        shortest_study_session=5,
        most_used_access_type=AccessType.DOWNLOAD,
        daily_breakdown=[DailyBucket(date="2026-10-19", study_time=95, materials_accessed=2, sessions_count=4)],
        hourly_breakdown=[],
        weekly_breakdown=[],
    )

    text = render_csv(report, UTC_TZ)

    assert text.startswith("LEARNING STATISTICS SUMMARY\nmetric,value\nUser ID,1\n")
    assert "Total Study Time,1:35\n" in text
    assert "Most Used Access Type,DOWNLOAD\n" in text
    assert "\n\nDAILY BREAKDOWN\ndate,studyTime,materialsAccessed,sessionsCount\n2026-10-19,1:35,2,4\n" in text
    # Empty histogram sections are left out
    assert "HOURLY BREAKDOWN" not in text
    assert "WEEKLY BREAKDOWN" not in text


def test_render_streak() -> None:
    report = StreakStats(
        current_streak=2,
        longest_streak=5,
        total_study_days=9,
        average_minutes_per_day=42.5,
        streak_history=[StreakDay(date="2026-10-19", minutes_studied=90, materials_completed=1, lessons_completed=0)],
    )

    lines = render_csv(report, UTC_TZ).splitlines()

    assert lines[:3] == ["LEARNING STREAK SUMMARY", "metric,value", "Current Streak,2"]
    assert "Average Study Time Per Day,0:42" in lines
    assert lines[-3:] == [
        "STREAK HISTORY",
        "date,minutesStudied,materialsCompleted,lessonsCompleted",
        "2026-10-19,1:30,1,0",
    ]


def test_render_time_series() -> None:
    report = TimeSeriesReport(
        interval="month",
        period_start=PERIOD_START,
        period_end=PERIOD_END,
        points=[TimeSeriesPoint(date="2026-10", spent_minutes=130, completed_materials=3, progress_rate=62.5)],
    )

    assert render_csv(report, UTC_TZ) == "date,spentMinutes,completedMaterials,progressRate\n2026-10,2:10,3,62.5\n"


def test_csv_parses_back_to_source_values() -> None:
    rows = [
        ["Intro, part 1", 'Quote "here"', 3],
        ["Line\nbreak", "", 0],
        ["Plain", "trailing space ", 12],
    ]
    text = write_sections([Section(headers=["title", "note", "count"], rows=rows)])

    parsed = list(csv.reader(io.StringIO(text)))

    assert parsed[0] == ["title", "note", "count"]
    assert parsed[1:] == [[str(v) for v in row] for row in rows]
