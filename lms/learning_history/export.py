"""CSV rendering of learning reports.

Layout: an optional title row per section, a header row, data rows, and one
blank line between sections. Quoting is minimal (only fields containing a
comma, quote or newline are quoted; embedded quotes are doubled) and lines
end with ``\\n``. Minutes render as ``H:MM``; timestamps as
``YYYY/MM/DD HH:MM`` in the configured timezone.
"""

import csv
import io
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from lms.shared.utils.dates import to_local

from .aggregation import DAY_NAMES
from .schemas import (
    AccessHistoryItem,
    AccessHistoryPage,
    AccessSummary,
    DetailedLearningHistory,
    LearningReport,
    LearningStatsReport,
    MaterialBreakdown,
    PatternsReport,
    StreakStats,
    TimeSeriesReport,
)


@dataclass
class Section:
    headers: list[str]
    rows: list[list[object]] = field(default_factory=list)
    title: str | None = None


def format_minutes(minutes: float | None) -> str:
    """``125`` -> ``"2:05"``; fractional minutes are rounded first."""
    if minutes is None:
        return ""
    total = round(minutes)
    return f"{total // 60}:{total % 60:02d}"


def format_timestamp(value: datetime | None, tz: ZoneInfo) -> str:
    if value is None:
        return ""
    return to_local(value, tz).strftime("%Y/%m/%d %H:%M")


def format_hour(hour: int) -> str:
    return f"{hour}:00"


def _cell(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, Enum):
        return value.value
    return value


def write_sections(sections: Sequence[Section]) -> str:
    """Serialize sections with the stdlib csv writer."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    written = 0
    for section in sections:
        # Only the leading section is kept when empty
        if written and not section.rows:
            continue
        if written:
            writer.writerow([])
        if section.title:
            writer.writerow([section.title])
        writer.writerow(section.headers)
        writer.writerows([[_cell(v) for v in row] for row in section.rows])
        written += 1
    return buffer.getvalue()


def _access_rows(items: Sequence[AccessHistoryItem], tz: ZoneInfo, *, full: bool) -> list[list[object]]:
    rows = []
    for item in items:
        row = [
            format_timestamp(item.accessed_at, tz),
            item.material_title or "",
            item.resource_title or "",
            item.access_type,
            format_minutes(item.session_duration) if item.session_duration else "",
        ]
        if full:
            row += [item.ip_address or "", item.user_agent or ""]
        rows.append(row)
    return rows


def _material_section(breakdown: Sequence[MaterialBreakdown], *, with_average: bool) -> Section:
    headers = ["materialTitle", "accessCount", "totalTime"]
    if with_average:
        headers.append("averageTime")
    rows = []
    for m in breakdown:
        row = [m.material_title, m.access_count, format_minutes(m.total_time)]
        if with_average:
            row.append(format_minutes(m.average_time))
        rows.append(row)
    return Section(headers=headers, rows=rows, title="MATERIAL BREAKDOWN")


def _render_access_history(report: AccessHistoryPage, tz: ZoneInfo) -> list[Section]:
    headers = ["accessedAt", "materialTitle", "resourceTitle", "accessType", "sessionDuration", "ipAddress", "userAgent"]
    return [Section(headers=headers, rows=_access_rows(report.data, tz, full=True))]


def _render_summary(report: AccessSummary, tz: ZoneInfo) -> list[Section]:
    rows: list[list[object]] = [
        ["Total Accesses", report.total_accesses],
        ["Total Session Time", format_minutes(report.total_session_time)],
        ["Average Session Time", format_minutes(report.average_session_time)],
        ["Most Active Hour", format_hour(report.most_active_hour)],
        ["Most Active Day", report.most_active_day],
    ]
    if report.period_start is not None:
        rows.append(["Period Start", format_timestamp(report.period_start, tz)])
    if report.period_end is not None:
        rows.append(["Period End", format_timestamp(report.period_end, tz)])
    return [Section(headers=["metric", "value"], rows=rows, title="LEARNING SUMMARY")]


def _render_detailed(report: DetailedLearningHistory, tz: ZoneInfo) -> list[Section]:
    summary = Section(
        headers=["metric", "value"],
        rows=[
            ["Total Accesses", report.total_accesses],
            ["Total Session Time", format_minutes(report.total_session_time)],
            ["Average Session Time", format_minutes(report.average_session_time)],
            ["Most Active Hour", format_hour(report.most_active_hour)],
            ["Most Active Day", report.most_active_day],
        ],
        title="DETAILED LEARNING HISTORY SUMMARY",
    )
    patterns = Section(
        headers=["hourOfDay", "dayOfWeek", "accessCount", "averageSessionDuration"],
        rows=[
            [
                format_hour(p.hour_of_day),
                DAY_NAMES[p.day_of_week],
                p.access_count,
                format_minutes(p.average_session_duration),
            ]
            for p in report.learning_patterns
        ],
        title="LEARNING PATTERNS",
    )
    recent = Section(
        headers=["accessedAt", "materialTitle", "resourceTitle", "accessType", "sessionDuration"],
        rows=_access_rows(report.recent_accesses, tz, full=False),
        title="RECENT ACCESSES",
    )
    return [summary, patterns, _material_section(report.material_breakdown, with_average=False), recent]


def _render_stats(report: LearningStatsReport, tz: ZoneInfo) -> list[Section]:
    summary = Section(
        headers=["metric", "value"],
        rows=[
            ["User ID", report.user_id],
            ["Period Start", format_timestamp(report.period_start, tz)],
            ["Period End", format_timestamp(report.period_end, tz)],
            ["Total Study Time", format_minutes(report.total_study_time)],
            ["Total Materials Accessed", report.total_materials_accessed],
            ["Unique Materials Accessed", report.unique_materials_accessed],
            ["Average Daily Study Time", format_minutes(report.average_daily_study_time)],
            ["Longest Study Session", format_minutes(report.longest_study_session)],
            ["Shortest Study Session", format_minutes(report.shortest_study_session)],
            ["Most Used Access Type", report.most_used_access_type],
        ],
        title="LEARNING STATISTICS SUMMARY",
    )
    daily = Section(
        headers=["date", "studyTime", "materialsAccessed", "sessionsCount"],
        rows=[
            [d.date, format_minutes(d.study_time), d.materials_accessed, d.sessions_count]
            for d in report.daily_breakdown
        ],
        title="DAILY BREAKDOWN",
    )
    return [summary, daily, *_histogram_sections(report)]


def _histogram_sections(report: LearningStatsReport | PatternsReport) -> list[Section]:
    hourly = Section(
        headers=["hour", "accessCount", "totalTime"],
        rows=[[format_hour(h.hour), h.access_count, format_minutes(h.total_time)] for h in report.hourly_breakdown],
        title="HOURLY BREAKDOWN",
    )
    weekly = Section(
        headers=["dayOfWeek", "accessCount", "totalTime"],
        rows=[[w.day_of_week, w.access_count, format_minutes(w.total_time)] for w in report.weekly_breakdown],
        title="WEEKLY BREAKDOWN",
    )
    return [hourly, weekly]


def _render_patterns(report: PatternsReport, _tz: ZoneInfo) -> list[Section]:
    summary = Section(
        headers=["metric", "value"],
        rows=[
            ["Most Active Hour", format_hour(report.most_active_hour)],
            ["Most Active Day", report.most_active_day],
        ],
        title="LEARNING PATTERNS SUMMARY",
    )
    return [
        summary,
        *_histogram_sections(report),
        _material_section(report.material_breakdown, with_average=True),
    ]


def _render_streak(report: StreakStats, _tz: ZoneInfo) -> list[Section]:
    summary = Section(
        headers=["metric", "value"],
        rows=[
            ["Current Streak", report.current_streak],
            ["Longest Streak", report.longest_streak],
            ["Total Study Days", report.total_study_days],
            ["Average Study Time Per Day", format_minutes(report.average_minutes_per_day)],
        ],
        title="LEARNING STREAK SUMMARY",
    )
    history = Section(
        headers=["date", "minutesStudied", "materialsCompleted", "lessonsCompleted"],
        rows=[
            [d.date, format_minutes(d.minutes_studied), d.materials_completed, d.lessons_completed]
            for d in report.streak_history
        ],
        title="STREAK HISTORY",
    )
    return [summary, history]


def _render_time_series(report: TimeSeriesReport, _tz: ZoneInfo) -> list[Section]:
    return [
        Section(
            headers=["date", "spentMinutes", "completedMaterials", "progressRate"],
            rows=[
                [p.date, format_minutes(p.spent_minutes), p.completed_materials, p.progress_rate]
                for p in report.points
            ],
        )
    ]


RENDERERS: dict[str, Callable[..., list[Section]]] = {
    "access_history": _render_access_history,
    "summary": _render_summary,
    "detailed": _render_detailed,
    "stats": _render_stats,
    "patterns": _render_patterns,
    "streak": _render_streak,
    "time_series": _render_time_series,
}


def render_csv(report: LearningReport, tz: ZoneInfo) -> str:
    """Render any tagged report as CSV text."""
    renderer = RENDERERS.get(report.kind)
    if renderer is None:
        msg = f"No CSV layout for report kind {report.kind!r}"
        raise ValueError(msg)
    return write_sections(renderer(report, tz))
