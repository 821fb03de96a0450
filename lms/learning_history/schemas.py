"""Schemas for learning-history reports.

Every report carries a ``kind`` tag so consumers (CSV export, charts) can
dispatch on the report type; ``LearningReport`` is the tagged union.
"""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import Field, model_validator

from lms.shared.schemas import CamelModel, PaginationMeta

from .models import AccessType


class HourlyBucket(CamelModel):
    hour: int = Field(..., ge=0, le=23)
    access_count: int
    total_time: int


class WeeklyBucket(CamelModel):
    day_of_week: str
    access_count: int
    total_time: int


class DailyBucket(CamelModel):
    date: str
    study_time: int
    materials_accessed: int
    sessions_count: int


class LearningPattern(CamelModel):
    hour_of_day: int
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday")
    access_count: int
    average_session_duration: float


class MaterialBreakdown(CamelModel):
    material_id: int
    material_title: str
    access_count: int
    total_time: int
    average_time: float


class StreakDay(CamelModel):
    date: str
    minutes_studied: int
    materials_completed: int
    lessons_completed: int


class TimeSeriesPoint(CamelModel):
    date: str
    spent_minutes: int
    completed_materials: int
    progress_rate: float


class AccessHistoryItem(CamelModel):
    """Access log entry with the titles of what was accessed."""

    id: int
    user_id: int
    material_id: int | None = None
    resource_id: int | None = None
    material_title: str | None = None
    resource_title: str | None = None
    access_type: AccessType
    session_duration: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    accessed_at: datetime


class AccessHistoryPage(CamelModel):
    kind: Literal["access_history"] = "access_history"
    data: list[AccessHistoryItem]
    pagination: PaginationMeta


class AccessSummary(CamelModel):
    """Totals over an access log. Zero-filled for an empty period."""

    kind: Literal["summary"] = "summary"
    total_accesses: int = 0
    total_session_time: int = 0
    average_session_time: float = 0.0
    most_active_hour: int = 0
    most_active_day: str = "Sunday"
    period_start: datetime | None = None
    period_end: datetime | None = None


class PatternsReport(CamelModel):
    kind: Literal["patterns"] = "patterns"
    most_active_hour: int
    most_active_day: str
    hourly_breakdown: list[HourlyBucket]
    weekly_breakdown: list[WeeklyBucket]
    learning_patterns: list[LearningPattern]
    material_breakdown: list[MaterialBreakdown]


class DetailedLearningHistory(CamelModel):
    kind: Literal["detailed"] = "detailed"
    total_accesses: int
    total_session_time: int
    average_session_time: float
    most_active_hour: int
    most_active_day: str
    recent_accesses: list[AccessHistoryItem]
    learning_patterns: list[LearningPattern]
    material_breakdown: list[MaterialBreakdown]


class LearningStatsReport(CamelModel):
    kind: Literal["stats"] = "stats"
    user_id: int
    period_start: datetime
    period_end: datetime
    total_study_time: int
    total_materials_accessed: int
    unique_materials_accessed: int
    average_daily_study_time: float
    longest_study_session: int
    shortest_study_session: int
    most_used_access_type: AccessType
    daily_breakdown: list[DailyBucket]
    hourly_breakdown: list[HourlyBucket]
    weekly_breakdown: list[WeeklyBucket]


class StreakStats(CamelModel):
    kind: Literal["streak"] = "streak"
    current_streak: int = 0
    longest_streak: int = 0
    total_study_days: int = 0
    average_minutes_per_day: float = 0.0
    streak_history: list[StreakDay] = Field(default_factory=list)


class TimeSeriesReport(CamelModel):
    kind: Literal["time_series"] = "time_series"
    interval: Literal["day", "week", "month"]
    period_start: datetime
    period_end: datetime
    points: list[TimeSeriesPoint]


LearningReport = Annotated[
    AccessHistoryPage
    | AccessSummary
    | PatternsReport
    | DetailedLearningHistory
    | LearningStatsReport
    | StreakStats
    | TimeSeriesReport,
    Field(discriminator="kind"),
]


class RecordAccessRequest(CamelModel):
    """Body of POST /record-access. Exactly one target id is required."""

    material_id: int | None = Field(None, gt=0)
    resource_id: int | None = Field(None, gt=0)
    access_type: AccessType
    session_duration: int | None = Field(None, ge=0, description="Minutes")

    @model_validator(mode="after")
    def check_single_target(self) -> "RecordAccessRequest":
        """Require exactly one of material_id / resource_id."""
        if self.material_id is None and self.resource_id is None:
            msg = "Either materialId or resourceId must be provided"
            raise ValueError(msg)
        if self.material_id is not None and self.resource_id is not None:
            msg = "Cannot specify both materialId and resourceId"
            raise ValueError(msg)
        return self


class AccessRecordResponse(CamelModel):
    id: int
    user_id: int
    material_id: int | None = None
    resource_id: int | None = None
    access_type: AccessType
    session_duration: int | None = None
    accessed_at: datetime
