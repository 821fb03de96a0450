"""Schemas for progress API."""

from datetime import datetime

from pydantic import Field, ValidationInfo, field_validator

from lms.shared.schemas import CamelModel, PaginationMeta

from .models import ProgressType


NOTES_MAX_LENGTH = 2000


class ProgressResponse(CamelModel):
    """Current-progress snapshot."""

    id: int
    user_id: int
    course_id: int
    lesson_id: int | None = None
    material_id: int | None = None
    progress_type: ProgressType
    progress_rate: float
    manual_progress_rate: float | None = None
    spent_minutes: int
    is_completed: bool
    completion_date: datetime | None = None
    notes: str | None = None
    last_accessed: datetime
    created_at: datetime
    updated_at: datetime


class ProgressListResponse(CamelModel):
    data: list[ProgressResponse]
    pagination: PaginationMeta


class ProgressCreate(CamelModel):
    """Schema for creating a progress row."""

    course_id: int = Field(..., gt=0)
    lesson_id: int | None = Field(None, gt=0)
    material_id: int | None = Field(None, gt=0)
    progress_rate: float = Field(0, ge=0, le=100)
    spent_minutes: int = Field(0, ge=0)
    notes: str | None = Field(None, max_length=NOTES_MAX_LENGTH)

    @field_validator("material_id")
    @classmethod
    def material_requires_lesson(cls, v: int | None, info: ValidationInfo) -> int | None:
        """A material-level row must name its lesson."""
        if v is not None and info.data.get("lesson_id") is None:
            msg = "lessonId is required when materialId is given"
            raise ValueError(msg)
        return v


class ProgressUpdate(CamelModel):
    """Partial update; omitted fields stay as they are."""

    progress_rate: float | None = Field(None, ge=0, le=100)
    spent_minutes: int | None = Field(None, ge=0)
    is_completed: bool | None = None
    notes: str | None = Field(None, max_length=NOTES_MAX_LENGTH)


class ManualProgressUpdate(CamelModel):
    """Body of the manual progress endpoint.

    ``progressRate`` is strict: ``50.5``, ``"50"`` and ``true`` are all rejected.
    """

    progress_rate: int = Field(..., ge=0, le=100, strict=True)
    spent_minutes: int | None = Field(None, ge=0, strict=True)
    notes: str | None = Field(None, max_length=NOTES_MAX_LENGTH)


class ManualProgressResponse(CamelModel):
    progress: ProgressResponse
    progress_rate: int
    is_completed: bool
    just_completed: bool
    history_recorded: bool


class CompletionRequest(CamelModel):
    spent_minutes: int | None = Field(None, ge=0)


class LessonCompletionResponse(CamelModel):
    lesson_progress: ProgressResponse
    completed_materials: int
    course_progress: ProgressResponse | None = None


class ProgressHistoryResponse(CamelModel):
    """One immutable history row."""

    id: int
    progress_id: int
    progress_rate: float
    spent_minutes: int
    changed_by: int
    notes: str | None = None
    created_at: datetime


class HistoryProgressRef(CamelModel):
    id: int
    user_id: int
    material_id: int | None = None


class MaterialHistoryResponse(ProgressHistoryResponse):
    progress: HistoryProgressRef


class ProgressSummary(CamelModel):
    """Totals across a user's progress rows."""

    total_courses: int = 0
    enrolled_courses: int = 0
    completed_courses: int = 0
    total_lessons: int = 0
    completed_lessons: int = 0
    total_materials: int = 0
    completed_materials: int = 0
    total_spent_minutes: int = 0
    average_progress: float = 0.0
    current_streak: int = 0


class SessionStartRequest(CamelModel):
    material_id: int | None = Field(None, gt=0)
    course_id: int | None = Field(None, gt=0)
    lesson_id: int | None = Field(None, gt=0)


class SessionUpdateRequest(CamelModel):
    spent_minutes: int = Field(..., ge=0)


class SessionEndRequest(CamelModel):
    spent_minutes: int | None = Field(None, ge=0)


class SessionResponse(CamelModel):
    """A learning session, backed by an access-log row."""

    id: int
    user_id: int
    material_id: int | None = None
    course_id: int | None = None
    lesson_id: int | None = None
    start_time: datetime
    end_time: datetime | None = None
    duration: int = 0
    is_active: bool


class SessionEndResponse(CamelModel):
    session: SessionResponse
    progress_updated: bool


class TimeStats(CamelModel):
    """Study time from closed sessions in a period."""

    total_minutes: int = 0
    daily_average: float = 0.0
    weekly_total: int = 0
    monthly_total: int = 0
    longest_session: int = 0
    sessions_count: int = 0
    current_streak: int = 0
    best_streak: int = 0
    period_start: datetime
    period_end: datetime
