"""Progress tracking API endpoints."""

import logging
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query, status

from lms.auth import CurrentAuth
from lms.config.settings import get_settings
from lms.learning_history.schemas import StreakStats, TimeSeriesReport
from lms.middleware.security import progress_rate_limit, write_route_limit
from lms.shared.utils.dates import parse_date_range

from .history_service import ProgressHistoryService
from .models import ProgressType
from .schemas import (
    CompletionRequest,
    LessonCompletionResponse,
    ManualProgressResponse,
    ManualProgressUpdate,
    MaterialHistoryResponse,
    ProgressCreate,
    ProgressHistoryResponse,
    ProgressListResponse,
    ProgressResponse,
    ProgressSummary,
    ProgressUpdate,
    SessionEndRequest,
    SessionEndResponse,
    SessionResponse,
    SessionStartRequest,
    SessionUpdateRequest,
    TimeStats,
)
from .service import ProgressService
from .time_tracking import TimeTrackingService


logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/progress",
    tags=["progress"],
    dependencies=[Depends(progress_rate_limit)],
)

StartDate = Annotated[str | None, Query(alias="startDate")]
EndDate = Annotated[str | None, Query(alias="endDate")]
CourseFilter = Annotated[int | None, Query(alias="courseId", gt=0)]


def _date_range(start_date: str | None, end_date: str | None) -> tuple[datetime, datetime]:
    settings = get_settings()
    return parse_date_range(start_date, end_date, settings.tz, settings.DEFAULT_HISTORY_WINDOW_DAYS)


# === Current progress ===


@router.get("/me")
async def get_my_progress(
    auth: CurrentAuth,
    course_id: CourseFilter = None,
    lesson_id: Annotated[int | None, Query(alias="lessonId", gt=0)] = None,
    material_id: Annotated[int | None, Query(alias="materialId", gt=0)] = None,
    is_completed: Annotated[bool | None, Query(alias="isCompleted")] = None,
    progress_type: Annotated[ProgressType | None, Query(alias="progressType")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> ProgressListResponse:
    """List the current user's progress rows."""
    service = ProgressService(auth.session)
    items, meta = await service.get_all_user_progress(
        auth.user_id,
        course_id=course_id,
        lesson_id=lesson_id,
        material_id=material_id,
        is_completed=is_completed,
        progress_type=progress_type,
        page=page,
        limit=limit,
    )
    return ProgressListResponse(
        data=[ProgressResponse.model_validate(p) for p in items],
        pagination=meta,
    )


@router.get("/courses/{course_id}")
async def get_course_progress(course_id: int, auth: CurrentAuth) -> list[ProgressResponse]:
    service = ProgressService(auth.session)
    rows = await service.get_course_progress(auth.user_id, course_id)
    return [ProgressResponse.model_validate(p) for p in rows]


@router.get("/lessons/{lesson_id}")
async def get_lesson_progress(lesson_id: int, auth: CurrentAuth) -> list[ProgressResponse]:
    service = ProgressService(auth.session)
    rows = await service.get_lesson_progress(auth.user_id, lesson_id)
    return [ProgressResponse.model_validate(p) for p in rows]


@router.get("/materials/{material_id}")
async def get_material_progress(material_id: int, auth: CurrentAuth) -> ProgressResponse | None:
    """Progress on one material, or null when the user has none yet."""
    service = ProgressService(auth.session)
    progress = await service.get_material_progress(auth.user_id, material_id)
    return ProgressResponse.model_validate(progress) if progress else None


# === Manual progress and completion ===


@router.put("/materials/{material_id}/manual", dependencies=[Depends(write_route_limit)])
async def update_manual_progress(
    material_id: int,
    body: ManualProgressUpdate,
    auth: CurrentAuth,
) -> ManualProgressResponse:
    """Record a learner-reported progress rate (integer 0-100)."""
    service = ProgressService(auth.session)
    result = await service.update_manual_progress(
        auth.user_id,
        material_id,
        body.progress_rate,
        body.spent_minutes,
        body.notes,
    )
    return ManualProgressResponse(
        progress=ProgressResponse.model_validate(result.progress),
        progress_rate=result.progress_rate,
        is_completed=result.is_completed,
        just_completed=result.just_completed,
        history_recorded=result.history_recorded,
    )


@router.post("/materials/{material_id}/complete", dependencies=[Depends(write_route_limit)])
async def complete_material(
    material_id: int,
    auth: CurrentAuth,
    body: CompletionRequest | None = None,
) -> ProgressResponse:
    service = ProgressService(auth.session)
    progress = await service.mark_material_complete(
        auth.user_id, material_id, body.spent_minutes if body else None
    )
    return ProgressResponse.model_validate(progress)


@router.post("/lessons/{lesson_id}/complete", dependencies=[Depends(write_route_limit)])
async def complete_lesson(lesson_id: int, auth: CurrentAuth) -> LessonCompletionResponse:
    """Complete a lesson with all of its materials and recompute the course rate."""
    service = ProgressService(auth.session)
    lesson_progress, completed, course_progress = await service.mark_lesson_complete(auth.user_id, lesson_id)
    return LessonCompletionResponse(
        lesson_progress=ProgressResponse.model_validate(lesson_progress),
        completed_materials=completed,
        course_progress=ProgressResponse.model_validate(course_progress),
    )


# === History ===


@router.get("/materials/{material_id}/history")
async def get_material_history(material_id: int, auth: CurrentAuth) -> list[MaterialHistoryResponse]:
    """History of the current user's progress on a material, newest first."""
    service = ProgressService(auth.session)
    rows = await service.get_history_for_material(auth.user_id, material_id)
    return [MaterialHistoryResponse.model_validate(row) for row in rows]


@router.get("/history/users/{user_id}")
async def get_user_history(user_id: int, auth: CurrentAuth) -> list[ProgressHistoryResponse]:
    """Changes made by a user. Only that user or an administrator may read them."""
    auth.require_self_or_admin(user_id)
    rows = await ProgressHistoryService(auth.session).get_history_by_user_id(user_id)
    return [ProgressHistoryResponse.model_validate(row) for row in rows]


# === Sessions ===


@router.post("/sessions/start", status_code=status.HTTP_201_CREATED)
async def start_session(body: SessionStartRequest, auth: CurrentAuth) -> SessionResponse:
    service = TimeTrackingService(auth.session)
    return await service.start_session(auth.user_id, body.material_id, body.course_id, body.lesson_id)


@router.put("/sessions/{session_id}/update")
async def update_session(session_id: int, body: SessionUpdateRequest, auth: CurrentAuth) -> SessionResponse:
    service = TimeTrackingService(auth.session)
    return await service.update_session(session_id, auth.user_id, body.spent_minutes)


@router.post("/sessions/{session_id}/end")
async def end_session(
    session_id: int,
    auth: CurrentAuth,
    body: SessionEndRequest | None = None,
) -> SessionEndResponse:
    service = TimeTrackingService(auth.session)
    return await service.end_session(session_id, auth.user_id, body.spent_minutes if body else None)


# === Statistics ===


@router.get("/time-stats")
async def get_time_stats(
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    course_id: CourseFilter = None,
) -> TimeStats:
    start, end = _date_range(start_date, end_date)
    return await TimeTrackingService(auth.session).get_time_stats(auth.user_id, start, end, course_id)


@router.get("/stats/summary")
async def get_progress_summary(auth: CurrentAuth, course_id: CourseFilter = None) -> ProgressSummary:
    return await ProgressService(auth.session).get_progress_summary(auth.user_id, course_id)


@router.get("/stats/streaks")
async def get_streak_stats(auth: CurrentAuth) -> StreakStats:
    return await TimeTrackingService(auth.session).get_streak_stats(auth.user_id)


@router.get("/stats/time-series")
async def get_time_series(
    auth: CurrentAuth,
    start_date: StartDate = None,
    end_date: EndDate = None,
    interval: Literal["day", "week", "month"] = "day",
    course_id: CourseFilter = None,
) -> TimeSeriesReport:
    """Per-bucket study minutes, completions and average rate."""
    start, end = _date_range(start_date, end_date)
    return await ProgressService(auth.session).get_time_series(auth.user_id, start, end, interval, course_id)


# === Progress rows by id ===


@router.post("/", status_code=status.HTTP_201_CREATED, dependencies=[Depends(write_route_limit)])
async def create_progress(body: ProgressCreate, auth: CurrentAuth) -> ProgressResponse:
    progress = await ProgressService(auth.session).create_progress(auth.user_id, body)
    return ProgressResponse.model_validate(progress)


@router.get("/{progress_id}/history")
async def get_progress_history(progress_id: int, auth: CurrentAuth) -> list[ProgressHistoryResponse]:
    """All changes of a progress row, newest first."""
    progress = await ProgressService(auth.session).get_progress(progress_id)
    auth.require_self_or_admin(progress.user_id)
    rows = await ProgressHistoryService(auth.session).get_history_by_progress_id(progress_id)
    return [ProgressHistoryResponse.model_validate(row) for row in rows]


@router.get("/{progress_id}/history/latest")
async def get_latest_progress_history(progress_id: int, auth: CurrentAuth) -> ProgressHistoryResponse | None:
    progress = await ProgressService(auth.session).get_progress(progress_id)
    auth.require_self_or_admin(progress.user_id)
    latest = await ProgressHistoryService(auth.session).get_latest_history(progress_id)
    return ProgressHistoryResponse.model_validate(latest) if latest else None


@router.put("/{progress_id}", dependencies=[Depends(write_route_limit)])
async def update_progress(progress_id: int, body: ProgressUpdate, auth: CurrentAuth) -> ProgressResponse:
    progress = await ProgressService(auth.session).update_progress(progress_id, auth.user_id, body)
    return ProgressResponse.model_validate(progress)


@router.delete("/{progress_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_progress(progress_id: int, auth: CurrentAuth) -> None:
    """Delete a progress row and its history. Administrators only."""
    auth.require_admin()
    deleted = await ProgressService(auth.session).delete_progress(progress_id)
    logger.info(f"Admin {auth.user_id} deleted progress {progress_id} ({deleted} history rows)")
