"""Learning sessions and study-time statistics.

A session is an access-log row of type VIEW whose ``session_duration`` stays
NULL until the session ends.
"""

import logging
from datetime import UTC, date, datetime, timedelta
from math import ceil

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.config.settings import Settings, get_settings
from lms.courses.models import Course, LearningMaterial, Lesson
from lms.exceptions import PersistenceError, ResourceNotFoundError
from lms.learning_history.aggregation import compute_streak_stats
from lms.learning_history.models import AccessType, UserMaterialAccess
from lms.learning_history.schemas import StreakStats
from lms.shared.utils.dates import ensure_aware, local_today

from .models import ProgressType, UserProgress
from .schemas import SessionEndResponse, SessionResponse, TimeStats
from .streaks import load_daily_activity, record_daily_activity


logger = logging.getLogger(__name__)

OPEN_SESSION_LOOKBACK = timedelta(hours=24)


def _elapsed_minutes(started: datetime, ended: datetime) -> int:
    return int((ended - ensure_aware(started)).total_seconds() // 60)


class TimeTrackingService:
    """Start, update and end learning sessions; report study time."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()

    async def _get_session(self, session_id: int, user_id: int) -> UserMaterialAccess:
        result = await self.session.execute(
            select(UserMaterialAccess)
            .options(selectinload(UserMaterialAccess.material).selectinload(LearningMaterial.lesson))
            .where(UserMaterialAccess.id == session_id, UserMaterialAccess.user_id == user_id)
        )
        access = result.scalar_one_or_none()
        if access is None:
            raise ResourceNotFoundError("Session", session_id)
        return access

    async def _close_open_sessions(self, user_id: int, now: datetime) -> int:
        """Close the user's sessions opened in the last 24 hours (minimum 1 minute)."""
        result = await self.session.execute(
            select(UserMaterialAccess).where(
                UserMaterialAccess.user_id == user_id,
                UserMaterialAccess.session_duration.is_(None),
                UserMaterialAccess.accessed_at >= now - OPEN_SESSION_LOOKBACK,
            )
        )
        open_sessions = result.scalars().all()
        for access in open_sessions:
            access.session_duration = max(1, _elapsed_minutes(access.accessed_at, now))
        return len(open_sessions)

    async def start_session(
        self,
        user_id: int,
        material_id: int | None = None,
        course_id: int | None = None,
        lesson_id: int | None = None,
    ) -> SessionResponse:
        """Open a session, closing any the user left open.

        Course and lesson default to the material's own when omitted.
        """
        if material_id is not None:
            material = await self.session.get(
                LearningMaterial, material_id, options=[selectinload(LearningMaterial.lesson)]
            )
            if material is None:
                raise ResourceNotFoundError("Learning material", material_id)
            lesson_id = lesson_id or material.lesson_id
            course_id = course_id or material.lesson.course_id
        if course_id is not None and await self.session.get(Course, course_id) is None:
            raise ResourceNotFoundError("Course", course_id)
        if lesson_id is not None and await self.session.get(Lesson, lesson_id) is None:
            raise ResourceNotFoundError("Lesson", lesson_id)

        now = datetime.now(UTC)
        try:
            closed = await self._close_open_sessions(user_id, now)
            access = UserMaterialAccess(
                user_id=user_id,
                material_id=material_id,
                course_id=course_id,
                lesson_id=lesson_id,
                access_type=AccessType.VIEW.value,
                session_duration=None,
                accessed_at=now,
            )
            self.session.add(access)
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to start session for user {user_id}")
            await self.session.rollback()
            msg = "Failed to start learning session"
            raise PersistenceError(msg) from e

        logger.info(f"Started session {access.id} for user {user_id}", extra={"closed_sessions": closed})
        return SessionResponse(
            id=access.id,
            user_id=user_id,
            material_id=material_id,
            course_id=course_id,
            lesson_id=lesson_id,
            start_time=now,
            is_active=True,
        )

    async def update_session(self, session_id: int, user_id: int, spent_minutes: int) -> SessionResponse:
        """Record the minutes spent so far; the session stays active."""
        access = await self._get_session(session_id, user_id)
        access.session_duration = spent_minutes
        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            msg = "Failed to update learning session"
            raise PersistenceError(msg) from e

        return SessionResponse(
            id=access.id,
            user_id=user_id,
            material_id=access.material_id,
            course_id=access.course_id,
            lesson_id=access.lesson_id,
            start_time=ensure_aware(access.accessed_at),
            duration=spent_minutes,
            is_active=True,
        )

    async def end_session(
        self, session_id: int, user_id: int, spent_minutes: int | None = None
    ) -> SessionEndResponse:
        """Finalise a session and credit its minutes.

        The duration is ``spent_minutes`` when given, else the recorded
        duration, else the elapsed time. Minutes go to the material's progress
        row (created as AUTO at 0% when missing) and to today's activity.
        """
        access = await self._get_session(session_id, user_id)
        now = datetime.now(UTC)
        if spent_minutes is not None:
            total = spent_minutes
        elif access.session_duration:
            total = access.session_duration
        else:
            total = max(0, _elapsed_minutes(access.accessed_at, now))

        lesson = access.material.lesson if access.material else None
        progress_updated = False
        try:
            access.session_duration = total
            if lesson is not None:
                result = await self.session.execute(
                    select(UserProgress).where(
                        UserProgress.user_id == user_id,
                        UserProgress.course_id == lesson.course_id,
                        UserProgress.lesson_id == lesson.id,
                        UserProgress.material_id == access.material_id,
                    )
                )
                progress = result.scalars().first()
                if progress is None:
                    progress = UserProgress(
                        user_id=user_id,
                        course_id=lesson.course_id,
                        lesson_id=lesson.id,
                        material_id=access.material_id,
                        progress_type=ProgressType.AUTO.value,
                        progress_rate=0,
                        spent_minutes=total,
                        is_completed=False,
                        last_accessed=now,
                    )
                    self.session.add(progress)
                else:
                    progress.spent_minutes += total
                    progress.last_accessed = now
                progress_updated = True

            await record_daily_activity(self.session, user_id, local_today(self.settings.tz), minutes=total)
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to end session {session_id}")
            await self.session.rollback()
            msg = "Failed to end learning session"
            raise PersistenceError(msg) from e

        logger.info(f"Ended session {session_id} for user {user_id}: {total} min")
        return SessionEndResponse(
            session=SessionResponse(
                id=access.id,
                user_id=user_id,
                material_id=access.material_id,
                course_id=access.course_id,
                lesson_id=access.lesson_id,
                start_time=ensure_aware(access.accessed_at),
                end_time=now,
                duration=total,
                is_active=False,
            ),
            progress_updated=progress_updated,
        )

    async def get_time_stats(
        self, user_id: int, start: datetime, end: datetime, course_id: int | None = None
    ) -> TimeStats:
        """Totals over closed sessions; weekly/monthly totals are the 7/30 days before ``end``."""
        week_start = end - timedelta(days=7)
        month_start = end - timedelta(days=30)
        query = select(UserMaterialAccess).where(
            UserMaterialAccess.user_id == user_id,
            UserMaterialAccess.session_duration.is_not(None),
            UserMaterialAccess.accessed_at >= min(start, month_start),
            UserMaterialAccess.accessed_at <= end,
        )
        if course_id is not None:
            query = (
                query.join(LearningMaterial, UserMaterialAccess.material_id == LearningMaterial.id)
                .join(Lesson, LearningMaterial.lesson_id == Lesson.id)
                .where(Lesson.course_id == course_id)
            )
        sessions = (await self.session.execute(query)).scalars().all()

        def minutes_since(bound: datetime) -> list[int]:
            return [s.session_duration for s in sessions if ensure_aware(s.accessed_at) >= bound]

        in_period = minutes_since(start)
        total = sum(in_period)
        days = max(1, ceil((end - start).total_seconds() / 86400))
        streak = await self.get_streak_stats(user_id)

        return TimeStats(
            total_minutes=total,
            daily_average=round(total / days, 2),
            weekly_total=sum(minutes_since(week_start)),
            monthly_total=sum(minutes_since(month_start)),
            longest_session=max(in_period, default=0),
            sessions_count=sum(1 for m in in_period if m > 0),
            current_streak=streak.current_streak,
            best_streak=streak.longest_streak,
            period_start=start,
            period_end=end,
        )

    async def get_streak_stats(self, user_id: int, today: date | None = None) -> StreakStats:
        activity = await load_daily_activity(self.session, user_id)
        return compute_streak_stats(activity, today or local_today(self.settings.tz))
