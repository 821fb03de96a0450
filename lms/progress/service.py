"""Business logic for progress tracking."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Literal

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from lms.config.settings import Settings, get_settings
from lms.courses.models import Course, LearningMaterial, Lesson
from lms.database.pagination import Paginator
from lms.exceptions import ConflictError, PersistenceError, ResourceNotFoundError, ValidationError
from lms.learning_history.aggregation import bucket_key, compute_streak_stats
from lms.learning_history.schemas import TimeSeriesPoint, TimeSeriesReport
from lms.shared.utils.dates import local_date, local_today

from .history_service import ProgressHistoryService
from .models import ProgressHistory, ProgressType, UserProgress
from .schemas import ProgressCreate, ProgressSummary, ProgressUpdate
from .streaks import POINTS_PER_MATERIAL, load_daily_activity, record_daily_activity


logger = logging.getLogger(__name__)

DEFAULT_LESSON_MINUTES = 60


@dataclass
class ManualProgressResult:
    """Outcome of a manual progress submission.

    ``just_completed`` is the completion signal: the rate reached 100 on a
    row that was not completed before.
    """

    progress: UserProgress
    progress_rate: int
    is_completed: bool
    just_completed: bool
    history_recorded: bool


def validate_manual_rate(progress_rate: object) -> int:
    """Return the rate as an int, or raise ValidationError.

    Booleans, fractional values and anything outside [0, 100] are rejected.
    """
    msg = "Progress rate must be an integer between 0 and 100"
    if isinstance(progress_rate, bool) or not isinstance(progress_rate, int | float):
        raise ValidationError(msg)
    if isinstance(progress_rate, float):
        if not progress_rate.is_integer():
            raise ValidationError(msg)
        progress_rate = int(progress_rate)
    if not 0 <= progress_rate <= 100:
        raise ValidationError(msg)
    return progress_rate


def _validate_minutes(spent_minutes: object) -> None:
    if spent_minutes is None:
        return
    if isinstance(spent_minutes, bool) or not isinstance(spent_minutes, int) or spent_minutes < 0:
        msg = "Spent minutes must be a non-negative integer"
        raise ValidationError(msg)


def _target_filter(
    user_id: int, course_id: int, lesson_id: int | None, material_id: int | None
) -> list[ColumnElement[bool]]:
    return [
        UserProgress.user_id == user_id,
        UserProgress.course_id == course_id,
        UserProgress.lesson_id.is_(None) if lesson_id is None else UserProgress.lesson_id == lesson_id,
        UserProgress.material_id.is_(None) if material_id is None else UserProgress.material_id == material_id,
    ]


class ProgressService:
    """Service for course, lesson and material progress.

    Every change of a progress rate goes through here and appends a history
    row in the same transaction as the change itself.
    """

    def __init__(
        self,
        session: AsyncSession,
        history_service: ProgressHistoryService | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize progress service."""
        self.session = session
        self.history = history_service or ProgressHistoryService(session)
        self.settings = settings or get_settings()

    # === Lookups ===

    async def _get_course(self, course_id: int) -> Course:
        course = await self.session.get(Course, course_id)
        if course is None:
            raise ResourceNotFoundError("Course", course_id)
        return course

    async def _get_lesson(self, lesson_id: int) -> Lesson:
        lesson = await self.session.get(Lesson, lesson_id)
        if lesson is None:
            raise ResourceNotFoundError("Lesson", lesson_id)
        return lesson

    async def _get_material(self, material_id: int) -> LearningMaterial:
        result = await self.session.execute(
            select(LearningMaterial)
            .options(selectinload(LearningMaterial.lesson))
            .where(LearningMaterial.id == material_id)
        )
        material = result.scalar_one_or_none()
        if material is None:
            raise ResourceNotFoundError("Learning material", material_id)
        return material

    async def _find_progress(
        self, user_id: int, course_id: int, lesson_id: int | None = None, material_id: int | None = None
    ) -> UserProgress | None:
        result = await self.session.execute(
            select(UserProgress).where(*_target_filter(user_id, course_id, lesson_id, material_id))
        )
        return result.scalars().first()

    async def _get_or_create_progress(
        self, user_id: int, course_id: int, lesson_id: int | None = None, material_id: int | None = None
    ) -> UserProgress:
        progress = await self._find_progress(user_id, course_id, lesson_id, material_id)
        if progress is None:
            progress = UserProgress(
                user_id=user_id,
                course_id=course_id,
                lesson_id=lesson_id,
                material_id=material_id,
                progress_type=ProgressType.AUTO.value,
                progress_rate=0,
                spent_minutes=0,
                is_completed=False,
            )
            self.session.add(progress)
            await self.session.flush()
        return progress

    def _today(self) -> date:
        return local_today(self.settings.tz)

    # === Manual progress ===

    async def update_manual_progress(
        self,
        user_id: int,
        material_id: int,
        progress_rate: object,
        spent_minutes: int | None = None,
        notes: str | None = None,
        *,
        changed_by: int | None = None,
    ) -> ManualProgressResult:
        """Record a learner-reported progress rate for a material.

        The row update, the history append and the daily-activity update commit
        together or not at all. ``spent_minutes`` replaces the stored total.
        """
        rate = validate_manual_rate(progress_rate)
        _validate_minutes(spent_minutes)

        material = await self._get_material(material_id)
        if not material.allow_manual_progress:
            msg = "Manual progress is not allowed for this material"
            raise ValidationError(msg)

        actor = changed_by if changed_by is not None else user_id

        try:
            progress = await self._get_or_create_progress(
                user_id, material.lesson.course_id, material.lesson_id, material.id
            )
            was_completed = progress.is_completed
            previous_minutes = progress.spent_minutes or 0
            new_minutes = spent_minutes if spent_minutes is not None else previous_minutes

            record_history = True
            if not self.settings.RECORD_UNCHANGED_MANUAL_PROGRESS:
                latest = await self.history.get_latest_history(progress.id)
                record_history = not _same_as_history(latest, rate, new_minutes, notes)

            now = datetime.now(UTC)
            progress.progress_type = ProgressType.MANUAL.value
            progress.progress_rate = rate
            progress.manual_progress_rate = rate
            progress.spent_minutes = new_minutes
            progress.is_completed = rate == 100
            if notes is not None:
                progress.notes = notes
            progress.last_accessed = now

            just_completed = progress.is_completed and not was_completed
            if just_completed:
                progress.completion_date = now
            elif not progress.is_completed:
                progress.completion_date = None
            await self.session.flush()

            if record_history:
                await self.history.create_history(progress.id, rate, new_minutes, actor, notes, commit=False)

            await record_daily_activity(
                self.session,
                user_id,
                self._today(),
                minutes=max(0, new_minutes - previous_minutes),
                materials_completed=1 if just_completed else 0,
                points=POINTS_PER_MATERIAL if just_completed else 0,
            )
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to update manual progress for material {material_id}")
            await self.session.rollback()
            msg = "Failed to update manual progress"
            raise PersistenceError(msg) from e

        logger.info(
            f"Manual progress for user {user_id}, material {material_id}: {rate}%",
            extra={
                "user_id": user_id,
                "material_id": material_id,
                "progress_rate": rate,
                "just_completed": just_completed,
                "history_recorded": record_history,
            },
        )
        return ManualProgressResult(
            progress=progress,
            progress_rate=rate,
            is_completed=progress.is_completed,
            just_completed=just_completed,
            history_recorded=record_history,
        )

    # === Queries ===

    async def get_all_user_progress(
        self,
        user_id: int,
        *,
        course_id: int | None = None,
        lesson_id: int | None = None,
        material_id: int | None = None,
        is_completed: bool | None = None,
        progress_type: ProgressType | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[UserProgress], dict[str, int | bool]]:
        """Page through a user's progress rows, most recently accessed first."""
        query = select(UserProgress).where(UserProgress.user_id == user_id)
        if course_id is not None:
            query = query.where(UserProgress.course_id == course_id)
        if lesson_id is not None:
            query = query.where(UserProgress.lesson_id == lesson_id)
        if material_id is not None:
            query = query.where(UserProgress.material_id == material_id)
        if is_completed is not None:
            query = query.where(UserProgress.is_completed == is_completed)
        if progress_type is not None:
            query = query.where(UserProgress.progress_type == ProgressType(progress_type).value)
        query = query.order_by(UserProgress.last_accessed.desc(), UserProgress.id.desc())

        paginator = Paginator(page=page, limit=limit)
        items, total = await paginator.paginate(self.session, query)
        return items, paginator.meta(total)

    async def get_course_progress(self, user_id: int, course_id: int) -> list[UserProgress]:
        """Course, lesson and material rows of one course."""
        await self._get_course(course_id)
        result = await self.session.execute(
            select(UserProgress)
            .where(UserProgress.user_id == user_id, UserProgress.course_id == course_id)
            .order_by(UserProgress.lesson_id.is_not(None), UserProgress.lesson_id, UserProgress.material_id)
        )
        return list(result.scalars().all())

    async def get_lesson_progress(self, user_id: int, lesson_id: int) -> list[UserProgress]:
        """Lesson-level row first, then its materials."""
        await self._get_lesson(lesson_id)
        result = await self.session.execute(
            select(UserProgress)
            .where(UserProgress.user_id == user_id, UserProgress.lesson_id == lesson_id)
            .order_by(UserProgress.material_id.is_not(None), UserProgress.material_id)
        )
        return list(result.scalars().all())

    async def get_material_progress(self, user_id: int, material_id: int) -> UserProgress | None:
        await self._get_material(material_id)
        result = await self.session.execute(
            select(UserProgress).where(UserProgress.user_id == user_id, UserProgress.material_id == material_id)
        )
        return result.scalars().first()

    async def get_progress(self, progress_id: int) -> UserProgress:
        progress = await self.session.get(UserProgress, progress_id)
        if progress is None:
            raise ResourceNotFoundError("Progress", progress_id)
        return progress

    # === Mutations ===

    async def create_progress(self, user_id: int, data: ProgressCreate, *, changed_by: int | None = None) -> UserProgress:
        """Create a progress row for a course, lesson or material.

        Raises
        ------
        ConflictError
            If the user already has a row for the same target.
        ValidationError
            If the lesson or material does not belong to the course.
        """
        await self._get_course(data.course_id)
        if data.lesson_id is not None:
            lesson = await self._get_lesson(data.lesson_id)
            if lesson.course_id != data.course_id:
                msg = f"Lesson {data.lesson_id} does not belong to course {data.course_id}"
                raise ValidationError(msg)
        if data.material_id is not None:
            material = await self._get_material(data.material_id)
            if material.lesson_id != data.lesson_id:
                msg = f"Material {data.material_id} does not belong to lesson {data.lesson_id}"
                raise ValidationError(msg)

        if await self._find_progress(user_id, data.course_id, data.lesson_id, data.material_id):
            msg = "Progress already exists for this user and target"
            raise ConflictError(msg)

        now = datetime.now(UTC)
        completed = data.progress_rate == 100
        progress = UserProgress(
            user_id=user_id,
            course_id=data.course_id,
            lesson_id=data.lesson_id,
            material_id=data.material_id,
            progress_type=ProgressType.AUTO.value,
            progress_rate=data.progress_rate,
            spent_minutes=data.spent_minutes,
            is_completed=completed,
            completion_date=now if completed else None,
            notes=data.notes,
            last_accessed=now,
        )
        try:
            self.session.add(progress)
            await self.session.flush()
            await self.history.create_history(
                progress.id,
                data.progress_rate,
                data.spent_minutes,
                changed_by if changed_by is not None else user_id,
                data.notes,
                commit=False,
            )
            await record_daily_activity(
                self.session,
                user_id,
                self._today(),
                minutes=data.spent_minutes,
                materials_completed=1 if completed and data.material_id else 0,
                points=POINTS_PER_MATERIAL if completed and data.material_id else 0,
            )
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            msg = "Progress already exists for this user and target"
            raise ConflictError(msg) from e
        except PersistenceError:
            await self.session.rollback()
            raise

        logger.info(f"Created progress {progress.id} for user {user_id}", extra={"course_id": data.course_id})
        return progress

    async def update_progress(
        self, progress_id: int, user_id: int, data: ProgressUpdate, *, changed_by: int | None = None
    ) -> UserProgress:
        """Apply a partial update to one of the user's rows.

        Completion always follows the rate: ``is_completed=True`` alone raises
        the rate to 100, and a body that contradicts its own rate is rejected.
        Leaving 100 clears ``completion_date``. A history row is appended when
        the rate or the minutes change.
        """
        result = await self.session.execute(
            select(UserProgress).where(UserProgress.id == progress_id, UserProgress.user_id == user_id)
        )
        progress = result.scalar_one_or_none()
        if progress is None:
            raise ResourceNotFoundError("Progress", progress_id)

        was_completed = progress.is_completed
        previous_rate = progress.progress_rate
        previous_minutes = progress.spent_minutes
        now = datetime.now(UTC)

        new_rate = data.progress_rate if data.progress_rate is not None else progress.progress_rate
        if data.is_completed and new_rate != 100:
            if data.progress_rate is not None:
                msg = "isCompleted=true requires a progress rate of 100"
                raise ValidationError(msg)
            new_rate = 100
        if data.is_completed is False and new_rate == 100:
            msg = "A progress rate of 100 cannot be marked incomplete; lower the rate instead"
            raise ValidationError(msg)

        progress.progress_rate = new_rate
        progress.is_completed = new_rate == 100
        if data.spent_minutes is not None:
            progress.spent_minutes = data.spent_minutes
        if data.notes is not None:
            progress.notes = data.notes
        if progress.is_completed and not was_completed:
            progress.completion_date = now
        elif not progress.is_completed:
            progress.completion_date = None
        progress.last_accessed = now

        try:
            await self.session.flush()
            if progress.progress_rate != previous_rate or progress.spent_minutes != previous_minutes:
                await self.history.create_history(
                    progress.id,
                    progress.progress_rate,
                    progress.spent_minutes,
                    changed_by if changed_by is not None else user_id,
                    data.notes,
                    commit=False,
                )
            just_completed = progress.is_completed and not was_completed and progress.material_id is not None
            await record_daily_activity(
                self.session,
                user_id,
                self._today(),
                minutes=max(0, progress.spent_minutes - previous_minutes),
                materials_completed=1 if just_completed else 0,
                points=POINTS_PER_MATERIAL if just_completed else 0,
            )
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to update progress {progress_id}")
            await self.session.rollback()
            msg = "Failed to update progress"
            raise PersistenceError(msg) from e

        logger.info(f"Updated progress {progress_id} for user {user_id}: {progress.progress_rate}%")
        return progress

    async def delete_progress(self, progress_id: int) -> int:
        """Delete a progress row and its history; returns the number of history rows removed."""
        progress = await self.get_progress(progress_id)
        try:
            deleted = await self.history.delete_history_by_progress_id(progress_id, commit=False)
            await self.session.delete(progress)
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to delete progress {progress_id}")
            await self.session.rollback()
            msg = "Failed to delete progress"
            raise PersistenceError(msg) from e

        logger.info(f"Deleted progress {progress_id} with {deleted} history rows")
        return deleted

    async def _complete(self, progress: UserProgress, actor: int, now: datetime) -> bool:
        """Set a row to 100% and append history. Returns False when it was already complete."""
        if progress.is_completed:
            return False
        progress.progress_rate = 100
        progress.is_completed = True
        progress.completion_date = now
        progress.last_accessed = now
        await self.session.flush()
        await self.history.create_history(progress.id, 100, progress.spent_minutes, actor, commit=False)
        return True

    async def mark_material_complete(
        self, user_id: int, material_id: int, spent_minutes: int | None = None
    ) -> UserProgress:
        """Complete a material. ``spent_minutes`` is added to the stored total.

        Completing an already completed material changes nothing.
        """
        _validate_minutes(spent_minutes)
        material = await self._get_material(material_id)
        now = datetime.now(UTC)

        try:
            progress = await self._get_or_create_progress(
                user_id, material.lesson.course_id, material.lesson_id, material.id
            )
            if spent_minutes:
                progress.spent_minutes += spent_minutes
            newly_completed = await self._complete(progress, user_id, now)
            await record_daily_activity(
                self.session,
                user_id,
                self._today(),
                minutes=spent_minutes or 0,
                materials_completed=1 if newly_completed else 0,
                points=POINTS_PER_MATERIAL if newly_completed else 0,
            )
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to complete material {material_id}")
            await self.session.rollback()
            msg = "Failed to complete material"
            raise PersistenceError(msg) from e

        if newly_completed:
            logger.info(f"User {user_id} completed material {material_id}")
        return progress

    async def mark_lesson_complete(self, user_id: int, lesson_id: int) -> tuple[UserProgress, int, UserProgress]:
        """Complete a lesson and every material in it, then recompute the course.

        Returns the lesson row, the number of materials newly completed and the
        course row.
        """
        lesson = await self._get_lesson(lesson_id)
        materials = (
            await self.session.execute(select(LearningMaterial).where(LearningMaterial.lesson_id == lesson_id))
        ).scalars().all()
        now = datetime.now(UTC)

        try:
            lesson_progress = await self._get_or_create_progress(user_id, lesson.course_id, lesson_id)
            lesson_newly_completed = await self._complete(lesson_progress, user_id, now)

            completed_materials = 0
            for material in materials:
                material_progress = await self._get_or_create_progress(
                    user_id, lesson.course_id, lesson_id, material.id
                )
                if await self._complete(material_progress, user_id, now):
                    completed_materials += 1

            course_progress = await self._recompute_course_progress(user_id, lesson.course_id, user_id, now)
            await record_daily_activity(
                self.session,
                user_id,
                self._today(),
                materials_completed=completed_materials,
                lessons_completed=1 if lesson_newly_completed else 0,
                points=POINTS_PER_MATERIAL * completed_materials,
            )
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as e:
            logger.exception(f"Failed to complete lesson {lesson_id}")
            await self.session.rollback()
            msg = "Failed to complete lesson"
            raise PersistenceError(msg) from e

        logger.info(
            f"User {user_id} completed lesson {lesson_id}",
            extra={"materials_completed": completed_materials, "course_rate": course_progress.progress_rate},
        )
        return lesson_progress, completed_materials, course_progress

    async def _recompute_course_progress(
        self, user_id: int, course_id: int, actor: int, now: datetime
    ) -> UserProgress:
        # Published lessons weighted by estimated minutes
        lessons = (
            await self.session.execute(
                select(Lesson).where(Lesson.course_id == course_id, Lesson.is_published.is_(True))
            )
        ).scalars().all()
        completed_ids = set(
            (
                await self.session.execute(
                    select(UserProgress.lesson_id).where(
                        UserProgress.user_id == user_id,
                        UserProgress.course_id == course_id,
                        UserProgress.lesson_id.is_not(None),
                        UserProgress.material_id.is_(None),
                        UserProgress.is_completed.is_(True),
                    )
                )
            ).scalars()
        )

        total = sum(lesson.estimated_minutes or DEFAULT_LESSON_MINUTES for lesson in lessons)
        done = sum(
            lesson.estimated_minutes or DEFAULT_LESSON_MINUTES for lesson in lessons if lesson.id in completed_ids
        )
        rate = round(done / total * 100) if total else 0

        course_progress = await self._get_or_create_progress(user_id, course_id)
        if course_progress.progress_rate != rate:
            course_progress.progress_rate = rate
            course_progress.is_completed = rate == 100
            course_progress.completion_date = now if rate == 100 else None
            course_progress.last_accessed = now
            await self.session.flush()
            await self.history.create_history(
                course_progress.id, rate, course_progress.spent_minutes, actor, commit=False
            )
        return course_progress

    async def update_course_progress(self, user_id: int, course_id: int) -> UserProgress:
        """Recompute the course-level rate from completed lessons and commit."""
        await self._get_course(course_id)
        try:
            course_progress = await self._recompute_course_progress(user_id, course_id, user_id, datetime.now(UTC))
            await self.session.commit()
        except PersistenceError:
            await self.session.rollback()
            raise
        return course_progress

    # === Statistics ===

    async def get_progress_summary(self, user_id: int, course_id: int | None = None) -> ProgressSummary:
        """Totals over the user's rows, optionally within one course."""
        filters = [UserProgress.user_id == user_id]
        if course_id is not None:
            filters.append(UserProgress.course_id == course_id)

        rows = (await self.session.execute(select(UserProgress).where(*filters))).scalars().all()

        course_rows = [r for r in rows if r.lesson_id is None and r.material_id is None]
        lesson_rows = [r for r in rows if r.lesson_id is not None and r.material_id is None]
        material_rows = [r for r in rows if r.material_id is not None]

        total_courses_query = select(func.count(Course.id)).where(Course.is_published.is_(True))
        total_lessons_query = select(func.count(Lesson.id)).where(Lesson.is_published.is_(True))
        total_materials_query = (
            select(func.count(LearningMaterial.id))
            .join(Lesson, LearningMaterial.lesson_id == Lesson.id)
            .where(LearningMaterial.is_published.is_(True))
        )
        if course_id is not None:
            total_courses_query = total_courses_query.where(Course.id == course_id)
            total_lessons_query = total_lessons_query.where(Lesson.course_id == course_id)
            total_materials_query = total_materials_query.where(Lesson.course_id == course_id)

        streak = compute_streak_stats(await load_daily_activity(self.session, user_id), self._today())

        return ProgressSummary(
            total_courses=await self.session.scalar(total_courses_query) or 0,
            enrolled_courses=len({r.course_id for r in rows}),
            completed_courses=sum(1 for r in course_rows if r.is_completed),
            total_lessons=await self.session.scalar(total_lessons_query) or 0,
            completed_lessons=sum(1 for r in lesson_rows if r.is_completed),
            total_materials=await self.session.scalar(total_materials_query) or 0,
            completed_materials=sum(1 for r in material_rows if r.is_completed),
            total_spent_minutes=sum(r.spent_minutes for r in material_rows),
            average_progress=round(sum(r.progress_rate for r in rows) / len(rows), 2) if rows else 0.0,
            current_streak=streak.current_streak,
        )

    async def get_time_series(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        interval: Literal["day", "week", "month"] = "day",
        course_id: int | None = None,
    ) -> TimeSeriesReport:
        """Study minutes, completions and average rate per bucket in [start, end].

        Only buckets with data appear, sorted by key.
        """
        tz = self.settings.tz
        activity = await load_daily_activity(self.session, user_id, local_date(start, tz), local_date(end, tz))

        query = select(UserProgress).where(
            UserProgress.user_id == user_id,
            UserProgress.last_accessed >= start,
            UserProgress.last_accessed <= end,
        )
        if course_id is not None:
            query = query.where(UserProgress.course_id == course_id)
        progress_rows = (await self.session.execute(query)).scalars().all()

        minutes: dict[str, int] = defaultdict(int)
        completions: dict[str, int] = defaultdict(int)
        rates: dict[str, list[float]] = defaultdict(list)
        for day in activity:
            key = bucket_key(day.day, interval)
            minutes[key] += day.minutes_studied
            completions[key] += day.materials_completed
        for row in progress_rows:
            rates[bucket_key(local_date(row.last_accessed, tz), interval)].append(row.progress_rate)

        keys = sorted(set(minutes) | set(rates))
        points = [
            TimeSeriesPoint(
                date=key,
                spent_minutes=minutes.get(key, 0),
                completed_materials=completions.get(key, 0),
                progress_rate=round(sum(rates[key]) / len(rates[key]), 2) if rates.get(key) else 0.0,
            )
            for key in keys
        ]
        return TimeSeriesReport(interval=interval, period_start=start, period_end=end, points=points)

    async def get_history_for_material(self, user_id: int, material_id: int) -> list[ProgressHistory]:
        await self._get_material(material_id)
        return await self.history.get_history_by_material_id(material_id, user_id)


def _same_as_history(latest: ProgressHistory | None, rate: int, spent_minutes: int, notes: str | None) -> bool:
    if latest is None:
        return False
    return (
        float(latest.progress_rate) == float(rate)
        and latest.spent_minutes == spent_minutes
        and latest.notes == notes
    )
