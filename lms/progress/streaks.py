"""Daily activity rows behind streaks and time series."""

from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.learning_history.aggregation import DailyActivity

from .models import LearningStreak


POINTS_PER_MATERIAL = 10


async def record_daily_activity(
    session: AsyncSession,
    user_id: int,
    day: date,
    *,
    minutes: int = 0,
    materials_completed: int = 0,
    lessons_completed: int = 0,
    points: int = 0,
) -> LearningStreak | None:
    """Add counters to the user's row for ``day``, creating it on first activity.

    Only flushes; the caller owns the transaction. Returns None when there was
    nothing to add.
    """
    if not (minutes or materials_completed or lessons_completed or points):
        return None

    result = await session.execute(
        select(LearningStreak).where(LearningStreak.user_id == user_id, LearningStreak.streak_date == day)
    )
    streak = result.scalar_one_or_none()
    if streak is None:
        streak = LearningStreak(
            user_id=user_id,
            streak_date=day,
            minutes_studied=0,
            materials_completed=0,
            lessons_completed=0,
            points_earned=0,
        )
        session.add(streak)

    streak.minutes_studied += minutes
    streak.materials_completed += materials_completed
    streak.lessons_completed += lessons_completed
    streak.points_earned += points
    await session.flush()
    return streak


async def load_daily_activity(
    session: AsyncSession,
    user_id: int,
    start_day: date | None = None,
    end_day: date | None = None,
) -> list[DailyActivity]:
    """Daily activity of a user, oldest first, optionally bounded (inclusive)."""
    query = select(LearningStreak).where(LearningStreak.user_id == user_id)
    if start_day is not None:
        query = query.where(LearningStreak.streak_date >= start_day)
    if end_day is not None:
        query = query.where(LearningStreak.streak_date <= end_day)
    result = await session.execute(query.order_by(LearningStreak.streak_date))
    return [
        DailyActivity(
            day=row.streak_date,
            minutes_studied=row.minutes_studied,
            materials_completed=row.materials_completed,
            lessons_completed=row.lessons_completed,
        )
        for row in result.scalars()
    ]
