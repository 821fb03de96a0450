"""Database models for progress tracking."""

from __future__ import annotations

from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms.database.base import Base


class ProgressType(str, Enum):
    """How a progress rate was produced."""

    AUTO = "AUTO"
    MANUAL = "MANUAL"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserProgress(Base):
    """Current progress of one user on a course, lesson or material.

    Only ``course_id`` set: course-level row. ``lesson_id`` without
    ``material_id``: lesson-level row. Otherwise material-level.
    """

    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", "lesson_id", "material_id", name="uq_user_progress_target"),
        CheckConstraint("progress_rate >= 0 AND progress_rate <= 100", name="ck_user_progress_rate_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    course_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    lesson_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("lessons.id", ondelete="CASCADE"), nullable=True, index=True
    )
    material_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("learning_materials.id", ondelete="CASCADE"), nullable=True, index=True
    )
    progress_type: Mapped[str] = mapped_column(String(10), nullable=False, default=ProgressType.AUTO.value)
    progress_rate: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False, default=0)
    manual_progress_rate: Mapped[float | None] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=True)
    spent_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completion_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_accessed: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        """Return string representation of the progress."""
        return (
            f"<UserProgress(id={self.id}, user_id={self.user_id}, material_id={self.material_id}, "
            f"progress_rate={self.progress_rate})>"
        )


class ProgressHistory(Base):
    """Append-only snapshot of a progress change. Rows are never updated."""

    __tablename__ = "progress_history"
    __table_args__ = (Index("ix_progress_history_progress_created", "progress_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    progress_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_progress.id", ondelete="CASCADE"), nullable=False
    )
    progress_rate: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    spent_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    changed_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    progress: Mapped[UserProgress] = relationship("UserProgress")


class LearningStreak(Base):
    """Per-user, per-local-day study activity."""

    __tablename__ = "learning_streaks"
    __table_args__ = (UniqueConstraint("user_id", "streak_date", name="uq_learning_streak_user_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    streak_date: Mapped[date] = mapped_column(Date, nullable=False)
    minutes_studied: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    materials_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lessons_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


__all__ = ["LearningStreak", "ProgressHistory", "ProgressType", "UserProgress"]
