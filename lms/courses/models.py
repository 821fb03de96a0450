"""SQLAlchemy models for the course catalogue read by progress tracking.

Authoring (course, lesson and material CRUD) lives in the catalogue service;
this module maps only the columns progress tracking reads.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms.database.base import Base


class Course(Base):
    """Published courses."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

    lessons: Mapped[list[Lesson]] = relationship(
        "Lesson",
        back_populates="course",
        cascade="all, delete-orphan",
    )


class Lesson(Base):
    """Lessons tied to a course."""

    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    course: Mapped[Course] = relationship("Course", back_populates="lessons")
    materials: Mapped[list[LearningMaterial]] = relationship(
        "LearningMaterial",
        back_populates="lesson",
        cascade="all, delete-orphan",
    )


class LearningMaterial(Base):
    """Main learning materials (files, URLs, videos) inside a lesson."""

    __tablename__ = "learning_materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    lesson_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    material_type: Mapped[str] = mapped_column(String(20), nullable=False, default="FILE")  # FILE, URL, VIDEO
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    allow_manual_progress: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    lesson: Mapped[Lesson] = relationship("Lesson", back_populates="materials")


class LearningResource(Base):
    """Supplementary resource library entries."""

    __tablename__ = "learning_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_type: Mapped[str] = mapped_column(String(20), nullable=False, default="DOCUMENT")
    url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
