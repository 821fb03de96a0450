"""Shared fixtures: a throwaway SQLite database, seeded catalogue rows and an API client."""

import os
import tempfile
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from pathlib import Path


_DB_DIR = tempfile.mkdtemp(prefix="lms-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{Path(_DB_DIR) / 'test.db'}"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTH_PROVIDER"] = "none"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["TIMEZONE"] = "UTC"

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from lms.auth.config import DEFAULT_USER_ID
from lms.courses.models import Course, LearningMaterial, LearningResource, Lesson
from lms.database.base import Base
from lms.database.engine import engine
from lms.database.session import async_session_maker
from lms.main import app
from lms.user.models import User


@dataclass
class Catalogue:
    """IDs of the rows every test starts with."""

    user_id: int
    other_user_id: int
    course_id: int
    lesson_id: int
    second_lesson_id: int
    material_id: int
    second_material_id: int
    locked_material_id: int
    resource_id: int


@pytest_asyncio.fixture(autouse=True)
async def _schema() -> AsyncGenerator[None, None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def catalogue(db_session: AsyncSession) -> Catalogue:
    """One published course with two lessons, three materials and a library resource."""
    user = User(id=DEFAULT_USER_ID, email="learner@example.com", name="Learner", role="ADMIN")
    other = User(id=DEFAULT_USER_ID + 1, email="other@example.com", name="Other", role="STUDENT")
    course = Course(title="Python Basics", is_published=True)
    db_session.add_all([user, other, course])
    await db_session.flush()

    lesson = Lesson(course_id=course.id, title="Variables", sort_order=1, estimated_minutes=30, is_published=True)
    second = Lesson(course_id=course.id, title="Loops", sort_order=2, estimated_minutes=90, is_published=True)
    db_session.add_all([lesson, second])
    await db_session.flush()

    material = LearningMaterial(lesson_id=lesson.id, title="Intro video", material_type="VIDEO", is_published=True)
    second_material = LearningMaterial(lesson_id=lesson.id, title="Slides", is_published=True)
    locked = LearningMaterial(
        lesson_id=second.id, title="Quiz", is_published=True, allow_manual_progress=False
    )
    resource = LearningResource(title="Cheat sheet", url="https://example.com/cheatsheet.pdf")
    db_session.add_all([material, second_material, locked, resource])
    await db_session.commit()

    return Catalogue(
        user_id=user.id,
        other_user_id=other.id,
        course_id=course.id,
        lesson_id=lesson.id,
        second_lesson_id=second.id,
        material_id=material.id,
        second_material_id=second_material.id,
        locked_material_id=locked.id,
        resource_id=resource.id,
    )


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
