import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms.exceptions import PersistenceError
from lms.progress.history_service import ProgressHistoryService
from lms.progress.models import ProgressHistory, UserProgress


@pytest_asyncio.fixture
async def progress(db_session: AsyncSession, catalogue) -> UserProgress:
    row = UserProgress(
        user_id=catalogue.user_id,
        course_id=catalogue.course_id,
        lesson_id=catalogue.lesson_id,
        material_id=catalogue.material_id,
        progress_rate=0,
    )
    db_session.add(row)
    await db_session.commit()
    return row


@pytest.mark.asyncio
async def test_history_is_returned_newest_first(db_session: AsyncSession, progress: UserProgress) -> None:
    service = ProgressHistoryService(db_session)
    for rate in (10, 40, 75):
        await service.create_history(progress.id, rate, rate // 5, progress.user_id, notes=f"at {rate}")

    rows = await service.get_history_by_progress_id(progress.id)

    assert [r.progress_rate for r in rows] == [75, 40, 10]
    assert rows[0].notes == "at 75"
    assert rows[0].spent_minutes == 15
    assert all(r.changed_by == progress.user_id for r in rows)


@pytest.mark.asyncio
async def test_latest_history_is_none_without_rows(db_session: AsyncSession, progress: UserProgress) -> None:
    service = ProgressHistoryService(db_session)
    assert await service.get_latest_history(progress.id) is None

    await service.create_history(progress.id, 20, 5, progress.user_id)
    await service.create_history(progress.id, 30, 8, progress.user_id)

    latest = await service.get_latest_history(progress.id)
    assert latest is not None
    assert latest.progress_rate == 30


@pytest.mark.asyncio
async def test_history_by_user_filters_on_changed_by(db_session: AsyncSession, progress: UserProgress, catalogue) -> None:
    service = ProgressHistoryService(db_session)
    await service.create_history(progress.id, 50, 0, catalogue.user_id)
    await service.create_history(progress.id, 60, 0, catalogue.other_user_id, notes="instructor override")

    mine = await service.get_history_by_user_id(catalogue.user_id)
    theirs = await service.get_history_by_user_id(catalogue.other_user_id)

    assert [r.progress_rate for r in mine] == [50]
    assert [r.notes for r in theirs] == ["instructor override"]


@pytest.mark.asyncio
async def test_history_by_material_loads_owning_progress(
    db_session: AsyncSession, progress: UserProgress, catalogue
) -> None:
    service = ProgressHistoryService(db_session)
    await service.create_history(progress.id, 25, 3, catalogue.user_id)

    rows = await service.get_history_by_material_id(catalogue.material_id, catalogue.user_id)
    assert len(rows) == 1
    assert rows[0].progress.id == progress.id
    assert rows[0].progress.material_id == catalogue.material_id

    assert await service.get_history_by_material_id(catalogue.material_id, catalogue.other_user_id) == []
    assert await service.get_history_by_material_id(catalogue.second_material_id, catalogue.user_id) == []


@pytest.mark.asyncio
async def test_delete_history_reports_count(db_session: AsyncSession, progress: UserProgress) -> None:
    service = ProgressHistoryService(db_session)
    for rate in (10, 20, 30):
        await service.create_history(progress.id, rate, 0, progress.user_id)

    assert await service.delete_history_by_progress_id(progress.id) == 3
    assert await service.get_history_by_progress_id(progress.id) == []
    assert await service.delete_history_by_progress_id(progress.id) == 0


@pytest.mark.asyncio
async def test_uncommitted_history_is_discarded_on_rollback(db_session: AsyncSession, progress: UserProgress) -> None:
    service = ProgressHistoryService(db_session)
    await service.create_history(progress.id, 90, 0, progress.user_id, commit=False)
    await db_session.rollback()

    count = await db_session.scalar(select(func.count(ProgressHistory.id)))
    assert count == 0


@pytest.mark.asyncio
async def test_store_failure_raises_persistence_error(db_session: AsyncSession, progress: UserProgress) -> None:
    service = ProgressHistoryService(db_session)

    with pytest.raises(PersistenceError) as exc_info:
        await service.create_history(progress.id, 10, 0, changed_by=None)  # type: ignore[arg-type]

    assert exc_info.value.message == "Failed to create progress history"
    assert exc_info.value.__cause__ is not None
