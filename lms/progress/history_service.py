"""Append-only history of progress changes."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from lms.exceptions import PersistenceError

from .models import ProgressHistory, UserProgress


logger = logging.getLogger(__name__)


class ProgressHistoryService:
    """Data access for progress history rows.

    Every change to a progress rate appends one row; rows are never updated.
    Callers validate input: rates reaching this layer are trusted to be in
    [0, 100]. Queries return newest first (``created_at`` then ``id``).
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize progress history service."""
        self.session = session

    async def create_history(
        self,
        progress_id: int,
        progress_rate: float,
        spent_minutes: int,
        changed_by: int,
        notes: str | None = None,
        *,
        commit: bool = True,
    ) -> ProgressHistory:
        """Append a history row.

        With ``commit=False`` the row is only flushed, so the caller's
        transaction decides whether it persists.
        """
        entry = ProgressHistory(
            progress_id=progress_id,
            progress_rate=progress_rate,
            spent_minutes=spent_minutes,
            changed_by=changed_by,
            notes=notes,
        )
        try:
            self.session.add(entry)
            await self.session.flush()
            if commit:
                await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to create progress history for progress {progress_id}")
            await self.session.rollback()
            msg = "Failed to create progress history"
            raise PersistenceError(msg) from e

        logger.debug(
            "Progress history appended",
            extra={"progress_id": progress_id, "progress_rate": progress_rate, "changed_by": changed_by},
        )
        return entry

    async def get_history_by_progress_id(self, progress_id: int) -> list[ProgressHistory]:
        """All history rows of one progress aggregate."""
        query = (
            select(ProgressHistory)
            .where(ProgressHistory.progress_id == progress_id)
            .order_by(ProgressHistory.created_at.desc(), ProgressHistory.id.desc())
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            msg = "Failed to fetch progress history"
            raise PersistenceError(msg) from e
        return list(result.scalars().all())

    async def get_history_by_user_id(self, user_id: int) -> list[ProgressHistory]:
        """Rows changed by ``user_id``, across all materials (audit view)."""
        query = (
            select(ProgressHistory)
            .where(ProgressHistory.changed_by == user_id)
            .order_by(ProgressHistory.created_at.desc(), ProgressHistory.id.desc())
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            msg = "Failed to fetch progress history"
            raise PersistenceError(msg) from e
        return list(result.scalars().all())

    async def get_latest_history(self, progress_id: int) -> ProgressHistory | None:
        """Most recent row, or None when the progress has no history."""
        query = (
            select(ProgressHistory)
            .where(ProgressHistory.progress_id == progress_id)
            .order_by(ProgressHistory.created_at.desc(), ProgressHistory.id.desc())
            .limit(1)
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            msg = "Failed to fetch latest progress history"
            raise PersistenceError(msg) from e
        return result.scalars().first()

    async def delete_history_by_progress_id(self, progress_id: int, *, commit: bool = True) -> int:
        """Remove every row of a progress aggregate and return how many went.

        Only used when the aggregate itself is deleted.
        """
        try:
            result = await self.session.execute(
                delete(ProgressHistory).where(ProgressHistory.progress_id == progress_id)
            )
            if commit:
                await self.session.commit()
        except SQLAlchemyError as e:
            logger.exception(f"Failed to delete progress history for progress {progress_id}")
            await self.session.rollback()
            msg = "Failed to delete progress history"
            raise PersistenceError(msg) from e

        deleted = result.rowcount or 0
        logger.info(f"Deleted {deleted} progress history rows for progress {progress_id}")
        return deleted

    async def get_history_by_material_id(self, material_id: int, user_id: int) -> list[ProgressHistory]:
        """History of one user's progress on one material.

        Each row comes with ``progress`` loaded so callers can show the owning
        aggregate (id, user, material).
        """
        query = (
            select(ProgressHistory)
            .join(ProgressHistory.progress)
            .where(UserProgress.material_id == material_id, UserProgress.user_id == user_id)
            .options(contains_eager(ProgressHistory.progress))
            .order_by(ProgressHistory.created_at.desc(), ProgressHistory.id.desc())
        )
        try:
            result = await self.session.execute(query)
        except SQLAlchemyError as e:
            msg = "Failed to fetch material progress history"
            raise PersistenceError(msg) from e
        return list(result.scalars().all())
