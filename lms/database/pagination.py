from math import ceil
from typing import TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class Paginator:
    """Helper class for handling pagination."""

    def __init__(self, page: int = 1, limit: int = 20) -> None:
        self.page = page
        self.limit = limit
        self.offset = (page - 1) * limit

    async def paginate(self, session: AsyncSession, query: Select[tuple[T]]) -> tuple[list[T], int]:
        """
        Paginate a query and return items with total count.

        Parameters
        ----------
        session : AsyncSession
            Database session
        query : Select
            Base query to paginate

        Returns
        -------
        tuple[list[T], int]
            List of items and total count
        """
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = await session.scalar(count_query) or 0

        paginated_query = query.offset(self.offset).limit(self.limit)
        result = await session.execute(paginated_query)
        items = result.scalars().all()

        return list(items), total

    def meta(self, total: int) -> dict[str, int | bool]:
        """Build the pagination block returned alongside a page of items."""
        return {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "total_pages": ceil(total / self.limit) if self.limit else 0,
            "has_next": self.page * self.limit < total,
            "has_prev": self.page > 1,
        }
