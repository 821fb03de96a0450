import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lms.database.engine import engine


logger = logging.getLogger(__name__)

# Rows stay readable after commit so routers can serialize what services return
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield one session per request.

    Progress and history services commit their own units of work. Anything
    left pending when a handler raises is rolled back here.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            if session.in_transaction():
                logger.debug("Rolling back request session after an unhandled error")
                await session.rollback()
            raise


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
