from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from lms.config.settings import get_settings


settings = get_settings()


def create_app_engine(database_url: str | None = None) -> AsyncEngine:
    """Create the async engine for direct Postgres or a local SQLite file.

    - Postgres (asyncpg): standard pool with pre-ping and LIFO reuse.
    - SQLite (aiosqlite): no pooling, one connection per session.
    """
    database_url = database_url or settings.DATABASE_URL

    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=settings.DEBUG,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        database_url,
        echo=settings.DEBUG,
        pool_size=10,
        max_overflow=10,
        pool_recycle=3600,  # ~1h
        pool_pre_ping=True,
        pool_use_lifo=True,
        connect_args={"timeout": 10},
    )


# Create the engine
engine: AsyncEngine = create_app_engine()
