"""Database initialization - creates all tables."""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine

# Import all models to register them with Base metadata
from lms.courses.models import *  # noqa: F403
from lms.learning_history.models import *  # noqa: F403
from lms.progress.models import *  # noqa: F403
from lms.user.models import *  # noqa: F403

from .base import Base


logger = logging.getLogger(__name__)


async def init_database(db_engine: AsyncEngine) -> None:
    """Create all tables from the registered models."""
    async with db_engine.begin() as conn:
        logger.info("Creating database tables from models...")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("All tables created successfully")
