import logging
import logging.config
from typing import Any

from .settings import get_settings


def setup_logging() -> dict[str, Any]:
    """Configure logging for the application."""
    level = get_settings().LOG_LEVEL.upper()
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            # SQL echo is controlled by the engine, keep the logger quiet otherwise
            "sqlalchemy.engine": {"level": "WARNING"},
        },
    }

    logging.config.dictConfig(config)
    return config
