"""Application logging setup.

Modules log through ``logging.getLogger(__name__)``; handlers are attached
once to the ``quotedesk`` package logger when the API starts.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from quotedesk.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Rotation for the optional file handler
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3


def setup_logger(settings: Optional[Settings] = None, name: str = "quotedesk") -> logging.Logger:
    """Configure the package logger from settings.

    Console output is always on. ``file_logging`` adds a rotating
    ``<log_dir>/<name>.log``. Calling again only updates the level.

    Raises:
        ValueError: If ``log_level`` is not a logging level name
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {settings.log_level}")

    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if settings.file_logging:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
