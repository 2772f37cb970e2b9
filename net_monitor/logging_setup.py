"""Root logger setup for the service process."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from .config import AppConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Set on every handler installed here so a second call replaces them
# without touching handlers owned by someone else (pytest, an embedding app).
_OWNED = "_net_monitor_handler"


def _build_handlers(config: AppConfig) -> List[logging.Handler]:
    settings = config.logging
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.file:
        log_dir = config.paths.logs_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_dir / settings.file,
                maxBytes=settings.max_bytes,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        )
    return handlers


def configure_logging(config: AppConfig, level: Optional[str] = None) -> None:
    """Send every ``net_monitor`` logger to the console and the rotating log file.

    ``level`` overrides ``config.logging.level``. Unknown level names fall back
    to INFO. Calling this again swaps the previously installed handlers.
    """
    root_logger = logging.getLogger()
    level_name = (level or config.logging.level).upper()
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    for handler in list(root_logger.handlers):
        if getattr(handler, _OWNED, False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in _build_handlers(config):
        handler.setFormatter(formatter)
        setattr(handler, _OWNED, True)
        root_logger.addHandler(handler)

    # APScheduler logs every job execution at INFO.
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
