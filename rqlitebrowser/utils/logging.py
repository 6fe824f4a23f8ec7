"""
Logging setup built on loguru.
"""

import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from loguru import logger

if TYPE_CHECKING:
    from ..config.settings import LoggingSettings

DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - <level>{message}</level>"
)


class LoggingManager:
    """Configures loguru sinks once per process"""

    _configured = False
    _sink_ids: list[int] = []

    @classmethod
    def setup_logging(cls, settings: Optional["LoggingSettings"] = None) -> None:
        level = settings.level if settings else "INFO"

        for sink_id in cls._sink_ids:
            logger.remove(sink_id)
        cls._sink_ids = []
        if not cls._configured:
            # Drop loguru's default stderr handler
            logger.remove()

        logger.configure(extra={"component": "rqlitebrowser"})
        cls._sink_ids.append(
            logger.add(sys.stderr, level=level, format=DEFAULT_FORMAT, colorize=None)
        )

        if settings and settings.log_to_file:
            log_path = Path(settings.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            cls._sink_ids.append(
                logger.add(
                    str(log_path),
                    level=level,
                    format=DEFAULT_FORMAT,
                    rotation=settings.rotation,
                    retention=settings.retention,
                    enqueue=True,
                )
            )

        cls._configured = True
        logger.debug(f"Logging configured at level {level}")

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured


def get_logger(component: str):
    """Return the shared loguru logger bound to a component name."""
    return logger.bind(component=component)
