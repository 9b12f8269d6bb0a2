"""Loguru sinks for the formulation engine, configured from Settings."""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from potions.config import Settings, get_settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Replace loguru's sinks with a stderr sink and an optional rotating file.

    Args:
        level: Overrides settings.log_level (e.g. from a --log-level flag)
        log_file: Overrides settings.log_file
        settings: Source of defaults; the cached settings if omitted
    """
    settings = settings or get_settings()
    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            diagnose=False,
        )

    logger.debug(f"Logging at {level}" + (f", file {log_file}" if log_file else ""))
