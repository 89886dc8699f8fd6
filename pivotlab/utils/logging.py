"""
Logging Configuration
=====================
Centralized logging setup using loguru with file rotation
and level-based filtering.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from pivotlab.config.settings import get_settings


def setup_logging(
    log_level: Optional[str] = None,
    log_dir: Optional[str] = None,
    enable_file: bool = True
) -> None:
    """
    Configure logging for the pipeline.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        enable_file: Enable file logging
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    level = (log_level or settings.log_level).upper()

    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,
        diagnose=settings.debug
    )

    if enable_file:
        log_path = Path(log_dir or settings.log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Main log (rotated daily)
        logger.add(
            log_path / "pivotlab_{time:YYYY-MM-DD}.log",
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            rotation="00:00",
            retention="30 days",
            compression="gz",
            backtrace=True,
            diagnose=False
        )

        # Errors only, with traceback
        logger.add(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            level="ERROR",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}\n{exception}",
            rotation="00:00",
            retention="90 days",
            compression="gz",
            backtrace=True,
            diagnose=True
        )

    logger.info(f"Logging initialized at {level} level")
