# src/refclean/utils/logging.py
"""Loguru setup shared by the pipeline, the step functions and the CLI."""

import os
import sys
import warnings
from pathlib import Path
from typing import Optional, Union

from loguru import logger

logger.remove()

# Step titles, between SUCCESS (25) and WARNING (30)
logger.level("HEADER", no=28, color="<blue>")
# Per-iteration numbers, below DEBUG
logger.level("VALUES", no=5, color="<cyan>")

# Loguru level -> MNE verbosity
MNE_LEVELS = {
    "VALUES": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "HEADER": "WARNING",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}

_STDERR_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>"
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {message}"


def _showwarning(message, category, filename, lineno, file=None, line=None):
    logger.warning(f"{category.__name__}: {message}")


warnings.showwarning = _showwarning


def resolve_level(verbose: Union[bool, str, None]) -> str:
    """Loguru level name for a ``verbose`` setting.

    ``True`` means INFO and ``False`` WARNING. ``None`` reads
    ``REFCLEAN_LOGGING_LEVEL`` (default INFO). Unknown names fall back to INFO.
    """
    if verbose is None:
        verbose = os.getenv("REFCLEAN_LOGGING_LEVEL", "INFO")
    if isinstance(verbose, bool):
        return "INFO" if verbose else "WARNING"
    level = str(verbose).upper()
    return level if level in MNE_LEVELS else "INFO"


def message(level: str, text: str) -> None:
    """Log ``text`` at ``level`` ('info', 'header', 'values', ...)."""
    logger.log(level.upper(), text)


def configure_logger(
    verbose: Union[bool, str, None] = None,
    output_dir: Optional[Union[str, Path]] = None,
) -> str:
    """Route log records to stderr and, with ``output_dir``, to ``output_dir/logs``.

    Returns the matching MNE verbosity level.
    """
    logger.remove()
    level = resolve_level(verbose)

    if output_dir is not None:
        log_dir = Path(output_dir) / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_dir / "refclean_{time}.log"),
            level=level,
            format=_FILE_FORMAT,
            colorize=False,
        )

    logger.add(sys.stderr, level=level, format=_STDERR_FORMAT, colorize=True)
    return MNE_LEVELS[level]


configure_logger()
