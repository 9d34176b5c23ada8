"""
Logging configuration for crash triage.

Sets up loguru sinks: the console, a rotating triage log, and a separate log
of rejected dumps kept for manual inspection.
"""

import sys
from pathlib import Path

from loguru import logger
from typing import Any

TRIAGE_LOG = "crash_triage.log"
REJECTED_LOG = "rejected_dumps.log"

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} - {message}"


def is_rejection(record: dict[str, Any]) -> bool:  # pyright: ignore[reportExplicitAny]
    return bool(record["extra"].get("rejected"))


def setup_logging(level: str = "INFO", debug: bool = False, log_dir: Path | None = None) -> None:
    """
    Configure loguru logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        debug: If True, log DEBUG records to the console and the triage log
        log_dir: Directory for log files; current directory when None
    """
    logger.remove()
    logger.configure(extra={"name": "crash_triage"})

    log_level = "DEBUG" if debug else level
    directory = Path(log_dir) if log_dir is not None else Path(".")

    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{extra[name]}</cyan> - <level>{message}</level>",
    )

    logger.add(
        directory / TRIAGE_LOG,
        level="DEBUG" if debug else "INFO",
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="7 days",
        compression="zip",
    )

    logger.add(
        directory / REJECTED_LOG,
        level="WARNING",
        format="{time:YYYY-MM-DD HH:mm:ss} | {message}",
        filter=is_rejection,
        rotation="10 MB",
        retention="30 days",
    )


def get_logger(name: str | None = None) -> Any:
    """
    Get a logger instance.

    Args:
        name: Optional component name bound into every record

    Returns:
        Logger instance
    """
    return logger.bind(name=name or "crash_triage")
