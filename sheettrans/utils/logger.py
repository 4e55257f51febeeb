"""Logging utilities."""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger


LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so {function} is right
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(
    name: str = "sheettrans",
    level: str = "INFO",
    log_file: Optional[str] = None,
):
    """
    Set up loguru as the sink for all sheettrans logging.

    Modules log through `logging.getLogger(__name__)`; their records are
    intercepted and written by loguru.

    Args:
        name: Logger name to route
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path

    Returns:
        The configured loguru logger
    """
    level = level.upper()
    loguru_logger.remove()
    loguru_logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        loguru_logger.add(
            log_file,
            level=level,
            rotation="10 MB",
            retention="1 week"
        )

    std_logger = logging.getLogger(name)
    std_logger.handlers = [InterceptHandler()]
    std_logger.setLevel(getattr(logging, level, logging.INFO))
    std_logger.propagate = False

    return loguru_logger


def get_logger(name: str = "sheettrans") -> logging.Logger:
    """Get a standard logger under the sheettrans namespace."""
    return logging.getLogger(name)
