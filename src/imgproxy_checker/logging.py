"""Centralized logging configuration using loguru.

Every module logs through loguru's ``logger``. Records emitted by libraries
that use the standard ``logging`` module (httpx, uvicorn, playwright) are routed
into loguru so the service has a single log stream.

Example:
    from imgproxy_checker.logging import setup_logging

    setup_logging(level="DEBUG")

    from loguru import logger
    logger.info("Analyzing {}", page_url)

"""

import logging
import sys
from typing import Any

from loguru import logger

# Libraries whose INFO output is per-request noise
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that issued the logging call
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: str | None = None,
) -> Any:
    """Configure loguru for the application.

    Should be called once at process startup (the CLI callback does this).

    Args:
        level: Minimum log level to capture. One of: DEBUG, INFO, WARNING, ERROR, CRITICAL.
        json_output: If True, output logs in JSON format for production/monitoring systems.
        log_file: Optional file path to write logs to. If None, logs only to stderr.

    Returns:
        The configured loguru logger instance.

    """
    logger.remove()

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )

    if json_output:
        logger.add(
            sys.stderr,
            format="{message}",
            serialize=True,
            level=level,
        )
    else:
        logger.add(
            sys.stderr,
            format=console_format,
            level=level,
            colorize=True,
        )

    if log_file:
        logger.add(
            log_file,
            format=console_format,
            level=level,
            rotation="10 MB",
            retention="7 days",
            compression="gz",
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    if level.upper() != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger
