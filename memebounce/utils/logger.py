"""Loguru logger configuration with rotation and structured logging."""

import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from config.settings import settings


# Records logged through the bare `logger` still satisfy {extra[module]}
logger.configure(extra={"module": "memebounce"})

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[module]: <15}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{extra[module]: <15} | "
    "{message} | "
    "{extra}"
)


def get_logger(
    module_name: Optional[str] = None,
    log_level: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    log_dir: Optional[Union[str, Path]] = None,
):
    """
    Get a configured logger instance with rotation and structured logging.

    Sinks are installed on the global loguru logger, so call this once per
    process (typically from a script entry point).

    Args:
        module_name: Name of the module (used for log file naming and filtering)
        log_level: Minimum log level (default from settings)
        enable_console: Enable console output
        enable_file: Enable file output
        log_dir: Directory for log files (default from settings)

    Returns:
        Logger bound with the module name

    Examples:
        >>> log = get_logger("backtester", log_level="DEBUG")
        >>> log.info("Backtest started", symbol="MEME", points=1000)
    """
    log_level = log_level or settings.LOG_LEVEL
    log_dir = Path(log_dir or settings.LOG_DIR)

    if module_name:
        context_logger = logger.bind(module=module_name)
    else:
        context_logger = logger

    logger.remove()

    # Console handler with color formatting
    if enable_console:
        logger.add(
            sys.stdout,
            format=CONSOLE_FORMAT,
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=False,
        )

    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)

        # Main log with rotation
        logger.add(
            log_dir / "memebounce.log",
            format=FILE_FORMAT,
            level=log_level,
            rotation="100 MB",
            retention="30 days",
            compression="zip",
            backtrace=True,
            diagnose=False,
            enqueue=True,  # Thread-safe
        )

        # Module-specific log file
        if module_name:
            logger.add(
                log_dir / f"{module_name}.log",
                format=FILE_FORMAT,
                level=log_level,
                rotation="50 MB",
                retention="14 days",
                compression="zip",
                enqueue=True,
                filter=lambda record: record["extra"].get("module") == module_name,
            )

        # Error-only log file
        logger.add(
            log_dir / "errors.log",
            format=FILE_FORMAT + " | {exception}",
            level="ERROR",
            rotation="50 MB",
            retention="60 days",
            compression="zip",
            backtrace=True,
            diagnose=False,
            enqueue=True,
        )

    return context_logger


def get_backtester_logger(log_level: Optional[str] = None, **kwargs):
    """Get logger for backtesting runs."""
    return get_logger("backtester", log_level=log_level, **kwargs)


def get_pipeline_logger(log_level: Optional[str] = None, **kwargs):
    """Get logger for the live signal pipeline."""
    return get_logger("pipeline", log_level=log_level, **kwargs)
