"""
Logging configuration for the portfolio pricer.

Console output is human-readable by default and JSON when serialize=True.
File sinks are optional and rotate on a schedule.

Usage:
    from portfolio_pricer.core.logging_config import configure_logging, get_logger

    configure_logging(level="DEBUG", enable_file=False)
    logger = get_logger(__name__)
    logger.info("price_resolved")
"""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[Path] = None,
    enable_console: bool = True,
    enable_file: bool = False,
    rotation: str = "1 day",
    retention: str = "30 days",
    compression: str = "zip",
    serialize: bool = False
) -> None:
    """
    Configure logging for the entire application.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for log files (default: logs/)
        enable_console: Enable console output
        enable_file: Enable file output
        rotation: When to rotate logs (e.g., "1 day", "500 MB")
        retention: How long to keep logs
        compression: Compression format for old logs
        serialize: Use JSON format
    """
    logger.remove()

    if enable_console:
        if serialize:
            logger.add(
                sys.stderr,
                level=level,
                serialize=True,
                backtrace=True,
                diagnose=False
            )
        else:
            logger.add(
                sys.stderr,
                level=level,
                format=CONSOLE_FORMAT,
                colorize=True
            )

    if enable_file:
        log_dir = log_dir or Path("logs")

        try:
            log_dir.mkdir(exist_ok=True, parents=True)
        except OSError as e:
            logger.error(f"Cannot create log directory {log_dir}: {e}")
            raise OSError(f"Failed to create log directory {log_dir}: {e}") from e

        logger.add(
            log_dir / "portfolio_pricer_{time}.log",
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            serialize=serialize,
            backtrace=True,
            diagnose=False
        )

        # Failed lookups and aborted runs only
        logger.add(
            log_dir / "errors_{time}.log",
            level="WARNING",
            rotation=rotation,
            retention=retention,
            compression=compression,
            serialize=serialize
        )


def get_logger(name: str) -> Any:
    """
    Get a logger instance for the given module.

    Args:
        name: Module name (use __name__)

    Returns:
        Logger bound to the module name
    """
    return logger.bind(module=name)
