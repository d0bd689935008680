"""
Logging configuration for the constraint sampler packages.

Usage:
    from configs.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("This will log to the console (and samplers.log if enabled)")
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from configs.paths import LOG_FILE

# Top-level packages whose loggers we own
PROJECT_LOGGERS = ('constraint_samplers', 'kinematic_constraints', 'kinematics_tools')

# Module-level flag to track if logging has been configured
_logging_configured = False


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | str | None = None,
    console: bool = True,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Logging level (default: INFO)
        log_file: Path to log file. None disables file logging; pass
            configs.paths.LOG_FILE to log next to the project root.
        console: Whether to also log to console (default: True)
    """
    global _logging_configured

    if _logging_configured:
        return

    formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    handlers: list[logging.Handler] = []

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    for name in PROJECT_LOGGERS:
        project_logger = logging.getLogger(name)
        project_logger.setLevel(level)
        project_logger.handlers.clear()
        for handler in handlers:
            project_logger.addHandler(handler)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the given module name.

    Automatically sets up logging if not already configured.

    Args:
        name: Module name (typically __name__)

    Returns:
        Configured logger instance

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.debug("Selected sampler: %s", sampler.name)
    """
    if not _logging_configured:
        setup_logging(log_file=None)

    # Scripts and demos log under the constraint_samplers namespace
    if name.split('.')[0] in PROJECT_LOGGERS:
        return logging.getLogger(name)
    return logging.getLogger(f'constraint_samplers.{name}')


def log_separator(logger: logging.Logger, title: str = '') -> None:
    """Log a visual separator line for readability."""
    if title:
        logger.info('=' * 20 + f' {title} ' + '=' * 20)
    else:
        logger.info('=' * 50)
