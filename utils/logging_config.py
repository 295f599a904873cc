"""
Resample Risk Simulator - Unified Logging Configuration
Centralized logging setup for the simulator and its CLI.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from config.settings import LoggingConfig


DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Rotation: 10 MB per file, five backups
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5


def _rotating_handler(
    path: str,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int
) -> RotatingFileHandler:
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _console_handler(level: int, formatter: logging.Formatter) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    logs_dir: Optional[str] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    console_output: bool = True,
    auto_create_file: bool = True,
    log_filename_prefix: str = 'risk_sim'
) -> logging.Logger:
    """
    Configure the root logger for a simulator process.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Explicit log file. Takes precedence over logs_dir
        logs_dir: Directory for a dated {prefix}_{YYYYMMDD}.log file
        log_format: Record format (default DEFAULT_FORMAT)
        date_format: asctime format (default DEFAULT_DATE_FORMAT)
        max_bytes: Rotate the file at this size
        backup_count: Rotated files kept
        console_output: Also log to stdout
        auto_create_file: Create the dated file when only logs_dir is given
        log_filename_prefix: Prefix of the dated file name

    Returns:
        The root logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(
        log_format or DEFAULT_FORMAT,
        datefmt=date_format or DEFAULT_DATE_FORMAT,
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    if console_output:
        root.addHandler(_console_handler(log_level, formatter))

    if not log_file and logs_dir and auto_create_file:
        log_file = os.path.join(
            logs_dir, f"{log_filename_prefix}_{datetime.now():%Y%m%d}.log"
        )

    if log_file:
        root.addHandler(_rotating_handler(log_file, log_level, formatter, max_bytes, backup_count))

    return root


def setup_logging_from_config(
    log_config: 'LoggingConfig',
    logs_dir: Optional[str] = None,
    level_override: Optional[str] = None,
    log_file_override: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging from a LoggingConfig; explicit overrides win.

    A dated file under logs_dir is only created when log_to_file is set.
    """
    return setup_logging(
        level=level_override or log_config.level,
        log_file=log_file_override,
        logs_dir=logs_dir if log_config.log_to_file else None,
        log_format=log_config.log_format,
        date_format=log_config.date_format,
        max_bytes=log_config.max_file_size_mb * 1024 * 1024,
        backup_count=log_config.backup_count,
        console_output=log_config.log_to_console,
        auto_create_file=log_config.log_to_file,
        log_filename_prefix=log_config.log_filename_prefix,
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; equivalent to logging.getLogger(name)."""
    return logging.getLogger(name)
