"""Logging setup and configuration."""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

# Default settings
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiokafka",
    "kafka",
]


def get_log_file_path(log_dir: Path, command: Optional[str] = None) -> Path:
    """
    Build log file path with command/date subfolder structure.

    Structure: {log_dir}/{command}/{YYYY-MM-DD}/kafka-cli_{command}_{YYYYMMDD}.log

    Args:
        log_dir: Base log directory
        command: CLI command name (consume, produce)

    Returns:
        Full path to log file
    """
    date_folder = datetime.now().strftime("%Y-%m-%d")
    date_str = datetime.now().strftime("%Y%m%d")

    if command:
        return log_dir / command / date_folder / f"kafka-cli_{command}_{date_str}.log"
    return log_dir / date_folder / f"kafka-cli_{date_str}.log"


def setup_logging(
    name: str = "kafka_cli",
    command: Optional[str] = None,
    log_dir: Optional[Path] = None,
    json_format: bool = False,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure logging with a console handler and an optional rotating file handler.

    The console handler writes to stderr so that stdout only carries
    message output. File logs are always JSON and are only written when
    log_dir is given:
        logs/consume/2025-01-15/kafka-cli_consume_20250115.log

    Args:
        name: Logger name to return
        command: CLI command, stored in the log context
        log_dir: Directory for log files (default: no file logging)
        json_format: Use JSON format on the console (default: False)
        console_level: Console handler level (default: INFO)
        file_level: File handler level (default: DEBUG)
        max_bytes: Max size per log file before rotation
        backup_count: Number of backup files to keep
        suppress_noisy: Quiet down aiokafka loggers
        stream: Console stream (default: sys.stderr)

    Returns:
        Configured logger instance
    """
    if command:
        set_log_context(command=command)

    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter

    # Remove existing handlers to avoid duplicates on re-init
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    log_file = None
    if log_dir is not None:
        log_file = get_log_file_path(Path(log_dir), command=command)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(file_level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(f"Logging initialized: file={log_file}, json={json_format}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Use this instead of logging.getLogger() to ensure consistent naming.
    """
    return logging.getLogger(name)
