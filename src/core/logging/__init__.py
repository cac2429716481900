"""
Structured logging module.

Provides console and JSON logging with context propagation:
    - setup_logging(): console handler on stderr, optional rotating JSON file
    - set_log_context(): command/topic context injected into every record
    - log_with_context() / log_exception(): structured extra fields
"""

from core.logging.context import clear_log_context, get_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import get_logger, setup_logging
from core.logging.utilities import log_exception, log_with_context

__all__ = [
    "setup_logging",
    "get_logger",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "log_with_context",
    "log_exception",
    "JSONFormatter",
    "ConsoleFormatter",
]
