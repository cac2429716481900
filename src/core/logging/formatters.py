"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging.context import get_log_context


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Broker coordinates
        "topic",
        "partition",
        "offset",
        "bootstrap_servers",
        "consumer_group",
        "client_id",
        "forward_topic",
        # Retry tracking
        "attempt",
        "delay_seconds",
        "operation",
        # Produce tracking
        "iteration",
        "interval_seconds",
        "properties",
        # Errors
        "error_category",
        "error_message",
        "duration_ms",
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as a single JSON line."""
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_log_context()
        for key, value in ctx.items():
            if value:
                log_entry[key] = value

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes the command and topic context when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]

        if ctx["command"]:
            parts.append(f"[{ctx['command']}]")
        if ctx["topic"]:
            parts.append(f"[{ctx['topic']}]")

        prefix = " - ".join(parts)
        message = f"{prefix} - {record.getMessage()}"

        error_message = getattr(record, "error_message", None)
        if error_message and error_message not in message:
            message = f"{message}: {error_message}"

        return message
