"""Helpers that attach structured fields to log records."""

import logging
from typing import Any

MAX_ERROR_MESSAGE_LENGTH = 500


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **fields: Any,
) -> None:
    """
    Log msg with structured fields picked up by the formatters.

    Fields whose value is None are left out, so optional settings such as
    a missing client id do not show up as nulls in JSON logs.

    Example:
        log_with_context(
            logger, logging.INFO, "Published message 3",
            topic="events",
            offset=metadata.offset,
        )
    """
    extra = {key: value for key, value in fields.items() if value is not None}
    logger.log(level, msg, extra=extra)


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **fields: Any,
) -> None:
    """
    Log an exception with its category, message and context.

    For CliError subclasses the category is recorded as error_category and
    the error's context (topic, offset, ...) is merged into the record,
    explicit fields taking precedence.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Log message
        level: Log level (default: ERROR)
        include_traceback: Attach exc_info (default: True)
        **fields: Additional structured fields
    """
    category = getattr(exc, "category", None)
    if category is not None and "error_category" not in fields:
        fields["error_category"] = getattr(category, "value", str(category))

    for key, value in (getattr(exc, "context", None) or {}).items():
        fields.setdefault(key, value)

    error_msg = str(exc) or type(exc).__name__
    if len(error_msg) > MAX_ERROR_MESSAGE_LENGTH:
        error_msg = error_msg[:MAX_ERROR_MESSAGE_LENGTH] + "..."
    fields["error_message"] = error_msg

    extra = {key: value for key, value in fields.items() if value is not None}
    logger.log(level, msg, exc_info=exc if include_traceback else None, extra=extra)
