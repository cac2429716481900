"""
Exception types and error classification for kafka-cli.

Provides:
- ErrorCategory enum for retry decisions
- Typed exception hierarchy for connect, forward, acknowledge and publish failures
- classify_exception() for mapping aiokafka errors onto categories
"""

import asyncio
from enum import Enum
from typing import Optional

from aiokafka.errors import KafkaConnectionError, KafkaError, KafkaTimeoutError


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry
                   (e.g., broker unreachable, request timeouts)
        PERMANENT: Failures that must terminate the command
                   (e.g., bad configuration, forward or ack failures)
        UNKNOWN: Unclassified errors, retried conservatively on connect
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class CliError(Exception):
    """
    Base exception for all kafka-cli errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error should trigger a retry."""
        return self.category in (ErrorCategory.TRANSIENT, ErrorCategory.UNKNOWN)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


# =============================================================================
# Transient Errors
# =============================================================================


class TransientError(CliError):
    """Base class for transient/retriable errors."""

    category = ErrorCategory.TRANSIENT


class BrokerConnectionError(TransientError):
    """Broker unreachable or handshake failed."""

    pass


class TimeoutError(TransientError):
    """Operation did not finish within its deadline."""

    pass


class PublishError(TransientError):
    """A produced message was not confirmed by the broker."""

    pass


# =============================================================================
# Permanent Errors
# =============================================================================


class PermanentError(CliError):
    """Base class for errors that terminate the command."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid command line or environment configuration."""

    pass


class ForwarderConnectError(PermanentError):
    """The forwarding producer could not be started."""

    pass


class ForwardError(PermanentError):
    """A consumed message could not be republished to the forward topic."""

    pass


class AcknowledgeError(PermanentError):
    """Acknowledging a consumed message failed."""

    pass


class PayloadDecodeError(CliError):
    """Payload is not valid JSON. Reported as a warning, never fatal."""

    def __init__(
        self,
        message: str,
        payload: bytes = b"",
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.payload = payload


# =============================================================================
# Classification
# =============================================================================


def classify_exception(exc: BaseException) -> ErrorCategory:
    """
    Classify an exception for retry decisions.

    Args:
        exc: Exception raised by the broker client or by kafka-cli itself

    Returns:
        ErrorCategory for the exception
    """
    if isinstance(exc, CliError):
        return exc.category

    if isinstance(exc, (KafkaConnectionError, KafkaTimeoutError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exc, (asyncio.TimeoutError, ConnectionError, OSError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exc, KafkaError):
        return ErrorCategory.TRANSIENT if exc.retriable else ErrorCategory.UNKNOWN

    return ErrorCategory.UNKNOWN


def is_retryable_error(exc: BaseException) -> bool:
    """Whether an exception may be retried by the connect/publish loops."""
    return classify_exception(exc) != ErrorCategory.PERMANENT
