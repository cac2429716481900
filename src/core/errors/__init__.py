"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- CliError hierarchy for typed exceptions
- Classification utilities for error handling
"""

from core.errors.exceptions import (
    # Enums
    ErrorCategory,
    # Base classes
    CliError,
    TransientError,
    PermanentError,
    # Transient errors
    BrokerConnectionError,
    TimeoutError,
    PublishError,
    # Permanent errors
    ConfigurationError,
    ForwarderConnectError,
    ForwardError,
    AcknowledgeError,
    # Non-fatal
    PayloadDecodeError,
    # Classification utilities
    classify_exception,
    is_retryable_error,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "CliError",
    "TransientError",
    "PermanentError",
    # Transient errors
    "BrokerConnectionError",
    "TimeoutError",
    "PublishError",
    # Permanent errors
    "ConfigurationError",
    "ForwarderConnectError",
    "ForwardError",
    "AcknowledgeError",
    # Non-fatal
    "PayloadDecodeError",
    # Classification utilities
    "classify_exception",
    "is_retryable_error",
]
