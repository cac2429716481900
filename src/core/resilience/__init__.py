"""
Resilience patterns module.

Provides RetryConfig, RetryState and retry_forever() for indefinite retry
with exponential or fixed backoff.
"""

from core.resilience.retry import (
    DEFAULT_CONNECT_RETRY,
    PUBLISH_RETRY,
    RetryConfig,
    RetryState,
    retry_forever,
)

__all__ = [
    "RetryConfig",
    "RetryState",
    "retry_forever",
    "DEFAULT_CONNECT_RETRY",
    "PUBLISH_RETRY",
]
