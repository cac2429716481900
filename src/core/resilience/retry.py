"""
Retry with backoff for connect and publish operations.

Two policies are used by kafka-cli:
    - DEFAULT_CONNECT_RETRY: exponential backoff (1s, 2s, 4s, ...) with no cap
    - PUBLISH_RETRY: fixed 1s delay between attempts

Neither policy has a maximum attempt count. Only errors classified as
PERMANENT escape the loop.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from core.errors import ErrorCategory, TimeoutError, classify_exception
from core.logging import get_logger, log_exception

logger = get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]
RetryCallback = Callable[[int, float, BaseException], None]


@dataclass(frozen=True)
class RetryConfig:
    """
    Backoff configuration.

    Attributes:
        base_delay: Delay in seconds after the first failure
        multiplier: Factor applied to the delay after each failure (1.0 = fixed)
    """

    base_delay: float = 1.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
        if self.multiplier < 1.0:
            raise ValueError(f"multiplier must be >= 1.0, got {self.multiplier}")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given 0-indexed failed attempt."""
        return self.base_delay * (self.multiplier**attempt)


DEFAULT_CONNECT_RETRY = RetryConfig(base_delay=1.0, multiplier=2.0)
PUBLISH_RETRY = RetryConfig(base_delay=1.0, multiplier=1.0)


class RetryState:
    """
    Attempt count and next delay for one retry session.

    A session starts fresh for every top-level retry_forever() call.
    """

    def __init__(self, config: RetryConfig):
        self.config = config
        self.attempt_count = 0
        self.current_delay = config.base_delay

    def advance(self) -> float:
        """Record a failed attempt and return the delay to wait before the next one."""
        delay = self.current_delay
        self.attempt_count += 1
        self.current_delay = self.config.delay_for(self.attempt_count)
        return delay


async def retry_forever(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig = DEFAULT_CONNECT_RETRY,
    description: str = "operation",
    timeout: Optional[float] = None,
    sleep: SleepFunc = asyncio.sleep,
    on_retry: Optional[RetryCallback] = None,
) -> T:
    """
    Await operation() until it succeeds.

    Args:
        operation: Zero-argument coroutine function, called once per attempt
        config: Backoff configuration
        description: Operation name used in log messages
        timeout: Optional per-attempt deadline in seconds
        sleep: Sleep coroutine (injectable for tests)
        on_retry: Optional callback(attempt, delay, error) invoked before each sleep

    Returns:
        The result of the first successful attempt

    Raises:
        CliError: If the operation raises an error classified as PERMANENT
        asyncio.CancelledError: If the surrounding task is cancelled
    """
    state = RetryState(config)

    while True:
        try:
            if timeout is None:
                return await operation()
            try:
                return await asyncio.wait_for(operation(), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise TimeoutError(
                    f"{description} timed out after {timeout:g}s", cause=e
                ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            category = classify_exception(e)
            if category == ErrorCategory.PERMANENT:
                raise

            delay = state.advance()
            log_exception(
                logger,
                e,
                f"{description} failed (attempt {state.attempt_count}), retrying in {delay:g}s",
                level=logging.WARNING,
                include_traceback=False,
                operation=description,
                error_category=category.value,
                attempt=state.attempt_count,
                delay_seconds=delay,
            )
            if on_retry is not None:
                on_retry(state.attempt_count, delay, e)
            await sleep(delay)

