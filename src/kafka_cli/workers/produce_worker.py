"""
Produce pipeline.

Every interval, builds a ProducedRecord with an iteration counter and the
current time, then sends it with the static properties. A send that fails
or exceeds the send timeout is retried with the same bytes after a fixed
delay until it succeeds, so iterations are never skipped.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from aiokafka.structs import RecordMetadata

from core.errors import PublishError
from core.logging import get_logger, log_with_context, set_log_context
from core.resilience import PUBLISH_RETRY, RetryConfig, retry_forever
from kafka_cli.config import BrokerConfig, ProducerConfig
from kafka_cli.metrics import record_message_produced, update_connection_status
from kafka_cli.producer import KafkaProducerHandle
from kafka_cli.schemas import ProducedRecord
from kafka_cli.supervisor import ConnectionSupervisor

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_SEND_TIMEOUT_SECONDS = 30.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProducePipeline:
    """
    Publish synthetic timestamped messages at a fixed interval.

    Args:
        broker: Broker configuration
        config: Target topic, producer name and static properties
        interval: Seconds to sleep before each message
        send_timeout: Per-attempt send deadline in seconds
        retry_config: Delay between send attempts (default: fixed 1s)
        supervisor: Connection supervisor (default: exponential retry)
        max_iterations: Optional limit on messages sent (None = unlimited).
                        Useful for testing.
        sleep: Sleep coroutine (injectable for tests)
        clock: Returns the current UTC time (injectable for tests)
    """

    def __init__(
        self,
        broker: BrokerConfig,
        config: ProducerConfig,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        send_timeout: float = DEFAULT_SEND_TIMEOUT_SECONDS,
        retry_config: RetryConfig = PUBLISH_RETRY,
        supervisor: Optional[ConnectionSupervisor] = None,
        max_iterations: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.broker = broker
        self.config = config
        self.interval = interval
        self.send_timeout = send_timeout
        self.retry_config = retry_config
        self.supervisor = supervisor or ConnectionSupervisor()
        self.max_iterations = max_iterations
        self._sleep = sleep
        self._clock = clock

        self.iteration = 0
        self._producer: Optional[KafkaProducerHandle] = None

    async def run(self) -> None:
        """Connect and publish until max_iterations is reached (forever by default)."""
        set_log_context(topic=self.config.topic)

        try:
            self._producer = await self.supervisor.acquire_producer(self.broker, self.config)

            log_with_context(
                logger,
                logging.INFO,
                f"Publishing every {self.interval:g}s",
                topic=self.config.topic,
                interval_seconds=self.interval,
                properties=self.config.static_properties or None,
            )

            while self.max_iterations is None or self.iteration < self.max_iterations:
                await self._sleep(self.interval)
                await self.publish(self.build_payload(self.iteration))
                self.iteration += 1
        finally:
            await self.stop()

    def build_payload(self, iteration: int) -> bytes:
        return ProducedRecord(iteration=iteration, timestamp=self._clock()).to_bytes()

    async def publish(self, payload: bytes) -> RecordMetadata:
        """Send payload for the current iteration, retrying until the broker confirms it."""
        iteration = self.iteration

        async def _send() -> RecordMetadata:
            try:
                return await self._producer.send(
                    payload, self.config.static_properties
                )
            except asyncio.CancelledError:
                # wait_for() cancels attempts that exceed send_timeout
                record_message_produced(self.config.topic, success=False)
                raise
            except Exception as e:
                record_message_produced(self.config.topic, success=False)
                raise PublishError(
                    f"Message {iteration} was not confirmed by the broker", cause=e
                ) from e

        metadata = await retry_forever(
            _send,
            config=self.retry_config,
            description=f"Publish iteration {iteration}",
            timeout=self.send_timeout,
            sleep=self._sleep,
        )

        record_message_produced(self.config.topic, success=True)
        log_with_context(
            logger,
            logging.INFO,
            f"Published message {iteration}",
            topic=metadata.topic,
            partition=metadata.partition,
            offset=metadata.offset,
            iteration=iteration,
        )
        return metadata

    async def stop(self) -> None:
        """Close the producer. Safe to call multiple times."""
        producer, self._producer = self._producer, None
        if producer is None:
            return

        try:
            await producer.stop()
        except Exception as e:
            logger.warning("Error stopping producer", extra={"error_message": str(e)})
        update_connection_status("producer", connected=False)


__all__ = [
    "ProducePipeline",
]
