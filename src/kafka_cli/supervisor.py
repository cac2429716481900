"""
Connection supervision for consumer and producer handles.

acquire_consumer() and acquire_producer() retry indefinitely with
exponential backoff, building a fresh handle on every attempt.
connect_producer_once() is used for the forwarder, whose connect failures
are fatal.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from core.errors import ForwarderConnectError
from core.logging import get_logger, log_with_context
from core.resilience import DEFAULT_CONNECT_RETRY, RetryConfig, retry_forever
from kafka_cli.config import BrokerConfig, ProducerConfig, Subscription
from kafka_cli.consumer import KafkaConsumerHandle
from kafka_cli.metrics import record_connect_retry, update_connection_status
from kafka_cli.producer import KafkaProducerHandle

logger = get_logger(__name__)

ConsumerFactory = Callable[[BrokerConfig, Subscription], KafkaConsumerHandle]
ProducerFactory = Callable[[BrokerConfig, ProducerConfig], KafkaProducerHandle]


def default_consumer_factory(
    broker: BrokerConfig, subscription: Subscription
) -> KafkaConsumerHandle:
    return KafkaConsumerHandle(broker, subscription)


def default_producer_factory(
    broker: BrokerConfig, config: ProducerConfig
) -> KafkaProducerHandle:
    return KafkaProducerHandle(broker, config.topic, config.producer_name)


class ConnectionSupervisor:
    """
    Obtains started broker handles, retrying until the broker is reachable.

    Args:
        retry_config: Backoff for connect attempts (default 1s, doubling, no cap)
        consumer_factory: Builds an unstarted consumer handle
        producer_factory: Builds an unstarted producer handle
        sleep: Optional sleep coroutine passed to the retry loop (tests)
    """

    def __init__(
        self,
        retry_config: RetryConfig = DEFAULT_CONNECT_RETRY,
        consumer_factory: ConsumerFactory = default_consumer_factory,
        producer_factory: ProducerFactory = default_producer_factory,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.retry_config = retry_config
        self._consumer_factory = consumer_factory
        self._producer_factory = producer_factory
        self._sleep = sleep

    async def acquire_consumer(
        self, broker: BrokerConfig, subscription: Subscription
    ) -> KafkaConsumerHandle:
        """Return a started consumer for the subscription. Blocks until connected."""

        async def _connect() -> KafkaConsumerHandle:
            return await self._start(self._consumer_factory(broker, subscription))

        handle = await self._retry(_connect, "consumer", f"Connect consumer to {subscription.topic}")

        update_connection_status("consumer", connected=True)
        log_with_context(
            logger,
            logging.INFO,
            "Connected",
            topic=subscription.topic,
            consumer_group=subscription.subscription_name,
            bootstrap_servers=broker.bootstrap_servers,
        )
        return handle

    async def acquire_producer(
        self, broker: BrokerConfig, config: ProducerConfig
    ) -> KafkaProducerHandle:
        """Return a started producer for the topic. Blocks until connected."""

        async def _connect() -> KafkaProducerHandle:
            return await self._start(self._producer_factory(broker, config))

        handle = await self._retry(_connect, "producer", f"Connect producer to {config.topic}")

        update_connection_status("producer", connected=True)
        log_with_context(
            logger,
            logging.INFO,
            "Connected",
            topic=config.topic,
            client_id=config.producer_name,
            bootstrap_servers=broker.bootstrap_servers,
        )
        return handle

    async def connect_producer_once(
        self, broker: BrokerConfig, config: ProducerConfig
    ) -> KafkaProducerHandle:
        """
        Start a producer without retrying.

        Raises:
            ForwarderConnectError: If the producer cannot be started
        """
        try:
            handle = await self._start(self._producer_factory(broker, config))
        except Exception as e:
            raise ForwarderConnectError(
                f"Could not connect forwarder to {broker.bootstrap_servers} "
                f"for topic {config.topic!r}",
                cause=e,
                context={"topic": config.topic},
            ) from e

        update_connection_status("forwarder", connected=True)
        log_with_context(
            logger,
            logging.INFO,
            "Forwarder connected",
            forward_topic=config.topic,
            bootstrap_servers=broker.bootstrap_servers,
        )
        return handle

    async def _retry(self, operation, component: str, description: str):
        kwargs = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep

        return await retry_forever(
            operation,
            config=self.retry_config,
            description=description,
            on_retry=lambda attempt, delay, error: record_connect_retry(component),
            **kwargs,
        )

    @staticmethod
    async def _start(handle):
        """Start a handle, closing it if start fails so no partial state is reused."""
        try:
            await handle.start()
        except BaseException:
            try:
                await handle.stop()
            except Exception as stop_error:
                logger.debug(
                    "Error closing handle after failed start",
                    extra={"error_message": str(stop_error)},
                )
            raise
        return handle


__all__ = [
    "ConnectionSupervisor",
    "default_consumer_factory",
    "default_producer_factory",
]
