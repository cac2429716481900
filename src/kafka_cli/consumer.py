"""
Kafka consumer handle.

Wraps aiokafka's AIOKafkaConsumer behind the narrow interface used by the
consume pipeline:
- start(): connect and join/assign according to the Subscription
- receive(): next Message, in broker delivery order
- acknowledge(): commit the message's offset for the subscription
- stop(): close the connection

Subscription mapping:
- subscription_name is the consumer group id, consumer_name the client id
- SHARED joins the consumer group; partitions are split among members
- EXCLUSIVE assigns every partition of the topic to this consumer
- durable subscriptions resume from committed offsets; non-durable ones
  always start at the initial position
"""

import logging
from typing import Any, Callable, Iterable, Optional, Set

from aiokafka import AIOKafkaConsumer
from aiokafka.abc import ConsumerRebalanceListener
from aiokafka.structs import TopicPartition

from core.errors import BrokerConnectionError
from core.logging import get_logger, log_with_context
from kafka_cli.config import (
    BrokerConfig,
    InitialPosition,
    Subscription,
    SubscriptionType,
)
from kafka_cli.schemas import Message

logger = get_logger(__name__)


class _InitialPositionListener(ConsumerRebalanceListener):
    """Moves newly assigned partitions of a non-durable subscription to its initial position."""

    def __init__(self, handle: "KafkaConsumerHandle"):
        self._handle = handle

    async def on_partitions_revoked(self, revoked: Iterable[TopicPartition]) -> None:
        pass

    async def on_partitions_assigned(self, assigned: Iterable[TopicPartition]) -> None:
        await self._handle._seek_initial_position(assigned)


class KafkaConsumerHandle:
    """
    Started consumer for one Subscription.

    Usage:
        >>> handle = KafkaConsumerHandle(broker, Subscription(topic="events"))
        >>> await handle.start()
        >>> try:
        ...     message = await handle.receive()
        ...     await handle.acknowledge(message)
        ... finally:
        ...     await handle.stop()
    """

    def __init__(
        self,
        broker: BrokerConfig,
        subscription: Subscription,
        consumer_factory: Callable[..., Any] = AIOKafkaConsumer,
    ):
        self.broker = broker
        self.subscription = subscription
        self._consumer_factory = consumer_factory
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._positioned: Set[TopicPartition] = set()

    async def start(self) -> None:
        """
        Connect to the broker and attach to the subscription's topic.

        Raises:
            BrokerConnectionError: If the topic has no partitions yet
            Exception: If aiokafka fails to connect
        """
        sub = self.subscription

        consumer_config = {
            **self.broker.client_options(),
            "group_id": sub.subscription_name,
            "enable_auto_commit": False,
            "auto_offset_reset": sub.initial_position.value,
        }
        if sub.consumer_name:
            consumer_config["client_id"] = sub.consumer_name

        self._consumer = self._consumer_factory(**consumer_config)
        await self._consumer.start()

        if sub.type == SubscriptionType.SHARED:
            listener = None if sub.durable else _InitialPositionListener(self)
            if listener is None:
                self._consumer.subscribe(topics=[sub.topic])
            else:
                self._consumer.subscribe(topics=[sub.topic], listener=listener)
        else:
            partitions = self._consumer.partitions_for_topic(sub.topic)
            if not partitions:
                raise BrokerConnectionError(
                    f"No partitions available for topic {sub.topic!r}",
                    context={"topic": sub.topic},
                )
            assignment = [TopicPartition(sub.topic, p) for p in sorted(partitions)]
            self._consumer.assign(assignment)
            if not sub.durable:
                await self._seek_initial_position(assignment)

        log_with_context(
            logger,
            logging.DEBUG,
            "Kafka consumer started",
            topic=sub.topic,
            consumer_group=sub.subscription_name,
            client_id=sub.consumer_name,
            bootstrap_servers=self.broker.bootstrap_servers,
        )

    async def _seek_initial_position(self, partitions: Iterable[TopicPartition]) -> None:
        fresh = [tp for tp in partitions if tp not in self._positioned]
        if not fresh or self._consumer is None:
            return

        if self.subscription.initial_position == InitialPosition.EARLIEST:
            await self._consumer.seek_to_beginning(*fresh)
        else:
            await self._consumer.seek_to_end(*fresh)
        self._positioned.update(fresh)

    async def receive(self) -> Message:
        """Wait for the next message."""
        if self._consumer is None:
            raise RuntimeError("Consumer not started. Call start() first.")

        record = await self._consumer.getone()
        return Message.from_record(record)

    async def acknowledge(self, message: Message) -> None:
        """Commit the position after this message for its partition."""
        if self._consumer is None:
            raise RuntimeError("Consumer not started. Call start() first.")

        tp = TopicPartition(message.topic, message.partition)
        await self._consumer.commit({tp: message.offset + 1})

    async def stop(self) -> None:
        """Close the consumer. Safe to call multiple times."""
        if self._consumer is None:
            return

        consumer, self._consumer = self._consumer, None
        self._positioned.clear()
        await consumer.stop()
        logger.debug("Kafka consumer stopped")


__all__ = [
    "KafkaConsumerHandle",
]
