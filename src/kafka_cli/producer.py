"""
Kafka producer handle.

Wraps aiokafka's AIOKafkaProducer for a single target topic. Every send
waits for the broker acknowledgment (acks=all) before returning.
"""

import logging
from typing import Any, Callable, Dict, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.structs import RecordMetadata

from core.logging import get_logger, log_with_context
from kafka_cli.config import BrokerConfig
from kafka_cli.schemas import encode_headers

logger = get_logger(__name__)


class KafkaProducerHandle:
    """
    Started producer bound to one topic.

    Usage:
        >>> handle = KafkaProducerHandle(broker, topic="events", producer_name="kafka-cli")
        >>> await handle.start()
        >>> try:
        ...     metadata = await handle.send(b"{}", {"env": "prod"})
        ... finally:
        ...     await handle.stop()
    """

    def __init__(
        self,
        broker: BrokerConfig,
        topic: str,
        producer_name: Optional[str] = None,
        producer_factory: Callable[..., Any] = AIOKafkaProducer,
    ):
        self.broker = broker
        self.topic = topic
        self.producer_name = producer_name
        self._producer_factory = producer_factory
        self._producer: Optional[AIOKafkaProducer] = None

    async def start(self) -> None:
        """
        Connect to the broker.

        Raises:
            Exception: If aiokafka fails to connect
        """
        producer_config = {
            **self.broker.client_options(),
            "acks": "all",
        }
        if self.producer_name:
            producer_config["client_id"] = self.producer_name

        self._producer = self._producer_factory(**producer_config)
        await self._producer.start()

        log_with_context(
            logger,
            logging.DEBUG,
            "Kafka producer started",
            topic=self.topic,
            client_id=self.producer_name,
            bootstrap_servers=self.broker.bootstrap_servers,
        )

    async def send(
        self,
        payload: Optional[bytes],
        properties: Optional[Dict[str, Optional[str]]] = None,
        timestamp_ms: Optional[int] = None,
        key: Optional[bytes] = None,
    ) -> RecordMetadata:
        """
        Send one message and wait for the broker confirmation.

        Args:
            payload: Message bytes, sent unchanged (None sends a tombstone)
            properties: Message properties, sent as record headers
            timestamp_ms: Record timestamp (None = current time)
            key: Record key (None = no key, partition chosen by the client)

        Returns:
            RecordMetadata with topic, partition and offset

        Raises:
            Exception: If the broker rejects or does not confirm the message
        """
        if self._producer is None:
            raise RuntimeError("Producer not started. Call start() first.")

        headers = encode_headers(properties) if properties else None
        metadata = await self._producer.send_and_wait(
            self.topic,
            key=key,
            value=payload,
            headers=headers,
            timestamp_ms=timestamp_ms,
        )

        log_with_context(
            logger,
            logging.DEBUG,
            "Message sent",
            topic=metadata.topic,
            partition=metadata.partition,
            offset=metadata.offset,
        )
        return metadata

    async def stop(self) -> None:
        """Flush and close the producer. Safe to call multiple times."""
        if self._producer is None:
            return

        producer, self._producer = self._producer, None
        await producer.stop()
        logger.debug("Kafka producer stopped")


__all__ = [
    "KafkaProducerHandle",
]
