"""Republishes consumed messages to a second topic."""

from aiokafka.structs import RecordMetadata

from kafka_cli.metrics import record_message_forwarded
from kafka_cli.producer import KafkaProducerHandle
from kafka_cli.schemas import Message


class ForwardSink:
    """
    Sends a copy of each consumed message through an owned producer handle.

    The copy keeps the key, the payload bytes (including a null tombstone
    value) and every property unchanged, and carries the source message's
    effective timestamp as its event time.
    """

    def __init__(self, producer: KafkaProducerHandle, topic: str):
        self.producer = producer
        self.topic = topic

    async def forward(self, original: Message, effective_timestamp: int) -> RecordMetadata:
        metadata = await self.producer.send(
            original.payload,
            dict(original.properties),
            timestamp_ms=effective_timestamp,
            key=original.key,
        )
        record_message_forwarded(self.topic)
        return metadata

    async def close(self) -> None:
        await self.producer.stop()
