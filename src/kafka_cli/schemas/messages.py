"""
Message schemas for kafka-cli.

Contains the Message model for consumed records and the ProducedRecord model
for the synthetic payload sent by the produce command.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from aiokafka.structs import ConsumerRecord
from pydantic import BaseModel, ConfigDict, Field

# aiokafka ConsumerRecord.timestamp_type for producer-assigned timestamps
TIMESTAMP_CREATE_TIME = 0

# Header values are decoded so that arbitrary bytes survive a forward unchanged
HEADER_ENCODING = "utf-8"
HEADER_ERRORS = "surrogateescape"


class Message(BaseModel):
    """A consumed message.

    Attributes:
        payload: Raw message bytes, never re-encoded (None for a tombstone)
        key: Record key used for partitioning and compaction, if any
        properties: Message properties (Kafka record headers); a header
                    without a value maps to None
        event_time: Producer-assigned timestamp in ms since epoch, if any
        publish_time: Broker timestamp in ms since epoch
        topic: Source topic
        partition: Source partition
        offset: Offset within the source partition
    """

    model_config = ConfigDict(frozen=True)

    payload: Optional[bytes] = Field(..., description="Raw payload bytes")
    key: Optional[bytes] = None
    properties: Dict[str, Optional[str]] = Field(default_factory=dict)
    event_time: Optional[int] = Field(default=None, ge=0)
    publish_time: int = Field(..., ge=0)

    topic: str = ""
    partition: int = 0
    offset: int = -1

    @classmethod
    def from_record(cls, record: ConsumerRecord) -> "Message":
        """Build a Message from an aiokafka ConsumerRecord.

        Records written with CreateTime carry a producer-assigned event time.
        Records on LogAppendTime topics only carry the broker time.
        """
        properties = {
            key: None if value is None else value.decode(HEADER_ENCODING, HEADER_ERRORS)
            for key, value in (record.headers or ())
        }
        event_time = (
            record.timestamp if record.timestamp_type == TIMESTAMP_CREATE_TIME else None
        )
        return cls(
            payload=record.value,
            key=record.key,
            properties=properties,
            event_time=event_time,
            publish_time=record.timestamp,
            topic=record.topic,
            partition=record.partition,
            offset=record.offset,
        )

    @property
    def effective_timestamp(self) -> int:
        return effective_timestamp(self)


def effective_timestamp(message: Message) -> int:
    """Event time when present, otherwise publish time (ms since epoch)."""
    if message.event_time is not None:
        return message.event_time
    return message.publish_time


def encode_headers(
    properties: Dict[str, Optional[str]]
) -> List[Tuple[str, Optional[bytes]]]:
    """Properties as Kafka record headers, restoring the original header bytes."""
    return [
        (key, None if value is None else value.encode(HEADER_ENCODING, HEADER_ERRORS))
        for key, value in properties.items()
    ]


def format_timestamp(timestamp_ms: int) -> str:
    """Render a ms-since-epoch timestamp as ISO 8601 UTC."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class ProducedRecord(BaseModel):
    """Synthetic payload sent by the produce command.

    Example:
        >>> ProducedRecord(iteration=0, timestamp=datetime.now(timezone.utc))
    """

    iteration: int = Field(..., ge=0, description="Send cycle counter, starting at 0")
    timestamp: datetime = Field(..., description="Wall-clock time the record was built (UTC)")

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")
