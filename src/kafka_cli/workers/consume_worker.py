"""
Consume pipeline.

Reads messages from a subscription in delivery order and, for each message:
1. computes its effective timestamp (event time, else publish time)
2. prints it (raw text, or pretty JSON when requested)
3. optionally forwards a copy to another topic and waits for confirmation
4. optionally acknowledges it

Forward and acknowledge for a message finish before the next message is
received. Forward and acknowledge failures terminate the pipeline; JSON
decode failures only produce a warning.
"""

import logging
from enum import Enum
from typing import Optional

from core.errors import AcknowledgeError, ForwardError
from core.logging import get_logger, log_with_context, set_log_context
from kafka_cli.config import BrokerConfig, ConsumeOptions, ProducerConfig, Subscription
from kafka_cli.consumer import KafkaConsumerHandle
from kafka_cli.metrics import (
    record_decode_error,
    record_message_acknowledged,
    record_message_consumed,
    update_connection_status,
)
from kafka_cli.render import MessagePrinter
from kafka_cli.schemas import Message, effective_timestamp
from kafka_cli.supervisor import ConnectionSupervisor
from kafka_cli.workers.forward_sink import ForwardSink

logger = get_logger(__name__)


class PipelineState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    TERMINATED = "terminated"


class ConsumePipeline:
    """
    Consume, print, forward and acknowledge messages from one subscription.

    Usage:
        >>> pipeline = ConsumePipeline(broker, Subscription(topic="events"), ConsumeOptions(ack=True))
        >>> await pipeline.run()  # runs until the stream fails

    Args:
        broker: Source broker configuration
        subscription: Subscription to consume
        options: JSON rendering, acknowledgment and forwarding capabilities
        printer: Message printer (default: stdout/stderr)
        supervisor: Connection supervisor (default: exponential retry)
        max_messages: Optional limit on messages processed (None = unlimited).
                      Useful for testing.
    """

    def __init__(
        self,
        broker: BrokerConfig,
        subscription: Subscription,
        options: Optional[ConsumeOptions] = None,
        printer: Optional[MessagePrinter] = None,
        supervisor: Optional[ConnectionSupervisor] = None,
        max_messages: Optional[int] = None,
    ):
        self.broker = broker
        self.subscription = subscription
        self.options = options or ConsumeOptions()
        self.printer = printer or MessagePrinter(json_output=self.options.json)
        self.supervisor = supervisor or ConnectionSupervisor()
        self.max_messages = max_messages

        self.state = PipelineState.CONNECTING
        self.messages_processed = 0
        self._consumer: Optional[KafkaConsumerHandle] = None
        self._forward_sink: Optional[ForwardSink] = None

    async def run(self) -> None:
        """
        Connect and stream until the stream fails or max_messages is reached.

        Raises:
            ForwarderConnectError: If the forward producer cannot connect
            ForwardError: If a message cannot be forwarded
            AcknowledgeError: If a message cannot be acknowledged
        """
        set_log_context(
            topic=self.subscription.topic,
            consumer_group=self.subscription.subscription_name,
        )
        self.state = PipelineState.CONNECTING

        try:
            self._consumer = await self.supervisor.acquire_consumer(
                self.broker, self.subscription
            )

            forward = self.options.forward
            if self.options.forwarding:
                producer = await self.supervisor.connect_producer_once(
                    forward.broker,
                    ProducerConfig(
                        topic=forward.topic,
                        producer_name=self.subscription.consumer_name
                        or self.subscription.subscription_name,
                    ),
                )
                self._forward_sink = ForwardSink(producer, forward.topic)

            self.state = PipelineState.STREAMING
            log_with_context(
                logger,
                logging.INFO,
                "Streaming messages",
                topic=self.subscription.topic,
                forward_topic=forward.topic if forward else None,
            )
            await self._stream()
        finally:
            self.state = PipelineState.TERMINATED
            await self.stop()

    async def _stream(self) -> None:
        while self.max_messages is None or self.messages_processed < self.max_messages:
            message = await self._consumer.receive()
            await self.process_message(message)
            self.messages_processed += 1

    async def process_message(self, message: Message) -> None:
        """Print, forward and acknowledge one message."""
        record_message_consumed(message.topic)
        timestamp = effective_timestamp(message)

        if not self.printer.print_message(message, timestamp):
            record_decode_error(message.topic)
            log_with_context(
                logger,
                logging.DEBUG,
                "Payload is not JSON",
                topic=message.topic,
                partition=message.partition,
                offset=message.offset,
            )

        if self._forward_sink is not None:
            try:
                await self._forward_sink.forward(message, timestamp)
            except Exception as e:
                raise ForwardError(
                    f"Failed to forward message {message.topic}[{message.partition}]"
                    f"@{message.offset} to {self._forward_sink.topic!r}",
                    cause=e,
                    context={"offset": message.offset},
                ) from e

        if self.options.ack:
            try:
                await self._consumer.acknowledge(message)
            except Exception as e:
                raise AcknowledgeError(
                    f"Failed to acknowledge message {message.topic}[{message.partition}]"
                    f"@{message.offset}",
                    cause=e,
                    context={"offset": message.offset},
                ) from e
            record_message_acknowledged(message.topic)

    async def stop(self) -> None:
        """Close the consumer and forwarder handles. Safe to call multiple times."""
        consumer, self._consumer = self._consumer, None
        sink, self._forward_sink = self._forward_sink, None

        if sink is not None:
            try:
                await sink.close()
            except Exception as e:
                logger.warning("Error stopping forwarder", extra={"error_message": str(e)})
            update_connection_status("forwarder", connected=False)

        if consumer is not None:
            try:
                await consumer.stop()
            except Exception as e:
                logger.warning("Error stopping consumer", extra={"error_message": str(e)})
            update_connection_status("consumer", connected=False)


__all__ = [
    "ConsumePipeline",
    "PipelineState",
]
