"""Tests for KafkaConsumerHandle and KafkaProducerHandle with mocked aiokafka clients."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from aiokafka.structs import ConsumerRecord, RecordMetadata, TopicPartition

from core.errors import BrokerConnectionError
from fakes import make_message
from kafka_cli.config import InitialPosition, Subscription, SubscriptionType
from kafka_cli.consumer import KafkaConsumerHandle, _InitialPositionListener
from kafka_cli.producer import KafkaProducerHandle
from kafka_cli.schemas import Message
from kafka_cli.workers import ForwardSink


def mock_aiokafka_consumer(partitions=frozenset({0, 1})):
    consumer = MagicMock()
    consumer.start = AsyncMock()
    consumer.stop = AsyncMock()
    consumer.getone = AsyncMock()
    consumer.commit = AsyncMock()
    consumer.seek_to_beginning = AsyncMock()
    consumer.seek_to_end = AsyncMock()
    consumer.partitions_for_topic.return_value = set(partitions) if partitions else None
    return consumer


class TestKafkaConsumerHandle:
    """Subscription mapping onto aiokafka."""

    @pytest.mark.asyncio
    async def test_start_passes_group_and_client_id(self, broker):
        consumer = mock_aiokafka_consumer()
        factory = MagicMock(return_value=consumer)
        sub = Subscription(topic="events", subscription_name="sub", consumer_name="c1")

        await KafkaConsumerHandle(broker, sub, consumer_factory=factory).start()

        kwargs = factory.call_args.kwargs
        assert kwargs["group_id"] == "sub"
        assert kwargs["client_id"] == "c1"
        assert kwargs["enable_auto_commit"] is False
        assert kwargs["auto_offset_reset"] == "latest"
        assert kwargs["bootstrap_servers"] == "localhost:9092"
        consumer.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exclusive_assigns_all_partitions(self, broker):
        consumer = mock_aiokafka_consumer(partitions={1, 0})
        sub = Subscription(topic="events", durable=True)

        await KafkaConsumerHandle(broker, sub, consumer_factory=lambda **kw: consumer).start()

        consumer.assign.assert_called_once_with(
            [TopicPartition("events", 0), TopicPartition("events", 1)]
        )
        consumer.subscribe.assert_not_called()
        consumer.seek_to_end.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exclusive_non_durable_seeks_initial_position(self, broker):
        consumer = mock_aiokafka_consumer(partitions={0})
        sub = Subscription(topic="events", initial_position=InitialPosition.EARLIEST)

        await KafkaConsumerHandle(broker, sub, consumer_factory=lambda **kw: consumer).start()

        consumer.seek_to_beginning.assert_awaited_once_with(TopicPartition("events", 0))

    @pytest.mark.asyncio
    async def test_exclusive_without_partitions_is_transient(self, broker):
        consumer = mock_aiokafka_consumer(partitions=None)
        handle = KafkaConsumerHandle(
            broker, Subscription(topic="missing"), consumer_factory=lambda **kw: consumer
        )

        with pytest.raises(BrokerConnectionError, match="missing"):
            await handle.start()

    @pytest.mark.asyncio
    async def test_shared_durable_subscribes_to_group(self, broker):
        consumer = mock_aiokafka_consumer()
        sub = Subscription(topic="events", type=SubscriptionType.SHARED, durable=True)

        await KafkaConsumerHandle(broker, sub, consumer_factory=lambda **kw: consumer).start()

        consumer.subscribe.assert_called_once_with(topics=["events"])
        consumer.assign.assert_not_called()

    @pytest.mark.asyncio
    async def test_shared_non_durable_positions_new_partitions_once(self, broker):
        consumer = mock_aiokafka_consumer()
        sub = Subscription(topic="events", type=SubscriptionType.SHARED)
        handle = KafkaConsumerHandle(broker, sub, consumer_factory=lambda **kw: consumer)

        await handle.start()

        listener = consumer.subscribe.call_args.kwargs["listener"]
        assert isinstance(listener, _InitialPositionListener)

        tp0, tp1 = TopicPartition("events", 0), TopicPartition("events", 1)
        await listener.on_partitions_assigned([tp0])
        await listener.on_partitions_assigned([tp0, tp1])

        assert consumer.seek_to_end.await_count == 2
        assert consumer.seek_to_end.await_args_list[1].args == (tp1,)

    @pytest.mark.asyncio
    async def test_receive_converts_record(self, broker, subscription):
        consumer = mock_aiokafka_consumer()
        consumer.getone.return_value = ConsumerRecord(
            topic="events",
            partition=0,
            offset=5,
            timestamp=1000,
            timestamp_type=0,
            key=None,
            value=b"payload",
            checksum=None,
            serialized_key_size=-1,
            serialized_value_size=7,
            headers=[("env", b"prod")],
        )
        handle = KafkaConsumerHandle(broker, subscription, consumer_factory=lambda **kw: consumer)
        await handle.start()

        message = await handle.receive()

        assert message.payload == b"payload"
        assert message.properties == {"env": "prod"}
        assert message.offset == 5

    @pytest.mark.asyncio
    async def test_acknowledge_commits_next_offset(self, broker, subscription):
        consumer = mock_aiokafka_consumer()
        handle = KafkaConsumerHandle(broker, subscription, consumer_factory=lambda **kw: consumer)
        await handle.start()

        await handle.acknowledge(make_message(offset=41))

        consumer.commit.assert_awaited_once_with({TopicPartition("events", 0): 42})

    @pytest.mark.asyncio
    async def test_receive_before_start_raises(self, broker, subscription):
        with pytest.raises(RuntimeError, match="not started"):
            await KafkaConsumerHandle(broker, subscription).receive()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, broker, subscription):
        consumer = mock_aiokafka_consumer()
        handle = KafkaConsumerHandle(broker, subscription, consumer_factory=lambda **kw: consumer)
        await handle.start()

        await handle.stop()
        await handle.stop()

        consumer.stop.assert_awaited_once()


class TestKafkaProducerHandle:
    """Producer wrapper."""

    def make(self, broker, metadata=None):
        producer = MagicMock()
        producer.start = AsyncMock()
        producer.stop = AsyncMock()
        producer.send_and_wait = AsyncMock(
            return_value=metadata
            or RecordMetadata(
                topic="out",
                partition=0,
                topic_partition=TopicPartition("out", 0),
                offset=9,
                timestamp=123,
                timestamp_type=0,
                log_start_offset=0,
            )
        )
        factory = MagicMock(return_value=producer)
        handle = KafkaProducerHandle(broker, "out", "p1", producer_factory=factory)
        return handle, producer, factory

    @pytest.mark.asyncio
    async def test_start_configures_acks_and_client_id(self, broker):
        handle, producer, factory = self.make(broker)

        await handle.start()

        assert factory.call_args.kwargs["acks"] == "all"
        assert factory.call_args.kwargs["client_id"] == "p1"
        producer.start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_passes_bytes_headers_and_timestamp(self, broker):
        handle, producer, _ = self.make(broker)
        await handle.start()

        metadata = await handle.send(b"\x00raw", {"env": "prod"}, timestamp_ms=123)

        producer.send_and_wait.assert_awaited_once_with(
            "out", key=None, value=b"\x00raw", headers=[("env", b"prod")], timestamp_ms=123
        )
        assert metadata.offset == 9

    @pytest.mark.asyncio
    async def test_send_without_properties_sends_no_headers(self, broker):
        handle, producer, _ = self.make(broker)
        await handle.start()

        await handle.send(b"x")

        assert producer.send_and_wait.await_args.kwargs["headers"] is None

    @pytest.mark.asyncio
    async def test_send_before_start_raises(self, broker):
        handle, _, _ = self.make(broker)

        with pytest.raises(RuntimeError, match="not started"):
            await handle.send(b"x")

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, broker):
        handle, producer, _ = self.make(broker)
        await handle.start()

        await handle.stop()
        await handle.stop()

        producer.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_forwarded_tombstone_keeps_key_and_null_value(self, broker):
        handle, producer, _ = self.make(broker)
        await handle.start()
        record = ConsumerRecord(
            topic="events",
            partition=1,
            offset=3,
            timestamp=1000,
            timestamp_type=0,
            key=b"k1",
            value=None,
            checksum=None,
            serialized_key_size=2,
            serialized_value_size=-1,
            headers=[("env", b"prod")],
        )
        message = Message.from_record(record)

        await ForwardSink(handle, "out").forward(message, message.effective_timestamp)

        producer.send_and_wait.assert_awaited_once_with(
            "out", key=b"k1", value=None, headers=[("env", b"prod")], timestamp_ms=1000
        )
