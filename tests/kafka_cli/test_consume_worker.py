"""Tests for ConsumePipeline."""

import io

import pytest

from core.errors import AcknowledgeError, ForwardError, ForwarderConnectError
from fakes import (
    FakeConsumerHandle,
    FakeProducerHandle,
    StreamEnded,
    make_message,
    make_supervisor,
)
from kafka_cli.config import BrokerConfig, ConsumeOptions, ForwardTarget
from kafka_cli.render import MessagePrinter
from kafka_cli.workers import ConsumePipeline, PipelineState


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def err():
    return io.StringIO()


@pytest.fixture
def forward_target():
    return ForwardTarget(topic="copy", broker=BrokerConfig(bootstrap_servers="target:9092"))


def make_pipeline(broker, subscription, options, consumer, out, err, producers=(), **kwargs):
    return ConsumePipeline(
        broker,
        subscription,
        options,
        printer=MessagePrinter(json_output=options.json, out=out, err=err, color=False),
        supervisor=make_supervisor(consumers=[consumer], producers=producers),
        **kwargs,
    )


class TestPrinting:
    @pytest.mark.asyncio
    async def test_prints_raw_payload_with_effective_timestamp(
        self, broker, subscription, out, err
    ):
        consumer = FakeConsumerHandle([make_message(offset=3, payload=b"hello")])
        pipeline = make_pipeline(
            broker, subscription, ConsumeOptions(), consumer, out, err, max_messages=1
        )

        await pipeline.run()

        assert out.getvalue() == "-- 2023-11-14T22:13:20.000Z events[0]@3\nhello\n"
        assert pipeline.messages_processed == 1

    @pytest.mark.asyncio
    async def test_json_payload_is_pretty_printed(self, broker, subscription, out, err):
        consumer = FakeConsumerHandle([make_message(payload=b'{"a":1}')])
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(json=True, ack=True),
            consumer,
            out,
            err,
            max_messages=1,
        )

        await pipeline.run()

        assert out.getvalue().endswith('{\n  "a": 1\n}\n')
        assert err.getvalue() == ""
        assert consumer.acknowledged == [make_message(payload=b'{"a":1}')]

    @pytest.mark.asyncio
    async def test_not_json_warns_and_continues(self, broker, subscription, out, err):
        messages = [make_message(offset=0, payload=b"not json"), make_message(offset=1, payload=b"{}")]
        consumer = FakeConsumerHandle(messages)
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(json=True, ack=True),
            consumer,
            out,
            err,
            max_messages=2,
        )

        await pipeline.run()

        assert "Value 'not json' is not JSON" in err.getvalue()
        assert [m.offset for m in consumer.acknowledged] == [0, 1]
        assert pipeline.messages_processed == 2


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_acknowledges_only_when_enabled(self, broker, subscription, out, err):
        consumer = FakeConsumerHandle([make_message(offset=0), make_message(offset=1)])
        pipeline = make_pipeline(
            broker, subscription, ConsumeOptions(), consumer, out, err, max_messages=2
        )

        await pipeline.run()

        assert consumer.acknowledged == []

    @pytest.mark.asyncio
    async def test_acknowledges_every_message_in_order(self, broker, subscription, out, err):
        consumer = FakeConsumerHandle([make_message(offset=i) for i in range(3)])
        pipeline = make_pipeline(
            broker, subscription, ConsumeOptions(ack=True), consumer, out, err, max_messages=3
        )

        await pipeline.run()

        assert consumer.events == [
            "receive:0", "ack:0", "receive:1", "ack:1", "receive:2", "ack:2",
        ]

    @pytest.mark.asyncio
    async def test_ack_failure_is_fatal(self, broker, subscription, out, err):
        consumer = FakeConsumerHandle([make_message(offset=7), make_message(offset=8)])
        consumer.ack_error = RuntimeError("commit failed")
        pipeline = make_pipeline(broker, subscription, ConsumeOptions(ack=True), consumer, out, err)

        with pytest.raises(AcknowledgeError, match="@7") as exc_info:
            await pipeline.run()

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert consumer.events == ["receive:7"]
        assert consumer.stopped
        assert pipeline.state == PipelineState.TERMINATED


class TestForwarding:
    @pytest.mark.asyncio
    async def test_forwards_payload_properties_and_effective_timestamp(
        self, broker, subscription, out, err, forward_target
    ):
        message = make_message(
            payload=b"\x00\xffbinary", key=b"k1", properties={"k": "v"}, event_time=None
        )
        consumer = FakeConsumerHandle([message])
        producer = FakeProducerHandle(topic="copy")
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(forward=forward_target),
            consumer,
            out,
            err,
            producers=[producer],
            max_messages=1,
        )

        await pipeline.run()

        assert producer.sent == [
            {
                "payload": b"\x00\xffbinary",
                "key": b"k1",
                "properties": {"k": "v"},
                "timestamp_ms": 1700000005000,
            }
        ]

    @pytest.mark.asyncio
    async def test_tombstone_printed_empty_and_forwarded_as_null(
        self, broker, subscription, out, err, forward_target
    ):
        consumer = FakeConsumerHandle([make_message(offset=5, payload=None, key=b"k1")])
        producer = FakeProducerHandle(topic="copy")
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(forward=forward_target),
            consumer,
            out,
            err,
            producers=[producer],
            max_messages=1,
        )

        await pipeline.run()

        assert out.getvalue() == "-- 2023-11-14T22:13:20.000Z events[0]@5\n\n"
        assert producer.sent[0]["payload"] is None
        assert producer.sent[0]["key"] == b"k1"

    @pytest.mark.asyncio
    async def test_forward_and_ack_finish_before_next_receive(
        self, broker, subscription, out, err, forward_target
    ):
        consumer = FakeConsumerHandle([make_message(offset=0), make_message(offset=1)])
        producer = FakeProducerHandle(topic="copy")
        producer.events = consumer.events
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(ack=True, forward=forward_target),
            consumer,
            out,
            err,
            producers=[producer],
            max_messages=2,
        )

        await pipeline.run()

        assert consumer.events == [
            "receive:0", "forward:1", "ack:0", "receive:1", "forward:2", "ack:1",
        ]

    @pytest.mark.asyncio
    async def test_no_producer_without_forward_target(self, broker, subscription, out, err):
        consumer = FakeConsumerHandle([make_message()])
        pipeline = make_pipeline(
            broker, subscription, ConsumeOptions(), consumer, out, err, producers=[]
        )

        with pytest.raises(StreamEnded):
            await pipeline.run()

        assert consumer.stopped

    @pytest.mark.asyncio
    async def test_forward_failure_is_fatal_and_skips_ack(
        self, broker, subscription, out, err, forward_target
    ):
        consumer = FakeConsumerHandle([make_message(offset=4)])
        producer = FakeProducerHandle(topic="copy", failures=1)
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(ack=True, forward=forward_target),
            consumer,
            out,
            err,
            producers=[producer],
        )

        with pytest.raises(ForwardError, match="'copy'"):
            await pipeline.run()

        assert consumer.acknowledged == []
        assert producer.attempts == 1
        assert producer.stopped
        assert consumer.stopped

    @pytest.mark.asyncio
    async def test_forwarder_connect_failure_stops_consumer(
        self, broker, subscription, out, err, forward_target
    ):
        consumer = FakeConsumerHandle([make_message()])
        producer = FakeProducerHandle(topic="copy", start_error=ConnectionError("refused"))
        pipeline = make_pipeline(
            broker,
            subscription,
            ConsumeOptions(forward=forward_target),
            consumer,
            out,
            err,
            producers=[producer],
        )

        with pytest.raises(ForwarderConnectError):
            await pipeline.run()

        assert consumer.stopped
        assert consumer.events == []
        assert out.getvalue() == ""


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, broker, subscription, out, err):
        consumer = FakeConsumerHandle([make_message()])
        pipeline = make_pipeline(
            broker, subscription, ConsumeOptions(), consumer, out, err, max_messages=1
        )

        await pipeline.run()
        await pipeline.stop()

        assert consumer.stopped
        assert pipeline.state == PipelineState.TERMINATED

    def test_initial_state_is_connecting(self, broker, subscription):
        pipeline = ConsumePipeline(broker, subscription)

        assert pipeline.state == PipelineState.CONNECTING
        assert pipeline.options == ConsumeOptions()
