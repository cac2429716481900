"""Fixtures for kafka-cli tests."""

import pytest

from fakes import RecordingSleep
from kafka_cli.config import BrokerConfig, ProducerConfig, Subscription


@pytest.fixture
def broker() -> BrokerConfig:
    return BrokerConfig(bootstrap_servers="localhost:9092")


@pytest.fixture
def subscription() -> Subscription:
    return Subscription(topic="events")


@pytest.fixture
def producer_config() -> ProducerConfig:
    return ProducerConfig(topic="events", static_properties={"env": "prod"})


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()
