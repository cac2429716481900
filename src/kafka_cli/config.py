"""Broker, subscription and producer configuration parsed from the command line."""

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional
from urllib.parse import urlsplit

from core.errors import ConfigurationError

DEFAULT_URL = "kafka://127.0.0.1:9092"
DEFAULT_PORT = 9092
DEFAULT_SUBSCRIPTION_NAME = "kafka-cli"
DEFAULT_PRODUCER_NAME = "kafka-cli"
DEFAULT_INTERVAL = "5s"

# URL scheme -> security protocol
URL_SCHEMES = {
    "kafka": "PLAINTEXT",
    "kafka+ssl": "SSL",
}


class SubscriptionType(str, Enum):
    """How partitions of the topic are distributed among consumers."""

    EXCLUSIVE = "exclusive"
    SHARED = "shared"


class InitialPosition(str, Enum):
    """Where a subscription without a stored position starts reading."""

    LATEST = "latest"
    EARLIEST = "earliest"


@dataclass(frozen=True)
class BrokerConfig:
    """Kafka connection configuration.

    Build from a broker URL using BrokerConfig.from_url().
    All timing values in milliseconds.
    """

    bootstrap_servers: str
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = "PLAIN"

    # SASL credentials
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""

    request_timeout_ms: int = 40000

    @classmethod
    def from_url(
        cls, url: str, environ: Optional[Mapping[str, str]] = None
    ) -> "BrokerConfig":
        """Parse a broker URL such as kafka://host1:9092,host2:9092.

        Optional environment variables:
            KAFKA_SASL_USERNAME: enables SASL authentication
            KAFKA_SASL_PASSWORD: SASL password
            KAFKA_SASL_MECHANISM: PLAIN (default), SCRAM-SHA-256, SCRAM-SHA-512

        Raises:
            ConfigurationError: If the URL is malformed or uses an unknown scheme
        """
        environ = os.environ if environ is None else environ

        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme not in URL_SCHEMES:
            raise ConfigurationError(
                f"Unsupported broker URL {url!r}: scheme must be one of "
                f"{', '.join(sorted(URL_SCHEMES))}"
            )
        if parts.path not in ("", "/") or parts.query or parts.fragment:
            raise ConfigurationError(
                f"Unsupported broker URL {url!r}: path, query and fragment are not allowed"
            )

        servers = [_parse_host(host, url) for host in parts.netloc.split(",")]

        security_protocol = URL_SCHEMES[scheme]
        username = environ.get("KAFKA_SASL_USERNAME", "")
        if username:
            security_protocol = f"SASL_{security_protocol}"

        return cls(
            bootstrap_servers=",".join(servers),
            security_protocol=security_protocol,
            sasl_mechanism=environ.get("KAFKA_SASL_MECHANISM", "PLAIN"),
            sasl_plain_username=username,
            sasl_plain_password=environ.get("KAFKA_SASL_PASSWORD", ""),
        )

    def client_options(self) -> Dict[str, object]:
        """Connection keyword arguments shared by aiokafka consumers and producers."""
        options: Dict[str, object] = {
            "bootstrap_servers": self.bootstrap_servers,
            "security_protocol": self.security_protocol,
            "request_timeout_ms": self.request_timeout_ms,
        }
        if self.security_protocol.startswith("SASL_"):
            options["sasl_mechanism"] = self.sasl_mechanism
            options["sasl_plain_username"] = self.sasl_plain_username
            options["sasl_plain_password"] = self.sasl_plain_password
        return options


def _parse_host(host: str, url: str) -> str:
    host = host.strip()
    match = re.fullmatch(r"(\[[0-9A-Fa-f:.]+\]|[A-Za-z0-9_.-]+)(?::(\d{1,5}))?", host)
    if not match:
        raise ConfigurationError(f"Invalid broker address {host!r} in URL {url!r}")
    port = int(match.group(2)) if match.group(2) else DEFAULT_PORT
    if not 0 < port < 65536:
        raise ConfigurationError(f"Invalid port {port} in URL {url!r}")
    return f"{match.group(1)}:{port}"


@dataclass(frozen=True)
class Subscription:
    """A named, immutable view of a topic for one consumer."""

    topic: str
    subscription_name: str = DEFAULT_SUBSCRIPTION_NAME
    consumer_name: Optional[str] = None
    type: SubscriptionType = SubscriptionType.EXCLUSIVE
    durable: bool = False
    initial_position: InitialPosition = InitialPosition.LATEST

    def __post_init__(self) -> None:
        if not self.topic:
            raise ConfigurationError("A topic must be specified")
        if not self.subscription_name:
            raise ConfigurationError("Subscription name must not be empty")


@dataclass(frozen=True)
class ProducerConfig:
    """Target topic and static properties for produced messages."""

    topic: str
    producer_name: str = DEFAULT_PRODUCER_NAME
    static_properties: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.topic:
            raise ConfigurationError("A topic must be specified")


@dataclass(frozen=True)
class ForwardTarget:
    """Where consumed messages are republished."""

    topic: str
    broker: BrokerConfig


@dataclass(frozen=True)
class ConsumeOptions:
    """Per-message capabilities of the consume pipeline, resolved once at startup."""

    json: bool = False
    ack: bool = False
    forward: Optional[ForwardTarget] = None

    @property
    def forwarding(self) -> bool:
        return self.forward is not None


def parse_properties(values: Optional[Iterable[str]]) -> Dict[str, str]:
    """Parse key=value strings, splitting on the first '='.

    Raises:
        ConfigurationError: If a value has no '=' or an empty key
    """
    properties: Dict[str, str] = {}
    for value in values or []:
        key, sep, prop_value = value.partition("=")
        if not sep:
            raise ConfigurationError(
                f"Invalid property {value!r}: expected key=value"
            )
        if not key:
            raise ConfigurationError(f"Invalid property {value!r}: key is empty")
        properties[key] = prop_value
    return properties


_DURATION_UNITS = {
    "ms": 0.001,
    "msec": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "secs": 1.0,
    "second": 1.0,
    "seconds": 1.0,
    "m": 60.0,
    "min": 60.0,
    "mins": 60.0,
    "minute": 60.0,
    "minutes": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
    "hour": 3600.0,
    "hours": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")


def parse_duration(value: str) -> float:
    """Parse a human duration such as '5s', '500ms' or '1h30m' into seconds.

    Raises:
        ConfigurationError: If the value cannot be parsed
    """
    text = value.strip().lower()
    if not text:
        raise ConfigurationError("Duration must not be empty")

    total = 0.0
    position = 0
    for match in _DURATION_PART.finditer(text):
        if text[position:match.start()].strip():
            break
        unit = match.group(2)
        if unit not in _DURATION_UNITS:
            raise ConfigurationError(f"Invalid duration {value!r}: unknown unit {unit!r}")
        total += float(match.group(1)) * _DURATION_UNITS[unit]
        position = match.end()

    if position == 0 or text[position:].strip():
        raise ConfigurationError(f"Invalid duration {value!r}")
    return total
