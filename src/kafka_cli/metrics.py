"""
Prometheus metrics for kafka-cli.

Provides instrumentation for:
- Message consumption, forwarding and acknowledgment
- Message production by status
- Connect retries (publish retries show up as produce errors)
- Connection status per component
"""

from prometheus_client import Counter, Gauge, start_http_server

messages_consumed_total = Counter(
    "kafka_cli_messages_consumed_total",
    "Total number of messages consumed",
    ["topic"],
)

messages_forwarded_total = Counter(
    "kafka_cli_messages_forwarded_total",
    "Total number of consumed messages republished to the forward topic",
    ["topic"],
)

messages_acknowledged_total = Counter(
    "kafka_cli_messages_acknowledged_total",
    "Total number of consumed messages acknowledged",
    ["topic"],
)

payload_decode_errors_total = Counter(
    "kafka_cli_payload_decode_errors_total",
    "Total number of payloads that could not be rendered as JSON",
    ["topic"],
)

messages_produced_total = Counter(
    "kafka_cli_messages_produced_total",
    "Total number of produce attempts",
    ["topic", "status"],  # status: success, error
)

connect_retries_total = Counter(
    "kafka_cli_connect_retries_total",
    "Total number of failed connection attempts that were retried",
    ["component"],  # component: consumer, producer
)

connection_status = Gauge(
    "kafka_cli_connection_status",
    "Broker connection status (1=connected, 0=disconnected)",
    ["component"],  # component: consumer, producer, forwarder
)


def record_message_consumed(topic: str) -> None:
    messages_consumed_total.labels(topic=topic).inc()


def record_message_forwarded(topic: str) -> None:
    messages_forwarded_total.labels(topic=topic).inc()


def record_message_acknowledged(topic: str) -> None:
    messages_acknowledged_total.labels(topic=topic).inc()


def record_decode_error(topic: str) -> None:
    payload_decode_errors_total.labels(topic=topic).inc()


def record_message_produced(topic: str, success: bool) -> None:
    status = "success" if success else "error"
    messages_produced_total.labels(topic=topic, status=status).inc()


def record_connect_retry(component: str) -> None:
    connect_retries_total.labels(component=component).inc()


def update_connection_status(component: str, connected: bool) -> None:
    connection_status.labels(component=component).set(1 if connected else 0)


def start_metrics_server(port: int) -> None:
    """Expose metrics over HTTP. A port of 0 disables the server."""
    if port:
        start_http_server(port)


__all__ = [
    "record_message_consumed",
    "record_message_forwarded",
    "record_message_acknowledged",
    "record_decode_error",
    "record_message_produced",
    "record_connect_retry",
    "update_connection_status",
    "start_metrics_server",
]
