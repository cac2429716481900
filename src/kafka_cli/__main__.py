"""
Entry point for kafka-cli.

Usage:
    # Print every message of a topic
    python -m kafka_cli consume --topic events

    # Pretty-print JSON payloads, acknowledge and forward to another cluster
    python -m kafka_cli --url kafka://source:9092 consume --topic events --json --ack \\
        --forward-to-topic events-copy --forward-to-url kafka://target:9092

    # Publish a message every second with a static property
    python -m kafka_cli produce --topic events --interval 1s --prop env=prod

Exit codes:
    1   - fatal runtime error (forward/ack failure, forwarder connect failure)
    2   - configuration or usage error
    130 - interrupted
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from core.errors import CliError, ConfigurationError
from core.logging import get_logger, log_exception, setup_logging
from kafka_cli import __version__
from kafka_cli.config import (
    DEFAULT_INTERVAL,
    DEFAULT_PRODUCER_NAME,
    DEFAULT_SUBSCRIPTION_NAME,
    DEFAULT_URL,
    BrokerConfig,
    ConsumeOptions,
    ForwardTarget,
    InitialPosition,
    ProducerConfig,
    Subscription,
    SubscriptionType,
    parse_duration,
    parse_properties,
)
from kafka_cli.metrics import start_metrics_server
from kafka_cli.workers import ConsumePipeline, ProducePipeline

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

EXIT_FATAL = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kafka-cli",
        description="Consume, forward and produce Kafka messages",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--url",
        default=DEFAULT_URL,
        help=f"Broker URL, kafka:// or kafka+ssl:// (default: {DEFAULT_URL})",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Also write JSON logs under this directory",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write console logs as JSON",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=0,
        help="Port for Prometheus metrics server (default: 0, disabled)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.required = True

    consume = subparsers.add_parser("consume", help="Consume messages from a topic")
    consume.add_argument("--topic", required=True, help="Topic to consume")
    consume.add_argument(
        "-s",
        "--subscriber-name",
        "--subscription-name",
        dest="subscription_name",
        default=DEFAULT_SUBSCRIPTION_NAME,
        help=f"Subscription (consumer group) name (default: {DEFAULT_SUBSCRIPTION_NAME})",
    )
    consume.add_argument("--consumer-name", default=None, help="Consumer (client id) name")
    consume.add_argument(
        "--shared",
        action="store_true",
        help="Share partitions with other consumers of the subscription",
    )
    consume.add_argument(
        "--durable",
        action="store_true",
        help="Resume from the subscription's acknowledged position",
    )
    position = consume.add_mutually_exclusive_group()
    position.add_argument(
        "--earliest",
        dest="initial_position",
        action="store_const",
        const=InitialPosition.EARLIEST,
        help="Start from the oldest message",
    )
    position.add_argument(
        "--latest-message",
        dest="initial_position",
        action="store_const",
        const=InitialPosition.LATEST,
        help="Start from the newest message (default)",
    )
    consume.set_defaults(initial_position=InitialPosition.LATEST)
    consume.add_argument("--json", action="store_true", help="Pretty-print JSON payloads")
    consume.add_argument("--ack", action="store_true", help="Acknowledge each message")
    consume.add_argument(
        "--forward-to-topic", default=None, help="Republish each message to this topic"
    )
    consume.add_argument(
        "--forward-to-url",
        default=None,
        help="Broker URL for forwarding (default: --url)",
    )

    produce = subparsers.add_parser(
        "produce", aliases=["publish"], help="Publish a message at a fixed interval"
    )
    produce.add_argument("--topic", required=True, help="Topic to publish to")
    produce.add_argument(
        "-p",
        "--producer-name",
        default=DEFAULT_PRODUCER_NAME,
        help=f"Producer (client id) name (default: {DEFAULT_PRODUCER_NAME})",
    )
    produce.add_argument(
        "--interval",
        default=DEFAULT_INTERVAL,
        help=f"Time between messages, e.g. 500ms, 5s, 1m (default: {DEFAULT_INTERVAL})",
    )
    produce.add_argument(
        "--prop",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Static message property; may be repeated",
    )

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    args = build_parser().parse_args(argv)
    if args.command == "publish":
        args.command = "produce"
    return args


def build_consume_pipeline(args: argparse.Namespace) -> ConsumePipeline:
    """
    Validate consume arguments into a pipeline.

    Raises:
        ConfigurationError: If the URLs or names are invalid
    """
    broker = BrokerConfig.from_url(args.url)

    if args.forward_to_url and not args.forward_to_topic:
        raise ConfigurationError("--forward-to-url requires --forward-to-topic")

    forward = None
    if args.forward_to_topic:
        forward_broker = (
            BrokerConfig.from_url(args.forward_to_url) if args.forward_to_url else broker
        )
        forward = ForwardTarget(topic=args.forward_to_topic, broker=forward_broker)

    subscription = Subscription(
        topic=args.topic,
        subscription_name=args.subscription_name,
        consumer_name=args.consumer_name,
        type=SubscriptionType.SHARED if args.shared else SubscriptionType.EXCLUSIVE,
        durable=args.durable,
        initial_position=args.initial_position,
    )
    options = ConsumeOptions(json=args.json, ack=args.ack, forward=forward)
    return ConsumePipeline(broker, subscription, options)


def build_produce_pipeline(args: argparse.Namespace) -> ProducePipeline:
    """
    Validate produce arguments into a pipeline.

    Raises:
        ConfigurationError: If the URL, interval or properties are invalid
    """
    broker = BrokerConfig.from_url(args.url)
    interval = parse_duration(args.interval)
    config = ProducerConfig(
        topic=args.topic,
        producer_name=args.producer_name,
        static_properties=parse_properties(args.prop),
    )
    return ProducePipeline(broker, config, interval=interval)


async def run(args: argparse.Namespace) -> None:
    if args.command == "consume":
        pipeline = build_consume_pipeline(args)
    else:
        pipeline = build_produce_pipeline(args)

    start_metrics_server(args.metrics_port)
    await pipeline.run()


def main(argv: Optional[List[str]] = None) -> int:
    global logger

    args = parse_args(argv)

    setup_logging(
        name="kafka_cli",
        command=args.command,
        log_dir=Path(args.log_dir) if args.log_dir else None,
        json_format=args.json_logs,
        console_level=getattr(logging, args.log_level),
    )
    logger = get_logger(__name__)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_INTERRUPTED
    except ConfigurationError as e:
        log_exception(logger, e, "Invalid configuration", include_traceback=False)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except CliError as e:
        log_exception(logger, e, "Fatal error")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL
    except Exception as e:
        log_exception(logger, e, "Unexpected error")
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FATAL

    return 0


if __name__ == "__main__":
    sys.exit(main())
