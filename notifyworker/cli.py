#!/usr/bin/env python3
"""
notifyworker - command line entry point

Run modes:
  python -m notifyworker                         # Consume until SIGINT/SIGTERM
  python -m notifyworker run --log-level DEBUG
  python -m notifyworker publish --type OrderCreated --data UserEmail=a@x.com OrderId=42
"""

import argparse
import asyncio
import logging
import signal
import sys
from uuid import uuid4

from notifyworker.brokers.base import QueueTopology
from notifyworker.brokers.rabbitmq import RabbitMQBroker
from notifyworker.channels.email import EmailNotifier
from notifyworker.config import Settings, get_settings
from notifyworker.core.audit import AuditStore
from notifyworker.core.consumer import BrokerUnavailableError, QueueConsumer
from notifyworker.core.delivery import DeliveryInvoker
from notifyworker.core.event import NotificationEvent
from notifyworker.core.logging import get_logger

log = logging.getLogger("notifyworker.cli")


def build_audit_store(settings: Settings) -> AuditStore | None:
    """Pick the audit store from settings; None disables persistence."""
    if settings.mongodb_enabled:
        from notifyworker.stores.mongo import MongoAuditStore

        return MongoAuditStore(
            settings.mongodb_connection_string,
            settings.mongodb_database_name,
            settings.mongodb_collection_name,
        )
    if settings.redis_audit_enabled:
        from notifyworker.stores.redis_stream import RedisStreamAuditStore

        return RedisStreamAuditStore(settings.redis_audit_url, stream_key=settings.redis_audit_stream)
    return None


def build_consumer(settings: Settings) -> QueueConsumer:
    """Wire broker, notifier and audit store into a consumer."""
    broker = RabbitMQBroker(
        settings.rabbitmq_url,
        topology=QueueTopology(),
        reconnect_interval=settings.rabbitmq_reconnect_interval,
    )
    return QueueConsumer(
        broker=broker,
        invoker=DeliveryInvoker(EmailNotifier(settings.smtp)),
        audit_store=build_audit_store(settings),
        max_consecutive_broker_failures=settings.max_consecutive_broker_failures,
        pull_timeout=settings.pull_timeout,
        log_level=settings.logging_level,
    )


async def run_worker(settings: Settings) -> int:
    """Consume until a shutdown signal arrives. Returns the exit status."""
    consumer = build_consumer(settings)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, consumer.stop)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    try:
        async with consumer:
            stats = await consumer.run()
    except BrokerUnavailableError as e:
        log.error(f"Worker aborted: {e}")
        return 1

    log.info(
        "Worker finished",
        extra={
            "deliveries_received": stats.deliveries_received,
            "classifications": dict(stats.classifications),
        },
    )
    return 0


def parse_data(pairs: list[str]) -> dict[str, str]:
    """Parse KEY=VALUE pairs into a dict."""
    data: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {pair!r}")
        data[key] = value
    return data


async def publish_event(settings: Settings, event: NotificationEvent) -> None:
    """Publish a single event to the notification exchange."""
    broker = RabbitMQBroker(settings.rabbitmq_url, consume=False)
    await broker.connect()
    try:
        await broker.publish(event.to_json())
    finally:
        await broker.close()
    log.info(f"Published notification {event.id}", extra={"event_id": event.id, "event_type": event.type})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notifyworker", description="Notification queue worker")
    parser.add_argument("--log-level", default=None, help="Override NOTIFYWORKER_LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Consume notifications (default)")

    publish = subparsers.add_parser("publish", help="Publish one notification event")
    publish.add_argument("--type", "-t", required=True, help="Notification type, e.g. UserRegistration")
    publish.add_argument("--id", default=None, help="Event id (random UUID if omitted)")
    publish.add_argument("--data", "-d", nargs="*", default=[], metavar="KEY=VALUE")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level})

    get_logger("notifyworker", settings.logging_level)

    if args.command == "publish":
        try:
            data = parse_data(args.data)
        except argparse.ArgumentTypeError as e:
            parser.error(str(e))
        event = NotificationEvent(id=args.id or str(uuid4()), type=args.type, data=data)
        asyncio.run(publish_event(settings, event))
        return 0

    return asyncio.run(run_worker(settings))


if __name__ == "__main__":
    sys.exit(main())
