"""Tests for the command line entry point and wiring."""

import argparse
import logging

import pytest

from notifyworker import cli
from notifyworker.brokers.inmemory import InMemoryBroker
from notifyworker.brokers.rabbitmq import RabbitMQBroker
from notifyworker.config import Settings
from notifyworker.core.consumer import QueueConsumer
from notifyworker.core.delivery import DeliveryInvoker
from notifyworker.stores.mongo import MongoAuditStore
from notifyworker.stores.redis_stream import RedisStreamAuditStore
from tests.conftest import FakeNotifier


def test_parse_data():
    assert cli.parse_data(["UserEmail=a@x.com", "Note=a=b"]) == {
        "UserEmail": "a@x.com",
        "Note": "a=b",
    }


@pytest.mark.parametrize("pair", ["UserEmail", "=value"])
def test_parse_data_rejects_bad_pairs(pair):
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_data([pair])


def test_no_audit_store_when_unconfigured():
    assert cli.build_audit_store(Settings(_env_file=None)) is None


async def test_mongo_audit_store_when_configured():
    settings = Settings(
        _env_file=None,
        mongodb_connection_string="mongodb://localhost:27017",
        mongodb_database_name="notifications",
        mongodb_collection_name="logs",
    )

    store = cli.build_audit_store(settings)

    assert isinstance(store, MongoAuditStore)
    assert (store.database_name, store.collection_name) == ("notifications", "logs")
    await store.close()


def test_redis_audit_store_as_fallback():
    settings = Settings(_env_file=None, redis_audit_url="redis://localhost:6379")

    store = cli.build_audit_store(settings)

    assert isinstance(store, RedisStreamAuditStore)
    assert store.stream_key == "notifyworker:audit"


def test_build_consumer_wires_rabbitmq():
    consumer = cli.build_consumer(Settings(_env_file=None, pull_timeout=0.5))

    assert isinstance(consumer.broker, RabbitMQBroker)
    assert consumer.broker.topology.queue == "notification_queue"
    assert consumer.pull_timeout == 0.5
    assert consumer.recorder.enabled is False


async def test_run_worker_returns_error_status_when_broker_unreachable(monkeypatch):
    class UnreachableBroker(InMemoryBroker):
        async def connect(self) -> None:
            raise ConnectionRefusedError("refused")

    monkeypatch.setattr(
        cli,
        "build_consumer",
        lambda settings: QueueConsumer(UnreachableBroker(), DeliveryInvoker(FakeNotifier())),
    )

    assert await cli.run_worker(Settings(_env_file=None)) == 1


def test_main_publish(monkeypatch):
    published = []

    async def fake_publish(settings, event):
        published.append(event)

    monkeypatch.setattr(cli, "publish_event", fake_publish)

    status = cli.main(
        ["publish", "--type", "OrderCreated", "--id", "P1", "--data", "UserEmail=a@x.com", "OrderId=7"]
    )

    assert status == 0
    [event] = published
    assert event.id == "P1"
    assert event.type == "OrderCreated"
    assert event.data == {"UserEmail": "a@x.com", "OrderId": "7"}


def test_main_defaults_to_run(monkeypatch):
    async def fake_run_worker(settings):
        return 0

    monkeypatch.setattr(cli, "run_worker", fake_run_worker)

    assert cli.main([]) == 0


@pytest.fixture
def restore_log_levels():
    loggers = [logging.getLogger(name) for name in ("notifyworker", "notifyworker.consumer")]
    levels = [logger.level for logger in loggers]
    yield
    for logger, level in zip(loggers, levels):
        logger.setLevel(level)


def test_log_level_reaches_consumer_logger(monkeypatch, restore_log_levels):
    consumers = []

    async def fake_run_worker(settings):
        consumers.append(cli.build_consumer(settings))
        return 0

    monkeypatch.setattr(cli, "run_worker", fake_run_worker)

    assert cli.main(["--log-level", "WARNING"]) == 0

    assert len(consumers) == 1
    assert logging.getLogger("notifyworker").level == logging.WARNING
    assert logging.getLogger("notifyworker.consumer").level == logging.WARNING


def test_log_level_from_settings(restore_log_levels):
    cli.build_consumer(Settings(_env_file=None, log_level="debug"))

    assert logging.getLogger("notifyworker.consumer").level == logging.DEBUG
