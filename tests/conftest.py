"""Pytest configuration, Hypothesis profiles and shared test doubles."""

import json
import logging
from typing import Any

import pytest
from hypothesis import settings
from hypothesis import strategies as st

from notifyworker.brokers.inmemory import InMemoryBroker
from notifyworker.core.audit import InMemoryAuditStore
from notifyworker.core.consumer import QueueConsumer
from notifyworker.core.delivery import DeliveryInvoker
from notifyworker.core.event import NotificationEvent

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("dev", max_examples=20, deadline=None)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")


# =============================================================================
# Strategies
# =============================================================================


def event_ids() -> st.SearchStrategy[str]:
    return st.from_regex(r"[A-Za-z0-9][A-Za-z0-9_-]{0,35}", fullmatch=True)


def data_values() -> st.SearchStrategy[str]:
    return st.text(alphabet=st.characters(exclude_categories=("Cs",)), min_size=1, max_size=30)


@st.composite
def user_registration_payloads(draw: st.DrawFn) -> dict[str, Any]:
    """Wire payloads for deliverable UserRegistration events."""
    return {
        "id": draw(event_ids()),
        "type": "UserRegistration",
        "data": {
            "UserEmail": draw(st.emails()),
            "UserName": draw(data_values()),
        },
    }


@st.composite
def order_created_payloads(draw: st.DrawFn) -> dict[str, Any]:
    """Wire payloads for deliverable OrderCreated events."""
    return {
        "id": draw(event_ids()),
        "type": "OrderCreated",
        "data": {
            "UserEmail": draw(st.emails()),
            "OrderId": str(draw(st.integers(min_value=1, max_value=10**9))),
        },
    }


def deliverable_payloads() -> st.SearchStrategy[dict[str, Any]]:
    return user_registration_payloads() | order_created_payloads()


def malformed_bodies() -> st.SearchStrategy[bytes]:
    """Bodies that can never decode into a NotificationEvent."""
    truncated = deliverable_payloads().map(lambda p: json.dumps(p).encode()).flatmap(
        lambda b: st.integers(min_value=0, max_value=len(b) - 1).map(lambda n: b[:n])
    )
    missing_id = deliverable_payloads().map(
        lambda p: json.dumps({k: v for k, v in p.items() if k != "id"}).encode()
    )
    missing_type = deliverable_payloads().map(
        lambda p: json.dumps({k: v for k, v in p.items() if k != "type"}).encode()
    )
    not_objects = st.sampled_from([b"[]", b"null", b"42", b'"text"', b"", b"\xff\xfe"])
    return truncated | missing_id | missing_type | not_objects


def encode(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload).encode("utf-8")


# =============================================================================
# Test doubles
# =============================================================================


class FakeNotifier:
    """Notifier recording every call.

    Args:
        result: Value returned by send.
        error: Exception raised by send instead of returning.
    """

    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[NotificationEvent] = []

    async def send(self, event: NotificationEvent) -> bool:
        self.calls.append(event)
        if self.error is not None:
            raise self.error
        return self.result


class LogCapture(logging.Handler):
    """Custom handler to capture log records for testing."""

    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()


class FailingAuditStore:
    """Audit store whose appends always fail."""

    def __init__(self, error: Exception | None = None) -> None:
        self.error = error or ConnectionError("audit store unreachable")
        self.attempts = 0

    async def append(self, document: dict[str, Any]) -> None:
        self.attempts += 1
        raise self.error


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def audit_store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


@pytest.fixture
async def broker():
    broker = InMemoryBroker()
    await broker.connect()
    yield broker
    await broker.close()


@pytest.fixture
def consumer(broker: InMemoryBroker, notifier: FakeNotifier, audit_store: InMemoryAuditStore) -> QueueConsumer:
    return QueueConsumer(
        broker=broker,
        invoker=DeliveryInvoker(notifier),
        audit_store=audit_store,
        pull_timeout=0.05,
    )
