"""Tests for outcome classification."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from notifyworker.core.classifier import (
    ACK_ACTIONS,
    AckAction,
    Classification,
    DeliveryResult,
    DeliveryStatus,
    classify,
)


@pytest.mark.parametrize(
    ("decoded", "result", "fault", "expected"),
    [
        (False, None, False, (Classification.MALFORMED, AckAction.REJECT)),
        (
            True,
            DeliveryResult(DeliveryStatus.UNSUPPORTED_TYPE, "unsupported"),
            False,
            (Classification.PERMANENT_FAILURE, AckAction.NACK),
        ),
        (
            True,
            DeliveryResult(DeliveryStatus.MISSING_DATA, "missing OrderId"),
            False,
            (Classification.PERMANENT_FAILURE, AckAction.NACK),
        ),
        (
            True,
            DeliveryResult(DeliveryStatus.FAILED, "SMTP down"),
            False,
            (Classification.TRANSIENT_FAILURE, AckAction.REQUEUE),
        ),
        (True, None, True, (Classification.TRANSIENT_FAILURE, AckAction.REQUEUE)),
        (
            True,
            DeliveryResult(DeliveryStatus.DELIVERED),
            False,
            (Classification.DELIVERED, AckAction.ACK),
        ),
    ],
)
def test_classification_table(decoded, result, fault, expected):
    assert classify(decoded, result, fault) == expected


def test_decode_failure_wins_over_everything():
    result = DeliveryResult(DeliveryStatus.DELIVERED)
    assert classify(False, result, fault=True) == (Classification.MALFORMED, AckAction.REJECT)


def test_fault_wins_over_delivery_result():
    result = DeliveryResult(DeliveryStatus.DELIVERED)
    assert classify(True, result, fault=True) == (
        Classification.TRANSIENT_FAILURE,
        AckAction.REQUEUE,
    )


def test_missing_result_without_fault_is_transient():
    assert classify(True) == (Classification.TRANSIENT_FAILURE, AckAction.REQUEUE)


def test_every_classification_has_one_action():
    assert set(ACK_ACTIONS) == set(Classification)
    assert len(set(ACK_ACTIONS.values())) == len(Classification)


@given(
    decoded=st.booleans(),
    status=st.none() | st.sampled_from(DeliveryStatus),
    fault=st.booleans(),
)
def test_only_transient_failures_requeue(decoded, status, fault):
    result = None if status is None else DeliveryResult(status, None)
    classification, action = classify(decoded, result, fault)

    assert action is ACK_ACTIONS[classification]
    assert (action is AckAction.REQUEUE) == (classification is Classification.TRANSIENT_FAILURE)
