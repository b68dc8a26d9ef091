"""Unit tests for the bounded polling combinator."""

import threading
from unittest.mock import MagicMock

import pytest

from databricks.labs.qualtrics_connector.libs.polling import (
    PollingCancelled,
    constant_interval,
    wait_for,
)


def _producer_ready_on(ready_attempt: int, value="done"):
    calls = []

    def producer(attempt: int):
        calls.append(attempt)
        return value if attempt == ready_attempt else None

    return producer, calls


@pytest.mark.parametrize("max_attempts", [1, 3, 18])
def test_wait_for_gives_up_after_max_attempts(max_attempts):
    sleep = MagicMock()
    calls = []

    def never_ready(attempt):
        calls.append(attempt)
        return None

    result = wait_for(never_ready, constant_interval(10), max_attempts, sleep=sleep)

    assert result is None
    assert calls == list(range(max_attempts))
    assert sleep.call_count == max_attempts


def test_wait_for_returns_first_value_and_stops():
    sleep = MagicMock()
    producer, calls = _producer_ready_on(3, value={"status": "complete"})

    result = wait_for(producer, constant_interval(10), 18, sleep=sleep)

    assert result == {"status": "complete"}
    assert calls == [0, 1, 2, 3]


def test_wait_for_waits_before_each_attempt():
    events = []

    def producer(attempt):
        events.append(("call", attempt))
        return "ok" if attempt == 1 else None

    wait_for(
        producer,
        lambda attempt: attempt + 1,
        5,
        sleep=lambda seconds: events.append(("sleep", seconds)),
    )

    assert events == [("sleep", 1), ("call", 0), ("sleep", 2), ("call", 1)]


def test_wait_for_skips_zero_delay():
    sleep = MagicMock()
    producer, _ = _producer_ready_on(2)

    assert wait_for(producer, constant_interval(0), 5, sleep=sleep) == "done"
    sleep.assert_not_called()


def test_wait_for_unbounded_polls_until_ready():
    sleep = MagicMock()
    producer, calls = _producer_ready_on(50)

    assert wait_for(producer, constant_interval(1), None, sleep=sleep) == "done"
    assert len(calls) == 51


def test_wait_for_treats_falsy_values_as_terminal():
    producer, calls = _producer_ready_on(0, value=0)

    assert wait_for(producer, constant_interval(0), 5) == 0
    assert calls == [0]


def test_wait_for_propagates_producer_errors():
    calls = []

    def failing(attempt):
        calls.append(attempt)
        if attempt == 1:
            raise RuntimeError("boom")
        return None

    with pytest.raises(RuntimeError, match="boom"):
        wait_for(failing, constant_interval(0), 5)
    assert calls == [0, 1]


def test_wait_for_cancelled_before_first_attempt():
    cancel = threading.Event()
    cancel.set()
    producer = MagicMock(return_value=None)

    with pytest.raises(PollingCancelled) as exc_info:
        wait_for(producer, constant_interval(0), 5, cancel_event=cancel)

    assert exc_info.value.attempt == 0
    producer.assert_not_called()


def test_wait_for_cancelled_between_attempts():
    cancel = threading.Event()
    calls = []

    def producer(attempt):
        calls.append(attempt)
        if attempt == 1:
            cancel.set()
        return None

    with pytest.raises(PollingCancelled) as exc_info:
        wait_for(producer, constant_interval(0), 10, cancel_event=cancel)

    assert calls == [0, 1]
    assert exc_info.value.attempt == 2


def test_wait_for_cancel_interrupts_wait():
    cancel = threading.Event()
    producer = MagicMock(return_value=None)
    timer = threading.Timer(0.05, cancel.set)
    timer.start()
    try:
        with pytest.raises(PollingCancelled):
            # Without cancellation this would wait an hour before the first call.
            wait_for(producer, constant_interval(3600), 1, cancel_event=cancel)
    finally:
        timer.cancel()
    producer.assert_not_called()
