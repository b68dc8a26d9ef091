"""Bounded-interval polling for remote operations that complete eventually.

``wait_for`` turns a producer that returns ``None`` while a remote job is
still pending into a synchronous call that returns the first terminal value,
or ``None`` once the attempt budget is spent.
"""

import itertools
import logging
import threading
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PollingCancelled(Exception):
    """Raised when the cancellation event is set while polling."""

    def __init__(self, attempt: int) -> None:
        super().__init__(f"Polling cancelled before attempt {attempt}")
        self.attempt = attempt


def constant_interval(seconds: float) -> Callable[[int], float]:
    """Return an interval function that waits the same time before every attempt."""
    return lambda attempt: seconds


def wait_for(  # pylint: disable=too-many-arguments,too-many-positional-arguments
    producer: Callable[[int], Optional[T]],
    interval: Callable[[int], float],
    max_attempts: Optional[int] = None,
    sleep: Optional[Callable[[float], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[T]:
    """
    Repeatedly invoke ``producer`` until it returns a value or the budget runs out.

    Each attempt first waits ``interval(attempt)`` seconds and then calls
    ``producer(attempt)``. Attempts are numbered from 0.

    Args:
        producer: Called with the attempt index. Returns ``None`` while the
            operation is still pending, anything else once it is terminal.
        interval: Called with the attempt index, returns the delay in seconds
            to wait before that attempt.
        max_attempts: Maximum number of producer invocations. ``None`` polls
            until the producer returns a value.
        sleep: Function used to wait, defaults to time.sleep. Ignored when
            ``cancel_event`` is given, in which case ``cancel_event.wait`` is
            used so cancelling interrupts the wait.
        cancel_event: Optional event checked before every wait and before
            every producer call.

    Returns:
        The first non-None value produced, or None if ``max_attempts``
        invocations all returned None.

    Raises:
        PollingCancelled: If ``cancel_event`` is set.
        Exception: Anything raised by ``producer`` propagates unchanged.
    """
    sleep = sleep or time.sleep
    attempts = itertools.count() if max_attempts is None else range(max_attempts)

    for attempt in attempts:
        _check_cancelled(cancel_event, attempt)
        delay = interval(attempt)
        if delay and delay > 0:
            if cancel_event is not None:
                cancel_event.wait(delay)
            else:
                sleep(delay)

        _check_cancelled(cancel_event, attempt)
        result = producer(attempt)
        if result is not None:
            logger.debug("Polling finished on attempt %d", attempt)
            return result

    logger.debug("Polling gave up after %s attempts", max_attempts)
    return None


def _check_cancelled(cancel_event: Optional[threading.Event], attempt: int) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise PollingCancelled(attempt)
