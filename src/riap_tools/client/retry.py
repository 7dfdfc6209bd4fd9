"""Retry policy for connection establishment.

Only opening a connection is ever retried. Once a connection is up, any
failure of the exchange is final: a broken exchange on a live connection
means the two ends disagree about the protocol, and trying again would not
change that.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

from tenacity import (
    Retrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

from .exceptions import RiapError

logger = logging.getLogger("riap-tools")


@dataclass
class RetryState:
    """Bookkeeping for one logical request."""

    attempts_made: int = 0
    last_error: str = ""


def is_retryable(exception: BaseException) -> bool:
    """Check if the exception marks a transient connection failure.

    Args:
        exception: The exception to check

    Returns:
        True if the exception is a RiapError whose class is retryable
    """
    return isinstance(exception, RiapError) and exception.retryable


def get_retrying(
    retries: int,
    retry_delay: float,
    state: RetryState | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Retrying:
    """Create a tenacity controller for ``retries`` extra attempts.

    Args:
        retries: Attempts after the first one (0 disables retrying)
        retry_delay: Fixed pause between attempts, in seconds
        state: Optional RetryState updated after every failed attempt
        sleep: Sleep function (injectable for tests)

    Returns:
        A Retrying object; iterate it and run the attempt inside ``with``.

    Example:
        for attempt in get_retrying(2, 3.0):
            with attempt:
                conn = connect()
    """

    def record(retry_state: RetryCallState) -> None:
        if state is None:
            return
        state.attempts_made = retry_state.attempt_number
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            state.last_error = str(outcome.exception())

    return Retrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_fixed(retry_delay),
        retry=retry_if_exception(is_retryable),
        after=record,
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
