"""
Bounded polling for eventually consistent server-side changes.

The server applies creates and deletes asynchronously, so callers wait for
the resource to appear (or disappear) by probing it repeatedly.
"""

import time
from collections.abc import Callable
from enum import Enum
from typing import TypeVar

from vsts_cli.core.client import TimeoutExceeded
from vsts_cli.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_INTERVAL = 2.0

T = TypeVar("T")


class PollState(Enum):
    """States of a wait loop."""

    POLLING = "polling"
    SATISFIED = "satisfied"
    EXHAUSTED = "exhausted"


def wait_for(
    probe: Callable[[], T | None],
    want_present: bool,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL,
    description: str = "condition",
) -> T | None:
    """
    Call ``probe`` until its result matches the wanted state.

    A result is present when it is not None. Every probe is preceded by a
    sleep of ``interval`` seconds, including the first one. The attempt
    counter is bumped after each unmatched probe and polling continues while
    it is <= ``max_attempts``, so a condition that never holds is probed
    ``max_attempts + 1`` times.

    Args:
        probe: Zero-argument lookup returning the resource or None
        want_present: Wait for the resource to exist (True) or vanish (False)
        max_attempts: Retry budget after the first probe
        interval: Seconds to sleep before each probe
        description: Human-readable name of the awaited condition

    Returns:
        The last probe result (None when waiting for absence)

    Raises:
        TimeoutExceeded: If the budget is exhausted

    """
    state = PollState.POLLING
    attempts = 0
    result: T | None = None

    while state is PollState.POLLING:
        time.sleep(interval)
        result = probe()

        if (result is not None) == want_present:
            state = PollState.SATISFIED
            break

        attempts += 1
        logger.debug(f"Waiting for {description} (check {attempts}/{max_attempts + 1})")
        if attempts > max_attempts:
            state = PollState.EXHAUSTED

    if state is PollState.EXHAUSTED:
        logger.warning(f"Gave up waiting for {description} after {attempts} probes")
        raise TimeoutExceeded(description, attempts)

    return result
