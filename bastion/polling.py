"""
Bounded polling with backoff.
"""

import logging
import time
from typing import Callable, Optional, TypeVar

from .errors import ProvisioningTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


def poll_until(
    check: Callable[[], Optional[T]],
    timeout: float,
    interval: float = 5.0,
    backoff: float = 1.0,
    max_interval: float = 30.0,
    description: str = "condition",
    sleep: Optional[Callable[[float], None]] = None,
    clock: Optional[Callable[[], float]] = None,
) -> T:
    """
    Call ``check`` until it returns a truthy value or the deadline passes.

    Args:
        check: Callable returning a truthy result when the wait is over
        timeout: Seconds to wait in total
        interval: Initial delay between attempts
        backoff: Multiplier applied to the delay after each attempt
        max_interval: Upper bound for the delay
        description: What is being waited for, used in messages
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        The first truthy value returned by ``check``

    Raises:
        ProvisioningTimeout: If the deadline passes first
    """
    sleep = sleep or time.sleep
    clock = clock or time.monotonic

    deadline = clock() + timeout
    delay = interval
    attempt = 0

    while True:
        attempt += 1
        result = check()
        if result:
            logger.debug(f"{description} ready after {attempt} attempt(s)")
            return result

        remaining = deadline - clock()
        if remaining <= 0:
            raise ProvisioningTimeout(description, timeout)

        logger.debug(f"Waiting for {description} (attempt {attempt}, next in {delay:g}s)")
        sleep(min(delay, remaining))
        delay = min(delay * backoff, max_interval)
