from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

from ..utils.logging import get_logger

T = TypeVar("T")
logger = get_logger("cr.fetchers.retry")


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    """Exponential backoff: ``initial_delay * multiplier**n`` capped at ``max_delay``.

    ``max_attempts`` counts the first call, so 3 means at most two retries.
    """

    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 10.0
    max_attempts: int = 3

    def delays(self) -> Iterator[float]:
        """Sleep before each retry, in seconds (``max_attempts - 1`` values)."""
        delay = self.initial_delay
        for _ in range(max(self.max_attempts - 1, 0)):
            yield min(delay, self.max_delay)
            delay *= self.multiplier


def with_retries(
    operation: Callable[[], T],
    *,
    should_retry: Callable[[T], bool],
    policy: BackoffPolicy,
    sleep: Callable[[float], None] = time.sleep,
    describe: Optional[Callable[[T], str]] = None,
) -> T:
    """Call ``operation`` until ``should_retry`` rejects its result or attempts run out.

    The operation reports failures through its return value; the last result
    is returned either way.
    """
    delays = policy.delays()
    attempt = 1
    result = operation()
    while should_retry(result):
        delay = next(delays, None)
        if delay is None:
            logger.warning(
                "Giving up after %s attempt(s): %s",
                attempt,
                describe(result) if describe else result,
            )
            break
        logger.warning(
            "Attempt %s/%s failed: %s; retrying in %.1fs",
            attempt,
            policy.max_attempts,
            describe(result) if describe else result,
            delay,
        )
        sleep(delay)
        attempt += 1
        result = operation()
    return result
