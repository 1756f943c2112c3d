"""Retry with exponential backoff for idempotent reads.

Only errors the caller classifies as recoverable (rate limits, 5xx
responses, timeouts) are retried; everything else is returned at once.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from relbot.core.result import Err, Result
from relbot.release.timeouts import (
    RETRY_ATTEMPTS,
    RETRY_INITIAL_DELAY_SECONDS,
    RETRY_MAX_DELAY_SECONDS,
)

__all__ = ["RetryPolicy", "retry"]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    attempts: int = RETRY_ATTEMPTS
    initial_delay: float = RETRY_INITIAL_DELAY_SECONDS
    max_delay: float = RETRY_MAX_DELAY_SECONDS
    multiplier: float = 2.0

    def delays(self) -> Iterator[float]:
        """Sleep before each retry (``attempts - 1`` values)."""
        delay = self.initial_delay
        for _ in range(max(1, self.attempts) - 1):
            yield min(delay, self.max_delay)
            delay *= self.multiplier


DEFAULT_POLICY = RetryPolicy()


def retry[T, E](
    operation: Callable[[], Result[T, E]],
    *,
    recoverable: Callable[[E], bool],
    policy: RetryPolicy = DEFAULT_POLICY,
    sleep: Callable[[float], None] = time.sleep,
) -> Result[T, E]:
    """Run ``operation``, retrying recoverable errors per ``policy``.

    The last error is returned once attempts are exhausted.
    """
    delays = policy.delays()
    while True:
        result = operation()
        if not isinstance(result, Err) or not recoverable(result.error):
            return result
        delay = next(delays, None)
        if delay is None:
            return result
        sleep(delay)
