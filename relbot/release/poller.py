"""Bounded readiness polling.

One loop serves every wait in a release (CI completion, package index,
container registry): call ``check`` until it reports ready, the deadline
passes, or the wait is cancelled. A check that returns an error ends the
wait immediately; retrying flaky calls is the check's own business.

Usage:
    cancel = Cancellation()
    task = PollTask(resource="pypi demo==1.2.3", check=index.check_ready, interval=5, timeout=300)
    match wait_until_ready(task, cancel=cancel):
        case Ok(elapsed):
            print(f"ready after {elapsed:.0f}s")
        case Err(e):
            print(e.message)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from relbot.core.result import Err, Ok, Result
from relbot.release.errors import ReleaseError

__all__ = [
    "Cancellation",
    "PollTask",
    "ReadinessCheck",
    "wait_until_ready",
]


class ReadinessCheck(Protocol):
    """Something whose availability can be queried once."""

    def check_ready(self) -> Result[bool, ReleaseError]: ...


@dataclass(frozen=True, slots=True)
class PollTask:
    resource: str
    check: Callable[[], Result[bool, ReleaseError]]
    interval: float
    timeout: float


class Cancellation:
    """Cancellation signal shared between a waiter and whoever may abort it.

    ``wait`` doubles as an interruptible sleep.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._timer: threading.Timer | None = None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True if cancelled meanwhile."""
        return self._event.wait(max(0.0, seconds))

    def cancel_after(self, seconds: float) -> None:
        """Arm a run-level deadline."""
        self.disarm()
        timer = threading.Timer(seconds, self.cancel)
        timer.daemon = True
        timer.start()
        self._timer = timer

    def disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


def _format_elapsed(seconds: float) -> str:
    whole = int(seconds)
    if whole < 60:
        return f"{whole}s"
    minutes, secs = divmod(whole, 60)
    return f"{minutes}m{secs:02d}s"


def wait_until_ready(
    task: PollTask,
    *,
    cancel: Cancellation | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], bool] | None = None,
    on_poll: Callable[[int, float], None] | None = None,
) -> Result[float, ReleaseError]:
    """Poll ``task.check`` until ready.

    Args:
        task: What to poll and how often.
        cancel: Aborts the wait promptly, including mid-sleep.
        clock: Monotonic time source.
        sleep: Interruptible sleep returning True when cancelled
            (defaults to ``cancel.wait``, or ``time.sleep``).
        on_poll: Called after each unsuccessful check with the attempt
            number and elapsed seconds.

    Returns:
        Ok(elapsed seconds) once ready; Err with kind ``timeout``,
        ``cancelled`` or whatever the check returned.
    """
    if sleep is None:
        sleep = cancel.wait if cancel is not None else _plain_sleep

    start = clock()
    attempt = 0
    while True:
        if cancel is not None and cancel.cancelled:
            return Err(_cancelled(task, clock() - start))

        attempt += 1
        result = task.check()
        if isinstance(result, Err):
            return result

        elapsed = clock() - start
        if result.value:
            return Ok(elapsed)

        if elapsed >= task.timeout:
            return Err(
                ReleaseError(
                    kind="timeout",
                    message=f"timed out waiting for {task.resource} after {_format_elapsed(elapsed)}",
                    hint=f"timeout is {_format_elapsed(task.timeout)}",
                )
            )

        if on_poll is not None:
            on_poll(attempt, elapsed)

        if sleep(task.interval) or (cancel is not None and cancel.cancelled):
            return Err(_cancelled(task, clock() - start))


def _plain_sleep(seconds: float) -> bool:
    time.sleep(seconds)
    return False


def _cancelled(task: PollTask, elapsed: float) -> ReleaseError:
    return ReleaseError(
        kind="cancelled",
        message=f"cancelled while waiting for {task.resource} after {_format_elapsed(elapsed)}",
    )
