"""Tests for readiness polling."""

from __future__ import annotations

import threading
import time

from relbot.core.result import Err, Ok, Result
from relbot.release.errors import ReleaseError
from relbot.release.poller import Cancellation, PollTask, wait_until_ready


class FakeClock:
    """Manual time source; sleeping advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return False


class CountingCheck:
    def __init__(self, ready_on: int | None) -> None:
        self.ready_on = ready_on
        self.calls = 0

    def __call__(self) -> Result[bool, ReleaseError]:
        self.calls += 1
        return Ok(self.ready_on is not None and self.calls >= self.ready_on)


def test_ready_immediately() -> None:
    clock = FakeClock()
    check = CountingCheck(ready_on=1)
    task = PollTask(resource="thing", check=check, interval=10, timeout=100)

    result = wait_until_ready(task, clock=clock, sleep=clock.sleep)

    assert result == Ok(0.0)
    assert check.calls == 1
    assert clock.sleeps == []


def test_ready_on_third_check() -> None:
    clock = FakeClock()
    check = CountingCheck(ready_on=3)
    task = PollTask(resource="thing", check=check, interval=10, timeout=100)

    result = wait_until_ready(task, clock=clock, sleep=clock.sleep)

    assert isinstance(result, Ok)
    assert 20 <= result.value <= 30
    assert result.value < task.timeout
    assert check.calls == 3


def test_never_ready_times_out_not_before_deadline() -> None:
    clock = FakeClock()
    check = CountingCheck(ready_on=None)
    task = PollTask(resource="PyPI package demo==1.0.0", check=check, interval=10, timeout=45)

    result = wait_until_ready(task, clock=clock, sleep=clock.sleep)

    assert isinstance(result, Err)
    assert result.error.kind == "timeout"
    assert clock.now >= task.timeout
    assert "PyPI package demo==1.0.0" in result.error.message
    assert "50s" in result.error.message


def test_check_error_propagates_without_retry() -> None:
    clock = FakeClock()
    calls: list[int] = []
    error = ReleaseError(kind="failure", message="CI failed: build #4 (failure)")

    def check() -> Result[bool, ReleaseError]:
        calls.append(1)
        return Err(error) if len(calls) == 2 else Ok(False)

    task = PollTask(resource="ci", check=check, interval=5, timeout=100)
    assert wait_until_ready(task, clock=clock, sleep=clock.sleep) == Err(error)
    assert len(calls) == 2


def test_on_poll_reports_attempts() -> None:
    clock = FakeClock()
    seen: list[tuple[int, float]] = []
    task = PollTask(resource="x", check=CountingCheck(ready_on=3), interval=5, timeout=100)

    wait_until_ready(task, clock=clock, sleep=clock.sleep, on_poll=lambda a, e: seen.append((a, e)))

    assert seen == [(1, 0.0), (2, 5.0)]


def test_cancelled_before_start() -> None:
    cancel = Cancellation()
    cancel.cancel()
    check = CountingCheck(ready_on=None)
    task = PollTask(resource="image", check=check, interval=5, timeout=100)

    result = wait_until_ready(task, cancel=cancel)

    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert check.calls == 0


def test_cancel_interrupts_sleep_promptly() -> None:
    cancel = Cancellation()
    task = PollTask(resource="slow", check=CountingCheck(ready_on=None), interval=60, timeout=600)
    threading.Timer(0.05, cancel.cancel).start()

    started = time.monotonic()
    result = wait_until_ready(task, cancel=cancel)
    elapsed = time.monotonic() - started

    assert isinstance(result, Err)
    assert result.error.kind == "cancelled"
    assert elapsed < 5


class TestCancellation:
    def test_wait_returns_false_on_timeout(self) -> None:
        assert Cancellation().wait(0.01) is False

    def test_wait_returns_true_when_cancelled(self) -> None:
        cancel = Cancellation()
        cancel.cancel()
        assert cancel.cancelled
        assert cancel.wait(10) is True

    def test_cancel_after(self) -> None:
        cancel = Cancellation()
        cancel.cancel_after(0.01)
        assert cancel.wait(5) is True

    def test_disarm(self) -> None:
        cancel = Cancellation()
        cancel.cancel_after(0.05)
        cancel.disarm()
        assert cancel.wait(0.1) is False
        assert not cancel.cancelled
