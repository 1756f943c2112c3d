"""Events emitted by the release pipeline.

The pipeline never renders anything; it emits these values to exactly one
``EventSink`` per run. Sinks decide whether they become log lines or a live
display.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from relbot.release.errors import ReleaseError
    from relbot.release.pipeline import RunOutcome

__all__ = [
    "Event",
    "EventSink",
    "RunFinished",
    "StepFinished",
    "StepLog",
    "StepProgress",
    "StepStarted",
    "StepStatus",
]


class StepStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    SKIPPED = "skipped"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.DONE, StepStatus.SKIPPED, StepStatus.ERROR)


@dataclass(frozen=True, slots=True)
class StepStarted:
    index: int
    name: str


@dataclass(frozen=True, slots=True)
class StepFinished:
    index: int
    name: str
    status: StepStatus
    detail: str | None = None
    error: ReleaseError | None = None
    # True when a dry run replaced the mutation with a "would ..." report.
    simulated: bool = False


@dataclass(frozen=True, slots=True)
class StepProgress:
    """Sub-step progress, e.g. pull requests fetched so far."""

    index: int
    current: int
    total: int
    label: str | None = None

    @property
    def fraction(self) -> float:
        if self.total <= 0:
            return 0.0
        return min(1.0, max(0.0, self.current / self.total))


@dataclass(frozen=True, slots=True)
class StepLog:
    index: int
    line: str


@dataclass(frozen=True, slots=True)
class RunFinished:
    outcome: RunOutcome


type Event = StepStarted | StepFinished | StepProgress | StepLog | RunFinished


class EventSink(Protocol):
    def emit(self, event: Event) -> None: ...

    def close(self) -> None:
        """Flush pending events; no events are accepted afterwards."""
        ...
