"""Event sinks: where pipeline events end up.

- HeadlessSink: one console line per event (CI logs, ``--no-tui``)
- LiveSink: a Rich live table rebuilt from ``reduce_display``
- QueuedSink: decouples a sink from the pipeline thread through a bounded queue
- RecordingSink: keeps events in memory for tests
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from relbot.output.console import ConsoleProtocol, Style
from relbot.release.events import (
    Event,
    EventSink,
    RunFinished,
    StepFinished,
    StepLog,
    StepProgress,
    StepStarted,
    StepStatus,
)

if TYPE_CHECKING:
    from rich.console import Console, RenderableType
    from rich.live import Live

    from relbot.release.pipeline import RunOutcome

__all__ = [
    "DisplayState",
    "HeadlessSink",
    "LiveSink",
    "QueuedSink",
    "RecordingSink",
    "StepView",
    "reduce_display",
]


# =============================================================================
# Headless
# =============================================================================


class HeadlessSink:
    """Writes each event as a console line."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console

    def emit(self, event: Event) -> None:
        c = self._console
        match event:
            case StepStarted(index=index, name=name):
                c.print(f"[{index}] {name}", Style.INFO)
            case StepFinished(status=StepStatus.SKIPPED, name=name):
                c.print(f"    skipped: {name}", Style.DIM)
            case StepFinished(status=StepStatus.ERROR, name=name, error=error, detail=detail):
                c.error(f"{name}: {error.message if error is not None else detail}")
                if error is not None and error.hint:
                    c.print(f"    hint: {error.hint}", Style.DIM)
            case StepFinished(name=name, detail=detail):
                c.success(f"{name}: {detail}" if detail else name)
            case StepProgress(current=current, total=total, label=label):
                prefix = f"{label} " if label else ""
                c.print(f"    {prefix}{current}/{total}", Style.DIM)
            case StepLog(line=line):
                c.print(f"    {line}", Style.DIM)
            case RunFinished(outcome=outcome):
                if outcome.ok:
                    c.success(outcome.describe())
                else:
                    c.error(outcome.describe())

    def close(self) -> None:
        return None


# =============================================================================
# Display reducer + live display
# =============================================================================


@dataclass(frozen=True, slots=True)
class StepView:
    index: int
    name: str
    status: StepStatus = StepStatus.PENDING
    detail: str | None = None
    progress: tuple[int, int] | None = None
    progress_label: str | None = None
    simulated: bool = False


@dataclass(frozen=True, slots=True)
class DisplayState:
    steps: tuple[StepView, ...] = ()
    last_log: str | None = None
    outcome: RunOutcome | None = None

    @staticmethod
    def initial(step_names: list[str] | tuple[str, ...]) -> DisplayState:
        return DisplayState(steps=tuple(StepView(index=i, name=n) for i, n in enumerate(step_names, start=1)))


def _with_step(state: DisplayState, index: int, name: str | None, **changes: object) -> DisplayState:
    steps = list(state.steps)
    for pos, view in enumerate(steps):
        if view.index == index:
            steps[pos] = replace(view, **changes)  # type: ignore[arg-type]
            return replace(state, steps=tuple(steps))
    steps.append(replace(StepView(index=index, name=name or f"step {index}"), **changes))  # type: ignore[arg-type]
    steps.sort(key=lambda v: v.index)
    return replace(state, steps=tuple(steps))


def reduce_display(state: DisplayState, event: Event) -> DisplayState:
    """Pure transition: (previous display state, event) -> next state."""
    match event:
        case StepStarted(index=index, name=name):
            return _with_step(state, index, name, name=name, status=StepStatus.RUNNING)
        case StepFinished(index=index, name=name, status=status, detail=detail, simulated=simulated):
            return _with_step(
                state,
                index,
                name,
                status=status,
                detail=detail,
                simulated=simulated,
                progress=None,
                progress_label=None,
            )
        case StepProgress(index=index, current=current, total=total, label=label):
            return _with_step(state, index, None, progress=(current, total), progress_label=label)
        case StepLog(line=line):
            return replace(state, last_log=line)
        case RunFinished(outcome=outcome):
            return replace(state, outcome=outcome)
    return state


_STATUS_GLYPH = {
    StepStatus.PENDING: ("·", "dim"),
    StepStatus.RUNNING: ("…", "cyan"),
    StepStatus.DONE: ("✓", "green"),
    StepStatus.SKIPPED: ("-", "dim"),
    StepStatus.ERROR: ("✗", "red bold"),
}


def render_display(state: DisplayState) -> RenderableType:
    from rich.table import Table
    from rich.text import Text

    table = Table.grid(padding=(0, 1))
    table.add_column(width=1)
    table.add_column()
    table.add_column(style="dim")

    for view in state.steps:
        glyph, style = _STATUS_GLYPH[view.status]
        info = view.detail or ""
        if view.status == StepStatus.RUNNING and view.progress is not None:
            current, total = view.progress
            label = f"{view.progress_label} " if view.progress_label else ""
            info = f"{label}{current}/{total}"
        elif view.status == StepStatus.SKIPPED:
            info = "skipped"
        table.add_row(Text(glyph, style=style), Text(view.name), Text(info))

    if state.last_log and state.outcome is None:
        table.add_row("", Text(state.last_log, style="dim"), "")
    if state.outcome is not None:
        style = "green" if state.outcome.ok else "red bold"
        table.add_row("", Text(state.outcome.describe(), style=style), "")
    return table


class LiveSink:
    """Interactive display redrawn on every event."""

    def __init__(self, console: Console, step_names: list[str] | tuple[str, ...]) -> None:
        from rich.live import Live

        self.state = DisplayState.initial(step_names)
        self._live: Live = Live(render_display(self.state), console=console, refresh_per_second=8, transient=False)
        self._live.start()

    def emit(self, event: Event) -> None:
        self.state = reduce_display(self.state, event)
        self._live.update(render_display(self.state), refresh=True)

    def close(self) -> None:
        self._live.stop()


# =============================================================================
# Bounded queue
# =============================================================================


class _Stop:
    pass


_STOP = _Stop()


class QueuedSink:
    """Forwards events to ``inner`` from a background drain thread.

    The queue is bounded. When it is full, progress and log events evict the
    oldest queued event immediately; lifecycle events (step started/finished,
    run finished) wait up to ``put_timeout`` for room and then evict the
    oldest. ``emit`` therefore never blocks the pipeline indefinitely.
    """

    def __init__(self, inner: EventSink, *, maxsize: int = 256, put_timeout: float = 1.0) -> None:
        self._inner = inner
        self._queue: queue.Queue[Event | _Stop] = queue.Queue(maxsize=maxsize)
        self._put_timeout = put_timeout
        self._lock = threading.Lock()
        self._closed = False
        self._exc: BaseException | None = None
        self.dropped = 0
        self._thread = threading.Thread(target=self._drain, name="relbot-events", daemon=True)
        self._thread.start()

    def emit(self, event: Event) -> None:
        if self._closed:
            return
        lossy = isinstance(event, StepProgress | StepLog)
        self._put(event, wait=None if lossy else self._put_timeout)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._put(_STOP, wait=self._put_timeout)
        self._thread.join()
        self._inner.close()
        if self._exc is not None:
            raise self._exc

    def _put(self, item: Event | _Stop, *, wait: float | None) -> None:
        with self._lock:
            if wait is not None:
                try:
                    self._queue.put(item, timeout=wait)
                    return
                except queue.Full:
                    pass
            while True:
                try:
                    self._queue.put_nowait(item)
                    return
                except queue.Full:
                    self._evict_oldest()

    def _evict_oldest(self) -> None:
        # The stop marker is only queued by close(), after the last emit.
        try:
            self._queue.get_nowait()
        except queue.Empty:
            return
        self.dropped += 1

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            if isinstance(item, _Stop):
                return
            if self._exc is not None:
                continue
            try:
                self._inner.emit(item)
            except Exception as e:  # noqa: BLE001
                # Surfaced from close(); remaining events are discarded.
                self._exc = e


# =============================================================================
# Recording (tests)
# =============================================================================


def _empty_events() -> list[Event]:
    return []


@dataclass
class RecordingSink:
    events: list[Event] = field(default_factory=_empty_events)
    closed: bool = False

    def emit(self, event: Event) -> None:
        self.events.append(event)

    def close(self) -> None:
        self.closed = True

    def of_type[T](self, kind: type[T]) -> list[T]:
        return [e for e in self.events if isinstance(e, kind)]

    def finished(self) -> list[tuple[str, StepStatus]]:
        return [(e.name, e.status) for e in self.of_type(StepFinished)]
