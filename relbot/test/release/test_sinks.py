"""Tests for event sinks and the display reducer."""

from __future__ import annotations

import io
import threading
import time

import pytest
from rich.console import Console

from relbot.output.console import MockConsole, Style
from relbot.release.errors import ReleaseError
from relbot.release.events import (
    Event,
    RunFinished,
    StepFinished,
    StepLog,
    StepProgress,
    StepStarted,
    StepStatus,
)
from relbot.release.pipeline import RunOutcome
from relbot.release.sinks import (
    DisplayState,
    HeadlessSink,
    LiveSink,
    QueuedSink,
    RecordingSink,
    StepView,
    reduce_display,
    render_display,
)


class TestReduceDisplay:
    def test_initial_state(self) -> None:
        state = DisplayState.initial(["A", "B"])
        assert state.steps == (StepView(index=1, name="A"), StepView(index=2, name="B"))
        assert state.outcome is None

    def test_lifecycle(self) -> None:
        state = DisplayState.initial(["A", "B"])
        events: list[Event] = [
            StepStarted(index=1, name="A"),
            StepProgress(index=1, current=1, total=4, label="pull requests"),
            StepLog(index=1, line="fetched"),
        ]
        for event in events:
            state = reduce_display(state, event)

        assert state.steps[0].status == StepStatus.RUNNING
        assert state.steps[0].progress == (1, 4)
        assert state.steps[0].progress_label == "pull requests"
        assert state.last_log == "fetched"
        assert state.steps[1].status == StepStatus.PENDING

        state = reduce_display(state, StepFinished(index=1, name="A", status=StepStatus.DONE, detail="ok"))
        assert state.steps[0].status == StepStatus.DONE
        assert state.steps[0].progress is None
        assert state.steps[0].detail == "ok"

    def test_is_pure(self) -> None:
        before = DisplayState.initial(["A"])
        after = reduce_display(before, StepStarted(index=1, name="A"))
        assert before.steps[0].status == StepStatus.PENDING
        assert after is not before

    def test_unknown_step_is_added_in_order(self) -> None:
        state = DisplayState.initial(["A", "C"])
        state = reduce_display(state, StepStarted(index=3, name="C2"))
        state = reduce_display(state, StepStarted(index=2, name="B"))
        assert [v.index for v in state.steps] == [1, 2, 3]

    def test_run_finished(self) -> None:
        outcome = RunOutcome(kind="success")
        state = reduce_display(DisplayState(), RunFinished(outcome=outcome))
        assert state.outcome == outcome

    def test_render_does_not_fail(self) -> None:
        state = DisplayState.initial(["A", "B", "C"])
        state = reduce_display(state, StepStarted(index=1, name="A"))
        state = reduce_display(state, StepProgress(index=1, current=2, total=3))
        state = reduce_display(state, StepFinished(index=2, name="B", status=StepStatus.SKIPPED))
        console = Console(record=True, width=80, file=io.StringIO())
        console.print(render_display(state))
        text = console.export_text()
        assert "A" in text and "2/3" in text and "skipped" in text


class TestHeadlessSink:
    def test_writes_lines(self) -> None:
        console = MockConsole()
        sink = HeadlessSink(console)
        error = ReleaseError(kind="failure", message="push rejected", hint="pull first")

        sink.emit(StepStarted(index=1, name="Build recipes"))
        sink.emit(StepFinished(index=1, name="Build recipes", status=StepStatus.SKIPPED))
        sink.emit(StepStarted(index=2, name="Push to remote"))
        sink.emit(StepProgress(index=2, current=1, total=2, label="refs"))
        sink.emit(StepFinished(index=2, name="Push to remote", status=StepStatus.ERROR, error=error))
        outcome = RunOutcome(kind="failed", step_index=2, step_name="Push to remote", error=error)
        sink.emit(RunFinished(outcome=outcome))
        sink.close()

        assert console.messages == [
            "[1] Build recipes",
            "    skipped: Build recipes",
            "[2] Push to remote",
            "    refs 1/2",
            "error: Push to remote: push rejected",
            "    hint: pull first",
            "error: failed at step 2 (Push to remote): push rejected (pull first)",
        ]

    def test_done_with_detail(self) -> None:
        console = MockConsole()
        HeadlessSink(console).emit(
            StepFinished(index=3, name="Commit & tag", status=StepStatus.DONE, detail="tagged v1.0.0")
        )
        assert console.outputs[0].message == "✓ Commit & tag: tagged v1.0.0"
        assert console.outputs[0].style == Style.SUCCESS


class TestLiveSink:
    def test_updates_state(self) -> None:
        console = Console(file=io.StringIO(), force_terminal=False, width=80)
        sink = LiveSink(console, ["A", "B"])
        sink.emit(StepStarted(index=1, name="A"))
        sink.emit(StepFinished(index=1, name="A", status=StepStatus.DONE, detail="ok"))
        sink.close()
        assert sink.state.steps[0].status == StepStatus.DONE


class SlowSink:
    def __init__(self, delay: float) -> None:
        self.delay = delay
        self.events: list[Event] = []
        self.closed = False

    def emit(self, event: Event) -> None:
        time.sleep(self.delay)
        self.events.append(event)

    def close(self) -> None:
        self.closed = True


class TestQueuedSink:
    def test_forwards_in_order_and_closes_inner(self) -> None:
        inner = RecordingSink()
        sink = QueuedSink(inner)
        events: list[Event] = [StepStarted(index=i, name=f"S{i}") for i in range(1, 6)]
        for event in events:
            sink.emit(event)
        sink.close()

        assert inner.events == events
        assert inner.closed
        assert sink.dropped == 0

    def test_slow_consumer_never_blocks_progress(self) -> None:
        inner = SlowSink(delay=0.05)
        sink = QueuedSink(inner, maxsize=2, put_timeout=0.01)

        started = time.monotonic()
        for i in range(50):
            sink.emit(StepProgress(index=1, current=i, total=50))
        elapsed = time.monotonic() - started
        sink.emit(StepFinished(index=1, name="A", status=StepStatus.DONE))
        sink.close()

        assert elapsed < 1.0
        assert sink.dropped > 0
        # The lifecycle event emitted last is never the one evicted.
        assert isinstance(inner.events[-1], StepFinished)

    def test_emit_after_close_is_ignored(self) -> None:
        inner = RecordingSink()
        sink = QueuedSink(inner)
        sink.close()
        sink.emit(StepStarted(index=1, name="late"))
        sink.close()
        assert inner.events == []

    def test_inner_exception_surfaces_on_close(self) -> None:
        class Broken:
            def emit(self, event: Event) -> None:
                raise ValueError("render failed")

            def close(self) -> None:
                pass

        sink = QueuedSink(Broken())
        sink.emit(StepStarted(index=1, name="A"))
        with pytest.raises(ValueError, match="render failed"):
            sink.close()

    def test_concurrent_emitters(self) -> None:
        inner = RecordingSink()
        sink = QueuedSink(inner, maxsize=1024)

        def produce(offset: int) -> None:
            for i in range(100):
                sink.emit(StepLog(index=offset, line=str(i)))

        threads = [threading.Thread(target=produce, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        sink.close()

        assert len(inner.events) + sink.dropped == 400


class TestRecordingSink:
    def test_helpers(self) -> None:
        sink = RecordingSink()
        sink.emit(StepStarted(index=1, name="A"))
        sink.emit(StepFinished(index=1, name="A", status=StepStatus.DONE))
        assert len(sink.of_type(StepStarted)) == 1
        assert sink.finished() == [("A", StepStatus.DONE)]
