"""Sequential release pipeline.

A pipeline is a fixed, ordered list of gated steps. Steps run strictly one
after another; the first step that fails halts the run and every later step
stays ``pending``. Nothing is rolled back: a release that fails after the
tag was pushed leaves the remote tag in place, and the operator resumes by
hand (for example by re-running the waits against the existing tag).

In dry-run mode each step's ``preview`` runs instead of its ``action``.
Previews may read (tags, history, remote configuration) but never mutate;
they return the "would ..." line reported for the step. A dry run therefore
yields the same step sequence as a live run, only without side effects.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal

from relbot.core.result import Err, Ok, Result
from relbot.release.errors import ReleaseError
from relbot.release.events import (
    EventSink,
    RunFinished,
    StepFinished,
    StepLog,
    StepProgress,
    StepStarted,
    StepStatus,
)

__all__ = [
    "Pipeline",
    "PipelineStep",
    "RunOutcome",
    "StepContext",
    "StepSpec",
    "StepStatus",
]

type OutcomeKind = Literal["success", "failed", "timed_out", "cancelled"]


@dataclass(slots=True)
class PipelineStep:
    index: int
    name: str
    status: StepStatus = StepStatus.PENDING


@dataclass(frozen=True, slots=True)
class RunOutcome:
    kind: OutcomeKind
    step_index: int | None = None
    step_name: str | None = None
    error: ReleaseError | None = None

    @property
    def ok(self) -> bool:
        return self.kind == "success"

    def describe(self) -> str:
        if self.ok:
            return "release complete"
        verb = {"failed": "failed", "timed_out": "timed out", "cancelled": "cancelled"}[self.kind]
        where = f"step {self.step_index} ({self.step_name})"
        if self.error is not None:
            return f"{verb} at {where}: {self.error}"
        return f"{verb} at {where}"


class StepContext:
    """Handle given to a running step for progress and log reporting."""

    def __init__(self, *, index: int, sink: EventSink, dry_run: bool) -> None:
        self.index = index
        self.dry_run = dry_run
        self._sink = sink

    def progress(self, current: int, total: int, label: str | None = None) -> None:
        self._sink.emit(StepProgress(index=self.index, current=current, total=total, label=label))

    def log(self, line: str) -> None:
        self._sink.emit(StepLog(index=self.index, line=line))


type StepAction = Callable[[StepContext], Result[str | None, ReleaseError]]


@dataclass(frozen=True, slots=True)
class StepSpec:
    """One gated unit of release work.

    Attributes:
        name: Display name, stable across runs.
        gate: False skips the step without side effects.
        action: Performs the step; Ok carries an optional detail line.
        preview: Read-only counterpart used in dry-run mode; Ok carries
            the "would ..." line. Defaults to ``would <name>``.
    """

    name: str
    gate: Callable[[], bool]
    action: StepAction
    preview: StepAction | None = None


def _outcome_kind(error: ReleaseError) -> OutcomeKind:
    match error.kind:
        case "timeout":
            return "timed_out"
        case "cancelled":
            return "cancelled"
        case _:
            return "failed"


class Pipeline:
    """Runs ``specs`` in order, reporting to ``sink``.

    A pipeline runs once; steps and their statuses are inspectable
    afterwards through ``steps``.
    """

    def __init__(self, specs: Sequence[StepSpec], sink: EventSink, *, dry_run: bool = False) -> None:
        self._specs = tuple(specs)
        self._sink = sink
        self.dry_run = dry_run
        self.steps: tuple[PipelineStep, ...] = tuple(
            PipelineStep(index=i, name=spec.name) for i, spec in enumerate(self._specs, start=1)
        )
        self.outcome: RunOutcome | None = None

    def run(self) -> RunOutcome:
        if self.outcome is not None:
            raise RuntimeError("pipeline already ran")

        outcome = RunOutcome(kind="success")
        for spec, state in zip(self._specs, self.steps):
            error = self._run_step(spec, state)
            if error is not None:
                outcome = RunOutcome(
                    kind=_outcome_kind(error),
                    step_index=state.index,
                    step_name=state.name,
                    error=error,
                )
                break

        self.outcome = outcome
        self._sink.emit(RunFinished(outcome=outcome))
        return outcome

    def _run_step(self, spec: StepSpec, state: PipelineStep) -> ReleaseError | None:
        state.status = StepStatus.RUNNING
        self._sink.emit(StepStarted(index=state.index, name=state.name))

        ctx = StepContext(index=state.index, sink=self._sink, dry_run=self.dry_run)
        result = self._invoke(spec, ctx)

        match result:
            case Ok(None):
                state.status = StepStatus.SKIPPED
                self._finish(state, detail=None)
                return None
            case Ok((detail, simulated)):
                state.status = StepStatus.DONE
                self._finish(state, detail=detail, simulated=simulated)
                return None
            case Err(error):
                state.status = StepStatus.ERROR
                self._finish(state, detail=error.message, error=error)
                return error

    def _invoke(self, spec: StepSpec, ctx: StepContext) -> Result[tuple[str | None, bool] | None, ReleaseError]:
        """Evaluate the gate then the action (or preview).

        Ok(None) means skipped; Ok((detail, simulated)) means done.
        """
        try:
            if not spec.gate():
                return Ok(None)

            if self.dry_run:
                if spec.preview is None:
                    return Ok((f"would {spec.name.lower()}", True))
                previewed = spec.preview(ctx)
                if isinstance(previewed, Err):
                    return previewed
                return Ok((previewed.value or f"would {spec.name.lower()}", True))

            performed = spec.action(ctx)
            if isinstance(performed, Err):
                return performed
            return Ok((performed.value, False))
        except Exception as e:  # noqa: BLE001
            return Err(ReleaseError(kind="failure", message=f"{spec.name}: {e}", hint=type(e).__name__))

    def _finish(
        self,
        state: PipelineStep,
        *,
        detail: str | None,
        error: ReleaseError | None = None,
        simulated: bool = False,
    ) -> None:
        self._sink.emit(
            StepFinished(
                index=state.index,
                name=state.name,
                status=state.status,
                detail=detail,
                error=error,
                simulated=simulated,
            )
        )
