"""Release primitives: version resolution, CI triggers, polling and the pipeline."""

from relbot.release.errors import ReleaseError
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
from relbot.release.pipeline import Pipeline, PipelineStep, RunOutcome, StepContext, StepSpec
from relbot.release.poller import Cancellation, PollTask, ReadinessCheck, wait_until_ready
from relbot.release.retry import RetryPolicy, retry
from relbot.release.semver import Version, latest_stable_tag, latest_tag, next_from_tags, parse_tag
from relbot.release.triggers import (
    WorkflowTrigger,
    load_triggers,
    matches_tag,
    parse_trigger,
    runs_for_triggers,
    tag_matches_pattern,
    triggered_by_tag,
)

__all__ = [
    # errors
    "ReleaseError",
    # events
    "Event",
    "EventSink",
    "RunFinished",
    "StepFinished",
    "StepLog",
    "StepProgress",
    "StepStarted",
    "StepStatus",
    # pipeline
    "Pipeline",
    "PipelineStep",
    "RunOutcome",
    "StepContext",
    "StepSpec",
    # poller
    "Cancellation",
    "PollTask",
    "ReadinessCheck",
    "wait_until_ready",
    # retry
    "RetryPolicy",
    "retry",
    # semver
    "Version",
    "latest_stable_tag",
    "latest_tag",
    "next_from_tags",
    "parse_tag",
    # triggers
    "WorkflowTrigger",
    "load_triggers",
    "matches_tag",
    "parse_trigger",
    "runs_for_triggers",
    "tag_matches_pattern",
    "triggered_by_tag",
]
