"""Which CI workflows run when a release tag is pushed.

Workflow files are GitHub Actions YAML definitions. Only the ``on`` push
declaration matters here:

    on: push                        -> every tag
    on: [push, pull_request]        -> every tag
    on: {push: {tags: ["v*"]}}      -> tags matching v*
    on: {push: {branches: [main]}}  -> no tag
    on: {push: {tags: []}}          -> no tag
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import yaml

from relbot.core.result import Err, Ok, Result
from relbot.core.structured import as_obj_list, as_str_dict
from relbot.release.errors import ReleaseError

__all__ = [
    "WorkflowTrigger",
    "load_triggers",
    "matches_tag",
    "parse_trigger",
    "runs_for_triggers",
    "tag_matches_pattern",
    "triggered_by_tag",
]

WORKFLOWS_DIR = Path(".github") / "workflows"


@dataclass(frozen=True, slots=True)
class WorkflowTrigger:
    name: str
    path: str
    runs_on_tag_push: bool
    tag_patterns: tuple[str, ...] = ()


class NamedRun(Protocol):
    @property
    def name(self) -> str: ...


def _on_node(doc: dict[object, object]) -> object:
    # YAML 1.1 resolves a bare `on` key to boolean True.
    if "on" in doc:
        return doc["on"]
    return doc.get(True)


def _push_filters(push: object) -> tuple[bool, tuple[str, ...]]:
    filters = as_str_dict(push)
    if filters is None:
        # `push:` with no value, or a scalar: every push, every tag.
        return (True, ())

    has_tags = "tags" in filters
    # branches-ignore, tags-ignore and path filters do not change tag-push behaviour.
    has_branches = "branches" in filters

    if not has_tags:
        # Branch filters alone mean tag pushes never trigger the workflow.
        return (not has_branches, ())

    tags = as_obj_list(filters.get("tags"))
    if tags is None:
        raw = filters.get("tags")
        tags = [raw] if isinstance(raw, str) else []
    patterns = tuple(str(p).strip() for p in tags if isinstance(p, str | int | float) and str(p).strip())
    if not patterns:
        # An explicit empty tag filter never matches.
        return (False, ())
    return (True, patterns)


def parse_trigger(text: str, path: str) -> Result[WorkflowTrigger, ReleaseError]:
    """Parse a workflow definition into its tag-push trigger.

    The workflow name defaults to the file stem.
    """
    try:
        doc_obj: object = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return Err(ReleaseError(kind="failure", message=f"invalid workflow YAML: {path}", hint=str(e)))

    stem = Path(path).stem
    if not isinstance(doc_obj, dict):
        return Ok(WorkflowTrigger(name=stem, path=path, runs_on_tag_push=False))

    doc: dict[object, object] = doc_obj
    raw_name = doc.get("name")
    name = raw_name.strip() if isinstance(raw_name, str) and raw_name.strip() else stem

    on = _on_node(doc)
    runs = False
    patterns: tuple[str, ...] = ()

    if isinstance(on, str):
        runs = on.strip().lower() == "push"
    elif isinstance(on, list):
        runs = any(isinstance(e, str) and e.strip().lower() == "push" for e in on)
    elif isinstance(on, dict) and "push" in on:
        runs, patterns = _push_filters(on["push"])

    return Ok(WorkflowTrigger(name=name, path=path, runs_on_tag_push=runs, tag_patterns=patterns))


def load_triggers(repo_root: Path) -> Result[list[WorkflowTrigger], ReleaseError]:
    """Parse every workflow under ``.github/workflows``.

    A repository without a workflows directory has no triggers.
    """
    wf_dir = repo_root / WORKFLOWS_DIR
    if not wf_dir.is_dir():
        return Ok([])

    files = sorted([*wf_dir.glob("*.yml"), *wf_dir.glob("*.yaml")])
    out: list[WorkflowTrigger] = []
    for f in files:
        try:
            text = f.read_text(encoding="utf-8")
        except OSError as e:
            return Err(ReleaseError(kind="failure", message=f"cannot read workflow: {f}", hint=str(e)))
        parsed = parse_trigger(text, str(f.relative_to(repo_root)))
        if isinstance(parsed, Err):
            return parsed
        out.append(parsed.value)
    return Ok(out)


def tag_matches_pattern(tag: str, pattern: str) -> bool:
    if pattern in ("*", "**"):
        return True
    # Tag names carry no path separators, so ** behaves like *.
    return fnmatch.fnmatchcase(tag, pattern.replace("**", "*"))


def matches_tag(trigger: WorkflowTrigger, tag: str) -> bool:
    if not trigger.runs_on_tag_push:
        return False
    if not trigger.tag_patterns:
        return True
    return any(tag_matches_pattern(tag, p) for p in trigger.tag_patterns)


def triggered_by_tag(triggers: Iterable[WorkflowTrigger], tag: str) -> list[WorkflowTrigger]:
    return [t for t in triggers if matches_tag(t, tag)]


def runs_for_triggers[R: NamedRun](runs: Sequence[R], triggers: Sequence[WorkflowTrigger]) -> list[R]:
    """Keep runs whose workflow name is one of ``triggers``.

    With no triggers every run is kept.
    """
    if not triggers:
        return list(runs)
    names = {t.name for t in triggers}
    return [r for r in runs if r.name in names]
