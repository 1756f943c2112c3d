"""GitHub access through the ``gh`` CLI.

Authentication is whatever ``gh auth`` already has; relbot never handles
tokens. Reads are idempotent and retried on transient failures.
"""

from __future__ import annotations

import json
import shutil
from dataclasses import dataclass
from pathlib import Path
from time import sleep

from relbot.core.result import Err, Ok, Result
from relbot.core.structured import as_obj_list, as_str_dict, get_int, get_list, get_str, get_table
from relbot.platform.process import ProcessError
from relbot.platform.process import run as run_process
from relbot.release.errors import ReleaseError
from relbot.release.retry import DEFAULT_POLICY, RetryPolicy, retry
from relbot.release.timeouts import GH_TIMEOUT_SECONDS
from relbot.release.triggers import WorkflowTrigger, runs_for_triggers

__all__ = [
    "CiRun",
    "CiRunsCheck",
    "PullRequest",
    "ci_state",
    "commits_between",
    "ensure_gh_auth",
    "ensure_gh_available",
    "gh_api_json",
    "gh_ready",
    "list_runs_for_sha",
    "pulls_for_commit",
    "run_symbol",
    "summarize_runs",
]


def _is_transient_gh_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "tls handshake timeout",
        "network is unreachable",
        "rate limit",
        "http 429",
        "http 500",
        "http 502",
        "http 503",
        "http 504",
    )
    if error.returncode == -1 and "timed out" in text:
        return True
    return any(marker in text for marker in markers)


def run_gh_read(
    *,
    repo_root: Path,
    cmd: list[str],
    message: str,
    policy: RetryPolicy = DEFAULT_POLICY,
    timeout: float = GH_TIMEOUT_SECONDS,
) -> Result[str, ReleaseError]:
    result = retry(
        lambda: run_process(cmd, cwd=repo_root, timeout=timeout),
        recoverable=_is_transient_gh_error,
        policy=policy,
        sleep=lambda seconds: sleep(seconds),
    )
    if isinstance(result, Err):
        error = result.error
        kind = "transient" if _is_transient_gh_error(error) else "failure"
        return Err(ReleaseError(kind=kind, message=message, hint=error.stderr.strip() or None))
    return result


def ensure_gh_available() -> Result[None, ReleaseError]:
    if shutil.which("gh") is None:
        return Err(
            ReleaseError(
                kind="not_found",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def ensure_gh_auth(*, repo_root: Path) -> Result[None, ReleaseError]:
    result = run_process(["gh", "auth", "status"], cwd=repo_root, timeout=GH_TIMEOUT_SECONDS)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="validation",
                message="gh auth required",
                hint="Run: gh auth login",
            )
        )
    return Ok(None)


def gh_ready(*, repo_root: Path) -> bool:
    """True when ``gh`` is installed and authenticated."""
    return isinstance(ensure_gh_available(), Ok) and isinstance(ensure_gh_auth(repo_root=repo_root), Ok)


def gh_api_json(*, repo_root: Path, endpoint: str) -> Result[object, ReleaseError]:
    result = run_gh_read(
        repo_root=repo_root,
        cmd=["gh", "api", endpoint],
        message=f"gh api failed: {endpoint}",
    )
    if isinstance(result, Err):
        return result

    try:
        obj: object = json.loads(result.value)
    except json.JSONDecodeError as e:
        return Err(
            ReleaseError(
                kind="failure",
                message=f"gh api returned invalid JSON: {e}",
                hint=endpoint,
            )
        )

    return Ok(obj)


# =============================================================================
# CI runs
# =============================================================================


@dataclass(frozen=True, slots=True)
class CiRun:
    status: str
    conclusion: str
    name: str
    run_number: int
    url: str

    @property
    def is_finished(self) -> bool:
        return self.status == "completed"

    @property
    def is_failure(self) -> bool:
        return self.is_finished and self.conclusion not in ("", "success")


def list_runs_for_sha(*, repo_root: Path, repo: str, sha: str) -> Result[list[CiRun], ReleaseError]:
    """All workflow runs GitHub recorded for commit ``sha``."""
    endpoint = f"repos/{repo}/actions/runs?head_sha={sha}&per_page=100"
    obj = gh_api_json(repo_root=repo_root, endpoint=endpoint)
    if isinstance(obj, Err):
        return obj

    data = as_str_dict(obj.value)
    runs = get_list(data, "workflow_runs") if data is not None else None
    if runs is None:
        return Err(ReleaseError(kind="failure", message=f"unexpected workflow runs payload: {repo}", hint=endpoint))

    out: list[CiRun] = []
    for run_obj in runs:
        run = as_str_dict(run_obj)
        if run is None:
            continue
        out.append(
            CiRun(
                status=get_str(run, "status") or "",
                conclusion=get_str(run, "conclusion") or "",
                name=get_str(run, "name") or "",
                run_number=get_int(run, "run_number") or 0,
                url=get_str(run, "html_url") or "",
            )
        )
    return Ok(out)


@dataclass(frozen=True, slots=True)
class CiState:
    ready: bool
    failed: tuple[CiRun, ...] = ()
    pending: int = 0


def ci_state(runs: list[CiRun], *, expected: int | None) -> CiState:
    """Decide whether the observed runs settle the CI wait.

    Ready once at least ``expected`` runs exist (when known) and every
    observed run has completed. An empty run list is never ready.
    """
    failed = tuple(r for r in runs if r.is_failure)
    pending = sum(1 for r in runs if not r.is_finished)
    if not runs:
        return CiState(ready=False)
    if expected is not None and len(runs) < expected:
        return CiState(ready=False, failed=failed, pending=pending + expected - len(runs))
    return CiState(ready=pending == 0, failed=failed, pending=pending)


def run_symbol(run: CiRun) -> str:
    if not run.is_finished:
        return "⏳"
    return "✗" if run.is_failure else "✓"


def summarize_runs(runs: list[CiRun]) -> str:
    """One line of run counts, e.g. ``3 run(s)  ✓ 2 success  ⏳ 1 in progress.``"""
    failed = sum(1 for r in runs if r.is_failure)
    pending = sum(1 for r in runs if not r.is_finished)
    success = len(runs) - failed - pending
    parts = [f"{len(runs)} run(s)"]
    if success:
        parts.append(f"✓ {success} success")
    if failed:
        parts.append(f"✗ {failed} failed")
    if pending:
        parts.append(f"⏳ {pending} in progress")
    return "  ".join(parts) + "."


# =============================================================================
# Changelog sources
# =============================================================================


@dataclass(frozen=True, slots=True)
class PullRequest:
    number: int
    title: str
    author: str
    url: str = ""


def commits_between(*, repo_root: Path, repo: str, base: str, head: str) -> Result[list[str], ReleaseError]:
    """Commit shas in ``base...head`` per the compare API."""
    obj = gh_api_json(repo_root=repo_root, endpoint=f"repos/{repo}/compare/{base}...{head}")
    if isinstance(obj, Err):
        return obj

    data = as_str_dict(obj.value)
    commits = get_list(data, "commits") if data is not None else None
    if commits is None:
        return Err(ReleaseError(kind="failure", message=f"unexpected compare payload: {repo}"))

    shas: list[str] = []
    for item in commits:
        d = as_str_dict(item)
        sha = get_str(d, "sha") if d is not None else None
        if sha is not None:
            shas.append(sha)
    return Ok(shas)


def pulls_for_commit(*, repo_root: Path, repo: str, sha: str) -> Result[list[PullRequest], ReleaseError]:
    """Merged pull requests associated with commit ``sha``."""
    obj = gh_api_json(repo_root=repo_root, endpoint=f"repos/{repo}/commits/{sha}/pulls")
    if isinstance(obj, Err):
        return obj

    raw = as_obj_list(obj.value)
    if raw is None:
        return Err(ReleaseError(kind="failure", message=f"unexpected pulls payload: {repo}@{sha}"))

    out: list[PullRequest] = []
    for item in raw:
        d = as_str_dict(item)
        if d is None:
            continue
        number = get_int(d, "number")
        title = get_str(d, "title")
        if number is None or title is None or d.get("merged_at") is None:
            continue
        user = get_table(d, "user")
        out.append(
            PullRequest(
                number=number,
                title=title,
                author=(get_str(user, "login") if user is not None else None) or "unknown",
                url=get_str(d, "html_url") or "",
            )
        )
    return Ok(out)


# =============================================================================
# CI readiness
# =============================================================================


class CiRunsCheck:
    """Readiness of the CI runs a pushed tag triggered.

    ``triggers`` are the tag-push workflows expected for the tag; when empty,
    every run recorded for the commit is awaited.
    """

    def __init__(
        self,
        *,
        repo_root: Path,
        repo: str,
        sha: str,
        triggers: list[WorkflowTrigger] | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.repo = repo
        self.sha = sha
        self.triggers = list(triggers or [])
        self.last_runs: list[CiRun] = []

    def check_ready(self) -> Result[bool, ReleaseError]:
        listed = list_runs_for_sha(repo_root=self.repo_root, repo=self.repo, sha=self.sha)
        if isinstance(listed, Err):
            return listed

        runs = runs_for_triggers(listed.value, self.triggers)
        self.last_runs = runs
        state = ci_state(runs, expected=len(self.triggers) if self.triggers else None)
        if state.failed:
            first = state.failed[0]
            names = ", ".join(f"{r.name} #{r.run_number} ({r.conclusion})" for r in state.failed)
            return Err(ReleaseError(kind="failure", message=f"CI failed: {names}", hint=first.url or None))
        return Ok(state.ready)
