"""Git repository abstraction.

This module provides the Repository class for the git operations a release
needs: reading tags and history, committing the changelog, creating the
annotated release tag and pushing branch and tag to a remote.
All operations return Result types for proper error handling.

Usage:
    repo = Repository(Path("/path/to/repo"))

    match repo.list_tags():
        case Ok(tags):
            print(f"{len(tags)} tags")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from relbot.core.result import Err, Ok, Result
from relbot.platform.process import ProcessError
from relbot.platform.process import run as run_process
from relbot.release.timeouts import GIT_NETWORK_TIMEOUT_SECONDS, GIT_TIMEOUT_SECONDS

__all__ = [
    "Commit",
    "GitError",
    "Repository",
    "parse_github_slug",
]

_SLUG_RE = re.compile(r"^(?:https://github\.com/|git@github\.com:|ssh://git@github\.com/)([^/]+)/(.+?)/?$")


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1

    def __str__(self) -> str:
        return f"git {self.command}: {self.message}"


@dataclass(frozen=True, slots=True)
class Commit:
    """A commit in ``git log`` order (newest first)."""

    sha: str
    subject: str
    body: str = ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a valid git repository."""
        return (self.path / ".git").exists()

    def list_tags(self) -> Result[list[str], GitError]:
        """All tag names (``git tag -l``)."""
        result = self._run(["tag", "-l"])
        match result:
            case Err(e):
                return Err(self._error("tag -l", e, "failed to list tags"))
            case Ok(stdout):
                return Ok([line.strip() for line in stdout.splitlines() if line.strip()])

    def validate_tag(self, tag: str) -> Result[None, GitError]:
        """Ensure ``tag`` exists locally.

        Returns:
            Ok(None) if the tag exists
            Err(GitError) with message "tag not found" otherwise
        """
        result = self._run(["rev-parse", "--verify", "--quiet", f"refs/tags/{tag}"])
        if isinstance(result, Err):
            return Err(GitError(command="rev-parse", message=f"tag not found: {tag}", returncode=1))
        return Ok(None)

    def rev_parse(self, ref: str) -> Result[str, GitError]:
        """Resolve ``ref`` to a full commit sha.

        Annotated tags are peeled to the commit they point at.
        """
        result = self._run(["rev-parse", f"{ref}^{{commit}}"])
        match result:
            case Err(e):
                return Err(self._error("rev-parse", e, f"cannot resolve {ref}"))
            case Ok(stdout):
                return Ok(stdout.strip())

    def current_branch(self) -> str | None:
        """Get current branch name.

        Returns None if detached HEAD or error.
        """
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def checkout(self, branch: str) -> Result[None, GitError]:
        result = self._run(["checkout", branch])
        if isinstance(result, Err):
            return Err(self._error("checkout", result.error, f"cannot checkout {branch}"))
        return Ok(None)

    def remote_url(self, remote: str) -> Result[str, GitError]:
        """URL configured for ``remote``; an unknown remote is an error."""
        result = self._run(["config", "--get", f"remote.{remote}.url"])
        match result:
            case Err(e):
                return Err(GitError(command="config", message=f"unknown remote: {remote}", returncode=e.returncode))
            case Ok(stdout):
                url = stdout.strip()
                if not url:
                    return Err(GitError(command="config", message=f"remote {remote} has no url"))
                return Ok(url)

    def log(self, base: str, head: str = "HEAD") -> Result[list[Commit], GitError]:
        """Commits reachable from ``head`` but not from ``base``."""
        result = self._run(["log", "--format=%H%x00%s%x00%b%x00", f"{base}..{head}"])
        match result:
            case Err(e):
                return Err(self._error("log", e, f"cannot read history {base}..{head}"))
            case Ok(stdout):
                return Ok(_parse_log(stdout))

    def add(self, *paths: str) -> Result[None, GitError]:
        result = self._run(["add", "--", *paths])
        if isinstance(result, Err):
            return Err(self._error("add", result.error, "git add failed"))
        return Ok(None)

    def commit(self, message: str) -> Result[None, GitError]:
        result = self._run(["commit", "-m", message])
        if isinstance(result, Err):
            return Err(self._error("commit", result.error, "git commit failed"))
        return Ok(None)

    def create_tag(self, tag: str, message: str) -> Result[None, GitError]:
        """Create an annotated tag on HEAD."""
        result = self._run(["tag", "-a", tag, "-m", message])
        if isinstance(result, Err):
            return Err(self._error("tag", result.error, f"cannot create tag {tag}"))
        return Ok(None)

    def push(self, remote: str, refspec: str) -> Result[None, GitError]:
        result = self._run(["push", remote, refspec])
        if isinstance(result, Err):
            return Err(self._error("push", result.error, f"push of {refspec} to {remote} failed"))
        return Ok(None)

    def _error(self, command: str, error: ProcessError, fallback: str) -> GitError:
        return GitError(
            command=command,
            message=error.stderr.strip() or error.stdout.strip() or fallback,
            returncode=error.returncode,
        )

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = GIT_NETWORK_TIMEOUT_SECONDS if command in {"fetch", "pull", "push"} else GIT_TIMEOUT_SECONDS
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)


def _parse_log(output: str) -> list[Commit]:
    # Each record is "<sha>\0<subject>\0<body>\0", records separated by newlines.
    fields = output.split("\0")
    commits: list[Commit] = []
    for i in range(0, len(fields) - 2, 3):
        sha = fields[i].strip()
        if not sha:
            continue
        commits.append(Commit(sha=sha, subject=fields[i + 1].strip(), body=fields[i + 2].strip()))
    return commits


def parse_github_slug(remote_url: str) -> str | None:
    """Extract ``owner/name`` from a GitHub remote URL.

    Accepts https and ssh forms; returns None for non-GitHub remotes.
    """
    m = _SLUG_RE.match(remote_url.strip())
    if m is None:
        return None
    name = m.group(2).removesuffix(".git")
    if not name or "/" in name:
        return None
    return f"{m.group(1)}/{name}"
