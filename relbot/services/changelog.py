"""Changelog generation.

A release prepends one Markdown section to the changelog file:

    ## v1.4.0

    - Add retry to uploads (#42) by @alice
    - Fix tag parsing (#41) by @bob

Entries come from merged pull requests (via ``gh``) when ``use_prs`` is set,
otherwise from the git commits since the previous release tag.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import asdict, dataclass
from pathlib import Path

from relbot.core.result import Err, Ok, Result
from relbot.core.structured import as_obj_list, as_str_dict, get_int, get_str
from relbot.git.repository import Commit, Repository
from relbot.release.errors import ReleaseError
from relbot.services import github
from relbot.services.github import PullRequest

__all__ = [
    "CACHE_DIR",
    "ChangelogEntries",
    "PrCache",
    "gather_commits",
    "gather_prs",
    "prepend_section",
    "render_section",
]

CACHE_DIR = Path(".releasebot") / "cache"


@dataclass(frozen=True, slots=True)
class ChangelogEntries:
    prs: tuple[PullRequest, ...] = ()
    commits: tuple[Commit, ...] = ()

    def __len__(self) -> int:
        return len(self.prs) if self.prs else len(self.commits)

    def limited(self, limit: int) -> ChangelogEntries:
        """The first ``limit`` entries; 0 means no limit."""
        if limit <= 0:
            return self
        return ChangelogEntries(prs=self.prs[:limit], commits=self.commits[:limit])


# =============================================================================
# Sources
# =============================================================================


def gather_commits(repo: Repository, base: str, head: str = "HEAD") -> Result[ChangelogEntries, ReleaseError]:
    result = repo.log(base, head)
    if isinstance(result, Err):
        return Err(ReleaseError(kind="failure", message=f"cannot read commits since {base}", hint=result.error.message))
    return Ok(ChangelogEntries(commits=tuple(result.value)))


class PrCache:
    """JSON cache of merged PRs per (repo, base tag, head commit) range.

    Reads treat any problem as a miss. Writes are best-effort: the caller
    gets the error back and decides whether to warn.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, repo: str, base: str, head_sha: str) -> Path:
        def safe(s: str) -> str:
            s = s.strip().replace("/", "_").replace(":", "_")
            return s or "empty"

        return self.directory / f"{safe(repo)}_{safe(base)}_{safe(head_sha)}.json"

    def get(self, repo: str, base: str, head_sha: str) -> list[PullRequest] | None:
        try:
            raw: object = json.loads(self._path(repo, base, head_sha).read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None

        items = as_obj_list(raw)
        if items is None:
            return None
        out: list[PullRequest] = []
        for item in items:
            d = as_str_dict(item)
            if d is None:
                return None
            number = get_int(d, "number")
            title = get_str(d, "title")
            if number is None or title is None:
                return None
            out.append(
                PullRequest(
                    number=number,
                    title=title,
                    author=get_str(d, "author") or "unknown",
                    url=get_str(d, "url") or "",
                )
            )
        return out

    def set(self, repo: str, base: str, head_sha: str, prs: list[PullRequest]) -> Result[None, str]:
        path = self._path(repo, base, head_sha)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps([asdict(pr) for pr in prs], indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            return Err(f"cannot write PR cache {path}: {e}")
        return Ok(None)


def gather_prs(
    *,
    repo_root: Path,
    repo: str,
    base: str,
    head: str,
    head_sha: str | None = None,
    cache: PrCache | None = None,
    on_progress: Callable[[int, int], None] | None = None,
    on_warning: Callable[[str], None] | None = None,
) -> Result[ChangelogEntries, ReleaseError]:
    """Merged PRs for the commits in ``base...head``, in commit order.

    ``on_progress`` receives (commits processed, total commits). The cache is
    keyed on ``head_sha``, the commit ``head`` pointed at, and is only used
    when it is given: a branch name moves, a commit does not.
    """
    if cache is not None and head_sha is not None:
        cached = cache.get(repo, base, head_sha)
        if cached is not None:
            return Ok(ChangelogEntries(prs=tuple(cached)))

    shas = github.commits_between(repo_root=repo_root, repo=repo, base=base, head=head)
    if isinstance(shas, Err):
        return shas

    seen: set[int] = set()
    prs: list[PullRequest] = []
    total = len(shas.value)
    for i, sha in enumerate(shas.value):
        pulls = github.pulls_for_commit(repo_root=repo_root, repo=repo, sha=sha)
        if isinstance(pulls, Err):
            return pulls
        for pr in pulls.value:
            if pr.number not in seen:
                seen.add(pr.number)
                prs.append(pr)
        if on_progress is not None:
            on_progress(i + 1, total)

    if cache is not None and head_sha is not None:
        written = cache.set(repo, base, head_sha, prs)
        if isinstance(written, Err) and on_warning is not None:
            on_warning(written.error)

    return Ok(ChangelogEntries(prs=tuple(prs)))


# =============================================================================
# Rendering
# =============================================================================


def render_section(version: str, entries: ChangelogEntries) -> str:
    lines = [f"## {version}", ""]
    if entries.prs:
        lines.extend(f"- {pr.title} (#{pr.number}) by @{pr.author}" for pr in entries.prs)
    else:
        lines.extend(f"- {c.subject} ({c.short_sha})" for c in entries.commits)
    return "\n".join(lines).rstrip() + "\n"


def prepend_section(path: Path, section: str, *, write: bool = True) -> Result[str, ReleaseError]:
    """Put ``section`` on top of the changelog at ``path``.

    Returns the full new content. With ``write=False`` nothing is written.
    """
    try:
        existing = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        existing = ""
    except OSError as e:
        return Err(ReleaseError(kind="failure", message=f"cannot read changelog: {e}", hint=str(path)))

    full = section.strip() + "\n"
    if existing:
        full += "\n" + existing

    if write:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(full, encoding="utf-8")
        except OSError as e:
            return Err(ReleaseError(kind="failure", message=f"cannot write changelog: {e}", hint=str(path)))
    return Ok(full)
