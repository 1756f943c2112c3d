"""Release workflow: resolve inputs, then run the seven release steps.

Inputs are resolved once, before any step runs (flag validation, previous
tag, next tag, branch, remote, changelog path). Invalid input is reported
as a ``validation`` error and nothing is executed.

The steps, in order:

    1. Build recipes        (when recipes.targets is set)
    2. Generate changelog   (when changelog.enabled)
    3. Commit & tag
    4. Push to remote
    5. Wait for CI          (when gh is available and the GitHub repo is known)
    6. Package index        (when release.package is set)
    7. Container registry   (when release.image is set)
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from relbot.core.config import Config
from relbot.core.result import Err, Ok, Result
from relbot.git.repository import Repository, parse_github_slug
from relbot.output.console import ConsoleProtocol
from relbot.platform.http import HttpClient
from relbot.release.errors import ReleaseError
from relbot.release.events import EventSink
from relbot.release.pipeline import Pipeline, RunOutcome, StepContext, StepSpec
from relbot.release.poller import Cancellation, PollTask, wait_until_ready
from relbot.release.semver import latest_stable_tag, next_from_tags
from relbot.release.timeouts import (
    ARTIFACT_INTERVAL_SECONDS,
    ARTIFACT_TIMEOUT_SECONDS,
    CI_INTERVAL_SECONDS,
    CI_TIMEOUT_SECONDS,
)
from relbot.release.triggers import load_triggers, triggered_by_tag
from relbot.services import changelog as changelog_mod
from relbot.services import github
from relbot.services.pypi import PackageIndexCheck, version_from_tag
from relbot.services.recipes import Runner, find_justfile, run_recipes, stream_target
from relbot.services.registry import ImageCheck, image_for_tag

__all__ = [
    "STEP_NAMES",
    "BumpFlags",
    "ReleaseOptions",
    "ReleasePlan",
    "ReleaseServices",
    "build_steps",
    "check_pr_source",
    "resolve_plan",
    "resolve_previous_tag",
    "run_release",
]

STEP_RECIPES = "Build recipes"
STEP_CHANGELOG = "Generate changelog"
STEP_TAG = "Commit & tag"
STEP_PUSH = "Push to remote"
STEP_CI = "Wait for CI"
STEP_PACKAGE = "Package index"
STEP_IMAGE = "Container registry"

STEP_NAMES = (STEP_RECIPES, STEP_CHANGELOG, STEP_TAG, STEP_PUSH, STEP_CI, STEP_PACKAGE, STEP_IMAGE)

DEFAULT_REMOTE = "origin"


@dataclass(frozen=True, slots=True)
class BumpFlags:
    rc: bool = False
    alpha: bool = False
    release: bool = False
    major: bool = False

    def validate(self) -> Result[None, ReleaseError]:
        if self.rc and self.alpha:
            return Err(ReleaseError(kind="validation", message="cannot use both --rc and --alpha"))
        if (self.release or self.major) and (self.rc or self.alpha):
            return Err(
                ReleaseError(kind="validation", message="cannot combine --release/--major with --rc or --alpha")
            )
        if self.major and not self.release:
            return Err(ReleaseError(kind="validation", message="--major must be used with --release"))
        return Ok(None)

    def next_tag(self, tags: list[str]) -> str:
        return next_from_tags(tags, rc=self.rc, alpha=self.alpha, release=self.release, major=self.major)


@dataclass(frozen=True, slots=True)
class ReleaseOptions:
    """Command-line flags merged over the config file. Built once per run."""

    repo_root: Path
    config: Config = field(default_factory=Config)
    bump: BumpFlags = field(default_factory=BumpFlags)
    prev_tag: str | None = None
    branch: str | None = None
    remote: str | None = None
    use_prs: bool | None = None
    dry_run: bool = False
    ci_timeout: float | None = None
    package_timeout: float | None = None
    image_timeout: float | None = None


@dataclass(frozen=True, slots=True)
class ReleasePlan:
    """Everything the steps need, resolved before the first one runs."""

    repo_root: Path
    previous_tag: str
    next_tag: str
    branch: str
    remote: str
    changelog_path: Path
    changelog_enabled: bool = True
    use_prs: bool = False
    github_repo: str | None = None
    targets: tuple[str, ...] = ()
    recipes_dir: Path | None = None
    package: str | None = None
    image: str | None = None
    ci_timeout: float = CI_TIMEOUT_SECONDS
    ci_interval: float = CI_INTERVAL_SECONDS
    package_timeout: float = ARTIFACT_TIMEOUT_SECONDS
    image_timeout: float = ARTIFACT_TIMEOUT_SECONDS
    artifact_interval: float = ARTIFACT_INTERVAL_SECONDS
    dry_run: bool = False

    @property
    def changelog_rel(self) -> str:
        try:
            return str(self.changelog_path.relative_to(self.repo_root))
        except ValueError:
            return str(self.changelog_path)


def _git_failure(message: str, detail: object) -> ReleaseError:
    return ReleaseError(kind="failure", message=message, hint=str(detail))


def resolve_previous_tag(repo: Repository, explicit: str | None, config: Config) -> Result[str, ReleaseError]:
    """--prev-tag, then changelog.previous_release_tag, then the latest stable tag."""
    prev = explicit or config.changelog.previous_release_tag
    if prev is None:
        tags = repo.list_tags()
        if isinstance(tags, Err):
            return Err(_git_failure("cannot list tags", tags.error))
        prev = latest_stable_tag(tags.value)
        if prev is None:
            return Err(
                ReleaseError(
                    kind="validation",
                    message="could not determine previous release tag",
                    hint="use --prev-tag, set changelog.previous_release_tag, or tag a release (e.g. v1.0.0)",
                )
            )

    valid = repo.validate_tag(prev)
    if isinstance(valid, Err):
        return Err(ReleaseError(kind="not_found", message=f"tag not found: {prev}"))
    return Ok(prev)


def check_pr_source(github_repo: str | None, gh_ready: Callable[[], bool]) -> Result[str, ReleaseError]:
    """The GitHub repository to read merged PRs from, or why PRs cannot be used."""
    if github_repo is None:
        return Err(
            ReleaseError(
                kind="validation",
                message="changelog.use_prs requires a GitHub repository",
                hint="set github.repo in .releasebot.toml or use --use-history",
            )
        )
    if not gh_ready():
        return Err(
            ReleaseError(
                kind="validation",
                message="changelog.use_prs requires an authenticated gh CLI",
                hint="run: gh auth login (or use --use-history)",
            )
        )
    return Ok(github_repo)


def resolve_plan(
    options: ReleaseOptions,
    *,
    repo: Repository | None = None,
    console: ConsoleProtocol | None = None,
    gh_ready: Callable[[], bool] | None = None,
) -> Result[ReleasePlan, ReleaseError]:
    """Validate flags and resolve every release input.

    With ``--branch`` set (and not a dry run) the branch is checked out
    when it is not already current. A PR-based changelog needs a known
    GitHub repository and an authenticated ``gh``; both are checked here,
    before anything is checked out.
    """
    valid = options.bump.validate()
    if isinstance(valid, Err):
        return valid

    root = options.repo_root.resolve()
    repo = repo or Repository(root)
    cfg = options.config

    remote = options.remote or cfg.release.remote or DEFAULT_REMOTE
    url = repo.remote_url(remote)
    if isinstance(url, Err):
        return Err(ReleaseError(kind="validation", message=f"remote {remote}: {url.error.message}"))
    github_repo = cfg.github.repo or parse_github_slug(url.value)

    use_prs = cfg.changelog.use_prs if options.use_prs is None else options.use_prs
    if use_prs and cfg.changelog.enabled:
        ready = check_pr_source(github_repo, gh_ready or _gh_ready_for(root))
        if isinstance(ready, Err):
            return ready

    current = repo.current_branch()
    branch = options.branch or cfg.release.branch
    if branch is None:
        if current is None:
            return Err(
                ReleaseError(
                    kind="validation",
                    message="HEAD is detached; cannot determine release branch",
                    hint="check out a branch or pass --branch",
                )
            )
        branch = current
    elif branch != current and not options.dry_run:
        checked = repo.checkout(branch)
        if isinstance(checked, Err):
            return Err(_git_failure(f"cannot checkout {branch}", checked.error))
        if console is not None:
            console.success(f"Checked out {branch}")

    prev = resolve_previous_tag(repo, options.prev_tag, cfg)
    if isinstance(prev, Err):
        return prev

    tags = repo.list_tags()
    if isinstance(tags, Err):
        return Err(_git_failure("cannot list tags", tags.error))
    next_tag = options.bump.next_tag(tags.value)

    changelog_path = Path(cfg.changelog.output)
    if not changelog_path.is_absolute():
        changelog_path = root / changelog_path

    recipes_dir: Path | None = None
    if cfg.recipes.targets:
        recipes_dir = Path(cfg.recipes.working_dir) if cfg.recipes.working_dir else root
        if not recipes_dir.is_absolute():
            recipes_dir = root / recipes_dir

    r = cfg.release
    return Ok(
        ReleasePlan(
            repo_root=root,
            previous_tag=prev.value,
            next_tag=next_tag,
            branch=branch,
            remote=remote,
            changelog_path=changelog_path,
            changelog_enabled=cfg.changelog.enabled,
            use_prs=use_prs,
            github_repo=github_repo,
            targets=cfg.recipes.targets,
            recipes_dir=recipes_dir,
            package=r.package,
            image=r.image,
            ci_timeout=options.ci_timeout or r.ci_timeout or CI_TIMEOUT_SECONDS,
            ci_interval=r.ci_interval or CI_INTERVAL_SECONDS,
            package_timeout=options.package_timeout or r.artifact_timeout or ARTIFACT_TIMEOUT_SECONDS,
            image_timeout=options.image_timeout or r.artifact_timeout or ARTIFACT_TIMEOUT_SECONDS,
            artifact_interval=r.artifact_interval or ARTIFACT_INTERVAL_SECONDS,
            dry_run=options.dry_run,
        )
    )


# =============================================================================
# Steps
# =============================================================================


def _gh_ready_for(repo_root: Path) -> Callable[[], bool]:
    return lambda: github.gh_ready(repo_root=repo_root)


@dataclass
class ReleaseServices:
    """External collaborators, injectable for tests."""

    repo: Repository
    http: HttpClient
    gh_ready: Callable[[], bool]
    run_recipe: Runner = stream_target
    cancel: Cancellation | None = None
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], bool] | None = None

    @classmethod
    def default(cls, plan: ReleasePlan, http: HttpClient, *, cancel: Cancellation | None = None) -> ReleaseServices:
        return cls(
            repo=Repository(plan.repo_root),
            http=http,
            gh_ready=_gh_ready_for(plan.repo_root),
            cancel=cancel,
        )

    def wait(self, task: PollTask, ctx: StepContext) -> Result[float, ReleaseError]:
        def on_poll(attempt: int, elapsed: float) -> None:
            ctx.log(f"waiting for {task.resource} (check {attempt}, {int(elapsed)}s elapsed)")

        return wait_until_ready(task, cancel=self.cancel, clock=self.clock, sleep=self.sleep, on_poll=on_poll)


class _ReleaseSteps:
    def __init__(self, plan: ReleasePlan, services: ReleaseServices) -> None:
        self.plan = plan
        self.svc = services

    # -- 1. recipes ----------------------------------------------------------

    def recipes(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        assert self.plan.recipes_dir is not None
        ran = run_recipes(
            self.plan.recipes_dir,
            self.plan.targets,
            runner=self.svc.run_recipe,
            on_target=lambda i, n, target: ctx.progress(i, n, f"just {target}"),
        )
        if isinstance(ran, Err):
            return ran
        return Ok(f"ran {', '.join(ran.value)}")

    def recipes_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        assert self.plan.recipes_dir is not None
        if find_justfile(self.plan.recipes_dir) is None:
            return Err(ReleaseError(kind="not_found", message=f"justfile not found in {self.plan.recipes_dir}"))
        return Ok(f"would run just {' '.join(self.plan.targets)}")

    # -- 2. changelog --------------------------------------------------------

    def _gather(self, ctx: StepContext) -> Result[changelog_mod.ChangelogEntries, ReleaseError]:
        p = self.plan
        if p.use_prs:
            assert p.github_repo is not None
            head_sha = self.svc.repo.rev_parse(p.branch)
            if isinstance(head_sha, Err):
                return Err(_git_failure(f"cannot resolve {p.branch}", head_sha.error))
            return changelog_mod.gather_prs(
                repo_root=p.repo_root,
                repo=p.github_repo,
                base=p.previous_tag,
                head=p.branch,
                head_sha=head_sha.value,
                cache=changelog_mod.PrCache(p.repo_root / changelog_mod.CACHE_DIR),
                on_progress=lambda current, total: ctx.progress(current, total, "pull requests"),
                on_warning=lambda message: ctx.log(f"warning: {message}"),
            )
        return changelog_mod.gather_commits(self.svc.repo, p.previous_tag, "HEAD")

    def changelog(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        entries = self._gather(ctx)
        if isinstance(entries, Err):
            return entries
        section = changelog_mod.render_section(self.plan.next_tag, entries.value)
        written = changelog_mod.prepend_section(self.plan.changelog_path, section)
        if isinstance(written, Err):
            return written
        return Ok(f"{len(entries.value)} entries written to {self.plan.changelog_rel}")

    def changelog_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        entries = self._gather(ctx)
        if isinstance(entries, Err):
            return entries
        source = "PRs" if entries.value.prs else "commits"
        return Ok(f"would write {len(entries.value)} {source} to {self.plan.changelog_rel}")

    # -- 3. commit & tag -----------------------------------------------------

    def _ensure_new_tag(self) -> Result[None, ReleaseError]:
        tags = self.svc.repo.list_tags()
        if isinstance(tags, Err):
            return Err(_git_failure("cannot list tags", tags.error))
        if self.plan.next_tag in tags.value:
            return Err(ReleaseError(kind="validation", message=f"tag already exists: {self.plan.next_tag}"))
        return Ok(None)

    def commit_and_tag(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        fresh = self._ensure_new_tag()
        if isinstance(fresh, Err):
            return fresh

        if p.changelog_enabled:
            added = self.svc.repo.add(p.changelog_rel)
            if isinstance(added, Err):
                return Err(_git_failure("git add failed", added.error))
            committed = self.svc.repo.commit(f"changelog: release {p.next_tag}")
            if isinstance(committed, Err):
                return Err(_git_failure("git commit failed", committed.error))

        tagged = self.svc.repo.create_tag(p.next_tag, f"Release {p.next_tag}")
        if isinstance(tagged, Err):
            return Err(_git_failure(f"cannot create tag {p.next_tag}", tagged.error))
        return Ok(f"tagged {p.next_tag}")

    def commit_and_tag_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        fresh = self._ensure_new_tag()
        if isinstance(fresh, Err):
            return fresh
        return Ok(f"would commit {self.plan.changelog_rel} and tag {self.plan.next_tag}")

    # -- 4. push -------------------------------------------------------------

    def push(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        for refspec in (f"refs/heads/{p.branch}", f"refs/tags/{p.next_tag}"):
            pushed = self.svc.repo.push(p.remote, refspec)
            if isinstance(pushed, Err):
                return Err(_git_failure(f"push of {refspec} to {p.remote} failed", pushed.error))
            ctx.log(f"pushed {refspec}")
        return Ok(f"pushed {p.branch} and {p.next_tag} to {p.remote}")

    def push_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        return Ok(f"would push {p.branch} and {p.next_tag} to {p.remote}")

    # -- 5. CI ---------------------------------------------------------------

    def _expected_workflows(self) -> Result[list[str], ReleaseError]:
        loaded = load_triggers(self.plan.repo_root)
        if isinstance(loaded, Err):
            return loaded
        return Ok([t.name for t in triggered_by_tag(loaded.value, self.plan.next_tag)])

    def ci_gate(self) -> bool:
        return self.plan.github_repo is not None and self.svc.gh_ready()

    def wait_ci(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        assert p.github_repo is not None
        sha = self.svc.repo.rev_parse(p.next_tag)
        if isinstance(sha, Err):
            return Err(ReleaseError(kind="not_found", message=f"tag not found: {p.next_tag}", hint=sha.error.message))

        loaded = load_triggers(p.repo_root)
        if isinstance(loaded, Err):
            return loaded
        triggers = triggered_by_tag(loaded.value, p.next_tag)

        check = github.CiRunsCheck(repo_root=p.repo_root, repo=p.github_repo, sha=sha.value, triggers=triggers)
        scope = f"{len(triggers)} tag-push workflow(s)" if triggers else "CI runs"
        task = PollTask(
            resource=f"{scope} for {p.next_tag}",
            check=check.check_ready,
            interval=p.ci_interval,
            timeout=p.ci_timeout,
        )
        waited = self.svc.wait(task, ctx)
        if isinstance(waited, Err):
            return waited
        return Ok(f"{len(check.last_runs)} run(s) succeeded")

    def wait_ci_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        names = self._expected_workflows()
        if isinstance(names, Err):
            return names
        if names.value:
            return Ok(f"would wait for {', '.join(names.value)}")
        return Ok(f"would wait for all CI runs on {self.plan.next_tag}")

    # -- 6. package index ----------------------------------------------------

    def wait_package(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        assert p.package is not None
        check = PackageIndexCheck(http=self.svc.http, name=p.package, version=version_from_tag(p.next_tag))
        task = PollTask(
            resource=check.resource,
            check=check.check_ready,
            interval=p.artifact_interval,
            timeout=p.package_timeout,
        )
        waited = self.svc.wait(task, ctx)
        if isinstance(waited, Err):
            return waited
        return Ok(f"{p.package}=={version_from_tag(p.next_tag)} is available")

    def wait_package_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        return Ok(f"would wait for {p.package}=={version_from_tag(p.next_tag)} on PyPI")

    # -- 7. container registry -----------------------------------------------

    def wait_image(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        assert p.image is not None
        ref = image_for_tag(p.image, p.next_tag)
        check = ImageCheck(http=self.svc.http, image=ref)
        task = PollTask(
            resource=check.resource,
            check=check.check_ready,
            interval=p.artifact_interval,
            timeout=p.image_timeout,
        )
        waited = self.svc.wait(task, ctx)
        if isinstance(waited, Err):
            return waited
        return Ok(f"{ref} is available")

    def wait_image_preview(self, ctx: StepContext) -> Result[str | None, ReleaseError]:
        p = self.plan
        assert p.image is not None
        return Ok(f"would wait for {image_for_tag(p.image, p.next_tag)} on Docker Hub")


def build_steps(plan: ReleasePlan, services: ReleaseServices) -> list[StepSpec]:
    s = _ReleaseSteps(plan, services)
    return [
        StepSpec(STEP_RECIPES, gate=lambda: bool(plan.targets), action=s.recipes, preview=s.recipes_preview),
        StepSpec(
            STEP_CHANGELOG,
            gate=lambda: plan.changelog_enabled,
            action=s.changelog,
            preview=s.changelog_preview,
        ),
        StepSpec(STEP_TAG, gate=lambda: True, action=s.commit_and_tag, preview=s.commit_and_tag_preview),
        StepSpec(STEP_PUSH, gate=lambda: True, action=s.push, preview=s.push_preview),
        StepSpec(STEP_CI, gate=s.ci_gate, action=s.wait_ci, preview=s.wait_ci_preview),
        StepSpec(
            STEP_PACKAGE,
            gate=lambda: plan.package is not None,
            action=s.wait_package,
            preview=s.wait_package_preview,
        ),
        StepSpec(
            STEP_IMAGE,
            gate=lambda: plan.image is not None,
            action=s.wait_image,
            preview=s.wait_image_preview,
        ),
    ]


def run_release(plan: ReleasePlan, services: ReleaseServices, sink: EventSink) -> RunOutcome:
    """Run the release pipeline. The caller owns (and closes) ``sink``."""
    pipeline = Pipeline(build_steps(plan, services), sink, dry_run=plan.dry_run)
    return pipeline.run()
