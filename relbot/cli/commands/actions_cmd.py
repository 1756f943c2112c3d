"""GitHub Actions commands - which workflows a tag triggers, its runs, and waiting on them."""

from __future__ import annotations

import typer

from relbot.cli.commands._helpers import exit_on_error, resolve_github_repo, wait_with_console
from relbot.cli.context import CLIContext, build_context
from relbot.git.repository import Repository
from relbot.output.console import Style
from relbot.release.poller import PollTask
from relbot.release.timeouts import CI_INTERVAL_SECONDS, CI_TIMEOUT_SECONDS
from relbot.release.triggers import WorkflowTrigger, load_triggers, matches_tag, triggered_by_tag
from relbot.services import github

actions_app = typer.Typer(add_completion=False, no_args_is_help=True)


@actions_app.command("workflows")
def workflows(
    cli: typer.Context,
    tag: str | None = typer.Option(
        None, "--tag", help="Mark the workflows this tag triggers", show_default=False
    ),
) -> None:
    """List workflows and whether pushing a tag runs them."""
    ctx = build_context(cli)
    triggers = exit_on_error(load_triggers(ctx.repo_root), ctx)
    if not triggers:
        ctx.console.print("no workflows found in .github/workflows", Style.DIM)
        return

    for trigger in triggers:
        if tag is not None:
            hit = matches_tag(trigger, tag)
            ctx.console.print(f"{'✓' if hit else '-'} {trigger.name}", Style.SUCCESS if hit else Style.DIM)
            continue
        if not trigger.runs_on_tag_push:
            what = "no tag push"
        elif trigger.tag_patterns:
            what = "tags " + ", ".join(trigger.tag_patterns)
        else:
            what = "any tag"
        ctx.console.print(f"{trigger.name} ({trigger.path}): {what}")


def _runs_for_tag(ctx: CLIContext, tag: str) -> tuple[str, list[github.CiRun]]:
    exit_on_error(github.ensure_gh_available(), ctx)
    exit_on_error(github.ensure_gh_auth(repo_root=ctx.repo_root), ctx)

    repo = Repository(ctx.repo_root)
    slug = exit_on_error(resolve_github_repo(ctx, repo), ctx)
    sha = exit_on_error(repo.rev_parse(tag), ctx)
    runs = exit_on_error(github.list_runs_for_sha(repo_root=ctx.repo_root, repo=slug, sha=sha), ctx)
    return sha, runs


@actions_app.command("list")
def list_runs(
    cli: typer.Context,
    tag: str = typer.Option(..., "--tag", help="Tag whose workflow runs to list"),
) -> None:
    """List the workflow runs GitHub recorded for a tag's commit."""
    ctx = build_context(cli)
    sha, runs = _runs_for_tag(ctx, tag)
    if not runs:
        ctx.console.print(f"no workflow runs for {tag} (commit {sha[:7]})", Style.DIM)
        return

    ctx.console.print(f"tag {tag}")
    for i, run in enumerate(runs):
        branch = "└──" if i == len(runs) - 1 else "├──"
        ctx.console.print(f"{branch} {run.name}  {github.run_symbol(run)} #{run.run_number}  {run.url}".rstrip())


@actions_app.command("status")
def status(
    cli: typer.Context,
    tag: str = typer.Option(..., "--tag", help="Tag whose workflow runs to summarize"),
) -> None:
    """One-line summary of the workflow runs for a tag."""
    ctx = build_context(cli)
    sha, runs = _runs_for_tag(ctx, tag)
    if not runs:
        ctx.console.print(f"no workflow runs for {tag} (commit {sha[:7]})")
        return
    ctx.console.print(github.summarize_runs(runs))


@actions_app.command("wait")
def wait(
    cli: typer.Context,
    tag: str = typer.Option(..., "--tag", help="Tag whose CI runs to wait for"),
    all_runs: bool = typer.Option(
        False, "--all", help="Wait for every run on the commit, not only tag workflows"
    ),
    timeout: float | None = typer.Option(None, "--timeout", min=1, help="Seconds to wait", show_default=False),
    poll_interval: float | None = typer.Option(
        None, "--poll-interval", min=1, help="Seconds between status checks", show_default=False
    ),
) -> None:
    """Wait until the CI runs for a tag complete successfully."""
    ctx = build_context(cli)
    exit_on_error(github.ensure_gh_available(), ctx)
    exit_on_error(github.ensure_gh_auth(repo_root=ctx.repo_root), ctx)

    repo = Repository(ctx.repo_root)
    slug = exit_on_error(resolve_github_repo(ctx, repo), ctx)
    sha = exit_on_error(repo.rev_parse(tag), ctx)

    triggers: list[WorkflowTrigger] = []
    if not all_runs:
        loaded = exit_on_error(load_triggers(ctx.repo_root), ctx)
        triggers = triggered_by_tag(loaded, tag)
        names = ", ".join(t.name for t in triggers) or "all runs"
        ctx.console.print(f"expecting: {names}", Style.DIM)

    check = github.CiRunsCheck(repo_root=ctx.repo_root, repo=slug, sha=sha, triggers=triggers)
    cfg = ctx.config.release
    task = PollTask(
        resource=f"CI runs for {tag}",
        check=check.check_ready,
        interval=poll_interval or cfg.ci_interval or CI_INTERVAL_SECONDS,
        timeout=timeout or cfg.ci_timeout or CI_TIMEOUT_SECONDS,
    )
    wait_with_console(ctx, task)
    for run in check.last_runs:
        ctx.console.print(f"{run.name} #{run.run_number}: {run.conclusion or run.status}", Style.DIM)
