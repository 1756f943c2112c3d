"""Release command - cut a release and wait for it to land."""

from __future__ import annotations

import typer

from relbot.cli.commands._helpers import InterruptGuard, exit_on_error, exit_with_code
from relbot.cli.context import CLIContext, build_context
from relbot.core.errors import ErrorCode
from relbot.output.console import RichConsole, Style
from relbot.platform.http import RealHttpClient
from relbot.release.events import EventSink
from relbot.release.pipeline import RunOutcome
from relbot.release.poller import Cancellation
from relbot.release.sinks import HeadlessSink, LiveSink, QueuedSink
from relbot.services.release import (
    STEP_NAMES,
    BumpFlags,
    ReleaseOptions,
    ReleasePlan,
    ReleaseServices,
    resolve_plan,
    run_release,
)


def release(
    cli: typer.Context,
    rc: bool = typer.Option(False, "--rc", help="Cut a release candidate (X.Y.ZrcN)"),
    alpha: bool = typer.Option(False, "--alpha", help="Cut an alpha (X.Y.ZaN)"),
    release_: bool = typer.Option(False, "--release", help="Cut a minor release instead of a patch"),
    major: bool = typer.Option(False, "--major", help="With --release: bump the major version"),
    prev_tag: str | None = typer.Option(
        None, "--prev-tag", help="Previous release tag (changelog base)", show_default=False
    ),
    branch: str | None = typer.Option(None, "--branch", help="Branch to release from", show_default=False),
    remote: str | None = typer.Option(None, "--remote", help="Remote to push to", show_default=False),
    no_tui: bool = typer.Option(False, "--no-tui", help="Plain line output even on a terminal"),
    ci_timeout: float | None = typer.Option(
        None, "--ci-timeout", min=1, help="Seconds to wait for CI", show_default=False
    ),
    package_timeout: float | None = typer.Option(
        None, "--package-timeout", min=1, help="Seconds to wait for the package index", show_default=False
    ),
    image_timeout: float | None = typer.Option(
        None, "--image-timeout", min=1, help="Seconds to wait for the container image", show_default=False
    ),
    run_timeout: float | None = typer.Option(
        None, "--run-timeout", min=1, help="Cancel the whole run after this many seconds", show_default=False
    ),
) -> None:
    """Tag a new version, push it, and wait for CI and artifacts."""
    ctx = build_context(cli)

    options = ReleaseOptions(
        repo_root=ctx.repo_root,
        config=ctx.config,
        bump=BumpFlags(rc=rc, alpha=alpha, release=release_, major=major),
        prev_tag=prev_tag,
        branch=branch,
        remote=remote,
        use_prs=ctx.use_prs_override,
        dry_run=ctx.dry_run,
        ci_timeout=ci_timeout,
        package_timeout=package_timeout,
        image_timeout=image_timeout,
    )
    plan = exit_on_error(resolve_plan(options, console=ctx.console), ctx)
    _print_plan(ctx, plan)

    cancel = Cancellation()
    if run_timeout is not None:
        cancel.cancel_after(run_timeout)
    services = ReleaseServices.default(plan, RealHttpClient(), cancel=cancel)

    sink = QueuedSink(_make_sink(ctx, no_tui=no_tui))
    try:
        with InterruptGuard(cancel) as guard:
            outcome = run_release(plan, services, sink)
    except KeyboardInterrupt:
        ctx.console.error("interrupted")
        exit_with_code(int(ErrorCode.INTERRUPTED))
    finally:
        cancel.disarm()
        sink.close()

    exit_with_code(int(_exit_code(outcome, interrupted=guard.interrupted)))


def _make_sink(ctx: CLIContext, *, no_tui: bool) -> EventSink:
    console = ctx.console
    if not no_tui and isinstance(console, RichConsole) and console.is_terminal:
        return LiveSink(console.rich, STEP_NAMES)
    return HeadlessSink(console)


def _print_plan(ctx: CLIContext, plan: ReleasePlan) -> None:
    console = ctx.console
    console.header(f"Release {plan.next_tag}" + (" (dry-run)" if plan.dry_run else ""))
    console.print(f"previous: {plan.previous_tag}", Style.DIM)
    console.print(f"branch: {plan.branch}", Style.DIM)
    console.print(f"remote: {plan.remote}", Style.DIM)
    if plan.github_repo is not None:
        console.print(f"github: {plan.github_repo}", Style.DIM)


def _exit_code(outcome: RunOutcome, *, interrupted: bool) -> ErrorCode:
    if outcome.ok:
        return ErrorCode.OK
    if interrupted:
        return ErrorCode.INTERRUPTED
    return ErrorCode.FAILURE
