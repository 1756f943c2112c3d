"""Artifact commands - check or wait for a published package or image."""

from __future__ import annotations

import typer

from relbot.cli.commands._helpers import exit_on_error, exit_with_code, wait_with_console
from relbot.cli.context import CLIContext, build_context
from relbot.core.errors import ErrorCode
from relbot.core.result import Result
from relbot.platform.http import HttpClient, RealHttpClient
from relbot.release.errors import ReleaseError
from relbot.release.poller import PollTask
from relbot.release.timeouts import ARTIFACT_INTERVAL_SECONDS, ARTIFACT_TIMEOUT_SECONDS
from relbot.services.pypi import PackageIndexCheck
from relbot.services.registry import ImageCheck

pypi_app = typer.Typer(add_completion=False, no_args_is_help=True)
docker_app = typer.Typer(add_completion=False, no_args_is_help=True)


def make_http_client() -> HttpClient:
    return RealHttpClient()


def _report_once(ctx: CLIContext, resource: str, result: Result[bool, ReleaseError]) -> None:
    present = exit_on_error(result, ctx)
    if not present:
        ctx.console.error(f"{resource}: not found")
        exit_with_code(int(ErrorCode.FAILURE))
    ctx.console.success(f"{resource}: available")


def _task(
    ctx: CLIContext,
    resource: str,
    check: PackageIndexCheck | ImageCheck,
    timeout: float | None,
    interval: float | None,
) -> PollTask:
    cfg = ctx.config.release
    return PollTask(
        resource=resource,
        check=check.check_ready,
        interval=interval or cfg.artifact_interval or ARTIFACT_INTERVAL_SECONDS,
        timeout=timeout or cfg.artifact_timeout or ARTIFACT_TIMEOUT_SECONDS,
    )


@pypi_app.command("check")
def pypi_check(
    cli: typer.Context,
    name: str = typer.Argument(..., help="Package name"),
    version: str | None = typer.Argument(None, help="Version (default: any)", show_default=False),
) -> None:
    """Check once whether a package (version) is on PyPI."""
    ctx = build_context(cli)
    check = PackageIndexCheck(http=make_http_client(), name=name, version=version)
    _report_once(ctx, check.resource, check.check_ready())


@pypi_app.command("wait")
def pypi_wait(
    cli: typer.Context,
    name: str = typer.Argument(..., help="Package name"),
    version: str | None = typer.Argument(None, help="Version (default: any)", show_default=False),
    timeout: float | None = typer.Option(None, "--timeout", min=1, help="Seconds to wait", show_default=False),
    interval: float | None = typer.Option(
        None, "--interval", min=1, help="Seconds between checks", show_default=False
    ),
) -> None:
    """Wait until a package (version) is on PyPI."""
    ctx = build_context(cli)
    check = PackageIndexCheck(http=make_http_client(), name=name, version=version)
    wait_with_console(ctx, _task(ctx, check.resource, check, timeout, interval))


@docker_app.command("check")
def docker_check(
    cli: typer.Context,
    image: str = typer.Argument(..., help="Image reference (repo[:tag] or repo@digest)"),
) -> None:
    """Check once whether an image is on Docker Hub."""
    ctx = build_context(cli)
    check = ImageCheck(http=make_http_client(), image=image)
    _report_once(ctx, check.resource, check.check_ready())


@docker_app.command("wait")
def docker_wait(
    cli: typer.Context,
    image: str = typer.Argument(..., help="Image reference (repo[:tag] or repo@digest)"),
    timeout: float | None = typer.Option(None, "--timeout", min=1, help="Seconds to wait", show_default=False),
    interval: float | None = typer.Option(
        None, "--interval", min=1, help="Seconds between checks", show_default=False
    ),
) -> None:
    """Wait until an image is on Docker Hub."""
    ctx = build_context(cli)
    check = ImageCheck(http=make_http_client(), image=image)
    wait_with_console(ctx, _task(ctx, check.resource, check, timeout, interval))
