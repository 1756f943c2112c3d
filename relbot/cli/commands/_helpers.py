"""Shared helpers for CLI commands."""

from __future__ import annotations

import signal
import threading
from types import FrameType
from typing import TYPE_CHECKING, NoReturn

import typer

from relbot.core.errors import ErrorCode
from relbot.core.result import Err, Ok, Result
from relbot.git.repository import Repository, parse_github_slug
from relbot.output.console import ConsoleProtocol, Style
from relbot.release.errors import ReleaseError
from relbot.release.poller import Cancellation, PollTask, wait_until_ready
from relbot.services.release import DEFAULT_REMOTE

if TYPE_CHECKING:
    from relbot.cli.context import CLIContext


def print_error(console: ConsoleProtocol, error: object) -> None:
    """Print an error value with its optional hint.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    message: str = getattr(error, "message", str(error))
    hint: str | None = getattr(error, "hint", None)
    console.error(message)
    if hint:
        console.print(f"hint: {hint}", Style.DIM)


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.FAILURE,
) -> T:
    """Exit with error if result is Err, otherwise return its value."""
    if isinstance(result, Err):
        print_error(ctx.console, result.error)
        raise typer.Exit(code=int(error_code))
    return result.value


def exit_with_code(code: int) -> NoReturn:
    """Exit with given code. Explicit helper for clarity."""
    raise typer.Exit(code=code)


class InterruptGuard:
    """Turns the first SIGINT into a cancellation.

    The running wait returns promptly with a ``cancelled`` error; a second
    SIGINT raises KeyboardInterrupt as usual. Signal handlers can only be
    installed from the main thread; elsewhere the guard does nothing.
    """

    def __init__(self, cancel: Cancellation) -> None:
        self.cancel = cancel
        self.interrupted = False
        self._previous: signal.Handlers | object | None = None

    def __enter__(self) -> InterruptGuard:
        if threading.current_thread() is threading.main_thread():
            self._previous = signal.signal(signal.SIGINT, self._handle)
        return self

    def __exit__(self, *_: object) -> None:
        if self._previous is not None:
            signal.signal(signal.SIGINT, self._previous)  # type: ignore[arg-type]
            self._previous = None

    def _handle(self, _signum: int, _frame: FrameType | None) -> None:
        if self.interrupted:
            raise KeyboardInterrupt
        self.interrupted = True
        self.cancel.cancel()


def wait_with_console(ctx: CLIContext, task: PollTask) -> None:
    """Poll ``task`` in the foreground, then exit with the matching code."""
    cancel = Cancellation()
    console = ctx.console

    def on_poll(attempt: int, elapsed: float) -> None:
        console.print(f"waiting for {task.resource} (check {attempt}, {int(elapsed)}s elapsed)", Style.DIM)

    console.print(f"waiting for {task.resource} (timeout {int(task.timeout)}s)", Style.DIM)
    with InterruptGuard(cancel) as guard:
        result = wait_until_ready(task, cancel=cancel, on_poll=on_poll)

    if isinstance(result, Err):
        print_error(console, result.error)
        exit_with_code(int(ErrorCode.INTERRUPTED if guard.interrupted else ErrorCode.FAILURE))
    console.success(f"{task.resource} is ready ({int(result.value)}s)")


def resolve_github_repo(ctx: CLIContext, repo: Repository) -> Result[str, ReleaseError]:
    """``github.repo`` from the config, else the slug of the release remote."""
    if ctx.config.github.repo:
        return Ok(ctx.config.github.repo)
    remote = ctx.config.release.remote or DEFAULT_REMOTE
    url = repo.remote_url(remote)
    slug = parse_github_slug(url.value) if isinstance(url, Ok) else None
    if slug is None:
        return Err(
            ReleaseError(
                kind="validation",
                message=f"cannot determine GitHub repository from remote {remote}",
                hint="set github.repo in .releasebot.toml",
            )
        )
    return Ok(slug)
