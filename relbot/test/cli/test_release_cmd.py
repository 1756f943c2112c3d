from __future__ import annotations

import signal
from pathlib import Path

import pytest
import typer

from relbot.cli.context import CLIContext
from relbot.core.config import Config
from relbot.core.errors import ErrorCode
from relbot.core.result import Err, Ok
from relbot.output.console import MockConsole
from relbot.release.errors import ReleaseError
from relbot.release.pipeline import RunOutcome
from relbot.release.sinks import HeadlessSink, QueuedSink
from relbot.services.release import ReleaseOptions, ReleasePlan


def _ctx(tmp_path: Path, *, dry_run: bool = False) -> CLIContext:
    return CLIContext(repo_root=tmp_path, config=Config(), console=MockConsole(), dry_run=dry_run)


def _plan(tmp_path: Path, *, dry_run: bool = False) -> ReleasePlan:
    return ReleasePlan(
        repo_root=tmp_path,
        previous_tag="v1.2.0",
        next_tag="v1.2.1",
        branch="main",
        remote="origin",
        changelog_path=tmp_path / "CHANGELOG.md",
        github_repo="acme/demo",
        dry_run=dry_run,
    )


def _release(**overrides: object) -> None:
    import relbot.cli.commands.release_cmd as release_cmd

    kwargs: dict[str, object] = {
        "cli": None,
        "rc": False,
        "alpha": False,
        "release_": False,
        "major": False,
        "prev_tag": None,
        "branch": None,
        "remote": None,
        "no_tui": True,
        "ci_timeout": None,
        "package_timeout": None,
        "image_timeout": None,
        "run_timeout": None,
    }
    kwargs.update(overrides)
    release_cmd.release(**kwargs)  # type: ignore[arg-type]


def _patch(
    monkeypatch: pytest.MonkeyPatch,
    ctx: CLIContext,
    plan: ReleasePlan,
    outcome: RunOutcome | BaseException,
) -> list[ReleaseOptions]:
    import relbot.cli.commands.release_cmd as release_cmd

    seen: list[ReleaseOptions] = []

    def fake_resolve_plan(options: ReleaseOptions, **_: object) -> Ok[ReleasePlan]:
        seen.append(options)
        return Ok(plan)

    def fake_run_release(_plan: ReleasePlan, _services: object, sink: object) -> RunOutcome:
        assert isinstance(sink, QueuedSink)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    monkeypatch.setattr(release_cmd, "build_context", lambda _cli=None: ctx)
    monkeypatch.setattr(release_cmd, "resolve_plan", fake_resolve_plan)
    monkeypatch.setattr(release_cmd, "run_release", fake_run_release)
    return seen


def test_release_success_exits_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ctx = _ctx(tmp_path)
    seen = _patch(monkeypatch, ctx, _plan(tmp_path), RunOutcome(kind="success"))

    with pytest.raises(typer.Exit) as exc:
        _release(release_=True, ci_timeout=60.0)

    assert exc.value.exit_code == int(ErrorCode.OK)
    assert seen[0].bump.release is True
    assert seen[0].ci_timeout == 60.0
    console = ctx.console
    assert isinstance(console, MockConsole)
    assert console.find("Release v1.2.1")
    assert console.find("github: acme/demo")


def test_release_dry_run_header(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ctx = _ctx(tmp_path, dry_run=True)
    seen = _patch(monkeypatch, ctx, _plan(tmp_path, dry_run=True), RunOutcome(kind="success"))

    with pytest.raises(typer.Exit):
        _release()

    assert seen[0].dry_run is True
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.find("Release v1.2.1 (dry-run)")


@pytest.mark.parametrize("kind", ["failed", "timed_out", "cancelled"])
def test_release_failure_exits_one(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, kind: str) -> None:
    outcome = RunOutcome(kind=kind, step_index=5, step_name="Wait for CI")  # type: ignore[arg-type]
    _patch(monkeypatch, _ctx(tmp_path), _plan(tmp_path), outcome)

    with pytest.raises(typer.Exit) as exc:
        _release(run_timeout=3600.0)

    assert exc.value.exit_code == int(ErrorCode.FAILURE)


def test_release_changelog_source_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ctx = CLIContext(repo_root=tmp_path, config=Config(), console=MockConsole(), use_prs_override=False)
    seen = _patch(monkeypatch, ctx, _plan(tmp_path), RunOutcome(kind="success"))

    with pytest.raises(typer.Exit):
        _release()

    assert seen[0].use_prs is False


def test_release_invalid_input_runs_nothing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    ran: list[object] = []
    error = ReleaseError(kind="validation", message="cannot use both --rc and --alpha")
    monkeypatch.setattr(release_cmd, "build_context", lambda _cli=None: ctx)
    monkeypatch.setattr(release_cmd, "resolve_plan", lambda *_a, **_k: Err(error))
    monkeypatch.setattr(release_cmd, "run_release", lambda *a: ran.append(a))

    with pytest.raises(typer.Exit) as exc:
        _release(rc=True, alpha=True)

    assert exc.value.exit_code == int(ErrorCode.FAILURE)
    assert ran == []
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.has_error()


def test_release_sigint_exits_130(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.release_cmd as release_cmd

    ctx = _ctx(tmp_path)
    monkeypatch.setattr(release_cmd, "build_context", lambda _cli=None: ctx)
    monkeypatch.setattr(release_cmd, "resolve_plan", lambda *_a, **_k: Ok(_plan(tmp_path)))

    def interrupted_run(_plan: ReleasePlan, services: object, _sink: object) -> RunOutcome:
        signal.raise_signal(signal.SIGINT)
        cancel = getattr(services, "cancel")
        assert cancel.cancelled
        return RunOutcome(kind="cancelled", step_index=5, step_name="Wait for CI")

    monkeypatch.setattr(release_cmd, "run_release", interrupted_run)

    with pytest.raises(typer.Exit) as exc:
        _release()

    assert exc.value.exit_code == int(ErrorCode.INTERRUPTED)


def test_release_keyboard_interrupt_exits_130(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    ctx = _ctx(tmp_path)
    _patch(monkeypatch, ctx, _plan(tmp_path), KeyboardInterrupt())

    with pytest.raises(typer.Exit) as exc:
        _release()

    assert exc.value.exit_code == int(ErrorCode.INTERRUPTED)
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.find("interrupted")


def test_plain_sink_without_terminal(tmp_path: Path) -> None:
    import relbot.cli.commands.release_cmd as release_cmd

    sink = release_cmd._make_sink(_ctx(tmp_path), no_tui=False)  # pyright: ignore[reportPrivateUsage]
    assert isinstance(sink, HeadlessSink)
