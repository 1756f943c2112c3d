from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from relbot import __version__
from relbot.cli.app import app
from relbot.cli.context import CLIContext, GlobalOptions, global_options
from relbot.core.config import Config
from relbot.core.errors import ErrorCode
from relbot.core.result import Ok, Result
from relbot.git.repository import GitError
from relbot.output.console import MockConsole

runner = CliRunner()


class FakeTags:
    def list_tags(self) -> Result[list[str], GitError]:
        return Ok(["v1.2.0"])


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_commands_registered() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("release", "changelog", "tag", "actions", "pypi", "docker"):
        assert name in result.output


def test_global_options_reach_commands(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.tag_cmd as tag_cmd

    seen: list[GlobalOptions] = []

    def fake_build_context(cli: typer.Context | None = None) -> CLIContext:
        options = global_options(cli)
        seen.append(options)
        return CLIContext(repo_root=tmp_path, config=Config(), console=MockConsole(), dry_run=options.dry_run)

    monkeypatch.setattr(tag_cmd, "build_context", fake_build_context)
    monkeypatch.setattr(tag_cmd, "Repository", lambda _root: FakeTags())

    result = runner.invoke(app, ["--repo", str(tmp_path), "--dry-run", "tag", "next", "--release"])

    assert result.exit_code == 0, result.output
    assert result.output.strip().splitlines()[-1] == "v1.3.0"
    assert seen == [GlobalOptions(repo=tmp_path, config=None, dry_run=True)]


def _capture_options(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> list[GlobalOptions]:
    import relbot.cli.commands.tag_cmd as tag_cmd

    seen: list[GlobalOptions] = []

    def fake_build_context(cli: typer.Context | None = None) -> CLIContext:
        seen.append(global_options(cli))
        return CLIContext(repo_root=tmp_path, config=Config(), console=MockConsole())

    monkeypatch.setattr(tag_cmd, "build_context", fake_build_context)
    monkeypatch.setattr(tag_cmd, "Repository", lambda _root: FakeTags())
    return seen


@pytest.mark.parametrize(
    ("flags", "expected"),
    [([], None), (["--use-prs"], True), (["--use-history"], False)],
)
def test_changelog_source_flags(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, flags: list[str], expected: bool | None
) -> None:
    seen = _capture_options(tmp_path, monkeypatch)

    result = runner.invoke(app, [*flags, "tag", "next"])

    assert result.exit_code == 0, result.output
    assert seen[0].use_prs is expected


def test_changelog_source_flags_are_exclusive(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _capture_options(tmp_path, monkeypatch)

    result = runner.invoke(app, ["--use-prs", "--use-history", "tag", "next"])

    assert result.exit_code == int(ErrorCode.FAILURE)
    assert "mutually exclusive" in result.output
    assert seen == []
