from __future__ import annotations

from pathlib import Path

import pytest
import typer

from relbot.cli.context import CLIContext
from relbot.core.config import Config, ReleaseConfig
from relbot.core.errors import ErrorCode
from relbot.output.console import MockConsole
from relbot.platform.http import HttpError, MockHttpClient
from relbot.release.poller import PollTask
from relbot.release.timeouts import ARTIFACT_TIMEOUT_SECONDS
from relbot.services.pypi import package_url
from relbot.services.registry import AUTH_URL, REGISTRY_URL


def _setup(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> tuple[MockConsole, MockHttpClient]:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    console = MockConsole()
    http = MockHttpClient()
    ctx = CLIContext(repo_root=tmp_path, config=Config(), console=console)
    monkeypatch.setattr(artifacts_cmd, "build_context", lambda _cli=None: ctx)
    monkeypatch.setattr(artifacts_cmd, "make_http_client", lambda: http)
    return console, http


def test_pypi_check_available(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    console, http = _setup(tmp_path, monkeypatch)
    http.set_status(package_url("demo", "1.2.1"), 200)

    artifacts_cmd.pypi_check(cli=None, name="demo", version="1.2.1")  # type: ignore[arg-type]

    assert console.find("PyPI package demo==1.2.1: available")


def test_pypi_check_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    console, _ = _setup(tmp_path, monkeypatch)

    with pytest.raises(typer.Exit) as exc:
        artifacts_cmd.pypi_check(cli=None, name="demo", version=None)  # type: ignore[arg-type]

    assert exc.value.exit_code == int(ErrorCode.FAILURE)
    assert console.find("PyPI package demo: not found")


def test_pypi_check_request_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    console, http = _setup(tmp_path, monkeypatch)
    http.set_status(package_url("demo"), HttpError(url=package_url("demo"), status=0, message="offline"))

    with pytest.raises(typer.Exit) as exc:
        artifacts_cmd.pypi_check(cli=None, name="demo", version=None)  # type: ignore[arg-type]

    assert exc.value.exit_code == int(ErrorCode.FAILURE)
    assert console.has_error()


def test_pypi_wait_ready(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    console, http = _setup(tmp_path, monkeypatch)
    http.set_status(package_url("demo", "1.2.1"), 200)

    artifacts_cmd.pypi_wait(cli=None, name="demo", version="1.2.1", timeout=30.0, interval=None)  # type: ignore[arg-type]

    assert console.find("waiting for PyPI package demo==1.2.1 (timeout 30s)")
    assert console.find("PyPI package demo==1.2.1 is ready")


def test_docker_check(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    console, http = _setup(tmp_path, monkeypatch)
    http.set_json(f"{AUTH_URL}?service=registry.docker.io&scope=repository:acme/demo:pull", {"token": "t"})
    http.set_status(f"{REGISTRY_URL}/v2/acme/demo/manifests/v1.2.1", 200)

    artifacts_cmd.docker_check(cli=None, image="acme/demo:v1.2.1")  # type: ignore[arg-type]

    assert console.find("Docker Hub image acme/demo:v1.2.1: available")


def test_docker_wait_interval(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    _setup(tmp_path, monkeypatch)
    tasks: list[PollTask] = []
    monkeypatch.setattr(artifacts_cmd, "wait_with_console", lambda _ctx, task: tasks.append(task))

    artifacts_cmd.docker_wait(cli=None, image="acme/demo:v1.2.1", timeout=None, interval=2.0)  # type: ignore[arg-type]

    assert tasks[0].interval == 2.0
    assert tasks[0].timeout == ARTIFACT_TIMEOUT_SECONDS


def test_pypi_wait_interval_from_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import relbot.cli.commands.artifacts_cmd as artifacts_cmd

    ctx = CLIContext(
        repo_root=tmp_path,
        config=Config(release=ReleaseConfig(artifact_interval=9.0)),
        console=MockConsole(),
    )
    tasks: list[PollTask] = []
    monkeypatch.setattr(artifacts_cmd, "build_context", lambda _cli=None: ctx)
    monkeypatch.setattr(artifacts_cmd, "make_http_client", MockHttpClient)
    monkeypatch.setattr(artifacts_cmd, "wait_with_console", lambda _ctx, task: tasks.append(task))

    artifacts_cmd.pypi_wait(cli=None, name="demo", version=None, timeout=None, interval=None)  # type: ignore[arg-type]

    assert tasks[0].interval == 9.0
