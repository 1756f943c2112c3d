from __future__ import annotations

from pathlib import Path

import typer

from relbot import __version__
from relbot.cli.commands.actions_cmd import actions_app
from relbot.cli.commands.artifacts_cmd import docker_app, pypi_app
from relbot.cli.commands.changelog_cmd import changelog
from relbot.cli.commands.release_cmd import release
from relbot.cli.commands.tag_cmd import tag_app
from relbot.cli.context import GlobalOptions
from relbot.core.errors import ErrorCode


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(release)
app.command()(changelog)

# Sub-apps
app.add_typer(tag_app, name="tag", help="Version tags.")
app.add_typer(actions_app, name="actions", help="GitHub Actions workflows.")
app.add_typer(pypi_app, name="pypi", help="PyPI package availability.")
app.add_typer(docker_app, name="docker", help="Docker Hub image availability.")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    cli: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    repo: Path | None = typer.Option(
        None,
        "--repo",
        help="Repository root (default: current directory)",
        show_default=False,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Config file (default: <repo>/.releasebot.toml)",
        show_default=False,
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would happen without changing anything"),
    use_prs: bool = typer.Option(
        False, "--use-prs", help="Changelog from merged GitHub PRs (overrides config; needs gh)"
    ),
    use_history: bool = typer.Option(
        False, "--use-history", help="Changelog from git commit history (overrides config)"
    ),
) -> None:
    if use_prs and use_history:
        typer.echo("error: --use-prs and --use-history are mutually exclusive", err=True)
        raise typer.Exit(code=int(ErrorCode.FAILURE))
    source: bool | None = None
    if use_prs or use_history:
        source = use_prs
    cli.obj = GlobalOptions(repo=repo, config=config, dry_run=dry_run, use_prs=source)


def main() -> None:
    app()
