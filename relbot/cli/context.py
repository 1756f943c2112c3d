from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from relbot.core.config import CONFIG_FILENAME, Config, load_config, load_config_or_default
from relbot.core.errors import ErrorCode
from relbot.core.result import Err
from relbot.git.repository import Repository
from relbot.output.console import ConsoleProtocol, RichConsole


@dataclass(frozen=True, slots=True)
class GlobalOptions:
    """Options given before the command name (``relbot --repo X release``)."""

    repo: Path | None = None
    config: Path | None = None
    dry_run: bool = False
    use_prs: bool | None = None


@dataclass(frozen=True, slots=True)
class CLIContext:
    repo_root: Path
    config: Config
    console: ConsoleProtocol
    dry_run: bool = False
    use_prs_override: bool | None = None

    @property
    def use_prs(self) -> bool:
        """--use-prs / --use-history, else changelog.use_prs from the config."""
        if self.use_prs_override is not None:
            return self.use_prs_override
        return self.config.changelog.use_prs


def global_options(cli: typer.Context | None) -> GlobalOptions:
    if cli is None:
        return GlobalOptions()
    found = cli.find_object(GlobalOptions)
    return found if found is not None else GlobalOptions()


def build_context(cli: typer.Context | None = None) -> CLIContext:
    options = global_options(cli)

    try:
        root = (options.repo or Path.cwd()).expanduser().resolve()
    except OSError as e:
        typer.echo(f"error: invalid --repo: {e}", err=True)
        raise typer.Exit(code=int(ErrorCode.FAILURE))

    if not Repository(root).exists():
        typer.echo(f"error: '{root}' is not a git repository (missing .git)", err=True)
        raise typer.Exit(code=int(ErrorCode.FAILURE))

    if options.config is not None:
        config_result = load_config(options.config.expanduser())
    else:
        config_result = load_config_or_default(root / CONFIG_FILENAME)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.FAILURE))

    return CLIContext(
        repo_root=root,
        config=config_result.value,
        console=RichConsole(),
        dry_run=options.dry_run,
        use_prs_override=options.use_prs,
    )
