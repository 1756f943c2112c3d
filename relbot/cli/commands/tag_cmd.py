"""Tag commands - compute (and optionally create) the next version tag."""

from __future__ import annotations

import typer

from relbot.cli.commands._helpers import exit_on_error, print_error
from relbot.cli.context import build_context
from relbot.core.errors import ErrorCode
from relbot.git.repository import Repository
from relbot.output.console import Style
from relbot.release.errors import ReleaseError
from relbot.services.release import BumpFlags

tag_app = typer.Typer(add_completion=False, no_args_is_help=True)


@tag_app.command("next")
def next_tag(
    cli: typer.Context,
    rc: bool = typer.Option(False, "--rc", help="Next release candidate"),
    alpha: bool = typer.Option(False, "--alpha", help="Next alpha"),
    release_: bool = typer.Option(False, "--release", help="Minor bump instead of patch"),
    major: bool = typer.Option(False, "--major", help="With --release: major bump"),
    create: bool = typer.Option(False, "--create", help="Create the annotated tag locally"),
) -> None:
    """Print the tag the next release would get (on stdout)."""
    ctx = build_context(cli)
    bump = BumpFlags(rc=rc, alpha=alpha, release=release_, major=major)
    exit_on_error(bump.validate(), ctx)

    repo = Repository(ctx.repo_root)
    tags = exit_on_error(repo.list_tags(), ctx)
    tag = bump.next_tag(tags)

    if create:
        if tag in tags:
            print_error(ctx.console, ReleaseError(kind="validation", message=f"tag already exists: {tag}"))
            raise typer.Exit(code=int(ErrorCode.FAILURE))
        if ctx.dry_run:
            ctx.console.print(f"would create tag {tag}", Style.DIM)
        else:
            exit_on_error(repo.create_tag(tag, f"Release {tag}"), ctx)
            ctx.console.success(f"created tag {tag}")

    typer.echo(tag)
