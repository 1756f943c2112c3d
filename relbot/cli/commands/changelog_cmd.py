"""Changelog command - preview the section the next release would add."""

from __future__ import annotations

import typer

from relbot.cli.commands._helpers import exit_on_error, resolve_github_repo
from relbot.cli.context import CLIContext, build_context
from relbot.core.result import Err, Result
from relbot.git.repository import Repository
from relbot.output.console import Style
from relbot.release.errors import ReleaseError
from relbot.services import changelog as changelog_mod
from relbot.services import github
from relbot.services.release import check_pr_source, resolve_previous_tag


def changelog(
    cli: typer.Context,
    prev_tag: str | None = typer.Option(
        None, "--prev-tag", help="Base tag (default: latest stable)", show_default=False
    ),
    head: str = typer.Option("HEAD", "--head", help="Last ref included"),
    limit: int = typer.Option(0, "--limit", min=0, help="Max entries to include (0 = no limit)"),
) -> None:
    """Print the changelog section for prev-tag..head (nothing is written)."""
    ctx = build_context(cli)
    repo = Repository(ctx.repo_root)

    base = exit_on_error(resolve_previous_tag(repo, prev_tag, ctx.config), ctx)
    entries = exit_on_error(_gather(ctx, repo, base=base, head=head), ctx)
    if limit and len(entries) > limit:
        entries = entries.limited(limit)
        ctx.console.print(f"limited to {limit} entries", Style.DIM)

    ctx.console.print(f"{len(entries)} entries since {base}", Style.DIM)
    version = "Unreleased" if head == "HEAD" else head
    typer.echo(changelog_mod.render_section(version, entries), nl=False)


def _gather(
    ctx: CLIContext,
    repo: Repository,
    *,
    base: str,
    head: str,
) -> Result[changelog_mod.ChangelogEntries, ReleaseError]:
    if not ctx.use_prs:
        return changelog_mod.gather_commits(repo, base, head)

    slug = resolve_github_repo(ctx, repo)
    if isinstance(slug, Err):
        return slug
    source = check_pr_source(slug.value, lambda: github.gh_ready(repo_root=ctx.repo_root))
    if isinstance(source, Err):
        return source
    head_sha = repo.rev_parse(head)
    if isinstance(head_sha, Err):
        return Err(ReleaseError(kind="not_found", message=f"unknown ref: {head}", hint=head_sha.error.message))

    console = ctx.console
    return changelog_mod.gather_prs(
        repo_root=ctx.repo_root,
        repo=source.value,
        base=base,
        head=head,
        head_sha=head_sha.value,
        cache=changelog_mod.PrCache(ctx.repo_root / changelog_mod.CACHE_DIR),
        on_progress=lambda current, total: console.print(f"pull requests {current}/{total}", Style.DIM),
        on_warning=console.warning,
    )
