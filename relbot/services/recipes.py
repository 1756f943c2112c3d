"""Build recipes: ``just`` targets run before anything is committed."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from relbot.core.result import Err, Ok, Result
from relbot.platform.process import ProcessError, run_streaming
from relbot.release.errors import ReleaseError

__all__ = ["JUSTFILE_NAMES", "find_justfile", "run_recipes", "stream_target"]

JUSTFILE_NAMES = ("justfile", "Justfile", ".justfile")

type Runner = Callable[[list[str], Path], Result[None, ProcessError]]


def find_justfile(working_dir: Path) -> Path | None:
    for name in JUSTFILE_NAMES:
        candidate = working_dir / name
        if candidate.is_file():
            return candidate
    return None


def stream_target(cmd: list[str], cwd: Path) -> Result[None, ProcessError]:
    """Default runner: output goes straight to the terminal."""
    return run_streaming(cmd, cwd)


def run_recipes(
    working_dir: Path,
    targets: list[str] | tuple[str, ...],
    *,
    runner: Runner = stream_target,
    on_target: Callable[[int, int, str], None] | None = None,
) -> Result[list[str], ReleaseError]:
    """Run ``just <target>`` for each target in order.

    Stops at the first failing target. Returns the targets that ran.
    """
    if not targets:
        return Ok([])

    working_dir = working_dir.resolve()
    if find_justfile(working_dir) is None:
        return Err(
            ReleaseError(
                kind="not_found",
                message=f"justfile not found in {working_dir}",
                hint="Set recipes.working_dir in .releasebot.toml",
            )
        )

    done: list[str] = []
    for i, target in enumerate(targets):
        if on_target is not None:
            on_target(i, len(targets), target)
        result = runner(["just", target], working_dir)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="failure",
                    message=f"recipe failed: {target}",
                    hint=str(result.error),
                )
            )
        done.append(target)
    return Ok(done)
