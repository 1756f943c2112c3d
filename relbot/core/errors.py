"""Process exit codes.

The release command has a deliberately narrow contract: scripts wrapping it
only need to know whether the release fully landed.
- 0: every step done or skipped
- 1: validation error, step failure, timeout, or artifact missing on remote
- 130: interrupted (SIGINT) while a step was running
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands. Values are stable."""

    OK = 0
    FAILURE = 1
    INTERRUPTED = 130

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
