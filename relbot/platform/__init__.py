"""Process and network primitives."""

from relbot.platform.process import ProcessError, run, run_streaming

__all__ = ["ProcessError", "run", "run_streaming"]
