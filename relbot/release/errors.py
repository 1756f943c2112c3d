from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

type ReleaseErrorKind = Literal[
    "validation",
    "not_found",
    "transient",
    "timeout",
    "cancelled",
    "failure",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} ({self.hint})"
        return self.message
