"""Result type for explicit error handling.

Every collaborator the release pipeline talks to (git, gh, HTTP endpoints,
the filesystem) can fail. Instead of letting exceptions escape from those
boundaries, functions return ``Ok(value)`` or ``Err(error)`` and callers
branch on the variant.

Usage:
    def parse_port(text: str) -> Result[int, str]:
        if not text.isdigit():
            return Err(f"not a port: {text}")
        return Ok(int(text))

    match parse_port("8080"):
        case Ok(port):
            print(port)
        case Err(message):
            print(message)
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful result carrying ``value``."""

    value: T

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failed result carrying ``error``."""

    error: E

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]
