"""Release version resolution from existing tags.

Tags come in three shapes (a leading ``v`` is optional on all of them):

    1.2.3       stable
    1.2.3rc4    release candidate
    1.2.3a1     alpha

Anything else is not a version and is ignored. At equal base a stable
version sorts above any prerelease, and ``rc`` sorts above ``alpha``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

type PreKind = Literal["rc", "alpha"]

_STABLE_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")
_RC_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)rc(\d+)$")
_ALPHA_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)a(\d+)$")

# Rank of each prerelease kind at equal base; stable ranks highest.
_PRE_RANK: dict[PreKind | None, int] = {"alpha": 0, "rc": 1, None: 2}

_FIRST_RELEASE = (1, 0, 0)


@dataclass(frozen=True, slots=True)
class Version:
    major: int
    minor: int
    patch: int
    pre_kind: PreKind | None = None
    pre_num: int = 0

    @property
    def is_stable(self) -> bool:
        return self.pre_kind is None

    def sort_key(self) -> tuple[int, int, int, int, int]:
        pre_num = self.pre_num if self.pre_kind is not None else 0
        return (self.major, self.minor, self.patch, _PRE_RANK[self.pre_kind], pre_num)

    def __lt__(self, other: Version) -> bool:
        return self.sort_key() < other.sort_key()

    def __le__(self, other: Version) -> bool:
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other: Version) -> bool:
        return self.sort_key() > other.sort_key()

    def __ge__(self, other: Version) -> bool:
        return self.sort_key() >= other.sort_key()

    def base(self) -> Version:
        """The stable version this one is (or will become)."""
        return Version(self.major, self.minor, self.patch)

    def next_patch(self) -> Version:
        return Version(self.major, self.minor, self.patch + 1)

    def next_minor(self) -> Version:
        return Version(self.major, self.minor + 1, 0)

    def next_major(self) -> Version:
        return Version(self.major + 1, 0, 0)

    def next_rc(self, existing: Iterable[Version]) -> Version:
        return self._next_pre("rc", existing)

    def next_alpha(self, existing: Iterable[Version]) -> Version:
        return self._next_pre("alpha", existing)

    def _next_pre(self, kind: PreKind, existing: Iterable[Version]) -> Version:
        base = self.base()
        nums = [v.pre_num for v in existing if v.pre_kind == kind and v.base() == base]
        return Version(base.major, base.minor, base.patch, kind, max(nums) + 1 if nums else 0)

    def to_tag(self, *, prefix_v: bool | None = None) -> str:
        """Render as a tag string.

        Stable versions get a leading ``v`` by default, prereleases do not.
        """
        core = f"{self.major}.{self.minor}.{self.patch}"
        match self.pre_kind:
            case "rc":
                core += f"rc{self.pre_num}"
            case "alpha":
                core += f"a{self.pre_num}"
            case None:
                pass
        if prefix_v is None:
            prefix_v = self.is_stable
        return f"v{core}" if prefix_v else core

    def __str__(self) -> str:
        return self.to_tag(prefix_v=False)


def parse_tag(tag: str) -> Version | None:
    """Parse a tag string; returns None when it is not a version."""
    s = tag.strip()
    m = _STABLE_RE.match(s)
    if m is not None:
        return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    m = _RC_RE.match(s)
    if m is not None:
        return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)), "rc", int(m.group(4)))
    m = _ALPHA_RE.match(s)
    if m is not None:
        return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)), "alpha", int(m.group(4)))
    return None


def _parse_all(tags: Iterable[str]) -> list[tuple[str, Version]]:
    out: list[tuple[str, Version]] = []
    for tag in tags:
        v = parse_tag(tag)
        if v is not None:
            out.append((tag, v))
    return out


def _max_stable(versions: Iterable[Version]) -> Version | None:
    stable = [v for v in versions if v.is_stable]
    return max(stable, key=Version.sort_key) if stable else None


def next_from_tags(
    tags: Iterable[str],
    *,
    rc: bool = False,
    alpha: bool = False,
    release: bool = False,
    major: bool = False,
) -> str:
    """Compute the next release tag.

    Flag combinations are not validated here; callers reject conflicting
    flags before asking for a version.

    - default: next patch after the highest stable tag
    - ``release``: next minor (next major with ``major``)
    - ``rc`` / ``alpha``: next prerelease number on the highest pending base
    - no stable tag at all: ``1.0.0`` (prerelease modes start at ``1.0.0rc0``)
    """
    versions = [v for _, v in _parse_all(tags)]
    max_stable = _max_stable(versions)

    if rc or alpha:
        kind: PreKind = "rc" if rc else "alpha"
        first = max_stable.next_patch() if max_stable is not None else Version(*_FIRST_RELEASE)
        candidates = [first, *(v.base() for v in versions if v.pre_kind == kind)]
        base = max(candidates, key=Version.sort_key)
        if kind == "rc":
            return base.next_rc(versions).to_tag()
        return base.next_alpha(versions).to_tag()

    if max_stable is None:
        return Version(*_FIRST_RELEASE).to_tag()

    if release:
        return (max_stable.next_major() if major else max_stable.next_minor()).to_tag()

    return max_stable.next_patch().to_tag()


def _latest(pairs: list[tuple[str, Version]]) -> str | None:
    if not pairs:
        return None
    best = max((v for _, v in pairs), key=Version.sort_key)
    for original, v in pairs:
        if v == best:
            return original
    return best.to_tag()


def latest_tag(tags: Iterable[str]) -> str | None:
    """Highest version tag of any kind, in its original spelling."""
    return _latest(_parse_all(tags))


def latest_stable_tag(tags: Iterable[str]) -> str | None:
    """Highest stable tag, in its original spelling."""
    return _latest([(t, v) for t, v in _parse_all(tags) if v.is_stable])
