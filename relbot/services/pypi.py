"""Package index availability (PyPI JSON API)."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from relbot.core.result import Err, Ok, Result
from relbot.platform.http import HttpClient
from relbot.release.errors import ReleaseError

__all__ = ["PYPI_BASE_URL", "PackageIndexCheck", "check_package", "package_url", "version_from_tag"]

PYPI_BASE_URL = "https://pypi.org"


def version_from_tag(tag: str) -> str:
    """Index versions never carry the ``v`` tag prefix."""
    return tag.strip().removeprefix("v")


def package_url(name: str, version: str | None = None, *, base_url: str = PYPI_BASE_URL) -> str:
    path = f"pypi/{quote(name.strip(), safe='')}"
    if version:
        path += f"/{quote(version.strip(), safe='')}"
    return f"{base_url}/{path}/json"


def check_package(
    http: HttpClient,
    name: str,
    version: str | None = None,
    *,
    base_url: str = PYPI_BASE_URL,
) -> Result[bool, ReleaseError]:
    """Whether ``name`` (or ``name==version``) is published.

    200 means present, 404 absent; any other status is an error.
    """
    if not name.strip():
        return Err(ReleaseError(kind="validation", message="package name is required"))

    url = package_url(name, version, base_url=base_url)
    result = http.status(url, headers={"Accept": "application/json"})
    if isinstance(result, Err):
        return Err(ReleaseError(kind="transient", message=f"PyPI request failed: {result.error}", hint=url))

    match result.value:
        case 200:
            return Ok(True)
        case 404:
            return Ok(False)
        case status:
            return Err(ReleaseError(kind="failure", message=f"PyPI returned {status}", hint=url))


@dataclass(frozen=True, slots=True)
class PackageIndexCheck:
    http: HttpClient
    name: str
    version: str | None = None

    @property
    def resource(self) -> str:
        ref = f"{self.name}=={self.version}" if self.version else self.name
        return f"PyPI package {ref}"

    def check_ready(self) -> Result[bool, ReleaseError]:
        return check_package(self.http, self.name, self.version)
