"""Container registry availability (Docker Hub, Registry API v2).

An image reference is ``[docker.io/]repo[:tag|@digest]``. Unqualified
repositories live under ``library/`` and the default tag is ``latest``.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from relbot.core.result import Err, Ok, Result
from relbot.core.structured import get_str
from relbot.platform.http import HttpClient
from relbot.release.errors import ReleaseError

__all__ = ["ImageCheck", "ImageRef", "check_image", "image_for_tag", "parse_image_ref"]

AUTH_URL = "https://auth.docker.io/token"
REGISTRY_URL = "https://registry-1.docker.io"
AUTH_SERVICE = "registry.docker.io"
MANIFEST_ACCEPT = "application/vnd.docker.distribution.manifest.v2+json"


@dataclass(frozen=True, slots=True)
class ImageRef:
    repo: str
    ref: str

    def __str__(self) -> str:
        sep = "@" if self.ref.startswith("sha256:") else ":"
        return f"{self.repo}{sep}{self.ref}"


def _normalize_repo(repo: str) -> str:
    return repo if "/" in repo else f"library/{repo}"


def parse_image_ref(image: str) -> Result[ImageRef, ReleaseError]:
    s = image.strip().removeprefix("docker.io/")
    if not s:
        return Err(ReleaseError(kind="validation", message="empty image reference"))

    if "@" in s:
        repo, ref = s.split("@", 1)
    else:
        repo, sep, ref = s.rpartition(":")
        if not sep or "/" in ref:
            repo, ref = s, "latest"

    if not repo or not ref:
        return Err(ReleaseError(kind="validation", message=f"invalid image reference: {image}"))
    return Ok(ImageRef(repo=_normalize_repo(repo), ref=ref))


def image_for_tag(image: str, tag: str) -> str:
    """Image reference a release tag is published under (``image:tag``)."""
    return f"{image.strip()}:{tag.strip()}"


def _token(http: HttpClient, repo: str) -> Result[str, ReleaseError]:
    url = f"{AUTH_URL}?service={quote(AUTH_SERVICE)}&scope=repository:{quote(repo)}:pull"
    result = http.get_json(url)
    if isinstance(result, Err):
        kind = "transient" if result.error.status == 0 or result.error.status >= 500 else "failure"
        return Err(ReleaseError(kind=kind, message=f"docker hub auth: {result.error}"))
    token = get_str(result.value, "token")
    if token is None:
        return Err(ReleaseError(kind="failure", message="docker hub auth: empty token in auth response"))
    return Ok(token)


def check_image(http: HttpClient, image: str) -> Result[bool, ReleaseError]:
    """Whether the manifest for ``image`` exists.

    200 means present; 404 and 401 (no pull access) mean absent; any other
    status is an error.
    """
    parsed = parse_image_ref(image)
    if isinstance(parsed, Err):
        return parsed
    ref = parsed.value

    token = _token(http, ref.repo)
    if isinstance(token, Err):
        return token

    url = f"{REGISTRY_URL}/v2/{ref.repo}/manifests/{ref.ref}"
    result = http.status(
        url,
        method="HEAD",
        headers={"Authorization": f"Bearer {token.value}", "Accept": MANIFEST_ACCEPT},
    )
    if isinstance(result, Err):
        return Err(ReleaseError(kind="transient", message=f"registry request failed: {result.error}", hint=url))

    match result.value:
        case 200:
            return Ok(True)
        case 401 | 404:
            return Ok(False)
        case status:
            return Err(ReleaseError(kind="failure", message=f"manifest HEAD returned {status}", hint=url))


@dataclass(frozen=True, slots=True)
class ImageCheck:
    http: HttpClient
    image: str

    @property
    def resource(self) -> str:
        return f"Docker Hub image {self.image}"

    def check_ready(self) -> Result[bool, ReleaseError]:
        return check_image(self.http, self.image)
