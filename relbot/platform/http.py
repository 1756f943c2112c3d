"""HTTP client abstraction for artifact availability checks.

This module provides:
- HttpClient: Protocol for the two request shapes relbot needs
- RealHttpClient: urllib implementation
- MockHttpClient: canned responses for tests
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Protocol, cast, runtime_checkable

from relbot import __version__
from relbot.core.result import Err, Ok, Result
from relbot.core.structured import as_str_dict

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    def get_json(
        self, url: str, *, headers: dict[str, str] | None = None
    ) -> Result[dict[str, Any], HttpError]:
        """Fetch URL and parse a JSON object. Non-2xx statuses are errors."""
        ...

    def status(
        self, url: str, *, method: str = "GET", headers: dict[str, str] | None = None
    ) -> Result[int, HttpError]:
        """Issue a request and return its status code.

        Any HTTP status (including 404) is Ok; only transport failures are Err.
        """
        ...


class RealHttpClient:
    """HTTP client using urllib with system certificates."""

    def __init__(self, timeout: float = 30.0, user_agent: str = f"relbot/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _request(
        self, url: str, method: str, headers: dict[str, str] | None
    ) -> Result[tuple[int, bytes], HttpError]:
        req = urllib.request.Request(
            url,
            method=method,
            headers={"User-Agent": self.user_agent, **(headers or {})},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout, context=self._ssl_context) as response:
                return Ok((int(response.status), response.read()))
        except urllib.error.HTTPError as e:
            return Ok((e.code, b""))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(
        self, url: str, *, headers: dict[str, str] | None = None
    ) -> Result[dict[str, Any], HttpError]:
        result = self._request(url, "GET", {"Accept": "application/json", **(headers or {})})
        if isinstance(result, Err):
            return result

        status, body = result.value
        if status >= 300:
            return Err(HttpError(url=url, status=status, message="unexpected status"))

        try:
            data_obj: object = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))

        data = as_str_dict(data_obj)
        if data is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON object"))
        return Ok(cast(dict[str, Any], data))

    def status(
        self, url: str, *, method: str = "GET", headers: dict[str, str] | None = None
    ) -> Result[int, HttpError]:
        result = self._request(url, method, headers)
        if isinstance(result, Err):
            return result
        return Ok(result.value[0])


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_status("https://pypi.org/pypi/demo/json", 200)
        assert client.status("https://pypi.org/pypi/demo/json") == Ok(200)
    """

    def __init__(self) -> None:
        self._json: dict[str, dict[str, Any] | HttpError] = {}
        self._status: dict[str, list[int | HttpError]] = {}
        self.calls: list[tuple[str, str, dict[str, str]]] = []

    def set_json(self, url: str, response: dict[str, Any] | HttpError) -> None:
        self._json[url] = response

    def set_status(self, url: str, *responses: int | HttpError) -> None:
        """Queue status responses; the last one repeats once the queue drains."""
        self._status[url] = list(responses)

    def get_json(
        self, url: str, *, headers: dict[str, str] | None = None
    ) -> Result[dict[str, Any], HttpError]:
        self.calls.append(("GET", url, dict(headers or {})))
        response = self._json.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def status(
        self, url: str, *, method: str = "GET", headers: dict[str, str] | None = None
    ) -> Result[int, HttpError]:
        self.calls.append((method, url, dict(headers or {})))
        queued = self._status.get(url)
        if not queued:
            return Ok(404)
        response = queued.pop(0) if len(queued) > 1 else queued[0]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
