"""HTTP client abstraction for feed uploads, downloads and registry lookups.

This module provides:
- HttpClient: Protocol for the asynchronous HTTP operations (injectable for tests)
- HttpxClient: Real implementation using httpx
- MockHttpClient: Mock implementation recording every call

Every operation receives the run's ``TrustMaterial`` (or None for the system
trust store). The material is never re-read; ``HttpxClient`` keeps one
connection pool per trust material for the lifetime of the client.
"""

from __future__ import annotations

import json
import ssl
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, cast, runtime_checkable

import httpx

from pilet.core.result import Err, Ok, Result
from pilet.core.structured import as_str_dict
from pilet.tools.tls import TrustMaterial

__all__ = [
    "FilePart",
    "HttpClient",
    "HttpError",
    "HttpResponse",
    "HttpxClient",
    "MockHttpClient",
    "PostRecord",
]

USER_AGENT = "pilet-release/0.3"


@dataclass(frozen=True, slots=True)
class HttpError:
    """Transport-level or unexpected HTTP error.

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


@dataclass(frozen=True, slots=True)
class HttpResponse:
    """A completed HTTP exchange, whatever its status code."""

    status: int
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str) -> str | None:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True, slots=True)
class FilePart:
    """A file field of a multipart form."""

    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for the HTTP operations used by the release pipeline."""

    async def get_json(
        self,
        url: str,
        *,
        trust: TrustMaterial | None,
        headers: Mapping[str, str] | None = None,
    ) -> Result[dict[str, Any], HttpError]:
        """Fetch URL and parse a JSON object."""
        ...

    async def download(
        self,
        url: str,
        dest: Path,
        *,
        trust: TrustMaterial | None,
    ) -> Result[Path, HttpError]:
        """Download URL to ``dest``; non-2xx statuses are errors."""
        ...

    async def post_form(
        self,
        url: str,
        *,
        fields: Mapping[str, str],
        files: Mapping[str, FilePart],
        headers: Mapping[str, str],
        trust: TrustMaterial | None,
    ) -> Result[HttpResponse, HttpError]:
        """POST a multipart form.

        Any received response is Ok, including 4xx/5xx: the caller classifies
        the status. Err is reserved for requests that got no response.
        """
        ...


class HttpxClient:
    """Real HTTP client using httpx.

    Handles:
    - HTTPS with the system store or a custom CA (TrustMaterial)
    - Redirects for downloads and registry documents
    - Streaming downloads to disk
    - Timeout handling
    """

    def __init__(
        self,
        timeout: float = 60.0,
        user_agent: str = USER_AGENT,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._transport = transport
        self._clients: dict[int, httpx.AsyncClient] = {}

    async def __aenter__(self) -> HttpxClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()

    def _client(self, trust: TrustMaterial | None) -> httpx.AsyncClient:
        key = 0 if trust is None else id(trust)
        client = self._clients.get(key)
        if client is None:
            verify: ssl.SSLContext | bool = True if trust is None else trust.ssl_context()
            client = httpx.AsyncClient(
                verify=verify,
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
            self._clients[key] = client
        return client

    async def get_json(
        self,
        url: str,
        *,
        trust: TrustMaterial | None,
        headers: Mapping[str, str] | None = None,
    ) -> Result[dict[str, Any], HttpError]:
        try:
            response = await self._client(trust).get(url, headers=dict(headers or {}))
        except httpx.TimeoutException:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (httpx.HTTPError, ssl.SSLError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e) or type(e).__name__))

        if not response.is_success:
            return Err(HttpError(url=url, status=response.status_code, message=response.reason_phrase))

        try:
            data = as_str_dict(response.json())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))
        if data is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON object"))
        return Ok(cast(dict[str, Any], data))

    async def download(
        self,
        url: str,
        dest: Path,
        *,
        trust: TrustMaterial | None,
    ) -> Result[Path, HttpError]:
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            async with self._client(trust).stream("GET", url) as response:
                if not response.is_success:
                    return Err(
                        HttpError(url=url, status=response.status_code, message=response.reason_phrase)
                    )
                with dest.open("wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        except httpx.TimeoutException:
            dest.unlink(missing_ok=True)
            return Err(HttpError(url=url, status=0, message="Download timed out"))
        except (httpx.HTTPError, ssl.SSLError, OSError) as e:
            dest.unlink(missing_ok=True)
            return Err(HttpError(url=url, status=0, message=str(e) or type(e).__name__))
        return Ok(dest)

    async def post_form(
        self,
        url: str,
        *,
        fields: Mapping[str, str],
        files: Mapping[str, FilePart],
        headers: Mapping[str, str],
        trust: TrustMaterial | None,
    ) -> Result[HttpResponse, HttpError]:
        multipart = {
            name: (part.filename, part.content, part.content_type) for name, part in files.items()
        }
        try:
            response = await self._client(trust).post(
                url,
                data=dict(fields),
                files=multipart,
                headers=dict(headers),
            )
        except httpx.TimeoutException:
            return Err(HttpError(url=url, status=0, message="Upload timed out"))
        except (httpx.HTTPError, ssl.SSLError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e) or type(e).__name__))

        return Ok(
            HttpResponse(
                status=response.status_code,
                text=response.text,
                headers=dict(response.headers.items()),
            )
        )


@dataclass(frozen=True, slots=True)
class PostRecord:
    """A form POST captured by MockHttpClient."""

    url: str
    fields: dict[str, str]
    files: dict[str, FilePart]
    headers: dict[str, str]
    trust: TrustMaterial | None


type PostHandler = Callable[[PostRecord], HttpResponse | HttpError]


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://registry.example/pkg", {"dist-tags": {...}})
        client.queue_post("https://feed.example/api", HttpResponse(status=409))
        result = await client.post_form(...)
    """

    def __init__(self) -> None:
        self._json_responses: dict[str, dict[str, Any] | HttpError] = {}
        self._download_responses: dict[str, bytes | HttpError] = {}
        self._post_queues: dict[str, list[HttpResponse | HttpError]] = {}
        self._post_handler: PostHandler | None = None
        self.calls: list[tuple[str, str]] = []
        self.posts: list[PostRecord] = []
        self.trusts: list[TrustMaterial | None] = []

    def set_json(self, url: str, response: dict[str, Any] | HttpError) -> None:
        self._json_responses[url] = response

    def set_download(self, url: str, response: bytes | HttpError) -> None:
        self._download_responses[url] = response

    def queue_post(self, url: str, *responses: HttpResponse | HttpError) -> None:
        """Queue responses returned, in order, by POSTs to ``url``."""
        self._post_queues.setdefault(url, []).extend(responses)

    def on_post(self, handler: PostHandler) -> None:
        """Answer every POST without a queued response through ``handler``."""
        self._post_handler = handler

    @property
    def post_count(self) -> int:
        return len(self.posts)

    @property
    def network_calls(self) -> int:
        return len(self.calls)

    async def get_json(
        self,
        url: str,
        *,
        trust: TrustMaterial | None,
        headers: Mapping[str, str] | None = None,
    ) -> Result[dict[str, Any], HttpError]:
        self.calls.append(("get_json", url))
        self.trusts.append(trust)

        response = self._json_responses.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    async def download(
        self,
        url: str,
        dest: Path,
        *,
        trust: TrustMaterial | None,
    ) -> Result[Path, HttpError]:
        self.calls.append(("download", url))
        self.trusts.append(trust)

        response = self._download_responses.get(url)
        if response is None:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))
        if isinstance(response, HttpError):
            return Err(response)

        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(response)
        return Ok(dest)

    async def post_form(
        self,
        url: str,
        *,
        fields: Mapping[str, str],
        files: Mapping[str, FilePart],
        headers: Mapping[str, str],
        trust: TrustMaterial | None,
    ) -> Result[HttpResponse, HttpError]:
        self.calls.append(("post_form", url))
        self.trusts.append(trust)
        record = PostRecord(
            url=url,
            fields=dict(fields),
            files=dict(files),
            headers=dict(headers),
            trust=trust,
        )
        self.posts.append(record)

        queue = self._post_queues.get(url)
        if queue:
            response: HttpResponse | HttpError = queue.pop(0)
        elif self._post_handler is not None:
            response = self._post_handler(record)
        else:
            response = HttpResponse(status=200, text="")

        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
