"""Tests for pilet.tools.http module."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from pilet.core.result import Err, Ok
from pilet.tools.http import (
    FilePart,
    HttpClient,
    HttpError,
    HttpResponse,
    HttpxClient,
    MockHttpClient,
)

FEED = "https://feed.example.com/api/v1/pilet"


class TestHttpError:
    """Tests for HttpError."""

    def test_str_with_status(self) -> None:
        """Errors with a status show it."""
        err = HttpError(url="https://x", status=404, message="Not Found")
        assert str(err) == "HTTP 404: Not Found (https://x)"

    def test_str_network_error(self) -> None:
        """Network errors show only the message."""
        err = HttpError(url="https://x", status=0, message="Connection refused")
        assert str(err) == "Connection refused (https://x)"


class TestHttpResponse:
    """Tests for HttpResponse."""

    def test_header_lookup_ignores_case(self) -> None:
        """Header lookup ignores case."""
        response = HttpResponse(status=401, headers={"WWW-Authenticate": "Basic"})
        assert response.header("www-authenticate") == "Basic"
        assert response.header("x-missing") is None

    def test_is_success(self) -> None:
        """Only 2xx statuses are successes."""
        assert HttpResponse(status=204).is_success
        assert not HttpResponse(status=409).is_success


class TestMockHttpClient:
    """Tests for MockHttpClient."""

    def test_satisfies_protocol(self) -> None:
        """The client satisfies the HttpClient protocol."""
        assert isinstance(MockHttpClient(), HttpClient)

    @pytest.mark.asyncio
    async def test_unknown_urls_are_404(self, tmp_path: Path) -> None:
        """Unregistered URLs answer 404 and are recorded."""
        client = MockHttpClient()

        json_result = await client.get_json("https://x/doc", trust=None)
        download_result = await client.download("https://x/a.tgz", tmp_path / "a.tgz", trust=None)

        assert isinstance(json_result, Err)
        assert json_result.error.status == 404
        assert isinstance(download_result, Err)
        assert client.calls == [("get_json", "https://x/doc"), ("download", "https://x/a.tgz")]

    @pytest.mark.asyncio
    async def test_queued_posts_then_default(self) -> None:
        """Queued POST responses come first, then 200."""
        client = MockHttpClient()
        client.queue_post(FEED, HttpResponse(status=409))

        first = await client.post_form(FEED, fields={}, files={}, headers={}, trust=None)
        second = await client.post_form(FEED, fields={}, files={}, headers={}, trust=None)

        assert first == Ok(HttpResponse(status=409))
        assert isinstance(second, Ok)
        assert second.value.status == 200
        assert client.post_count == 2


class TestHttpxClient:
    """Tests for HttpxClient against an in-process transport."""

    def test_satisfies_protocol(self) -> None:
        """The client satisfies the HttpClient protocol."""
        assert isinstance(HttpxClient(), HttpClient)

    @pytest.mark.asyncio
    async def test_post_form_sends_multipart(self) -> None:
        """Fields, file part and headers are sent as multipart."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(409, text="version exists")

        async with HttpxClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.post_form(
                FEED,
                fields={"tag": "beta"},
                files={"file": FilePart("pilet.tgz", b"TGZ-BYTES")},
                headers={"Authorization": "Basic key"},
                trust=None,
            )

        assert isinstance(result, Ok)
        assert result.value.status == 409
        assert result.value.text == "version exists"
        request = seen[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "Basic key"
        assert request.headers["Content-Type"].startswith("multipart/form-data")
        body = request.content
        assert b'name="file"; filename="pilet.tgz"' in body
        assert b"TGZ-BYTES" in body
        assert b'name="tag"' in body

    @pytest.mark.asyncio
    async def test_post_form_transport_failure(self) -> None:
        """Connection failures become status 0 errors."""
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with HttpxClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.post_form(FEED, fields={}, files={}, headers={}, trust=None)

        assert isinstance(result, Err)
        assert result.error.status == 0
        assert "connection refused" in result.error.message

    @pytest.mark.asyncio
    async def test_get_json(self) -> None:
        """A JSON object is returned and headers are sent."""
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Accept"] == "application/json"
            return httpx.Response(200, json={"dist-tags": {"latest": "1.0.0"}})

        async with HttpxClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.get_json(
                "https://registry.example.com/p",
                trust=None,
                headers={"Accept": "application/json"},
            )

        assert result == Ok({"dist-tags": {"latest": "1.0.0"}})

    @pytest.mark.asyncio
    async def test_get_json_rejects_non_objects(self) -> None:
        """A JSON array is not accepted."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[1, 2, 3])

        async with HttpxClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.get_json("https://registry.example.com/p", trust=None)

        assert isinstance(result, Err)
        assert result.error.message == "Expected JSON object"

    @pytest.mark.asyncio
    async def test_download_streams_to_disk(self, tmp_path: Path) -> None:
        """The body is written to the destination, creating parents."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"archive bytes")

        dest = tmp_path / "nested" / "a.tgz"
        async with HttpxClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.download("https://cdn.example.com/a.tgz", dest, trust=None)

        assert result == Ok(dest)
        assert dest.read_bytes() == b"archive bytes"

    @pytest.mark.asyncio
    async def test_download_http_error(self, tmp_path: Path) -> None:
        """An error status leaves no file."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        dest = tmp_path / "a.tgz"
        async with HttpxClient(transport=httpx.MockTransport(handler)) as client:
            result = await client.download("https://cdn.example.com/a.tgz", dest, trust=None)

        assert isinstance(result, Err)
        assert result.error.status == 404
        assert not dest.exists()
