"""Tests for page fetching: redirects, retries, timeouts and status errors."""

import asyncio

import httpx
import pytest

from petfood.fetcher import (
    FetchTimeoutError,
    HttpError,
    TransportError,
    fetch_page,
)

URL = "https://www.1800petmeds.com/old"


class TestFetchPage:
    """Test fetch_page against mocked transports."""

    @pytest.mark.asyncio
    async def test_success_returns_text(self, make_client):
        async with make_client(lambda request: httpx.Response(200, text="hello")) as client:
            assert await fetch_page(URL, client=client) == "hello"

    @pytest.mark.asyncio
    async def test_sends_browser_headers(self, make_client):
        seen = {}

        def handler(request):
            seen.update(request.headers)
            return httpx.Response(200, text="ok")

        async with make_client(handler) as client:
            await fetch_page(URL, client=client)

        assert seen["user-agent"].startswith("Mozilla/5.0")
        assert seen["dnt"] == "1"

    @pytest.mark.asyncio
    async def test_follows_relative_redirect(self, make_client):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"Location": "/new"})
            return httpx.Response(200, text=f"at {request.url.path}")

        async with make_client(handler) as client:
            assert await fetch_page(URL, client=client) == "at /new"

    @pytest.mark.asyncio
    async def test_redirect_loop_is_bounded(self, make_client):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(302, headers={"Location": "/old"})

        async with make_client(handler) as client:
            with pytest.raises(HttpError) as exc_info:
                await fetch_page(URL, client=client)

        assert exc_info.value.status == 302
        assert len(calls) == 11

    @pytest.mark.asyncio
    async def test_retries_transport_error_then_succeeds(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, text="recovered")

        async with make_client(handler) as client:
            assert await fetch_page(URL, client=client, retry_delay=0) == "recovered"

        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_transport_error_after_retries(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("no route to host", request=request)

        async with make_client(handler) as client:
            with pytest.raises(TransportError):
                await fetch_page(URL, retries=2, client=client, retry_delay=0)

        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_timeout(self, make_client):
        async def handler(request):
            await asyncio.sleep(1)
            return httpx.Response(200, text="too late")

        async with make_client(handler) as client:
            with pytest.raises(FetchTimeoutError):
                await fetch_page(URL, retries=0, client=client, timeout=0.01)

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, make_client):
        calls = []

        async def handler(request):
            calls.append(request)
            if len(calls) == 1:
                await asyncio.sleep(1)
            return httpx.Response(200, text="second try")

        async with make_client(handler) as client:
            text = await fetch_page(URL, retries=1, client=client, timeout=0.05, retry_delay=0)

        assert text == "second try"
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_http_error_not_retried(self, make_client):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        async with make_client(handler) as client:
            with pytest.raises(HttpError) as exc_info:
                await fetch_page(URL, client=client, retry_delay=0)

        assert exc_info.value.status == 404
        assert exc_info.value.url == URL
        assert len(calls) == 1
