import time
import asyncio
import httpx
import pytest

from sitecrawler.core.fetcher import PageFetcher
from sitecrawler.exceptions import FetchError


def _fetcher(handler) -> PageFetcher:
    return PageFetcher(user_agent="TestCrawler/1.0", request_timeout=5, transport=httpx.MockTransport(handler))

@pytest.mark.asyncio
async def test_fetch_html_success():
    """Test an HTML page is returned and identifying headers are sent."""
    seen_requests = []

    def handler(request):
        seen_requests.append(request)
        return httpx.Response(200, text="<html>Test</html>", headers={"Content-Type": "text/html; charset=utf-8"})

    async with _fetcher(handler) as fetcher:
        html = await fetcher.fetch_html("https://example.com/page1")

    assert html == "<html>Test</html>"
    assert len(seen_requests) == 1
    assert seen_requests[0].headers["User-Agent"] == "TestCrawler/1.0"
    assert "text/html" in seen_requests[0].headers["Accept"]
    assert seen_requests[0].headers["Cache-Control"] == "no-cache"

@pytest.mark.asyncio
async def test_fetch_html_follows_redirects():
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://example.com/new"})
        return httpx.Response(200, text="<html>New</html>", headers={"Content-Type": "text/html"})

    async with _fetcher(handler) as fetcher:
        assert await fetcher.fetch_html("https://example.com/old") == "<html>New</html>"

@pytest.mark.asyncio
async def test_fetch_html_http_error():
    """Test a non-2xx status raises FetchError carrying the status code, without retries."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404, text="Not Found")

    async with _fetcher(handler) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_html("https://example.com/missing")

    assert exc_info.value.status_code == 404
    assert exc_info.value.url == "https://example.com/missing"
    assert "404" in str(exc_info.value)
    assert len(calls) == 1

@pytest.mark.asyncio
async def test_fetch_html_rejects_non_html():
    def handler(request):
        return httpx.Response(200, json={"hello": "world"})

    async with _fetcher(handler) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_html("https://example.com/api")

    assert exc_info.value.status_code == 200
    assert "Not HTML content" in str(exc_info.value)

@pytest.mark.asyncio
async def test_fetch_html_timeout():
    """Test a timeout becomes a FetchError without a status code."""
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with _fetcher(handler) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_html("https://example.com/slow")

    assert exc_info.value.status_code is None
    assert "Timed out" in str(exc_info.value)

@pytest.mark.asyncio
async def test_fetch_html_connection_error():
    def handler(request):
        raise httpx.ConnectError("Connection refused", request=request)

    async with _fetcher(handler) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch_html("https://example.com/")

    assert exc_info.value.status_code is None
    assert "Request error" in str(exc_info.value)

@pytest.mark.asyncio
async def test_fetch_html_enforces_overall_deadline():
    """Test a server trickling its body slower than the deadline is cut off."""
    async def trickle(reader, writer):
        await reader.readuntil(b"\r\n\r\n")
        writer.write(b"HTTP/1.1 200 OK\r\nContent-Type: text/html\r\nContent-Length: 1000\r\n\r\n")
        await writer.drain()
        try:
            for _ in range(1000):
                writer.write(b"<")
                await writer.drain()
                await asyncio.sleep(0.3)
        except (ConnectionError, asyncio.CancelledError):
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(trickle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        async with PageFetcher(user_agent="TestCrawler/1.0", request_timeout=1) as fetcher:
            started = time.monotonic()
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch_html(f"http://127.0.0.1:{port}/slow")
            elapsed = time.monotonic() - started
    finally:
        server.close()

    assert exc_info.value.status_code is None
    assert "Timed out" in str(exc_info.value)
    assert elapsed < 2.5
