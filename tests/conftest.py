import httpx
import pytest
import fakeredis
from typing import Dict

from sitecrawler.core.fetcher import PageFetcher
from sitecrawler.services.job_store import RedisJobStore
from sitecrawler.services.work_queue import RedisWorkQueue


class FakeClock:
    """Controllable replacement for time.time used by the work queue."""
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def html_site(pages: Dict[str, str]) -> httpx.MockTransport:
    """Serves the given URL -> HTML mapping; unknown URLs answer 404."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = pages.get(str(request.url))
        if body is None:
            return httpx.Response(404, text="Not Found")
        return httpx.Response(200, text=body, headers={"Content-Type": "text/html; charset=utf-8"})
    return httpx.MockTransport(handler)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def redis_client():
    """An isolated in-memory Redis."""
    client = fakeredis.FakeRedis(decode_responses=True)
    client.flushall()
    yield client
    client.flushall()


@pytest.fixture
def work_queue(redis_client, clock):
    return RedisWorkQueue(redis_client, name="crawl_queue", clock=clock)


@pytest.fixture
def job_store(redis_client, work_queue):
    return RedisJobStore(redis_client, work_queue)


@pytest.fixture
def make_fetcher():
    """Builds a PageFetcher whose HTTP traffic is served from a dict of pages."""
    def _make(pages: Dict[str, str]) -> PageFetcher:
        return PageFetcher(user_agent="TestCrawler/1.0", request_timeout=5, transport=html_site(pages))
    return _make
