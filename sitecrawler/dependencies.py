"""
Dependencies for FastAPI endpoints and background workers
"""
from functools import lru_cache
from typing import AsyncIterator, Optional
from urllib.parse import urlsplit

import redis
from fastapi import Depends

from sitecrawler.config import settings
from sitecrawler.core.fetcher import PageFetcher
from sitecrawler.core.orchestrator import CrawlOrchestrator
from sitecrawler.models.schemas import CrawlRequest
from sitecrawler.services.job_store import JobStore, RedisJobStore
from sitecrawler.services.redis_connection import connect_redis
from sitecrawler.services.work_queue import RedisWorkQueue, WorkQueue
from sitecrawler.utils.rate_limiter import get_rate_limiter


@lru_cache(maxsize=1)
def get_redis_client() -> redis.Redis:
    """Shared Redis client. Raises ConfigurationError when REDIS_URL is missing."""
    return connect_redis(settings.REDIS_URL)


def build_work_queue(client: redis.Redis) -> WorkQueue:
    return RedisWorkQueue(
        client,
        name=settings.CRAWL_QUEUE_NAME,
        deduplicate=settings.CRAWLER_DEDUPLICATE_URLS,
    )


def build_job_store(client: redis.Redis, work_queue: WorkQueue) -> JobStore:
    return RedisJobStore(client, work_queue)


def build_orchestrator(work_queue: WorkQueue, job_store: JobStore, fetcher: PageFetcher) -> CrawlOrchestrator:
    return CrawlOrchestrator(
        work_queue=work_queue,
        job_store=job_store,
        fetcher=fetcher,
        queue_name=settings.CRAWL_QUEUE_NAME,
        visibility_timeout=settings.CRAWL_VISIBILITY_TIMEOUT,
        max_depth=settings.CRAWL_MAX_DEPTH,
        seed_priority=settings.CRAWL_SEED_PRIORITY,
    )


def get_work_queue() -> WorkQueue:
    return build_work_queue(get_redis_client())


def get_job_store(work_queue: WorkQueue = Depends(get_work_queue)) -> JobStore:
    return build_job_store(get_redis_client(), work_queue)


async def get_fetcher() -> AsyncIterator[PageFetcher]:
    fetcher = PageFetcher(
        user_agent=settings.CRAWLER_USER_AGENT,
        request_timeout=settings.CRAWLER_REQUEST_TIMEOUT,
    )
    try:
        yield fetcher
    finally:
        await fetcher.aclose()


def get_orchestrator(
    work_queue: WorkQueue = Depends(get_work_queue),
    job_store: JobStore = Depends(get_job_store),
    fetcher: PageFetcher = Depends(get_fetcher),
) -> CrawlOrchestrator:
    return build_orchestrator(work_queue, job_store, fetcher)


crawl_rate_limit = get_rate_limiter()


def validate_start_crawl_request(request: CrawlRequest) -> Optional[str]:
    """
    Validate start_crawl parameters.

    Returns:
        None if valid, otherwise the error message to report
    """
    if not request.website_id or not request.url:
        return "website_id and url are required for start_crawl"

    parsed = urlsplit(request.url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return f"URL must use http:// or https:// scheme: {request.url}"

    return None
