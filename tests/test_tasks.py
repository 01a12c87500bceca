import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from sitecrawler.background.tasks import process_crawl_queue_task, start_crawl_task, watchdog_task
from sitecrawler.models.job import CrawlStatus
from sitecrawler.services.job_store import RedisJobStore
from sitecrawler.services.work_queue import RedisWorkQueue

SITE = {
    "https://example.com/": '<a href="/about">About</a>',
    "https://example.com/about": "<p>About us</p>",
}

@pytest.fixture
def patched_redis(redis_client):
    """Point the background tasks at the in-memory Redis."""
    with patch("sitecrawler.background.tasks.get_redis_client", return_value=redis_client):
        yield redis_client

@pytest.fixture
def patched_fetcher(make_fetcher):
    with patch("sitecrawler.background.tasks.PageFetcher", side_effect=lambda **kwargs: make_fetcher(SITE)):
        yield

def _job_store(redis_client):
    return RedisJobStore(redis_client, RedisWorkQueue(redis_client))

def test_start_crawl_task(patched_redis):
    job_id = start_crawl_task.run("website-1", "https://example.com/")

    job = _job_store(patched_redis).get_job(job_id)
    assert job.status == CrawlStatus.RUNNING
    assert RedisWorkQueue(patched_redis).outstanding(job_id) == 1

def test_process_crawl_queue_task(patched_redis, patched_fetcher):
    """Test the periodic task drains the queue and stops once it is idle."""
    job_id = start_crawl_task.run("website-1", "https://example.com/")

    summaries = process_crawl_queue_task.run(max_items=10)

    assert [summary["processed_url"] for summary in summaries] == [
        "https://example.com/",
        "https://example.com/about",
    ]
    assert all(summary["processing_success"] for summary in summaries)
    assert _job_store(patched_redis).get_job(job_id).status == CrawlStatus.COMPLETED

def test_process_crawl_queue_task_respects_batch_size(patched_redis, patched_fetcher):
    start_crawl_task.run("website-1", "https://example.com/")

    summaries = process_crawl_queue_task.run(max_items=1)

    assert len(summaries) == 1
    assert RedisWorkQueue(patched_redis).stats().ready == 1

def test_watchdog_task_marks_stuck_jobs_failed(patched_redis):
    """Test the watchdog fails running jobs whose heartbeat is too old."""
    job_store = _job_store(patched_redis)
    stuck = job_store.create_job("website-1")
    active = job_store.create_job("website-2")
    old_heartbeat = (datetime.utcnow() - timedelta(days=1)).isoformat()
    patched_redis.hset(f"crawl_job:{stuck.id}", "last_heartbeat", old_heartbeat)

    assert watchdog_task.run() == 1

    failed = job_store.get_job(stuck.id)
    assert failed.status == CrawlStatus.FAILED
    assert "inactivity" in failed.error_message
    assert job_store.get_job(active.id).status == CrawlStatus.RUNNING

def test_watchdog_task_without_stuck_jobs(patched_redis):
    assert watchdog_task.run() == 0
