import logging
import asyncio
from typing import List
from celery.exceptions import SoftTimeLimitExceeded

from sitecrawler.background.celery_worker import celery
from sitecrawler.config import settings
from sitecrawler.core.fetcher import PageFetcher
from sitecrawler.core.orchestrator import start_crawl_job
from sitecrawler.dependencies import build_job_store, build_orchestrator, build_work_queue, get_redis_client

logger = logging.getLogger(__name__)


async def _run_crawl_cycles(max_items: int, summaries: List[dict]):
    """
    Runs claim-and-process cycles until max_items URLs were handled or the queue is idle.
    Summaries are appended as cycles finish so a time limit keeps the finished ones.
    """
    client = get_redis_client()
    work_queue = build_work_queue(client)
    job_store = build_job_store(client, work_queue)

    async with PageFetcher(
        user_agent=settings.CRAWLER_USER_AGENT,
        request_timeout=settings.CRAWLER_REQUEST_TIMEOUT,
    ) as fetcher:
        orchestrator = build_orchestrator(work_queue, job_store, fetcher)
        for _ in range(max_items):
            result = await orchestrator.process_next()
            if result.idle:
                logger.debug("Crawl queue is idle.")
                break
            summaries.append(result.summary())


@celery.task(
    bind=True,
    name='process_crawl_queue_task',
    soft_time_limit=settings.CELERY_SOFT_TIME_LIMIT,
    time_limit=settings.CELERY_HARD_TIME_LIMIT
)
def process_crawl_queue_task(self, max_items: int = settings.CRAWL_BATCH_SIZE):
    """
    Celery task draining up to max_items URLs from the crawl queue.
    """
    summaries: List[dict] = []
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(_run_crawl_cycles(max_items, summaries))
    except SoftTimeLimitExceeded:
        # The item in progress is not acknowledged; its lease expires and another worker picks it up
        logger.error(f"Crawl queue task exceeded soft time limit after {len(summaries)} items.", exc_info=True)
    finally:
        loop.close()

    logger.info(f"Crawl queue task processed {len(summaries)} items.")
    return summaries


@celery.task(bind=True, name='start_crawl_task')
def start_crawl_task(self, website_id: str, url: str) -> str:
    """
    Celery task creating a crawl job and queueing its seed URL. Returns the job id.
    """
    client = get_redis_client()
    work_queue = build_work_queue(client)
    job_store = build_job_store(client, work_queue)
    job = start_crawl_job(job_store, work_queue, website_id, url, settings.CRAWL_SEED_PRIORITY)
    return job.id


@celery.task(bind=True, name='watchdog_task')
def watchdog_task(self):
    """
    Celery task to periodically scan for and mark stuck crawl jobs as failed.
    """
    logger.info("Watchdog task started: Scanning for stuck jobs.")
    try:
        client = get_redis_client()
        job_store = build_job_store(client, build_work_queue(client))
        stuck_jobs = job_store.scan_stuck_jobs(settings.WATCHDOG_THRESHOLD_SECONDS)

        if not stuck_jobs:
            logger.info("Watchdog found no stuck jobs.")
            return 0

        for job in stuck_jobs:
            try:
                job_store.mark_failed(
                    job.id,
                    f"Marked failed by watchdog due to inactivity exceeding {settings.WATCHDOG_THRESHOLD_SECONDS} seconds."
                )
                logger.warning(
                    f"Watchdog marked job {job.id} as 'failed' due to inactivity. "
                    f"Last heartbeat: {job.last_heartbeat}"
                )
            except Exception as e:
                logger.critical(
                    f"Watchdog CRITICAL ERROR: Could not update job {job.id} status to 'failed' in Redis: {e}",
                    exc_info=True
                )
        return len(stuck_jobs)
    except Exception as e:
        logger.error(f"Watchdog task encountered an unhandled exception: {e}", exc_info=True)
        return 0
