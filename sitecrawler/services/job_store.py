import uuid
import redis
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sitecrawler.exceptions import JobNotFoundError, JobStoreError, QueueError
from sitecrawler.models.job import CrawlJob, CrawlProgress, CrawlStatus
from sitecrawler.services.work_queue import WorkQueue

logger = logging.getLogger(__name__)

COUNTER_FIELDS = ("urls_queued", "urls_processed", "urls_completed", "urls_failed")


class JobStore(ABC):
    """
    Persists one record per crawl job.
    Progress updates are additive so concurrent workers compose correctly.
    """

    @abstractmethod
    def create_job(self, website_id: str) -> CrawlJob:
        """Creates a running job with one queued URL (the seed)."""

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[CrawlJob]:
        ...

    @abstractmethod
    def record_success(self, job_id: str, url: str, path: str, depth: int, links_found: int) -> None:
        """Records a fetched page and the number of links queued from it."""

    @abstractmethod
    def record_failure(self, job_id: str, url: str, error_message: str) -> None:
        """Records a URL that could not be processed. The URL is not retried."""

    @abstractmethod
    def is_complete(self, job_id: str) -> bool:
        """Returns True once no work remains, transitioning the job to completed."""

    @abstractmethod
    def mark_failed(self, job_id: str, error_message: str) -> None:
        ...

    @abstractmethod
    def scan_stuck_jobs(self, threshold_seconds: int) -> List[CrawlJob]:
        """Running jobs whose last heartbeat is older than the threshold."""


class RedisJobStore(JobStore):
    """
    Job store backed by Redis.

    Each job is a hash crawl_job:<id> holding its scalar fields and counters,
    plus the lists crawl_job:<id>:crawled_urls and crawl_job:<id>:errors and the
    hash crawl_job:<id>:pages (path -> depth of first visit). The set crawl_jobs
    indexes all job ids.
    """
    JOB_INDEX_KEY = "crawl_jobs"

    def __init__(self, client: redis.Redis, work_queue: WorkQueue):
        self._client = client
        self._work_queue = work_queue

    def _get_job_key(self, job_id: str, suffix: Optional[str] = None) -> str:
        key = f"crawl_job:{job_id}"
        return f"{key}:{suffix}" if suffix else key

    def _now(self) -> str:
        return datetime.utcnow().isoformat()

    def _require_job(self, job_id: str):
        if not self._client.exists(self._get_job_key(job_id)):
            raise JobNotFoundError(job_id)

    def _release_queue_bookkeeping(self, job_id: str):
        try:
            self._work_queue.release_job(job_id)
        except QueueError as e:
            logger.warning(f"Job {job_id}: Could not release queue bookkeeping: {e}")

    def create_job(self, website_id: str) -> CrawlJob:
        job = CrawlJob(
            id=str(uuid.uuid4()),
            website_id=website_id,
            status=CrawlStatus.RUNNING,
            progress=CrawlProgress(urls_queued=1),
        )
        mapping = {
            "id": job.id,
            "website_id": job.website_id,
            "status": job.status.value,
            "started_at": job.started_at.isoformat(),
            "last_heartbeat": job.last_heartbeat.isoformat(),
            "urls_queued": 1,
            "urls_processed": 0,
            "urls_completed": 0,
            "urls_failed": 0,
        }
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(self._get_job_key(job.id), mapping=mapping)
            pipe.sadd(self.JOB_INDEX_KEY, job.id)
            pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to create crawl job for website {website_id}: {e}")
            raise JobStoreError("Failed to create crawl job") from e

        logger.info(f"Job {job.id} created for website {website_id}.")
        return job

    def get_job(self, job_id: str) -> Optional[CrawlJob]:
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hgetall(self._get_job_key(job_id))
            pipe.lrange(self._get_job_key(job_id, "crawled_urls"), 0, -1)
            pipe.lrange(self._get_job_key(job_id, "errors"), 0, -1)
            pipe.hlen(self._get_job_key(job_id, "pages"))
            fields, crawled_urls, errors, pages_created = pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to retrieve job {job_id}: {e}")
            raise JobStoreError(f"Failed to retrieve job {job_id}") from e

        if not fields:
            return None

        progress = CrawlProgress(
            crawled_urls=crawled_urls,
            **{name: int(fields.get(name, 0)) for name in COUNTER_FIELDS},
        )
        optional: Dict[str, str] = {
            name: fields[name] for name in ("completed_at", "error_message") if fields.get(name)
        }
        return CrawlJob(
            id=fields["id"],
            website_id=fields["website_id"],
            status=fields["status"],
            started_at=fields["started_at"],
            last_heartbeat=fields["last_heartbeat"],
            pages_created=pages_created,
            progress=progress,
            errors=errors,
            **optional,
        )

    def record_success(self, job_id: str, url: str, path: str, depth: int, links_found: int) -> None:
        key = self._get_job_key(job_id)
        try:
            self._require_job(job_id)
            pipe = self._client.pipeline(transaction=True)
            pipe.hincrby(key, "urls_processed", 1)
            pipe.hincrby(key, "urls_completed", 1)
            pipe.hincrby(key, "urls_queued", links_found)
            pipe.rpush(self._get_job_key(job_id, "crawled_urls"), url)
            pipe.hsetnx(self._get_job_key(job_id, "pages"), path, depth)
            pipe.hset(key, "last_heartbeat", self._now())
            pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"Job {job_id}: Failed to record progress for {url}: {e}")
            raise JobStoreError(f"Failed to record progress for {url}") from e

        logger.debug(f"Job {job_id}: Recorded {url} (path {path}, depth {depth}, {links_found} links queued).")

    def record_failure(self, job_id: str, url: str, error_message: str) -> None:
        key = self._get_job_key(job_id)
        try:
            self._require_job(job_id)
            pipe = self._client.pipeline(transaction=True)
            pipe.hincrby(key, "urls_processed", 1)
            pipe.hincrby(key, "urls_failed", 1)
            pipe.rpush(self._get_job_key(job_id, "errors"), f"{url}: {error_message}")
            pipe.hset(key, "last_heartbeat", self._now())
            pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"Job {job_id}: Failed to record failure of {url}: {e}")
            raise JobStoreError(f"Failed to record failure of {url}") from e

        logger.debug(f"Job {job_id}: Recorded failure of {url}: {error_message}")

    def is_complete(self, job_id: str) -> bool:
        key = self._get_job_key(job_id)

        def _check_and_complete(pipe):
            status, queued, processed = pipe.hmget(key, "status", "urls_queued", "urls_processed")
            if status is None:
                raise JobNotFoundError(job_id)
            if status != CrawlStatus.RUNNING.value:
                return status == CrawlStatus.COMPLETED.value
            if int(processed or 0) < int(queued or 0):
                return False
            if self._work_queue.outstanding(job_id) > 0:
                return False
            now = self._now()
            pipe.multi()
            pipe.hset(key, mapping={
                "status": CrawlStatus.COMPLETED.value,
                "completed_at": now,
                "last_heartbeat": now,
            })
            return True

        try:
            complete = self._client.transaction(_check_and_complete, key, value_from_callable=True)
        except redis.exceptions.RedisError as e:
            logger.error(f"Job {job_id}: Failed to check completion: {e}")
            raise JobStoreError(f"Failed to check completion of job {job_id}") from e

        if complete:
            logger.info(f"Job {job_id} is complete.")
            self._release_queue_bookkeeping(job_id)
        return complete

    def mark_failed(self, job_id: str, error_message: str) -> None:
        key = self._get_job_key(job_id)

        def _fail(pipe):
            status = pipe.hget(key, "status")
            if status is None:
                raise JobNotFoundError(job_id)
            if status != CrawlStatus.RUNNING.value:
                return False
            now = self._now()
            pipe.multi()
            pipe.hset(key, mapping={
                "status": CrawlStatus.FAILED.value,
                "error_message": error_message,
                "completed_at": now,
                "last_heartbeat": now,
            })
            return True

        try:
            failed = self._client.transaction(_fail, key, value_from_callable=True)
        except redis.exceptions.RedisError as e:
            logger.error(f"Job {job_id}: Failed to mark job as failed: {e}")
            raise JobStoreError(f"Failed to mark job {job_id} as failed") from e

        if failed:
            logger.warning(f"Job {job_id} marked as failed: {error_message}")
            self._release_queue_bookkeeping(job_id)

    def scan_stuck_jobs(self, threshold_seconds: int) -> List[CrawlJob]:
        stuck_jobs: List[CrawlJob] = []
        now = datetime.utcnow()
        inactivity_threshold = timedelta(seconds=threshold_seconds)

        logger.debug(f"Scanning for stuck jobs with inactivity threshold: {inactivity_threshold}")

        try:
            job_ids = self._client.smembers(self.JOB_INDEX_KEY)
        except redis.exceptions.RedisError as e:
            logger.error(f"Error scanning for stuck jobs in Redis: {e}", exc_info=True)
            raise JobStoreError("Failed to scan for stuck jobs") from e

        for job_id in sorted(job_ids):
            job = self.get_job(job_id)
            if job and job.status == CrawlStatus.RUNNING and (now - job.last_heartbeat) > inactivity_threshold:
                stuck_jobs.append(job)
                logger.warning(
                    f"Job {job.id} detected as stuck. "
                    f"Last Heartbeat: {job.last_heartbeat} (older than {threshold_seconds}s)"
                )
        return stuck_jobs
