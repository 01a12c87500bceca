import logging
from dataclasses import dataclass
from typing import List, Optional

from sitecrawler.config import settings
from sitecrawler.core.fetcher import PageFetcher
from sitecrawler.core.links import extract_links
from sitecrawler.core.url import normalize_url
from sitecrawler.exceptions import FetchError
from sitecrawler.models.job import CrawlJob
from sitecrawler.models.work_item import FoundLink, WorkItem
from sitecrawler.services.job_store import JobStore
from sitecrawler.services.work_queue import WorkQueue

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Outcome of one claim-and-process cycle."""
    idle: bool = False
    processed_url: Optional[str] = None
    crawl_job_id: Optional[str] = None
    links_found: int = 0
    processing_success: bool = False
    error: Optional[str] = None

    def summary(self) -> dict:
        return {
            "processed_url": self.processed_url,
            "crawl_job_id": self.crawl_job_id,
            "links_found": self.links_found,
            "processing_success": self.processing_success,
            "error": self.error,
        }


def start_crawl_job(
    job_store: JobStore,
    work_queue: WorkQueue,
    website_id: str,
    url: str,
    seed_priority: int = settings.CRAWL_SEED_PRIORITY,
) -> CrawlJob:
    """
    Creates a crawl job and queues its seed URL at depth 0 with the highest priority.
    Errors propagate to the caller.
    """
    job = job_store.create_job(website_id)
    work_queue.enqueue(job.id, url, 0, seed_priority)
    logger.info(f"Job {job.id}: Started crawl of {url} for website {website_id}.")
    return job


class CrawlOrchestrator:
    """
    Drives a crawl one queue item at a time.

    Each call to process_next claims a single item, fetches the page, queues
    its same-origin links, records progress on the job and acknowledges the
    item. Many orchestrators may run concurrently against the same queue;
    none of them keeps state between calls.
    """
    def __init__(
        self,
        work_queue: WorkQueue,
        job_store: JobStore,
        fetcher: PageFetcher,
        queue_name: Optional[str] = None,
        visibility_timeout: int = settings.CRAWL_VISIBILITY_TIMEOUT,
        max_depth: int = settings.CRAWL_MAX_DEPTH,
        seed_priority: int = settings.CRAWL_SEED_PRIORITY,
    ):
        self.work_queue = work_queue
        self.job_store = job_store
        self.fetcher = fetcher
        self.queue_name = queue_name or work_queue.name
        self.visibility_timeout = visibility_timeout
        self.max_depth = max_depth
        self.seed_priority = seed_priority

    def start_crawl(self, website_id: str, url: str) -> CrawlJob:
        return start_crawl_job(self.job_store, self.work_queue, website_id, url, self.seed_priority)

    async def process_next(self) -> CycleResult:
        """
        Runs one claim-and-process cycle.

        Returns an idle result when nothing is claimable. A failure to claim
        propagates as QueueError; once an item is claimed, every step is guarded
        and the item is always acknowledged.
        """
        items = self.work_queue.claim(self.queue_name, self.visibility_timeout, 1)
        if not items:
            logger.debug(f"No messages in {self.queue_name} to process.")
            return CycleResult(idle=True)

        item = items[0]
        logger.info(f"Job {item.job_id}: Processing {item.url} (depth: {item.depth}, msg_id: {item.msg_id})")

        result = await self._process_item(item)
        self._acknowledge(item)
        self._check_completion(item.job_id)
        return result

    async def _process_item(self, item: WorkItem) -> CycleResult:
        result = CycleResult(processed_url=item.url, crawl_job_id=item.job_id)

        try:
            html = await self.fetcher.fetch_html(item.url)
        except FetchError as e:
            logger.warning(f"Job {item.job_id}: Failed to fetch {item.url}: {e}")
            return self._record_failure(item, result, str(e))
        except Exception as e:
            logger.error(f"Job {item.job_id}: Unexpected error fetching {item.url}: {e}", exc_info=True)
            return self._record_failure(item, result, str(e))

        try:
            found_links = extract_links(html, item.url, item.depth, self.max_depth)
        except Exception as e:
            logger.error(f"Job {item.job_id}: Error extracting links from {item.url}: {e}", exc_info=True)
            return self._record_failure(item, result, str(e))

        result.links_found = len(found_links)
        result.processing_success = True
        links_queued = self._enqueue_links(item, found_links)

        normalized = normalize_url(item.url, item.url)
        canonical_url = normalized.url if normalized else item.url
        path = normalized.path if normalized else "/"
        try:
            self.job_store.record_success(item.job_id, canonical_url, path, item.depth, links_queued)
        except Exception as e:
            logger.error(f"Job {item.job_id}: Error updating progress for {canonical_url}: {e}")

        logger.info(f"Job {item.job_id}: Processed {item.url}, queued {links_queued}/{len(found_links)} links.")
        return result

    def _enqueue_links(self, item: WorkItem, found_links: List[FoundLink]) -> int:
        """Queues discovered links one by one; a failed link does not stop the rest."""
        queued = 0
        for link in found_links:
            try:
                if self.work_queue.enqueue(item.job_id, link.url, link.depth, link.priority) is not None:
                    queued += 1
            except Exception as e:
                logger.error(f"Job {item.job_id}: Error queuing {link.url}: {e}")
        return queued

    def _record_failure(self, item: WorkItem, result: CycleResult, message: str) -> CycleResult:
        result.processing_success = False
        result.error = message
        try:
            self.job_store.record_failure(item.job_id, item.url, message)
        except Exception as e:
            logger.error(f"Job {item.job_id}: Error recording failure of {item.url}: {e}")
        return result

    def _acknowledge(self, item: WorkItem):
        # Always delete: redelivery happens only through lease expiry after a crash
        try:
            self.work_queue.delete(self.queue_name, item.msg_id)
        except Exception as e:
            logger.error(f"Job {item.job_id}: Error deleting message {item.msg_id}: {e}")

    def _check_completion(self, job_id: str):
        try:
            self.job_store.is_complete(job_id)
        except Exception as e:
            logger.error(f"Job {job_id}: Error checking job completion: {e}")
