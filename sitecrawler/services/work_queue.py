import json
import time
import redis
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, List, Optional

from sitecrawler.exceptions import QueueError
from sitecrawler.models.work_item import QueueStats, WorkItem

logger = logging.getLogger(__name__)


class WorkQueue(ABC):
    """
    Durable, priority-ordered queue of crawl work items with lease-based claiming.

    A claimed item stays invisible to other claimants for the visibility timeout.
    Items that are not deleted before the timeout expires become claimable again,
    so delivery is at-least-once.
    """
    name: str

    @abstractmethod
    def enqueue(self, job_id: str, url: str, depth: int, priority: int) -> Optional[str]:
        """Adds an item and returns its msg_id, or None if the item was skipped."""

    @abstractmethod
    def claim(self, queue_name: str, visibility_timeout_seconds: int, max_items: int = 1) -> List[WorkItem]:
        """Leases up to max_items items, highest priority first."""

    @abstractmethod
    def delete(self, queue_name: str, msg_id: str) -> bool:
        """Acknowledges an item. Returns False if it no longer exists."""

    @abstractmethod
    def outstanding(self, job_id: str) -> int:
        """Number of ready or in-flight items of a job."""

    @abstractmethod
    def release_job(self, job_id: str) -> None:
        """Drops the per-job bookkeeping of a finished job."""

    @abstractmethod
    def stats(self) -> QueueStats:
        """Returns ready, in-flight and total item counts."""


class RedisWorkQueue(WorkQueue):
    """
    Work queue stored in Redis.

    Keys (prefix crawl_queue:<name>:):
      seq          message id counter
      messages     hash msg_id -> JSON payload
      ready        sorted set msg_id -> -priority (equal priorities are FIFO by zero-padded msg_id)
      inflight     sorted set msg_id -> lease deadline (epoch seconds)
      reads        hash msg_id -> number of claims
      outstanding  hash job_id -> ready + in-flight items
      seen:<job>   set of URLs already enqueued (only with deduplicate=True)
    """
    def __init__(
        self,
        client: redis.Redis,
        name: str = "crawl_queue",
        deduplicate: bool = False,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self.name = name
        self.deduplicate = deduplicate
        self._clock = clock

    def _key(self, suffix: str, queue_name: Optional[str] = None) -> str:
        return f"crawl_queue:{queue_name or self.name}:{suffix}"

    def enqueue(self, job_id: str, url: str, depth: int, priority: int) -> Optional[str]:
        try:
            if self.deduplicate and not self._client.sadd(self._key(f"seen:{job_id}"), url):
                logger.debug(f"Job {job_id}: {url} already queued, skipping.")
                return None

            msg_id = f"{self._client.incr(self._key('seq')):012d}"
            payload = {
                "job_id": job_id,
                "url": url,
                "depth": depth,
                "priority": priority,
                "queued_at": datetime.utcnow().isoformat(),
            }
            pipe = self._client.pipeline(transaction=True)
            pipe.hset(self._key("messages"), msg_id, json.dumps(payload))
            pipe.zadd(self._key("ready"), {msg_id: -priority})
            pipe.hincrby(self._key("outstanding"), job_id, 1)
            pipe.execute()
        except redis.exceptions.RedisError as e:
            logger.error(f"Job {job_id}: Failed to enqueue {url}: {e}")
            raise QueueError(f"Failed to enqueue {url}") from e

        logger.debug(f"Job {job_id}: Queued {url} as message {msg_id} (depth {depth}, priority {priority}).")
        return msg_id

    def _requeue_expired(self, queue_name: str, now: float) -> int:
        """Moves items whose lease expired back to the ready set."""
        inflight_key = self._key("inflight", queue_name)
        ready_key = self._key("ready", queue_name)
        messages_key = self._key("messages", queue_name)
        requeued = 0

        for msg_id in self._client.zrangebyscore(inflight_key, "-inf", now):
            def _return_to_ready(pipe):
                deadline = pipe.zscore(inflight_key, msg_id)
                if deadline is None or deadline > now:
                    return False # Deleted or re-leased meanwhile
                raw = pipe.hget(messages_key, msg_id)
                pipe.multi()
                pipe.zrem(inflight_key, msg_id)
                if raw is not None:
                    pipe.zadd(ready_key, {msg_id: -json.loads(raw)["priority"]})
                return raw is not None

            if self._client.transaction(_return_to_ready, inflight_key, value_from_callable=True):
                requeued += 1
                logger.warning(f"Lease of message {msg_id} on {queue_name} expired, returning it to the queue.")
        return requeued

    def _lease_next(self, queue_name: str, deadline: float) -> Optional[str]:
        ready_key = self._key("ready", queue_name)
        inflight_key = self._key("inflight", queue_name)
        reads_key = self._key("reads", queue_name)

        def _lease(pipe):
            head = pipe.zrange(ready_key, 0, 0)
            if not head:
                return None
            msg_id = head[0]
            pipe.multi()
            pipe.zrem(ready_key, msg_id)
            pipe.zadd(inflight_key, {msg_id: deadline})
            pipe.hincrby(reads_key, msg_id, 1)
            return msg_id

        # WATCH on the ready set makes concurrent claimants retry instead of sharing a lease
        return self._client.transaction(_lease, ready_key, value_from_callable=True)

    def claim(self, queue_name: str, visibility_timeout_seconds: int, max_items: int = 1) -> List[WorkItem]:
        now = self._clock()
        deadline = now + visibility_timeout_seconds
        items: List[WorkItem] = []
        try:
            self._requeue_expired(queue_name, now)
            while len(items) < max_items:
                msg_id = self._lease_next(queue_name, deadline)
                if msg_id is None:
                    break
                raw = self._client.hget(self._key("messages", queue_name), msg_id)
                if raw is None:
                    # Acknowledged by a previous lease holder between our lease and read
                    self._client.zrem(self._key("inflight", queue_name), msg_id)
                    continue
                read_count = int(self._client.hget(self._key("reads", queue_name), msg_id) or 1)
                items.append(WorkItem(msg_id=msg_id, read_count=read_count, **json.loads(raw)))
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to read from queue {queue_name}: {e}")
            raise QueueError(f"Failed to read from queue {queue_name}") from e

        for item in items:
            if item.read_count > 1:
                logger.info(f"Job {item.job_id}: Message {item.msg_id} redelivered (read {item.read_count} times).")
        return items

    def delete(self, queue_name: str, msg_id: str) -> bool:
        messages_key = self._key("messages", queue_name)
        outstanding_key = self._key("outstanding", queue_name)

        def _remove(pipe):
            raw = pipe.hget(messages_key, msg_id)
            if raw is None:
                return False
            job_id = json.loads(raw)["job_id"]
            remaining = int(pipe.hget(outstanding_key, job_id) or 0) - 1
            pipe.multi()
            pipe.hdel(messages_key, msg_id)
            pipe.zrem(self._key("ready", queue_name), msg_id)
            pipe.zrem(self._key("inflight", queue_name), msg_id)
            pipe.hdel(self._key("reads", queue_name), msg_id)
            if remaining > 0:
                pipe.hset(outstanding_key, job_id, remaining)
            else:
                pipe.hdel(outstanding_key, job_id)
            return True

        try:
            # Watching the outstanding hash makes a concurrent enqueue retry this transaction
            deleted = self._client.transaction(_remove, messages_key, outstanding_key, value_from_callable=True)
        except redis.exceptions.RedisError as e:
            logger.error(f"Failed to delete message {msg_id} from {queue_name}: {e}")
            raise QueueError(f"Failed to delete message {msg_id}") from e

        if not deleted:
            logger.warning(f"Message {msg_id} was already deleted from {queue_name}.")
        return deleted

    def outstanding(self, job_id: str) -> int:
        try:
            count = self._client.hget(self._key("outstanding"), job_id)
        except redis.exceptions.RedisError as e:
            raise QueueError(f"Failed to count outstanding items of job {job_id}") from e
        return max(0, int(count or 0))

    def release_job(self, job_id: str) -> None:
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.delete(self._key(f"seen:{job_id}"))
            pipe.hdel(self._key("outstanding"), job_id)
            pipe.execute()
        except redis.exceptions.RedisError as e:
            raise QueueError(f"Failed to release bookkeeping of job {job_id}") from e
        logger.debug(f"Job {job_id}: Released queue bookkeeping.")

    def stats(self) -> QueueStats:
        try:
            pipe = self._client.pipeline(transaction=False)
            pipe.zcard(self._key("ready"))
            pipe.zcard(self._key("inflight"))
            pipe.hlen(self._key("messages"))
            ready, in_flight, total = pipe.execute()
        except redis.exceptions.RedisError as e:
            raise QueueError(f"Failed to read statistics of queue {self.name}") from e
        return QueueStats(queue_name=self.name, ready=ready, in_flight=in_flight, total=total)
