"""
Service layer components
"""
from .redis_connection import connect_redis
from .work_queue import WorkQueue, RedisWorkQueue
from .job_store import JobStore, RedisJobStore

__all__ = ["connect_redis", "WorkQueue", "RedisWorkQueue", "JobStore", "RedisJobStore"]
