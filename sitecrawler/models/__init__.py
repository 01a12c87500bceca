"""
Data models
"""
from .job import CrawlJob, CrawlProgress, CrawlStatus
from .work_item import FoundLink, QueueStats, WorkItem

__all__ = ["CrawlJob", "CrawlProgress", "CrawlStatus", "FoundLink", "QueueStats", "WorkItem"]
