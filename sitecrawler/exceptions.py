"""
Exception types raised by the crawler components.
"""
from typing import Optional


class CrawlerError(Exception):
    """Base class for all crawler errors."""


class ConfigurationError(CrawlerError):
    """Raised when required connection settings are missing or invalid."""


class FetchError(CrawlerError):
    """
    Raised when a page cannot be fetched as HTML.
    Carries the HTTP status code when a response was received.
    """
    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class BackendConnectionError(CrawlerError):
    """Raised when the Redis backend shared by the queue and the job store is unreachable."""


class QueueError(CrawlerError):
    """Raised when the work queue backend cannot be reached or fails."""


class JobStoreError(CrawlerError):
    """Raised when the job store backend cannot be reached or fails."""


class JobNotFoundError(JobStoreError):
    """Raised when an operation targets a crawl job that does not exist."""
    def __init__(self, job_id: str):
        super().__init__(f"Crawl job '{job_id}' not found.")
        self.job_id = job_id


class RateLimitExceededError(CrawlerError):
    """Raised when a client exceeds the request rate of an entry point."""
    def __init__(self, time_period_seconds: int):
        super().__init__(f"Rate limit exceeded. Try again in {time_period_seconds} seconds.")
        self.time_period_seconds = time_period_seconds
