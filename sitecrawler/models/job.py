from typing import List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field


class CrawlStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CrawlProgress(BaseModel):
    """
    Aggregate progress counters of a crawl job.
    All counters only ever grow; crawled_urls is append-only.
    """
    urls_queued: int = 0
    urls_processed: int = 0
    urls_completed: int = 0
    urls_failed: int = 0
    crawled_urls: List[str] = []


class CrawlJob(BaseModel):
    """
    Represents one crawl of a website, tracking its state and progress.
    """
    id: str
    website_id: str
    status: CrawlStatus = CrawlStatus.RUNNING
    started_at: datetime = Field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    pages_created: int = 0 # Distinct page paths recorded for this job
    progress: CrawlProgress = Field(default_factory=CrawlProgress)
    errors: List[str] = []
    last_heartbeat: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_terminal(self) -> bool:
        return self.status in (CrawlStatus.COMPLETED, CrawlStatus.FAILED)
