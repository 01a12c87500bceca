from datetime import datetime
from pydantic import BaseModel, Field


class WorkItem(BaseModel):
    """
    A crawl queue message: one URL of one job waiting to be fetched.
    The payload carries no uniqueness guarantee; msg_id is assigned by the queue.
    """
    msg_id: str
    job_id: str
    url: str # Raw URL, canonicalized only when processed
    depth: int = 0 # 0 is the seed URL
    priority: int = 0 # Higher is claimed first
    queued_at: datetime = Field(default_factory=datetime.utcnow)
    read_count: int = 0 # Claims so far; above 1 means the item was redelivered


class FoundLink(BaseModel):
    """
    A crawlable same-origin link discovered on a page.
    """
    url: str # Canonical URL
    depth: int
    priority: int


class QueueStats(BaseModel):
    queue_name: str
    ready: int = 0
    in_flight: int = 0
    total: int = 0
