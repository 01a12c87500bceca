from typing import List, Optional, Any
from datetime import datetime
from pydantic import BaseModel, Field

from sitecrawler.models.job import CrawlProgress, CrawlStatus

# --- API Request/Response Schemas ---

class CrawlRequest(BaseModel):
    """
    Schema for the POST /crawl request body.
    Without an action the call processes one queued URL.
    """
    action: Optional[str] = Field(
        None,
        description="'start_crawl' to create a crawl job; omit to process the next queued URL.",
        examples=["start_crawl"]
    )
    website_id: Optional[str] = Field(
        None,
        description="Identifier of the website being crawled (required for start_crawl).",
        examples=["3f1c2a9e-website"]
    )
    url: Optional[str] = Field(
        None,
        description="Seed URL of the crawl (required for start_crawl).",
        examples=["https://www.example.com/"]
    )

class ErrorDetail(BaseModel):
    message: str = Field(..., description="Human readable error message.")
    details: Optional[str] = Field(None, description="Underlying cause, when available.")

class Envelope(BaseModel):
    """
    Uniform response envelope of the crawl entry points.
    """
    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[ErrorDetail] = None

class CrawlStartData(BaseModel):
    crawl_job_id: str
    message: str = "Crawl job started successfully"

class CrawlCycleData(BaseModel):
    """
    Summary of one processed queue item.
    """
    processed_url: str
    crawl_job_id: str
    links_found: int
    processing_success: bool
    error: Optional[str] = None

class JobStatusResponse(BaseModel):
    """
    Schema for the GET /crawl/{job_id} response body.
    """
    id: str = Field(..., description="Unique identifier for the crawl job.")
    website_id: str = Field(..., description="Website the job crawls.")
    status: CrawlStatus = Field(..., description="Current status of the job ('running', 'completed', 'failed').")
    started_at: datetime = Field(..., description="Timestamp when the job was started.")
    completed_at: Optional[datetime] = Field(None, description="Timestamp when the job reached a terminal status.")
    error_message: Optional[str] = Field(None, description="Reason the job failed, if it did.")
    pages_created: int = Field(0, description="Number of distinct page paths discovered.")
    last_heartbeat: datetime = Field(..., description="Last timestamp when the job reported activity.")
    progress: CrawlProgress = Field(..., description="Aggregate progress counters and crawled URLs.")
    errors: List[str] = Field([], description="URLs that failed, with their error message.")

class QueueStatsResponse(BaseModel):
    queue_name: str
    ready: int = Field(0, description="Items waiting to be claimed.")
    in_flight: int = Field(0, description="Items claimed and not yet acknowledged.")
    total: int = Field(0, description="All items held by the queue.")

class HealthCheckResponse(BaseModel):
    """
    Schema for the GET /health response body.
    """
    status: str = Field("ok", description="Status of the API service.")
    timestamp: datetime = Field(..., description="Current server time.")
    version: str = Field(..., description="Application version.")
    backend_configured: bool = Field(..., description="Whether REDIS_URL is set for the work queue and job store.")
    max_depth: int = Field(..., description="Maximum crawl depth applied to new links.")
