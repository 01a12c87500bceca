import os
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    """
    # App
    APP_NAME: str = "Site Crawler"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"

    # Rate Limiting
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_TIMESCALE: str = "minute"

    # Redis backing the work queue and the job store. No default: a missing
    # URL is a configuration error reported by every entry point.
    REDIS_URL: Optional[str] = None

    # Work queue
    CRAWL_QUEUE_NAME: str = "crawl_queue"
    CRAWL_VISIBILITY_TIMEOUT: int = 30 # Seconds a claimed item stays hidden from other workers
    CRAWL_MAX_DEPTH: int = 2
    CRAWL_SEED_PRIORITY: int = 100

    # Crawler
    CRAWLER_USER_AGENT: str = "SiteCrawler/2.0 (+https://github.com/sitecrawler/sitecrawler)"
    CRAWLER_REQUEST_TIMEOUT: int = 30
    CRAWLER_DEDUPLICATE_URLS: bool = False # Skip links already enqueued for the same job

    # Logging
    LOG_PATH: str = "logs/"

    # Celery
    CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
    CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/0")

    # Queue polling by celery beat
    CRAWL_POLL_INTERVAL_SECONDS: int = 10
    CRAWL_BATCH_SIZE: int = 10 # Max cycles a single polling task runs before returning

    # Watchdog for stuck jobs
    WATCHDOG_INTERVAL_SECONDS: int = 300 # How often the watchdog runs (5 minutes)
    WATCHDOG_THRESHOLD_SECONDS: int = 3600 # How long a running job can go without progress before it is marked failed

    # Celery Task Time Limits
    CELERY_SOFT_TIME_LIMIT: int = 600 # Soft time limit for crawl tasks (10 minutes)
    CELERY_HARD_TIME_LIMIT: int = 1200 # Hard time limit for crawl tasks (20 minutes)

    class Config:
        case_sensitive = True

# Instantiate settings
settings = Settings()
