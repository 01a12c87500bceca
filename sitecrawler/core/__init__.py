"""
Core crawl components
"""
from .url import normalize_url, NormalizedUrl
from .links import extract_links
from .fetcher import PageFetcher
from .orchestrator import CrawlOrchestrator, CycleResult, start_crawl_job

__all__ = [
    "normalize_url",
    "NormalizedUrl",
    "extract_links",
    "PageFetcher",
    "CrawlOrchestrator",
    "CycleResult",
    "start_crawl_job",
]
