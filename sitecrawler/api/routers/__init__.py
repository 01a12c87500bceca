"""
API routers initialization
"""
from .health import router as health_router
from .crawl import router as crawl_router
from .status import router as status_router
from .queue import router as queue_router

__all__ = ["health_router", "crawl_router", "status_router", "queue_router"]
