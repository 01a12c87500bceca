from datetime import datetime
from fastapi import APIRouter
from sitecrawler.models.schemas import HealthCheckResponse
from sitecrawler.config import settings

router = APIRouter()

@router.get("/health", response_model=HealthCheckResponse, summary="Crawler service liveness")
async def health_check():
    """
    Liveness check of the crawler API. Does not contact Redis; it only reports
    whether a backend is configured.
    """
    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        version=settings.APP_VERSION,
        backend_configured=bool(settings.REDIS_URL),
        max_depth=settings.CRAWL_MAX_DEPTH,
    )
