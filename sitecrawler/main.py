import time
import logging
from contextlib import asynccontextmanager # Import for lifespan management
from fastapi import FastAPI, Request, status
from sitecrawler.api.routers import health, crawl, status as job_status, queue
from sitecrawler.api.responses import envelope_response
from sitecrawler.config import settings
from sitecrawler.exceptions import BackendConnectionError, ConfigurationError, CrawlerError, RateLimitExceededError
from sitecrawler.utils.logger import setup_logging

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Context manager for managing the lifespan of the FastAPI application.
    Handles startup and shutdown events.
    """
    logger.info("Application startup...")
    if not settings.REDIS_URL:
        # Not fatal at startup: every crawl request reports the configuration error instead
        logger.error("REDIS_URL is not set; crawl endpoints will return configuration errors.")
    yield # Application runs
    logger.info("Application shutdown...")

# Create FastAPI app instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="A queue-driven, depth-bounded crawler that enumerates the pages of a website.",
    lifespan=lifespan # Assign the lifespan manager
)

# Add a middleware to log requests
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log incoming requests and their processing time.
    """
    start_time = time.time()
    logger.info(f"Incoming request: {request.method} {request.url.path}")
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(f"Request finished: {request.method} {request.url.path} with status {response.status_code} in {process_time:.4f}s")
    return response

@app.exception_handler(CrawlerError)
async def crawler_error_handler(request: Request, exc: CrawlerError):
    """
    Turns rate limiting, configuration and backend failures raised while
    resolving the crawl dependencies into the standard error envelope.
    No work has been done at this point.
    """
    if isinstance(exc, RateLimitExceededError):
        logger.warning(f"Rate limit exceeded ({request.method} {request.url.path}): {exc}")
        return envelope_response(
            False,
            error="Rate limit exceeded",
            details=str(exc),
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        )

    if isinstance(exc, ConfigurationError):
        message = "Crawler is not configured"
    elif isinstance(exc, BackendConnectionError):
        message = "Crawler backend is unavailable"
    else:
        message = "Internal server error"
    logger.error(f"{message} ({request.method} {request.url.path}): {exc}")
    return envelope_response(
        False,
        error=message,
        details=str(exc),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

# Include API routers
app.include_router(health.router, prefix=settings.API_PREFIX, tags=["Health"])
app.include_router(crawl.router, prefix=settings.API_PREFIX, tags=["Crawl"])
app.include_router(job_status.router, prefix=settings.API_PREFIX, tags=["Status"])
app.include_router(queue.router, prefix=settings.API_PREFIX, tags=["Queue"])

@app.get("/", tags=["Root"])
async def read_root():
    """
    Root endpoint providing a welcome message.
    """
    return {"message": f"Welcome to {settings.APP_NAME}!"}
