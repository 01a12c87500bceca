import logging
from typing import Optional
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from sitecrawler.api.responses import envelope_response
from sitecrawler.core.orchestrator import CrawlOrchestrator
from sitecrawler.dependencies import crawl_rate_limit, get_orchestrator, validate_start_crawl_request
from sitecrawler.exceptions import JobStoreError, QueueError
from sitecrawler.models.schemas import CrawlCycleData, CrawlRequest, CrawlStartData, Envelope

logger = logging.getLogger(__name__)
router = APIRouter()

START_CRAWL_ACTION = "start_crawl"


@router.post(
    "/crawl",
    response_model=Envelope,
    dependencies=[Depends(crawl_rate_limit)],
    summary="Start a crawl job or process the next queued URL",
)
async def crawl(
    request: Optional[CrawlRequest] = None,
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
):
    """
    With action 'start_crawl', creates a crawl job for the website and queues
    its seed URL. Without an action, claims one queued URL, crawls it and
    reports what happened to it.
    """
    request = request or CrawlRequest()

    if request.action == START_CRAWL_ACTION:
        return _start_crawl(request, orchestrator)

    if request.action is not None:
        return envelope_response(
            False,
            error=f"Unknown action '{request.action}'",
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    return await _process_next(orchestrator)


def _start_crawl(request: CrawlRequest, orchestrator: CrawlOrchestrator) -> JSONResponse:
    validation_error = validate_start_crawl_request(request)
    if validation_error:
        logger.warning(f"Rejected start_crawl request: {validation_error}")
        return envelope_response(False, error=validation_error, status_code=status.HTTP_400_BAD_REQUEST)

    try:
        job = orchestrator.start_crawl(request.website_id, request.url)
    except JobStoreError as e:
        logger.error(f"Error creating crawl job for website {request.website_id}: {e}", exc_info=True)
        return envelope_response(
            False,
            error="Failed to create crawl job",
            details=str(e.__cause__ or e),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    except QueueError as e:
        logger.error(f"Error queuing initial URL {request.url}: {e}", exc_info=True)
        return envelope_response(
            False,
            error="Failed to queue initial URL",
            details=str(e.__cause__ or e),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return envelope_response(True, data=CrawlStartData(crawl_job_id=job.id).model_dump())


async def _process_next(orchestrator: CrawlOrchestrator) -> JSONResponse:
    try:
        result = await orchestrator.process_next()
    except QueueError as e:
        logger.error(f"Error reading from queue: {e}", exc_info=True)
        return envelope_response(
            False,
            error="Failed to read from queue",
            details=str(e.__cause__ or e),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if result.idle:
        return envelope_response(True, message="No messages in queue to process")

    return envelope_response(True, data=CrawlCycleData(**result.summary()).model_dump())
