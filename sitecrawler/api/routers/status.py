import logging
from fastapi import APIRouter, Depends, status
from typing import List
from sitecrawler.api.responses import envelope_response
from sitecrawler.models.schemas import Envelope, JobStatusResponse
from sitecrawler.dependencies import get_job_store
from sitecrawler.services.job_store import JobStore
from sitecrawler.config import settings

logger = logging.getLogger(__name__)
router = APIRouter()

@router.get(
    "/crawl/{job_id}",
    response_model=JobStatusResponse,
    responses={status.HTTP_404_NOT_FOUND: {"model": Envelope}},
    summary="Get crawl job status",
)
async def get_job_status(job_id: str, job_store: JobStore = Depends(get_job_store)):
    """
    Retrieves the current status and progress of a specific crawl job.
    Unknown jobs get a 404 error envelope.
    """
    job = job_store.get_job(job_id)

    if not job:
        logger.info(f"Status requested for unknown job {job_id}")
        return envelope_response(
            False,
            error=f"Job with ID '{job_id}' not found.",
            status_code=status.HTTP_404_NOT_FOUND,
        )

    logger.info(f"Retrieved status for job {job_id}: {job.status.value}")
    return JobStatusResponse(**job.model_dump())

@router.get("/health/jobs", response_model=List[JobStatusResponse], summary="List running jobs without recent progress")
async def get_stuck_jobs(job_store: JobStore = Depends(get_job_store)):
    """
    Retrieves running jobs whose last_heartbeat is older than the configured
    WATCHDOG_THRESHOLD_SECONDS. These are candidates for being marked as failed by the watchdog.
    """
    stuck_jobs = job_store.scan_stuck_jobs(settings.WATCHDOG_THRESHOLD_SECONDS)
    return [JobStatusResponse(**job.model_dump()) for job in stuck_jobs]
