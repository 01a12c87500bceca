from fastapi import APIRouter, Depends
from sitecrawler.models.schemas import QueueStatsResponse
from sitecrawler.dependencies import get_work_queue
from sitecrawler.services.work_queue import WorkQueue

router = APIRouter()

@router.get("/queue/stats", response_model=QueueStatsResponse, summary="Crawl queue statistics")
async def get_queue_stats(work_queue: WorkQueue = Depends(get_work_queue)):
    """
    Reports how many items are waiting, claimed but unacknowledged, and held in total.
    """
    return QueueStatsResponse(**work_queue.stats().model_dump())
