from celery import Celery
from sitecrawler.config import settings

# Initialize Celery
celery = Celery(
    'sitecrawler',
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=['sitecrawler.background.tasks']
)

# Optional: Configure Celery
celery.conf.update(
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    result_expires=3600,  # Results expire after 1 hour
    task_soft_time_limit=settings.CELERY_SOFT_TIME_LIMIT,
    task_time_limit=settings.CELERY_HARD_TIME_LIMIT
)

# Beat keeps the crawl queue draining and sweeps stuck jobs
celery.conf.beat_schedule = {
    'process-crawl-queue': {
        'task': 'process_crawl_queue_task',
        'schedule': float(settings.CRAWL_POLL_INTERVAL_SECONDS),
    },
    'watchdog': {
        'task': 'watchdog_task',
        'schedule': float(settings.WATCHDOG_INTERVAL_SECONDS),
    },
}
