# app/celery_client.py
import logging
from celery import Celery
from app.settings import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "content-repurposer",
    broker=str(settings.CELERY_BROKER_URL),
    backend=str(settings.CELERY_RESULT_BACKEND),
)

# Client-side config (no need to include tasks in the API)
celery_app.conf.update(
    broker_connection_retry_on_startup=True,
    task_publish_retry_policy={"max_retries": 1},
    result_expires=3600,
    timezone="UTC",
    enable_utc=True,
)

def kick_worker() -> None:
    """Ask for one extra tick now instead of waiting for the next beat.

    The job is already durable, so a broker outage only costs latency."""
    try:
        celery_app.send_task("worker.tasks.process_next_generation")
    except Exception as e:
        logger.warning("Could not enqueue worker tick, the next scheduled tick will pick the job up: %s", e)
