# app/cleanup.py
import logging
from datetime import timedelta

from app.job_store import JobStore
from app.models import GenerationStatus
from app.rate_limit import RateLimiter
from app.settings import settings

logger = logging.getLogger(__name__)


def run_cleanup(store: JobStore, limiter: RateLimiter | None = None) -> dict:
    """Drop old finished generations and expired rate-limit windows."""
    now = store.clock()
    failed = store.delete_finished_before(
        GenerationStatus.failed, now - timedelta(days=settings.FAILED_RETENTION_DAYS)
    )
    completed = store.delete_finished_before(
        GenerationStatus.completed, now - timedelta(days=settings.COMPLETED_RETENTION_DAYS)
    )
    swept = limiter.sweep() if limiter is not None else 0
    logger.info(
        "Cleanup removed %d failed and %d completed generations, %d rate-limit entries",
        failed, completed, swept,
    )
    return {
        "deleted_failed": failed,
        "deleted_completed": completed,
        "rate_limit_entries_swept": swept,
        "timestamp": now.isoformat(),
    }
