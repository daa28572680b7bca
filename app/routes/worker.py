import logging

from fastapi import APIRouter, Depends

from app.cleanup import run_cleanup
from app.dependencies import get_job_store, get_rate_limiter, get_worker_loop, worker_rate_limit
from app.job_store import JobStore
from app.permissions import require_cron_secret
from app.rate_limit import RateLimiter
from app.schemas import TickResponse
from app.worker_loop import WorkerLoop

logger = logging.getLogger(__name__)

# the secret check runs before any job-side dependency is built
router = APIRouter(tags=["worker"], dependencies=[Depends(worker_rate_limit), Depends(require_cron_secret)])

@router.post("/worker/process", response_model=TickResponse)
def process_one(loop: WorkerLoop = Depends(get_worker_loop)):
    """Run one tick inline, for external cron callers."""
    result = loop.tick()
    if result.idle:
        return TickResponse(message="No pending jobs")
    return TickResponse(
        message=f"Generation {result.status}",
        job_id=result.job_id,
        status=result.status,
        processing_time_ms=result.processing_time_ms,
        error=result.error,
        will_retry=result.will_retry,
    )

@router.post("/cron/cleanup")
def cleanup(
    store: JobStore = Depends(get_job_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    return run_cleanup(store, limiter)
