from dataclasses import asdict
from celery import shared_task
from app.cleanup import run_cleanup
from app.dependencies import get_job_store, get_rate_limiter, get_worker_loop

@shared_task(name="worker.tasks.process_next_generation", ignore_result=True)
def process_next_generation() -> dict:
    """One scheduler tick: at most one generation is processed."""
    result = get_worker_loop().tick()
    return asdict(result)

@shared_task(name="worker.tasks.cleanup_generations")
def cleanup_generations() -> dict:
    # only the worker process's own rate-limit table is swept here
    return run_cleanup(get_job_store(), get_rate_limiter())
