import logging
from celery import Celery
from celery.schedules import crontab
from app.settings import settings

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

celery_app = Celery(
    "content-repurposer",
    broker=str(settings.CELERY_BROKER_URL),
    backend=str(settings.CELERY_RESULT_BACKEND),
)

celery_app.conf.update(
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
    result_expires=3600,  # 1 hour
    worker_prefetch_multiplier=1,
    timezone="UTC",
    enable_utc=True,
    include=["worker.tasks"],
    # Overlapping ticks are safe: each claims a different job or none.
    beat_schedule={
        "process-next-generation": {
            "task": "worker.tasks.process_next_generation",
            "schedule": settings.WORKER_TICK_SECONDS,
        },
        "cleanup-generations": {
            "task": "worker.tasks.cleanup_generations",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)
