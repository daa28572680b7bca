# app/worker_loop.py
"""One scheduler tick: claim a job, resolve its transcript, synthesize outputs.

A tick handles at most one generation. Failures while resolving or
synthesizing never escape; they either push the job back to ``pending`` with
a linear backoff or, once ``max_retries`` is reached, fail it for good.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from app.db import utcnow
from app.job_store import JobStore
from app.models import Generation
from app.settings import settings
from app.synthesizer import ContentSynthesizer
from app.transcripts import TranscriptResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    backoff_ms: int = 60_000

    def delay_for(self, retry_count: int) -> timedelta:
        return timedelta(milliseconds=self.backoff_ms * retry_count)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(max_retries=settings.MAX_RETRIES, backoff_ms=settings.RETRY_BACKOFF_MS)


@dataclass(frozen=True)
class TickResult:
    job_id: str | None = None
    status: str | None = None  # completed | retry | failed | lost
    processing_time_ms: int | None = None
    error: str | None = None
    will_retry: bool | None = None

    @property
    def idle(self) -> bool:
        return self.job_id is None


class WorkerLoop:
    def __init__(
        self,
        store: JobStore,
        resolver: TranscriptResolver,
        synthesizer: ContentSynthesizer,
        policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.resolver = resolver
        self.synthesizer = synthesizer
        self.policy = policy or RetryPolicy()
        self.clock = clock

    def tick(self) -> TickResult:
        job = self.store.claim_next_pending()
        if job is None:
            return TickResult()

        started = self.clock()
        logger.info("Claimed generation %s (%s, attempt %d)", job.id, job.input_type.value, job.retry_count + 1)
        try:
            transcript = job.transcript
            if not transcript:
                transcript = self.resolver.resolve(job.input_type, job.input_url)
                # persisted right away so a retry skips resolution
                if not self.store.update_status(job.id, owner_token=job.claim_token, transcript=transcript):
                    return self._lost(job)
                job.transcript = transcript

            outputs = self.synthesizer.generate(transcript)
        except Exception as e:
            return self._handle_failure(job, e)

        elapsed_ms = self._elapsed_ms(started)
        if not self.store.complete(job, outputs.model_dump(), elapsed_ms):
            return self._lost(job)
        logger.info("Generation %s completed in %d ms", job.id, elapsed_ms)
        return TickResult(job_id=job.id, status="completed", processing_time_ms=elapsed_ms)

    def _handle_failure(self, job: Generation, exc: Exception) -> TickResult:
        message = str(exc) or exc.__class__.__name__
        retry_count = job.retry_count + 1
        max_retries = job.max_retries if job.max_retries is not None else self.policy.max_retries

        if retry_count < max_retries:
            scheduled_at = self.clock() + self.policy.delay_for(retry_count)
            landed = self.store.reschedule(job, retry_count, scheduled_at, message)
            if not landed:
                return self._lost(job)
            logger.warning(
                "Generation %s failed (attempt %d/%d), retry at %s: %s",
                job.id, retry_count, max_retries, scheduled_at.isoformat(), message,
            )
            return TickResult(job_id=job.id, status="retry", error=message, will_retry=True)

        if not self.store.fail(job, message, retry_count=retry_count):
            return self._lost(job)
        logger.error("Generation %s failed permanently after %d attempts: %s", job.id, retry_count, message)
        return TickResult(job_id=job.id, status="failed", error=message, will_retry=False)

    def _lost(self, job: Generation) -> TickResult:
        logger.warning("Lost claim on generation %s; another tick owns it now", job.id)
        return TickResult(job_id=job.id, status="lost")

    def _elapsed_ms(self, started: datetime) -> int:
        return max(0, int((self.clock() - started).total_seconds() * 1000))
