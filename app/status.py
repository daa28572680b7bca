# app/status.py
import math
from datetime import datetime

from app.job_store import Completed, Failed, JobStore, Pending, Processing, state_of
from app.schemas import GenerationStatusResponse


def estimate_progress(state, now: datetime, estimated_total_ms: int) -> int:
    """Cosmetic progress for polling clients; never a correctness signal."""
    if isinstance(state, Completed):
        return 100
    if isinstance(state, Processing) and state.claimed_at is not None:
        elapsed_ms = max(0.0, (now - state.claimed_at).total_seconds() * 1000)
        return min(95, math.floor(elapsed_ms / estimated_total_ms * 100))
    return 0


def get_status(
    store: JobStore,
    generation_id: str,
    user_id: str,
    estimated_total_ms: int = 120_000,
) -> GenerationStatusResponse:
    gen = store.get_by_id(generation_id, user_id)  # raises NotFound for other owners too
    state = state_of(gen)

    error = None
    if isinstance(state, Failed):
        error = state.error_message
    elif isinstance(state, Pending) and state.retry_count:
        # last attempt's error while a retry is scheduled
        error = gen.error_message

    return GenerationStatusResponse(
        id=gen.id,
        status=gen.status.value,
        progress=estimate_progress(state, store.clock(), estimated_total_ms),
        outputs=state.outputs if isinstance(state, Completed) else None,
        error=error,
        processing_time_ms=gen.processing_time_ms,
    )
