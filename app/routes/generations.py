import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile

from app.credits import CreditLedger
from app.dependencies import (
    api_rate_limit,
    get_blob_store,
    get_credit_ledger,
    get_job_store,
    get_rate_limiter,
)
from app.errors import InsufficientCredits, InvalidSubmission, NotFound, RateLimited, ServiceError
from app.job_store import JobStore
from app.models import InputType
from app.permissions import get_current_user
from app.rate_limit import GENERATION, RateLimiter, user_key
from app.schemas import (
    CreditsResponse,
    CurrentUser,
    GenerateResponse,
    GenerationStatusResponse,
    GenerationSummary,
)
from app.settings import settings
from app.status import get_status
from app import celery_client, validation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["generations"])

@router.post("/generate", response_model=GenerateResponse)
def create_generation(
    response: Response,
    input_type: str = Form(...),
    input_url: str | None = Form(None),
    input_text: str | None = Form(None),
    file: UploadFile | None = File(None),
    user: CurrentUser = Depends(get_current_user),
    limiter: RateLimiter = Depends(get_rate_limiter),
    store: JobStore = Depends(get_job_store),
    ledger: CreditLedger = Depends(get_credit_ledger),
):
    """
    Queue a generation: rate limit, validate, spend one credit, enqueue.
    Nothing is mutated until the submission has passed validation.
    """
    limit = limiter.check(user_key(user.id), GENERATION)
    if not limit.allowed:
        raise RateLimited(limit.retry_after_seconds, limit.headers())

    form = validation.parse_generate_form(input_type, input_url, input_text)
    kind = form.input_type
    audio_bytes = None
    audio = None
    if kind == InputType.audio:
        if file is None:
            raise InvalidSubmission("An audio file is required for audio input")
        audio_bytes = file.file.read(settings.AUDIO_MAX_BYTES + 1)
        audio = validation.parse_audio_upload(file.filename, file.content_type, len(audio_bytes))
        # fail on storage misconfiguration before any credit is spent
        try:
            blob_store = get_blob_store()
        except ValueError as e:
            raise ServiceError("Audio storage is not configured") from e

    deducted = ledger.deduct(user.id, 1)
    if not deducted.success:
        raise InsufficientCredits(deducted.error or "Insufficient credits")

    generation_id = str(uuid.uuid4())
    input_url = form.input_url
    if audio is not None:
        # the row only appears once its blob exists, so no tick can claim it early
        input_url = f"{generation_id}/{audio.safe_name}"
        try:
            blob_store.upload(input_url, audio_bytes)
        except Exception as e:
            logger.error("Audio upload failed for generation %s: %s", generation_id, e)
            store.insert_failed(user.id, kind, "File upload failed", generation_id=generation_id)
            raise ServiceError("Failed to upload audio file") from e

    gen = store.insert(
        user.id, kind, input_url=input_url, transcript=form.input_text, generation_id=generation_id
    )

    if settings.KICK_WORKER_ON_SUBMIT:
        celery_client.kick_worker()

    response.headers.update({k: v for k, v in limit.headers().items() if k.startswith("X-RateLimit")})
    logger.info("Queued generation %s (%s) for user %s", gen.id, kind.value, user.id)
    return GenerateResponse(
        generation_id=gen.id,
        status="pending",
        poll_url=f"{settings.API_PREFIX}/generation/{gen.id}",
    )

@router.get(
    "/generation/{generation_id}",
    response_model=GenerationStatusResponse,
    dependencies=[Depends(api_rate_limit)],
)
def poll_generation(
    generation_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: JobStore = Depends(get_job_store),
):
    return get_status(store, generation_id, user.id, settings.PROGRESS_ESTIMATED_TOTAL_MS)

@router.get(
    "/generations",
    response_model=list[GenerationSummary],
    dependencies=[Depends(api_rate_limit)],
)
def list_generations(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    store: JobStore = Depends(get_job_store),
):
    return [
        GenerationSummary(
            id=g.id,
            input_type=g.input_type.value,
            input_url=g.input_url,
            status=g.status.value,
            error=g.error_message,
            retry_count=g.retry_count,
            created_at=g.created_at,
            completed_at=g.completed_at,
            processing_time_ms=g.processing_time_ms,
        )
        for g in store.list_for_user(user.id, page=page, limit=limit)
    ]

@router.get("/credits", response_model=CreditsResponse, dependencies=[Depends(api_rate_limit)])
def get_credits(
    user: CurrentUser = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_credit_ledger),
):
    row = ledger.get(user.id)
    if row is None:
        raise NotFound("No credit balance found")
    return CreditsResponse(
        credits_remaining=row.credits_remaining,
        credits_total=row.credits_total,
        resets_at=row.resets_at,
    )
