# app/dependencies.py
"""Process-wide components, built lazily on first use.

Routes receive them through ``Depends``; tests swap them with
``app.dependency_overrides``. The Celery tasks call the same builders.
"""
from functools import lru_cache

from fastapi import Depends, Request

from app.credits import CreditLedger
from app.db import SessionLocal
from app.errors import RateLimited
from app.job_store import JobStore
from app.rate_limit import API, WORKER, RateLimiter, build_rate_limiter, fingerprint
from app.settings import settings
from app.storage import BlobStore, build_blob_store
from app.worker_loop import RetryPolicy, WorkerLoop


@lru_cache
def get_job_store() -> JobStore:
    policy = RetryPolicy.from_settings()
    return JobStore(SessionLocal, lease_seconds=settings.CLAIM_LEASE_SECONDS, max_retries=policy.max_retries)


@lru_cache
def get_credit_ledger() -> CreditLedger:
    return CreditLedger(SessionLocal)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    return build_rate_limiter()


@lru_cache
def get_blob_store() -> BlobStore:
    return build_blob_store()


@lru_cache
def get_worker_loop() -> WorkerLoop:
    from openai import OpenAI

    from app.speech import build_speech_to_text
    from app.synthesizer import build_synthesizer
    from app.transcripts import TranscriptResolver

    client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_SECONDS)
    blob_store = get_blob_store() if settings.AZURE_STORAGE_CONNECTION_STRING else None
    resolver = TranscriptResolver(
        SessionLocal,
        blob_store=blob_store,
        speech_to_text=build_speech_to_text(client),
        min_chars=settings.MIN_TRANSCRIPT_CHARS,
    )
    return WorkerLoop(
        get_job_store(),
        resolver,
        build_synthesizer(client),
        policy=RetryPolicy.from_settings(),
    )


def _client_fingerprint(request: Request) -> str:
    ip = request.headers.get("x-forwarded-for", "").split(",")[0].strip() \
        or request.headers.get("x-real-ip") \
        or (request.client.host if request.client else None)
    return fingerprint(ip, request.headers.get("user-agent"))


def api_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    result = limiter.check(_client_fingerprint(request), API)
    if not result.allowed:
        raise RateLimited(result.retry_after_seconds, result.headers())


def worker_rate_limit(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
    result = limiter.check(_client_fingerprint(request), WORKER)
    if not result.allowed:
        raise RateLimited(result.retry_after_seconds, result.headers())
