# app/job_store.py
"""Generation records used as a work queue.

Claiming is a compare-and-set: pick the oldest eligible row, then flip it to
``processing`` with an UPDATE whose WHERE clause re-checks eligibility. Only
one concurrent claimer sees a row count of 1; the others move on to the next
candidate. Every later write from the tick is conditioned on the claim token,
so a worker whose lease was taken over cannot clobber the new owner.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Union

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.orm import sessionmaker

from app.db import utcnow
from app.errors import NotFound
from app.models import Generation, GenerationStatus, InputType

logger = logging.getLogger(__name__)

CLAIM_ATTEMPTS = 5
LEASE_EXPIRED = "Worker lease expired"


@dataclass(frozen=True)
class Pending:
    scheduled_at: datetime
    retry_count: int


@dataclass(frozen=True)
class Processing:
    claimed_at: datetime | None


@dataclass(frozen=True)
class Completed:
    outputs: dict
    completed_at: datetime | None
    processing_time_ms: int | None


@dataclass(frozen=True)
class Failed:
    error_message: str | None


GenerationState = Union[Pending, Processing, Completed, Failed]


def state_of(gen: Generation) -> GenerationState:
    if gen.status == GenerationStatus.pending:
        return Pending(scheduled_at=gen.scheduled_at, retry_count=gen.retry_count)
    if gen.status == GenerationStatus.processing:
        return Processing(claimed_at=gen.claimed_at)
    if gen.status == GenerationStatus.completed:
        return Completed(
            outputs=gen.outputs,
            completed_at=gen.completed_at,
            processing_time_ms=gen.processing_time_ms,
        )
    return Failed(error_message=gen.error_message)


class JobStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = utcnow,
        lease_seconds: int = 600,
        max_retries: int = 3,
    ):
        self._session_factory = session_factory
        self.clock = clock
        self.lease = timedelta(seconds=lease_seconds)
        self.max_retries = max_retries

    def insert(
        self,
        user_id: str,
        input_type: InputType | str,
        input_url: str | None = None,
        transcript: str | None = None,
        generation_id: str | None = None,
    ) -> Generation:
        now = self.clock()
        gen = Generation(
            id=generation_id or str(uuid.uuid4()),
            user_id=user_id,
            input_type=InputType(input_type),
            input_url=input_url,
            transcript=transcript,
            status=GenerationStatus.pending,
            retry_count=0,
            max_retries=self.max_retries,
            scheduled_at=now,
            created_at=now,
            updated_at=now,
        )
        with self._session_factory() as db:
            db.add(gen)
            db.commit()
        return gen

    def insert_failed(
        self,
        user_id: str,
        input_type: InputType | str,
        error_message: str,
        generation_id: str | None = None,
    ) -> Generation:
        """Record a submission that failed before it could be queued."""
        now = self.clock()
        gen = Generation(
            id=generation_id or str(uuid.uuid4()),
            user_id=user_id,
            input_type=InputType(input_type),
            status=GenerationStatus.failed,
            error_message=error_message,
            retry_count=0,
            max_retries=self.max_retries,
            scheduled_at=now,
            created_at=now,
            updated_at=now,
            completed_at=now,
        )
        with self._session_factory() as db:
            db.add(gen)
            db.commit()
        return gen

    def update_status(self, generation_id: str, owner_token: str | None = None, **fields: Any) -> bool:
        """Partial update. With ``owner_token`` the write only lands while that
        claim still owns the row; returns whether a row was updated."""
        if not fields:
            return False
        fields.setdefault("updated_at", self.clock())
        stmt = update(Generation).where(Generation.id == generation_id)
        if owner_token is not None:
            stmt = stmt.where(
                Generation.claim_token == owner_token,
                Generation.status == GenerationStatus.processing,
            )
        with self._session_factory() as db:
            res = db.execute(stmt.values(**fields))
            db.commit()
            return res.rowcount == 1

    def _eligible(self, now: datetime):
        return or_(
            and_(Generation.status == GenerationStatus.pending, Generation.scheduled_at <= now),
            and_(
                Generation.status == GenerationStatus.processing,
                Generation.claimed_at <= now - self.lease,
            ),
        )

    def claim_next_pending(self) -> Generation | None:
        """Take the oldest eligible job out of the queue, or return None.

        An expired lease counts as a failed attempt. Once that exhausts
        ``max_retries`` the job is failed here instead of handed out again.
        """
        for _ in range(CLAIM_ATTEMPTS):
            now = self.clock()
            eligible = self._eligible(now)
            with self._session_factory() as db:
                candidate = db.execute(
                    select(Generation.id, Generation.status, Generation.retry_count, Generation.max_retries)
                    .where(eligible)
                    .order_by(Generation.scheduled_at, Generation.created_at)
                    .limit(1)
                    .with_for_update(skip_locked=True)
                ).first()
                if candidate is None:
                    db.commit()
                    return None

                reclaim = candidate.status == GenerationStatus.processing
                token = str(uuid.uuid4())
                values: dict[str, Any] = dict(
                    status=GenerationStatus.processing,
                    claimed_at=now,
                    claim_token=token,
                    updated_at=now,
                )
                if reclaim:
                    attempts = candidate.retry_count + 1
                    values.update(retry_count=attempts, error_message=LEASE_EXPIRED)
                    if attempts >= candidate.max_retries:
                        values.update(
                            status=GenerationStatus.failed,
                            claimed_at=None,
                            claim_token=None,
                            completed_at=now,
                        )
                res = db.execute(
                    update(Generation)
                    .where(
                        Generation.id == candidate.id,
                        Generation.retry_count == candidate.retry_count,
                        eligible,
                    )
                    .values(**values)
                )
                if res.rowcount != 1:
                    # another tick won this row
                    db.rollback()
                    continue
                gen = db.get(Generation, candidate.id)
                db.commit()

            if not reclaim:
                return gen
            if gen.status == GenerationStatus.failed:
                logger.error(
                    "Generation %s failed permanently: lease expired on attempt %d", gen.id, gen.retry_count
                )
                continue
            logger.warning("Reclaimed generation %s after its lease expired (attempt %d)", gen.id, gen.retry_count + 1)
            return gen
        return None

    def complete(self, gen: Generation, outputs: dict, processing_time_ms: int) -> bool:
        now = self.clock()
        return self.update_status(
            gen.id,
            owner_token=gen.claim_token,
            status=GenerationStatus.completed,
            outputs=outputs,
            error_message=None,
            completed_at=now,
            processing_time_ms=processing_time_ms,
            claimed_at=None,
            claim_token=None,
        )

    def reschedule(self, gen: Generation, retry_count: int, scheduled_at: datetime, error_message: str) -> bool:
        return self.update_status(
            gen.id,
            owner_token=gen.claim_token,
            status=GenerationStatus.pending,
            retry_count=retry_count,
            scheduled_at=scheduled_at,
            error_message=error_message,
            claimed_at=None,
            claim_token=None,
        )

    def fail(self, gen: Generation, error_message: str, retry_count: int | None = None) -> bool:
        fields: dict[str, Any] = dict(
            status=GenerationStatus.failed,
            error_message=error_message,
            completed_at=self.clock(),
        )
        if retry_count is not None:
            fields["retry_count"] = retry_count
        if gen.status == GenerationStatus.processing:
            fields.update(claimed_at=None, claim_token=None)
            return self.update_status(gen.id, owner_token=gen.claim_token, **fields)
        return self.update_status(gen.id, **fields)

    def get_by_id(self, generation_id: str, user_id: str) -> Generation:
        with self._session_factory() as db:
            gen = db.execute(
                select(Generation).where(Generation.id == generation_id, Generation.user_id == user_id)
            ).scalar_one_or_none()
        if gen is None:
            raise NotFound()
        return gen

    def list_for_user(self, user_id: str, page: int = 1, limit: int = 10) -> list[Generation]:
        with self._session_factory() as db:
            return list(
                db.execute(
                    select(Generation)
                    .where(Generation.user_id == user_id)
                    .order_by(Generation.created_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                ).scalars()
            )

    def delete_finished_before(self, status: GenerationStatus, cutoff: datetime) -> int:
        with self._session_factory() as db:
            res = db.execute(
                delete(Generation).where(Generation.status == status, Generation.created_at < cutoff)
            )
            db.commit()
            return res.rowcount
