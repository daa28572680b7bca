# app/models.py
from datetime import datetime
import enum
import uuid
from sqlalchemy import String, Text, JSON, Integer, Enum, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.schema import CheckConstraint
from app.db import Base, utcnow

class GenerationStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"

class InputType(str, enum.Enum):
    youtube = "youtube"
    audio = "audio"
    text = "text"

def _uuid() -> str:
    return str(uuid.uuid4())

class Generation(Base):
    __tablename__ = "generations"
    __table_args__ = (
        CheckConstraint(
            "(status = 'completed' AND outputs IS NOT NULL)"
            " OR (status <> 'completed' AND outputs IS NULL)",
            name="ck_generations_outputs_iff_completed",
        ),
        Index("ix_generations_queue", "status", "scheduled_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Portable ENUM: native_enum=False -> becomes VARCHAR+CHECK on SQLite/MySQL
    input_type: Mapped[InputType] = mapped_column(
        Enum(InputType, native_enum=False, validate_strings=True),
        nullable=False,
    )
    input_url: Mapped[str | None] = mapped_column(Text, default=None)
    transcript: Mapped[str | None] = mapped_column(Text, default=None)

    status: Mapped[GenerationStatus] = mapped_column(
        Enum(GenerationStatus, native_enum=False, validate_strings=True),
        nullable=False,
        default=GenerationStatus.pending,
    )
    # none_as_null: Python None must be SQL NULL for the CHECK above
    outputs: Mapped[dict | None] = mapped_column(JSON(none_as_null=True), default=None)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    # claim lease
    claimed_at: Mapped[datetime | None] = mapped_column(default=None)
    claim_token: Mapped[str | None] = mapped_column(String(36), default=None)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(default=None)
    processing_time_ms: Mapped[int | None] = mapped_column(Integer, default=None)

class Credits(Base):
    __tablename__ = "credits"
    __table_args__ = (
        CheckConstraint("credits_remaining >= 0", name="ck_credits_non_negative"),
    )

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    credits_remaining: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    credits_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resets_at: Mapped[datetime | None] = mapped_column(default=None)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

class TranscriptCache(Base):
    __tablename__ = "transcript_cache"
    __table_args__ = (
        UniqueConstraint("source_type", "source_identifier", name="uq_transcript_cache_source"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_type: Mapped[str] = mapped_column(String(16), nullable=False)
    source_identifier: Mapped[str] = mapped_column(String(64), nullable=False)
    transcript: Mapped[str] = mapped_column(Text, nullable=False)
    word_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    accessed_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
