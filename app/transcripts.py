# app/transcripts.py
"""Turn a generation's input into transcript text.

YouTube and audio transcripts are cached in ``transcript_cache`` by a source
fingerprint (video id, or a SHA-256 of the audio bytes), so resubmitting the
same source never pays for a second fetch or transcription.
"""
import hashlib
import logging
import re
from pathlib import PurePosixPath
from typing import Callable, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.db import utcnow
from app.errors import TranscriptUnavailable
from app.models import InputType, TranscriptCache
from app.speech import SpeechToText
from app.storage import BlobStore

logger = logging.getLogger(__name__)

_YOUTUBE_ID = re.compile(
    r"(?:youtube\.com/(?:watch\?(?:.*&)?v=|embed/|shorts/)|youtu\.be/)([\w-]{6,})"
)
_WS = re.compile(r"\s+")


def extract_youtube_id(url: str) -> str | None:
    m = _YOUTUBE_ID.search(url or "")
    return m.group(1) if m else None


def fetch_youtube_captions(video_id: str) -> list[str]:
    from youtube_transcript_api import YouTubeTranscriptApi

    fetched = YouTubeTranscriptApi().fetch(video_id)
    return [snippet.text for snippet in fetched]


def _join(segments: Iterable[str]) -> str:
    return _WS.sub(" ", " ".join(segments)).strip()


def audio_fingerprint(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()[:32]


class TranscriptResolver:
    def __init__(
        self,
        session_factory: sessionmaker,
        blob_store: BlobStore | None = None,
        speech_to_text: SpeechToText | None = None,
        fetch_youtube: Callable[[str], list[str]] = fetch_youtube_captions,
        min_chars: int = 100,
    ):
        self._session_factory = session_factory
        self.blob_store = blob_store
        self.speech_to_text = speech_to_text
        self.fetch_youtube = fetch_youtube
        self.min_chars = min_chars

    def resolve(self, input_type: InputType | str, source: str | None) -> str:
        input_type = InputType(input_type)
        if input_type == InputType.text:
            if not source:
                raise TranscriptUnavailable("No text submitted")
            return source
        if not source:
            raise TranscriptUnavailable(f"No input_url for {input_type.value} generation")
        if input_type == InputType.youtube:
            return self._youtube(source)
        return self._audio(source)

    def _youtube(self, url: str) -> str:
        video_id = extract_youtube_id(url)
        if not video_id:
            raise TranscriptUnavailable("Invalid YouTube URL")

        cached = self._cache_get("youtube", video_id)
        if cached is not None:
            return cached

        try:
            transcript = _join(self.fetch_youtube(video_id))
        except Exception as e:
            logger.warning("YouTube transcript fetch failed for %s: %s", video_id, e)
            raise TranscriptUnavailable(f"Failed to get transcript from YouTube video: {e}") from e

        if len(transcript) < self.min_chars:
            raise TranscriptUnavailable("Transcript too short - video may not have captions")
        self._cache_put("youtube", video_id, transcript)
        return transcript

    def _audio(self, path: str) -> str:
        if self.blob_store is None or self.speech_to_text is None:
            raise TranscriptUnavailable("Audio transcription is not configured")
        try:
            data = self.blob_store.download(path)
        except Exception as e:
            logger.warning("Audio download failed for %s: %s", path, e)
            raise TranscriptUnavailable(f"Failed to download audio file: {e}") from e

        key = audio_fingerprint(data)
        cached = self._cache_get("audio", key)
        if cached is not None:
            return cached

        try:
            transcript = self.speech_to_text.transcribe(data, PurePosixPath(path).name or "audio.mp3")
        except Exception as e:
            logger.warning("Audio transcription failed for %s: %s", path, e)
            raise TranscriptUnavailable(f"Failed to transcribe audio file: {e}") from e

        if not transcript:
            raise TranscriptUnavailable("Audio transcription returned empty result")
        self._cache_put("audio", key, transcript)
        return transcript

    def _cache_get(self, source_type: str, identifier: str) -> str | None:
        with self._session_factory() as db:
            row = db.execute(
                select(TranscriptCache).where(
                    TranscriptCache.source_type == source_type,
                    TranscriptCache.source_identifier == identifier,
                )
            ).scalar_one_or_none()
            if row is None:
                return None
            row.access_count += 1
            row.accessed_at = utcnow()
            db.commit()
            logger.debug("Transcript cache hit %s:%s", source_type, identifier)
            return row.transcript

    def _cache_put(self, source_type: str, identifier: str, transcript: str) -> None:
        with self._session_factory() as db:
            db.add(TranscriptCache(
                source_type=source_type,
                source_identifier=identifier,
                transcript=transcript,
                word_count=len(transcript.split()),
            ))
            try:
                db.commit()
            except IntegrityError:
                # a concurrent tick cached the same source first
                db.rollback()
