# app/speech.py
import logging
import tempfile
from pathlib import Path

from app.settings import settings

logger = logging.getLogger(__name__)


class SpeechToText:
    def transcribe(self, data: bytes, filename: str) -> str:
        raise NotImplementedError


class OpenAISpeechToText(SpeechToText):
    """Hosted Whisper transcription."""

    def __init__(self, client, model: str = "whisper-1"):
        self.client = client
        self.model = model

    def transcribe(self, data, filename):
        tr = self.client.audio.transcriptions.create(
            model=self.model,
            file=(filename, data),
        )
        return (tr.text or "").strip()


class WhisperXSpeechToText(SpeechToText):
    """Local WhisperX; needs the ``whisperx`` extra and ffmpeg on PATH."""

    def transcribe(self, data, filename):
        # heavy imports stay here so the API process never loads torch
        from app.audio import write_normalized_wav
        from app.engine_whisperx import transcribe_with_whisperx

        with tempfile.TemporaryDirectory(prefix="stt-") as tmp:
            wav = write_normalized_wav(data, Path(tmp), stem=Path(filename).stem or "upload")
            return transcribe_with_whisperx(str(wav)).strip()


def build_speech_to_text(openai_client=None) -> SpeechToText:
    if settings.STT_ENGINE == "whisperx":
        return WhisperXSpeechToText()
    if settings.STT_ENGINE != "openai":
        raise ValueError(f"Unknown STT_ENGINE: {settings.STT_ENGINE}")
    if openai_client is None:
        from openai import OpenAI
        openai_client = OpenAI(api_key=settings.OPENAI_API_KEY, timeout=settings.OPENAI_TIMEOUT_SECONDS)
    return OpenAISpeechToText(openai_client, settings.OPENAI_TRANSCRIBE_MODEL)
