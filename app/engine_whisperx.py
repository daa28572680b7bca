from __future__ import annotations
import logging
import whisperx  # type: ignore
from app.settings import settings

logger = logging.getLogger(__name__)

# Simple single-process cache
_asr_model = None

def _load_asr():
    global _asr_model
    if _asr_model is None:
        logger.info(
            "Loading WhisperX model=%s device=%s compute_type=%s",
            settings.WHISPERX_MODEL_NAME, settings.WHISPERX_DEVICE, settings.WHISPERX_COMPUTE_TYPE,
        )
        _asr_model = whisperx.load_model(
            settings.WHISPERX_MODEL_NAME,
            device=settings.WHISPERX_DEVICE,
            compute_type=settings.WHISPERX_COMPUTE_TYPE,
        )
    return _asr_model

def transcribe_with_whisperx(audio_path: str) -> str:
    audio = whisperx.load_audio(audio_path)
    # lower batch_size reduces memory
    result = _load_asr().transcribe(audio, batch_size=settings.WHISPERX_BATCH_SIZE)
    texts = [seg.get("text", "").strip() for seg in result.get("segments", [])]
    return " ".join(t for t in texts if t)
