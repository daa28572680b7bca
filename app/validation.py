# app/validation.py
"""Request models for ``POST /generate``.

Both models are built from the multipart form fields; a pydantic
``ValidationError`` is turned into ``InvalidSubmission`` with the first
problem as the message.
"""
import re
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from app.errors import InvalidSubmission
from app.models import InputType
from app.settings import settings

YOUTUBE_URL = re.compile(r"^(https?://)?(www\.|m\.)?(youtube\.com/(watch\?v=|embed/)|youtu\.be/)[\w-]+")

AudioContentType = Literal["audio/mpeg", "audio/mp3", "audio/wav", "audio/m4a", "audio/mp4"]

# messages for errors pydantic words generically
_FIELD_MESSAGES = {
    "input_type": "Input type must be youtube, audio, or text",
    "content_type": "Unsupported audio format. Use MP3, WAV, or M4A files.",
    "filename": "An audio file is required for audio input",
}


class GenerateForm(BaseModel):
    input_type: InputType
    input_url: str | None = None
    input_text: str | None = Field(
        None, min_length=settings.TEXT_MIN_CHARS, max_length=settings.TEXT_MAX_CHARS
    )

    @field_validator("input_url", "input_text", mode="before")
    @classmethod
    def _blank_is_missing(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("input_text")
    @classmethod
    def _enough_content(cls, v: str | None) -> str | None:
        if v is not None and len(re.sub(r"\s", "", v)) < settings.TEXT_MIN_CHARS:
            raise ValueError(
                f"Text must contain at least {settings.TEXT_MIN_CHARS} non-whitespace characters"
            )
        return v

    @model_validator(mode="after")
    def _fields_for_type(self):
        if self.input_type == InputType.youtube:
            if not self.input_url:
                raise ValueError("input_url is required for youtube input")
            self.input_url = self.input_url.strip()
            if not YOUTUBE_URL.match(self.input_url):
                raise ValueError("Invalid YouTube URL format")
            self.input_text = None
        elif self.input_type == InputType.text:
            if not self.input_text:
                raise ValueError("input_text is required for text input")
            self.input_url = None
        else:
            self.input_url = None
            self.input_text = None
        return self


class AudioUpload(BaseModel):
    filename: str = Field(min_length=1)
    content_type: AudioContentType
    size: int

    @field_validator("size")
    @classmethod
    def _size_in_range(cls, v: int) -> int:
        if v > settings.AUDIO_MAX_BYTES:
            raise ValueError(f"File size must be less than {settings.AUDIO_MAX_BYTES // (1024 * 1024)}MB")
        if v <= 0:
            raise ValueError("Audio file is empty")
        return v

    @property
    def safe_name(self) -> str:
        """Basename only, so it can go straight into a storage path."""
        base = self.filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
        return re.sub(r"[^\w.\-]", "_", base)


def _first_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    if err["type"] == "value_error":
        return str(err["ctx"]["error"])
    field = ".".join(str(part) for part in err["loc"])
    if field in _FIELD_MESSAGES:
        return _FIELD_MESSAGES[field]
    return f"{field}: {err['msg']}" if field else err["msg"]


def parse_generate_form(input_type, input_url=None, input_text=None) -> GenerateForm:
    try:
        return GenerateForm(input_type=input_type, input_url=input_url, input_text=input_text)
    except ValidationError as e:
        raise InvalidSubmission(_first_message(e)) from None


def parse_audio_upload(filename, content_type, size: int) -> AudioUpload:
    try:
        return AudioUpload(filename=filename or "", content_type=content_type, size=size)
    except ValidationError as e:
        raise InvalidSubmission(_first_message(e)) from None
