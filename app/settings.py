from pydantic_settings import BaseSettings
from pydantic import AnyUrl

class Settings(BaseSettings):
    # FastAPI
    APP_NAME: str = "content-repurposer"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Identity provider
    IDENTITY_URL: str | None = None
    IDENTITY_USER_PATH: str = "/auth/v1/user"
    IDENTITY_TIMEOUT_SECONDS: float = 10.0

    # Shared secret for the scheduler trigger (unset -> every trigger rejected)
    CRON_SECRET: str | None = None

    # Celery / Redis
    REDIS_URL: AnyUrl = "redis://localhost:6379/0"
    CELERY_BROKER_URL: AnyUrl | None = None
    CELERY_RESULT_BACKEND: AnyUrl | None = None
    WORKER_TICK_SECONDS: float = 60.0
    KICK_WORKER_ON_SUBMIT: bool = True

    # Database settings for MySQL; DATABASE_URL wins when set
    DATABASE_URL: str | None = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_SCHEMA: str = "app"
    DB_USERNAME: str = "user"
    DB_PASSWORD: str = "password"

    # Retry policy
    MAX_RETRIES: int = 3
    RETRY_BACKOFF_MS: int = 60_000
    CLAIM_LEASE_SECONDS: int = 600

    # Status polling
    PROGRESS_ESTIMATED_TOTAL_MS: int = 120_000

    # Rate limiting
    RATE_LIMIT_BACKEND: str = "memory"  # "memory" | "redis"
    RATE_LIMIT_SWEEP_PROBABILITY: float = 0.01
    RATE_LIMIT_GENERATION_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_GENERATION_MAX: int = 10
    RATE_LIMIT_API_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_API_MAX: int = 100
    RATE_LIMIT_AUTH_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_AUTH_MAX: int = 20
    RATE_LIMIT_WORKER_WINDOW_MS: int = 60 * 1000
    RATE_LIMIT_WORKER_MAX: int = 60

    # OpenAI
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE: float = 0.7
    OPENAI_MAX_TOKENS: int = 4000
    OPENAI_TIMEOUT_SECONDS: float = 120.0
    SYNTH_MAX_TRANSCRIPT_CHARS: int = 100_000

    # Speech-to-text
    STT_ENGINE: str = "openai"  # "openai" | "whisperx"
    OPENAI_TRANSCRIBE_MODEL: str = "whisper-1"

    # WhisperX config
    WHISPERX_DEVICE: str = "cpu"
    WHISPERX_MODEL_NAME: str = "small"
    WHISPERX_COMPUTE_TYPE: str = "int8"  # "float16" on cuda, "int8" on cpu
    WHISPERX_BATCH_SIZE: int = 8

    # Azure Storage
    AZURE_STORAGE_CONNECTION_STRING: str | None = None
    AZURE_CONTAINER_NAME: str = "audio-uploads"

    # Submission limits
    TEXT_MIN_CHARS: int = 100
    TEXT_MAX_CHARS: int = 50_000
    AUDIO_MAX_BYTES: int = 25 * 1024 * 1024
    MIN_TRANSCRIPT_CHARS: int = 100

    # Retention
    FAILED_RETENTION_DAYS: int = 7
    COMPLETED_RETENTION_DAYS: int = 30

    class Config:
        env_file = ".env"

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+mysqlconnector://{self.DB_USERNAME}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_SCHEMA}"
        )



settings = Settings()
# Default Celery endpoints to REDIS_URL if not set explicitly
if settings.CELERY_BROKER_URL is None:
    settings.CELERY_BROKER_URL = settings.REDIS_URL
if settings.CELERY_RESULT_BACKEND is None:
    settings.CELERY_RESULT_BACKEND = settings.REDIS_URL
