"""Shared fixtures: a SQLite database per test and fakes for external services."""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

# Configure the app before anything imports app.settings
_TMP = Path(tempfile.mkdtemp(prefix="repurposer-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP / 'app.db'}")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("KICK_WORKER_ON_SUBMIT", "false")
os.environ.setdefault("IDENTITY_URL", "http://identity.test")

import pytest
from unittest.mock import MagicMock

from app.credits import CreditLedger
from app.db import Base, make_engine, make_session_factory
from app.job_store import JobStore
from app.schemas import ContentOutputs
from app.storage import BlobStore


SAMPLE_TEXT = (
    "Repurposing long-form content is the fastest way to grow an audience. "
    "One podcast episode can feed a week of posts across every platform you use."
)


def sample_outputs_payload() -> dict:
    return {
        "twitter_posts": [f"tweet {i}" for i in range(5)],
        "linkedin_posts": [f"linkedin {i}" for i in range(3)],
        "instagram_captions": [f"caption {i}" for i in range(2)],
        "blog_article": {"title": "Grow faster", "content": "one two three four", "word_count": 999},
        "email_newsletter": {"subject": "Hello", "content": "five six", "word_count": 0},
        "quote_graphics": [f"quote {i}" for i in range(5)],
        "twitter_thread": ["1/ start", "2/ end"],
        "podcast_show_notes": ["- topic one", "- topic two"],
        "video_script_summary": "- main point",
        "tiktok_hooks": [f"hook {i}" for i in range(5)],
    }


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class MemoryBlobStore(BlobStore):
    def __init__(self):
        self.blobs: dict[str, bytes] = {}

    def upload(self, path, data):
        self.blobs[path] = data

    def download(self, path):
        return self.blobs[path]


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(session_factory, clock):
    return JobStore(session_factory, clock=clock, lease_seconds=600, max_retries=3)


@pytest.fixture
def ledger(session_factory):
    return CreditLedger(session_factory)


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def outputs_payload():
    return sample_outputs_payload()


@pytest.fixture
def synthesizer():
    """Synthesizer double returning a valid ContentOutputs."""
    synth = MagicMock()
    synth.generate.return_value = ContentOutputs.model_validate(sample_outputs_payload())
    return synth
