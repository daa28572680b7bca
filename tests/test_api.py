"""HTTP tests against the FastAPI app with in-process fakes."""

import pytest
from fastapi.testclient import TestClient

from app import dependencies
from app.errors import MalformedModelOutput
from app.main import app
from app.permissions import get_current_user
from app.rate_limit import MemoryRateLimitStore, RateLimiter
from app.schemas import CurrentUser
from app.transcripts import TranscriptResolver
from app.worker_loop import RetryPolicy, WorkerLoop

from conftest import SAMPLE_TEXT

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}
OUTPUT_KEYS = {
    "twitter_posts", "linkedin_posts", "instagram_captions", "blog_article", "email_newsletter",
    "quote_graphics", "twitter_thread", "podcast_show_notes", "video_script_summary", "tiktok_hooks",
}


class Caller:
    def __init__(self, user_id: str = "user-1"):
        self.user_id = user_id

    def __call__(self) -> CurrentUser:
        return CurrentUser(id=self.user_id, email=f"{self.user_id}@example.com")


@pytest.fixture
def caller():
    return Caller()


@pytest.fixture
def limiter():
    return RateLimiter(MemoryRateLimitStore(), sweep_probability=0.0)


@pytest.fixture
def worker_loop(store, session_factory, blob_store, synthesizer, clock):
    resolver = TranscriptResolver(session_factory, blob_store=blob_store, fetch_youtube=lambda _id: [SAMPLE_TEXT])
    return WorkerLoop(store, resolver, synthesizer, RetryPolicy(), clock=clock)


@pytest.fixture
def client(monkeypatch, caller, store, ledger, limiter, blob_store, worker_loop):
    app.dependency_overrides[get_current_user] = caller
    app.dependency_overrides[dependencies.get_job_store] = lambda: store
    app.dependency_overrides[dependencies.get_credit_ledger] = lambda: ledger
    app.dependency_overrides[dependencies.get_rate_limiter] = lambda: limiter
    app.dependency_overrides[dependencies.get_worker_loop] = lambda: worker_loop
    monkeypatch.setattr("app.routes.generations.get_blob_store", lambda: blob_store)
    yield TestClient(app)
    app.dependency_overrides.clear()


def submit_text(client, text=SAMPLE_TEXT):
    return client.post("/api/generate", data={"input_type": "text", "input_text": text})


class TestEndToEnd:
    def test_text_submission_is_processed_by_one_tick(self, client, ledger):
        ledger.set_allowance("user-1", 5)

        resp = submit_text(client)
        assert resp.status_code == 200
        body = resp.json()
        gen_id = body["generation_id"]
        assert body["status"] == "pending"
        assert body["poll_url"] == f"/api/generation/{gen_id}"
        assert resp.headers["X-RateLimit-Limit"] == "10"
        assert resp.headers["X-RateLimit-Remaining"] == "9"
        assert client.get("/api/credits").json()["credits_remaining"] == 4

        polled = client.get(f"/api/generation/{gen_id}").json()
        assert (polled["status"], polled["outputs"]) == ("pending", None)

        tick = client.post("/api/worker/process", headers=CRON_HEADERS)
        assert tick.status_code == 200
        assert tick.json()["job_id"] == gen_id
        assert tick.json()["status"] == "completed"

        polled = client.get(f"/api/generation/{gen_id}").json()
        assert polled["status"] == "completed"
        assert polled["progress"] == 100
        assert set(polled["outputs"]) == OUTPUT_KEYS

    def test_youtube_submission(self, client, ledger, store):
        ledger.set_allowance("user-1", 1)
        resp = client.post(
            "/api/generate",
            data={"input_type": "youtube", "input_url": "https://www.youtube.com/watch?v=dQw4w9WgXcQ"},
        )
        assert resp.status_code == 200
        client.post("/api/worker/process", headers=CRON_HEADERS)
        gen = store.get_by_id(resp.json()["generation_id"], "user-1")
        assert gen.transcript == SAMPLE_TEXT
        assert gen.status.value == "completed"


class TestSubmitRejections:
    def test_insufficient_credits(self, client, ledger):
        ledger.set_allowance("user-1", 0)
        resp = submit_text(client)
        assert resp.status_code == 402
        assert resp.json() == {"success": False, "error": "Insufficient credits"}

    def test_no_balance_row(self, client):
        resp = submit_text(client)
        assert resp.status_code == 402
        assert resp.json()["error"] == "No credit balance found"

    @pytest.mark.parametrize(
        "data",
        [
            {"input_type": "video", "input_url": "https://youtu.be/x"},
            {"input_type": "youtube", "input_url": "https://vimeo.com/1"},
            {"input_type": "youtube"},
            {"input_type": "text", "input_text": "too short"},
            {"input_type": "text", "input_text": "a " * 60},
            {"input_type": "audio"},
        ],
    )
    def test_invalid_submission_spends_nothing(self, client, ledger, data):
        ledger.set_allowance("user-1", 3)
        resp = client.post("/api/generate", data=data)
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert ledger.get("user-1").credits_remaining == 3

    def test_generation_rate_limit(self, client, ledger):
        ledger.set_allowance("user-1", 50)
        for _ in range(10):
            assert submit_text(client).status_code == 200
        blocked = submit_text(client)
        assert blocked.status_code == 429
        assert int(blocked.headers["Retry-After"]) > 0
        assert blocked.headers["X-RateLimit-Remaining"] == "0"
        assert ledger.get("user-1").credits_remaining == 40


class TestAudio:
    def test_audio_is_uploaded_under_generation_id(self, client, ledger, store, blob_store):
        ledger.set_allowance("user-1", 1)
        resp = client.post(
            "/api/generate",
            data={"input_type": "audio"},
            files={"file": ("my talk.mp3", b"ID3audio", "audio/mpeg")},
        )
        assert resp.status_code == 200
        gen_id = resp.json()["generation_id"]
        path = f"{gen_id}/my_talk.mp3"
        assert blob_store.blobs[path] == b"ID3audio"
        assert store.get_by_id(gen_id, "user-1").input_url == path

    def test_unsupported_audio_type(self, client, ledger):
        ledger.set_allowance("user-1", 1)
        resp = client.post(
            "/api/generate",
            data={"input_type": "audio"},
            files={"file": ("clip.ogg", b"OggS", "audio/ogg")},
        )
        assert resp.status_code == 400
        assert ledger.get("user-1").credits_remaining == 1

    def test_upload_failure_marks_generation_failed(self, client, ledger, store, blob_store, monkeypatch):
        ledger.set_allowance("user-1", 1)

        def broken_upload(path, data):
            raise ConnectionError("storage down")

        monkeypatch.setattr(blob_store, "upload", broken_upload)
        resp = client.post(
            "/api/generate",
            data={"input_type": "audio"},
            files={"file": ("a.mp3", b"ID3", "audio/mpeg")},
        )
        assert resp.status_code == 500
        assert resp.json()["error"] == "Failed to upload audio file"
        [gen] = store.list_for_user("user-1")
        assert (gen.status.value, gen.error_message) == ("failed", "File upload failed")

    def test_tick_during_upload_finds_nothing_to_claim(self, client, ledger, store, blob_store, worker_loop, monkeypatch):
        ledger.set_allowance("user-1", 1)
        ticks = []
        stored = blob_store.upload

        def upload_with_concurrent_tick(path, data):
            ticks.append(worker_loop.tick())
            stored(path, data)

        monkeypatch.setattr(blob_store, "upload", upload_with_concurrent_tick)
        resp = client.post(
            "/api/generate",
            data={"input_type": "audio"},
            files={"file": ("a.mp3", b"ID3", "audio/mpeg")},
        )

        assert resp.status_code == 200
        assert [t.idle for t in ticks] == [True]
        gen = store.get_by_id(resp.json()["generation_id"], "user-1")
        assert (gen.status.value, gen.retry_count, gen.error_message) == ("pending", 0, None)
        assert gen.input_url == f"{gen.id}/a.mp3"


class TestReads:
    def test_other_users_generation_is_not_found(self, client, ledger, caller):
        ledger.set_allowance("user-1", 1)
        gen_id = submit_text(client).json()["generation_id"]
        caller.user_id = "user-2"
        resp = client.get(f"/api/generation/{gen_id}")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Generation not found"}

    def test_list_generations(self, client, ledger, clock):
        ledger.set_allowance("user-1", 3)
        ids = []
        for _ in range(3):
            ids.append(submit_text(client).json()["generation_id"])
            clock.advance(seconds=1)
        listed = client.get("/api/generations", params={"page": 1, "limit": 2}).json()
        assert [g["id"] for g in listed] == [ids[2], ids[1]]
        assert client.get("/api/generations", params={"limit": 101}).status_code == 422

    def test_credits_without_balance(self, client):
        assert client.get("/api/credits").status_code == 404

    def test_missing_bearer_token(self, client):
        app.dependency_overrides.pop(get_current_user)
        resp = client.get("/api/credits")
        assert resp.status_code == 401
        assert resp.json()["success"] is False


class TestWorkerEndpoints:
    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "test-cron-secret"}])
    def test_bad_secret_is_rejected(self, client, headers):
        resp = client.post("/api/worker/process", headers=headers)
        assert resp.status_code == 401
        assert resp.json() == {"success": False, "error": "Unauthorized worker request"}

    def test_idle_tick(self, client):
        resp = client.post("/api/worker/process", headers=CRON_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["message"] == "No pending jobs"
        assert resp.json()["job_id"] is None

    def test_failed_tick_reports_retry(self, client, ledger, synthesizer):
        synthesizer.generate.side_effect = MalformedModelOutput("bad json")
        ledger.set_allowance("user-1", 1)
        gen_id = submit_text(client).json()["generation_id"]
        body = client.post("/api/worker/process", headers=CRON_HEADERS).json()
        assert (body["status"], body["will_retry"], body["error"]) == ("retry", True, "bad json")
        polled = client.get(f"/api/generation/{gen_id}").json()
        assert (polled["status"], polled["error"]) == ("pending", "bad json")

    def test_cleanup(self, client, store, clock):
        old = store.insert("user-1", "audio")
        store.fail(old, "boom")
        clock.advance(days=8)
        resp = client.post("/api/cron/cleanup", headers=CRON_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["deleted_failed"] == 1
        assert resp.json()["deleted_completed"] == 0

    def test_cleanup_requires_secret(self, client):
        assert client.post("/api/cron/cleanup").status_code == 401


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
