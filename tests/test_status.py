"""Tests for status reads and progress estimation."""

import pytest

from app.errors import NotFound
from app.status import get_status


class TestGetStatus:
    def test_pending(self, store):
        gen = store.insert("u1", "text", transcript="a")
        status = get_status(store, gen.id, "u1")
        assert (status.status, status.progress, status.outputs, status.error) == ("pending", 0, None, None)

    def test_processing_progress_grows_and_caps(self, store, clock):
        gen = store.insert("u1", "text", transcript="a")
        store.claim_next_pending()

        assert get_status(store, gen.id, "u1", estimated_total_ms=120_000).progress == 0
        clock.advance(seconds=60)
        assert get_status(store, gen.id, "u1", estimated_total_ms=120_000).progress == 50
        clock.advance(minutes=10)
        assert get_status(store, gen.id, "u1", estimated_total_ms=120_000).progress == 95

    def test_completed_exposes_outputs(self, store, outputs_payload):
        gen = store.insert("u1", "text", transcript="a")
        job = store.claim_next_pending()
        store.complete(job, outputs_payload, 800)
        status = get_status(store, gen.id, "u1")
        assert status.status == "completed"
        assert status.progress == 100
        assert status.outputs == outputs_payload
        assert status.processing_time_ms == 800

    def test_failed_exposes_error(self, store):
        gen = store.insert("u1", "audio")
        store.fail(gen, "File upload failed")
        status = get_status(store, gen.id, "u1")
        assert (status.status, status.error, status.outputs) == ("failed", "File upload failed", None)

    def test_pending_retry_shows_last_error(self, store, clock):
        gen = store.insert("u1", "text", transcript="a")
        job = store.claim_next_pending()
        store.reschedule(job, 1, clock.now, "timeout")
        assert get_status(store, gen.id, "u1").error == "timeout"

    def test_other_owner_gets_not_found(self, store):
        gen = store.insert("owner", "text", transcript="a")
        with pytest.raises(NotFound):
            get_status(store, gen.id, "someone-else")
