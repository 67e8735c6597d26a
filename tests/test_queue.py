"""Tests for background ingestion with retries and the dead letter list."""

import pytest

from gem_mirror.errors import FetchError
from gem_mirror.ingest.job import IngestionJob
from gem_mirror.ingest.queue import DeadLetterQueue, IngestionQueue, QueuedJob
from gem_mirror.specs import GemIdentifier


@pytest.fixture
async def queue(store, fake_fetcher):
    q = IngestionQueue(IngestionJob(store, fake_fetcher), workers=2, max_attempts=3, wait_min=0, wait_max=0)
    await q.start()
    yield q
    await q.stop()


@pytest.fixture
def identifier():
    return GemIdentifier.build("foo", "1.0.0")


class TestIngestionQueue:
    async def test_job_completes(self, queue, fake_fetcher, make_metadata, identifier):
        fake_fetcher.add(make_metadata(), "foo", "1.0.0")
        queued = queue.submit(identifier)
        assert queued.status == "queued"

        await queue.join()
        assert queued.status == "done"
        assert queued.attempts == 1
        assert queued.version_id is not None
        assert queue.get(queued.id) is queued

    async def test_transient_fetch_error_retried(self, queue, fake_fetcher, make_metadata, identifier):
        fake_fetcher.add(make_metadata(), "foo", "1.0.0")
        fake_fetcher.failures.append(FetchError("connection reset"))

        queued = queue.submit(identifier)
        await queue.join()
        assert queued.status == "done"
        assert queued.attempts == 2
        assert queue.dlq.depth == 0

    async def test_exhausted_retries_dead_lettered(self, queue, fake_fetcher, identifier):
        queued = queue.submit(identifier)
        await queue.join()

        assert queued.status == "failed"
        assert queued.attempts == 3
        assert "404" in queued.error
        assert queue.dlq.depth == 1
        assert queue.dlq.entries[0].attempts == 3

    async def test_parse_error_not_retried(self, queue, fake_fetcher, identifier):
        fake_fetcher.add(b"name: [broken\n", "foo", "1.0.0")
        queued = queue.submit(identifier)
        await queue.join()

        assert queued.status == "failed"
        assert queued.attempts == 1
        assert queue.dlq.depth == 1

    async def test_replay_after_fix(self, queue, fake_fetcher, make_metadata, identifier):
        queued = queue.submit(identifier)
        await queue.join()
        assert queued.status == "failed"

        fake_fetcher.add(make_metadata(), "foo", "1.0.0")
        assert queue.replay(queued.id) is queued
        await queue.join()

        assert queued.status == "done"
        assert queued.error == ""
        assert queue.dlq.depth == 0

    async def test_replay_unknown_job(self, queue):
        assert queue.replay("no-such-job") is None

    async def test_already_ingested_reports_skipped(self, queue, fake_fetcher, make_metadata, identifier):
        fake_fetcher.add(make_metadata(), "foo", "1.0.0")
        first = queue.submit(identifier)
        await queue.join()
        second = queue.submit(identifier)
        await queue.join()

        assert first.status == "done"
        assert second.status == "skipped"
        assert second.as_dict()["version_id"] is None

    async def test_finished_jobs_evicted_beyond_cap(self, store, fake_fetcher, make_metadata, identifier):
        fake_fetcher.add(make_metadata(), "foo", "1.0.0")
        q = IngestionQueue(IngestionJob(store, fake_fetcher), workers=2, max_attempts=1, max_tracked_jobs=3)
        await q.start()
        try:
            failed = q.submit(GemIdentifier.build("ghost", "1.0.0"))
            submitted = [q.submit(identifier) for _ in range(10)]
            await q.join()
        finally:
            await q.stop()

        assert q.get(failed.id) is failed
        assert q.get(submitted[0].id) is None
        assert q.get(submitted[-1].id) is submitted[-1]
        assert sum(q.get(job.id) is not None for job in submitted) == 2
        assert q.replay(failed.id) is failed

    async def test_stop_clears_workers(self, store, fake_fetcher):
        q = IngestionQueue(IngestionJob(store, fake_fetcher), workers=1)
        await q.start()
        assert q.running
        await q.stop()
        assert not q.running


class TestDeadLetterQueue:
    def test_add_and_pop(self):
        dlq = DeadLetterQueue()
        job = QueuedJob(identifier=GemIdentifier.build("foo", "1.0.0"))
        dlq.add(job, error="boom", attempts=2)
        assert dlq.depth == 1
        assert dlq.pop(job.id) is job
        assert dlq.pop(job.id) is None
        assert dlq.depth == 0

    def test_as_dict(self):
        job = QueuedJob(identifier=GemIdentifier.build("foo", "1.0.0", "java"))
        data = job.as_dict()
        assert data["job_id"] == job.id
        assert data["platform"] == "java"
        assert data["status"] == "queued"
        assert data["error"] is None
