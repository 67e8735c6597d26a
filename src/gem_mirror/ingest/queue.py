"""Background ingestion: worker pool with bounded retry + dead letter list.

Webhook handlers submit identifiers and return immediately with a job id.
FetchError and PersistError are retried with exponential backoff; ParseError
is poisoned input and goes straight to the dead letter list.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from gem_mirror.errors import FetchError, IngestionError, PersistError
from gem_mirror.ingest.job import IngestionJob
from gem_mirror.ingest.state import JobState
from gem_mirror.specs import GemIdentifier

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (FetchError, PersistError)

QUEUED = "queued"
RUNNING = "running"
# Finished jobs that can be forgotten; failed ones stay reachable for replay.
EVICTABLE = {JobState.DONE.value, JobState.SKIPPED.value}


@dataclass
class QueuedJob:
    identifier: GemIdentifier
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: str = QUEUED  # queued | running | done | skipped | failed
    attempts: int = 0
    version_id: int | None = None
    error: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "job_id": self.id,
            "name": self.identifier.name,
            "version": self.identifier.version,
            "platform": self.identifier.platform,
            "status": self.status,
            "attempts": self.attempts,
            "version_id": self.version_id,
            "error": self.error or None,
        }


@dataclass
class DLQEntry:
    job: QueuedJob
    error: str
    attempts: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class DeadLetterQueue:
    def __init__(self) -> None:
        self.entries: list[DLQEntry] = []

    def add(self, job: QueuedJob, error: str, attempts: int) -> None:
        self.entries.append(DLQEntry(job=job, error=error, attempts=attempts))

    def pop(self, job_id: str) -> QueuedJob | None:
        for i, entry in enumerate(self.entries):
            if entry.job.id == job_id:
                self.entries.pop(i)
                return entry.job
        return None

    @property
    def depth(self) -> int:
        return len(self.entries)


class IngestionQueue:
    """Runs IngestionJob off the request path on a fixed pool of workers."""

    def __init__(
        self,
        job: IngestionJob,
        workers: int = 2,
        max_attempts: int = 3,
        wait_min: float = 0.5,
        wait_max: float = 10.0,
        max_tracked_jobs: int = 1000,
    ) -> None:
        self._job = job
        self._worker_count = workers
        self.max_attempts = max_attempts
        self._wait_min = wait_min
        self._wait_max = wait_max
        self.max_tracked_jobs = max_tracked_jobs
        self._queue: asyncio.Queue[QueuedJob] = asyncio.Queue()
        self._jobs: dict[str, QueuedJob] = {}
        self._workers: list[asyncio.Task] = []
        self.dlq = DeadLetterQueue()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def submit(self, identifier: GemIdentifier) -> QueuedJob:
        queued = QueuedJob(identifier=identifier)
        self._jobs[queued.id] = queued
        self._queue.put_nowait(queued)
        return queued

    def get(self, job_id: str) -> QueuedJob | None:
        return self._jobs.get(job_id)

    def replay(self, job_id: str) -> QueuedJob | None:
        """Move a dead-lettered job back onto the queue."""
        queued = self.dlq.pop(job_id)
        if queued is None:
            return None
        queued.status = QUEUED
        queued.attempts = 0
        queued.error = ""
        queued.finished_at = None
        self._queue.put_nowait(queued)
        return queued

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"ingest-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("Started %d ingestion workers", self._worker_count)

    async def join(self) -> None:
        """Wait until every submitted job has finished."""
        await self._queue.join()

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def _worker(self) -> None:
        while True:
            queued = await self._queue.get()
            try:
                await self._process(queued)
            finally:
                self._queue.task_done()

    async def _process(self, queued: QueuedJob) -> None:
        queued.status = RUNNING
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self._wait_min, min=self._wait_min, max=self._wait_max),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    queued.attempts += 1
                    result = await self._job.run(queued.identifier)
        except IngestionError as e:
            self._fail(queued, str(e))
            return
        except Exception as e:
            logger.exception("Unexpected error ingesting %s", queued.identifier.full_name)
            self._fail(queued, f"unexpected error: {type(e).__name__}")
            return

        queued.status = result.state.value
        queued.version_id = result.version_id
        queued.finished_at = datetime.now(timezone.utc)
        self._evict_finished()

    def _evict_finished(self) -> None:
        """Drop the oldest done/skipped jobs once more than max_tracked_jobs are held."""
        excess = len(self._jobs) - self.max_tracked_jobs
        if excess <= 0:
            return
        stale = [job_id for job_id, job in self._jobs.items() if job.status in EVICTABLE][:excess]
        for job_id in stale:
            del self._jobs[job_id]

    def _fail(self, queued: QueuedJob, error: str) -> None:
        queued.status = JobState.FAILED.value
        queued.error = error
        queued.finished_at = datetime.now(timezone.utc)
        self.dlq.add(queued, error=error, attempts=queued.attempts)
        logger.error(
            "Dead-lettered %s after %d attempt(s): %s",
            queued.identifier.full_name, queued.attempts, error,
        )
