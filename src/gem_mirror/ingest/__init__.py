"""Ingestion pipeline: fetch, parse, persist."""

from gem_mirror.ingest.fetcher import ArtifactFetcher
from gem_mirror.ingest.job import IngestionJob, JobResult
from gem_mirror.ingest.parser import DescriptorParser
from gem_mirror.ingest.queue import IngestionQueue, QueuedJob
from gem_mirror.ingest.state import JobState, JobStateMachine

__all__ = [
    "ArtifactFetcher",
    "DescriptorParser",
    "IngestionJob",
    "IngestionQueue",
    "JobResult",
    "JobState",
    "JobStateMachine",
    "QueuedJob",
]
