"""IngestionJob: check, fetch, parse and persist one gem version."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from gem_mirror.db.store import SpecStore
from gem_mirror.errors import IngestionError
from gem_mirror.ingest.fetcher import ArtifactFetcher
from gem_mirror.ingest.parser import DescriptorParser
from gem_mirror.ingest.state import JobState, JobStateMachine
from gem_mirror.specs import GemIdentifier

logger = logging.getLogger(__name__)


@dataclass
class JobResult:
    """Outcome of a run that did not fail."""

    identifier: GemIdentifier
    state: JobState
    version_id: int | None = None
    history: list[JobState] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.state == JobState.SKIPPED


class IngestionJob:
    """Runs the ingestion pipeline for a single identifier.

    Holds no per-run state, so one instance can serve concurrent requests.
    Failures move the run to ``failed`` and re-raise the originating
    FetchError, ParseError or PersistError; nothing is retried here.
    """

    def __init__(
        self,
        store: SpecStore,
        fetcher: ArtifactFetcher,
        parser: DescriptorParser | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher
        self.parser = parser or DescriptorParser()

    async def run(self, identifier: GemIdentifier) -> JobResult:
        sm = JobStateMachine()
        sm.transition(JobState.CHECKING)

        try:
            if await self.store.exists(identifier.name, identifier.version, identifier.platform):
                sm.transition(JobState.SKIPPED)
                logger.info("Skipping %s: already ingested", identifier.full_name)
                return JobResult(identifier=identifier, state=sm.state, history=sm.history)

            sm.transition(JobState.FETCHING)
            raw = await self.fetcher.fetch(identifier.name, identifier.version, identifier.platform)

            sm.transition(JobState.PARSING)
            spec = self.parser.parse(raw)

            sm.transition(JobState.PERSISTING)
            version_id = await self.store.upsert_spec(spec)
        except IngestionError as e:
            failed_in = sm.state
            sm.transition(JobState.FAILED)
            logger.warning("Ingestion of %s failed while %s: %s", identifier.full_name, failed_in.value, e)
            raise

        sm.transition(JobState.DONE if version_id is not None else JobState.SKIPPED)
        return JobResult(identifier=identifier, state=sm.state, version_id=version_id, history=sm.history)
