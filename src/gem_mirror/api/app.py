"""FastAPI application factory -- wires stores, ingestion and snapshots."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from gem_mirror import __version__
from gem_mirror.api.routes import dependencies, jobs, specs, upstream
from gem_mirror.config import Settings
from gem_mirror.db.engine import create_engine, create_schema, get_session_factory
from gem_mirror.db.store import SpecStore
from gem_mirror.deps.resolver import DependencyResolver, SQLDependencyResolver
from gem_mirror.deps.service import DependencySnapshotService
from gem_mirror.errors import ClientError, IngestionError
from gem_mirror.ingest.fetcher import ArtifactFetcher
from gem_mirror.ingest.job import IngestionJob
from gem_mirror.ingest.queue import IngestionQueue

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    read_session_factory: async_sessionmaker[AsyncSession] | None = None,
    fetcher: ArtifactFetcher | None = None,
    resolver: DependencyResolver | None = None,
) -> FastAPI:
    """Build the app. Injected factories and collaborators win over settings.

    Everything is attached to ``app.state`` eagerly so the app also works
    under transports that skip lifespan events.
    """
    settings = settings or Settings()  # type: ignore[call-arg]  # pydantic-settings loads from env
    engines: list[AsyncEngine] = []

    if session_factory is None:
        engine = create_engine(settings.database_url)
        engines.append(engine)
        session_factory = get_session_factory(engine)
    if read_session_factory is None:
        if settings.follower_database_url:
            follower = create_engine(settings.follower_database_url)
            engines.append(follower)
            read_session_factory = get_session_factory(follower)
        else:
            read_session_factory = session_factory

    if fetcher is None:
        fetcher = ArtifactFetcher(
            base_url=settings.download_url,
            timeout=settings.fetch_timeout_seconds,
            max_metadata_bytes=settings.max_metadata_bytes,
        )

    store = SpecStore(session_factory)
    ingestion_job = IngestionJob(store, fetcher)
    queue = None
    if settings.async_ingest:
        queue = IngestionQueue(
            ingestion_job,
            workers=settings.ingest_workers,
            max_attempts=settings.ingest_max_attempts,
            max_tracked_jobs=settings.ingest_max_tracked_jobs,
        )
    snapshots = DependencySnapshotService(resolver or SQLDependencyResolver(read_session_factory))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.create_schema and engines:
            await create_schema(engines[0])
        if queue is not None:
            await queue.start()
        yield
        if queue is not None:
            await queue.stop()
        await fetcher.close()
        for engine in engines:
            await engine.dispose()

    app = FastAPI(
        title="Gem Mirror API",
        version=__version__,
        description="Gem metadata mirror: webhook ingestion and dependency snapshots.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.ingestion_job = ingestion_job
    app.state.queue = queue
    app.state.snapshots = snapshots

    @app.exception_handler(ClientError)
    async def client_error(request: Request, exc: ClientError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(IngestionError)
    async def ingestion_error(request: Request, exc: IngestionError):
        logger.error("%s %s failed", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})

    app.include_router(dependencies.router)
    app.include_router(specs.router)
    app.include_router(jobs.router)
    app.include_router(upstream.router)

    @app.get("/health")
    async def health():
        """Unauthenticated health-check endpoint."""
        return {"status": "ok"}

    return app
