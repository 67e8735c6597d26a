"""Webhook endpoints: add and remove gem versions."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from gem_mirror.api.deps import get_ingestion_job, get_queue, get_settings, get_store
from gem_mirror.api.payload import SpecPayload, read_webhook
from gem_mirror.config import Settings
from gem_mirror.db.store import SpecStore
from gem_mirror.ingest.job import IngestionJob
from gem_mirror.ingest.queue import IngestionQueue

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["specs"])


@router.post("/add_spec.json")
async def add_spec(
    request: Request,
    settings: Settings = Depends(get_settings),
    job: IngestionJob = Depends(get_ingestion_job),
    queue: IngestionQueue | None = Depends(get_queue),
):
    """Ingest a newly pushed gem version.

    Runs inline by default; with background ingestion enabled the job is
    queued and a 202 carries its id.
    """
    identifier = await read_webhook(request, settings.rubygems_token)
    payload = SpecPayload.from_identifier(identifier)

    if queue is not None:
        queued = queue.submit(identifier)
        return JSONResponse(status_code=202, content={**payload.model_dump(), "job_id": queued.id})

    await job.run(identifier)
    return payload.model_dump()


@router.post("/remove_spec.json")
async def remove_spec(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: SpecStore = Depends(get_store),
):
    """Yank: mark the version unindexed, keeping the row."""
    identifier = await read_webhook(request, settings.rubygems_token)
    removed = await store.soft_remove(identifier.name, identifier.version, identifier.platform)
    if not removed:
        logger.info("remove_spec: %s not in store", identifier.full_name)
    return SpecPayload.from_identifier(identifier).model_dump()
