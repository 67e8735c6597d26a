"""Background ingestion job status."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from gem_mirror.api.deps import get_queue
from gem_mirror.ingest.queue import IngestionQueue

router = APIRouter(prefix="/api/v1", tags=["jobs"])


@router.get("/jobs/{job_id}")
async def get_job(job_id: str, queue: IngestionQueue | None = Depends(get_queue)):
    if queue is None:
        raise HTTPException(status_code=404, detail="Background ingestion is disabled")
    queued = queue.get(job_id)
    if queued is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return queued.as_dict()
