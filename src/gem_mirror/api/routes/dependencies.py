"""Dependency snapshot endpoints (Marshal and JSON)."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from gem_mirror.api.deps import get_snapshot_service
from gem_mirror.deps.service import DependencySnapshotService, parse_gem_list

router = APIRouter(prefix="/api/v1", tags=["dependencies"])


@router.get("/dependencies")
async def dependencies_marshal(
    gems: str | None = None,
    service: DependencySnapshotService = Depends(get_snapshot_service),
):
    """Snapshot in the legacy Bundler Marshal encoding."""
    if gems is None:
        return Response(status_code=200)
    records = await service.snapshot_for(parse_gem_list(gems))
    return Response(content=service.to_marshal(records), media_type="application/octet-stream")


@router.get("/dependencies.json")
async def dependencies_json(
    gems: str | None = None,
    service: DependencySnapshotService = Depends(get_snapshot_service),
):
    """Snapshot as a JSON array of {name, version, platform, dependencies}."""
    if gems is None:
        return Response(status_code=200)
    records = await service.snapshot_for(parse_gem_list(gems))
    return Response(content=service.to_json(records), media_type="application/json")
