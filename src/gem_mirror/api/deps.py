"""Shared dependencies -- services wired onto app.state by create_app."""
from __future__ import annotations

from fastapi import Request

from gem_mirror.config import Settings
from gem_mirror.db.store import SpecStore
from gem_mirror.deps.service import DependencySnapshotService
from gem_mirror.ingest.job import IngestionJob
from gem_mirror.ingest.queue import IngestionQueue


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SpecStore:
    return request.app.state.store


def get_ingestion_job(request: Request) -> IngestionJob:
    return request.app.state.ingestion_job


def get_queue(request: Request) -> IngestionQueue | None:
    return request.app.state.queue


def get_snapshot_service(request: Request) -> DependencySnapshotService:
    return request.app.state.snapshots
