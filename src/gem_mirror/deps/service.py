"""DependencySnapshotService: resolver wrapper with two response encodings."""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import Iterable

from gem_mirror.deps import marshal
from gem_mirror.deps.marshal import Symbol
from gem_mirror.deps.resolver import DependencyResolver, SnapshotRecord

logger = logging.getLogger(__name__)


def parse_gem_list(raw: str) -> list[str]:
    """Split a ``gems=a,b,c`` query value, dropping blanks and duplicates."""
    return list(dict.fromkeys(n.strip() for n in raw.split(",") if n.strip()))


class DependencySnapshotService:
    """Computes a snapshot once and renders it as JSON or Ruby Marshal."""

    def __init__(self, resolver: DependencyResolver) -> None:
        self.resolver = resolver

    async def snapshot_for(self, names: Iterable[str]) -> list[SnapshotRecord]:
        unique = list(dict.fromkeys(names))
        result = self.resolver.resolve(unique)
        if inspect.isawaitable(result):
            result = await result
        records = list(result)
        logger.debug("Resolved %d records for %d gems", len(records), len(unique))
        return records

    @staticmethod
    def to_json(records: list[SnapshotRecord]) -> str:
        return json.dumps([
            {
                "name": r.name,
                "version": r.version,
                "platform": r.platform,
                "dependencies": [
                    {"name": d.name, "requirement": d.requirement} for d in r.dependencies
                ],
            }
            for r in records
        ])

    @staticmethod
    def to_marshal(records: list[SnapshotRecord]) -> bytes:
        """Legacy Bundler shape: symbol-keyed hashes, dependencies as pairs."""
        return marshal.dumps([
            {
                Symbol("name"): r.name,
                Symbol("number"): r.version,
                Symbol("platform"): r.platform,
                Symbol("dependencies"): [[d.name, d.requirement] for d in r.dependencies],
            }
            for r in records
        ])
