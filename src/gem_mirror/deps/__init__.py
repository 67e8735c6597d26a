"""Dependency snapshots: resolvers and response encodings."""

from gem_mirror.deps.resolver import (
    DependencyEntry,
    DependencyResolver,
    SnapshotRecord,
    SQLDependencyResolver,
)
from gem_mirror.deps.service import DependencySnapshotService

__all__ = [
    "DependencyEntry",
    "DependencyResolver",
    "DependencySnapshotService",
    "SQLDependencyResolver",
    "SnapshotRecord",
]
