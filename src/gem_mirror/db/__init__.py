"""Catalog storage: engine, models and SpecStore."""

from gem_mirror.db.models import Base, Dependency, Package, PackageVersion
from gem_mirror.db.store import SpecStore

__all__ = [
    "Base",
    "Dependency",
    "Package",
    "PackageVersion",
    "SpecStore",
]
