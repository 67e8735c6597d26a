"""Dependency resolvers: turn requested gem names into snapshot records."""

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from gem_mirror.db.models import Dependency, Package, PackageVersion
from gem_mirror.errors import PersistError

RUNTIME_SCOPE = "runtime"


@dataclass
class DependencyEntry:
    name: str
    requirement: str


@dataclass
class SnapshotRecord:
    """One indexed version of a requested gem and its runtime dependencies."""

    name: str
    version: str
    platform: str
    dependencies: list[DependencyEntry] = field(default_factory=list)


class DependencyResolver(Protocol):
    """Anything that maps gem names to snapshot records, sync or async."""

    def resolve(
        self, names: Sequence[str]
    ) -> list[SnapshotRecord] | Awaitable[list[SnapshotRecord]]: ...


class SQLDependencyResolver:
    """Reads indexed versions and their runtime dependencies from the catalog.

    Bound to the read replica's session factory; never writes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def resolve(self, names: Sequence[str]) -> list[SnapshotRecord]:
        if not names:
            return []

        versions_stmt = (
            select(PackageVersion.id, Package.name, PackageVersion.number, PackageVersion.platform)
            .join(Package, PackageVersion.package_id == Package.id)
            .where(Package.name.in_(list(names)), PackageVersion.indexed.is_(True))
            .order_by(Package.name, PackageVersion.id)
        )
        target = aliased(Package)

        try:
            async with self._session_factory() as session:
                version_rows = (await session.execute(versions_stmt)).all()
                if not version_rows:
                    return []

                records: dict[int, SnapshotRecord] = {
                    row.id: SnapshotRecord(name=row.name, version=row.number, platform=row.platform)
                    for row in version_rows
                }
                deps_stmt = (
                    select(Dependency.version_id, target.name, Dependency.requirements)
                    .join(target, Dependency.target_package_id == target.id)
                    .where(Dependency.version_id.in_(list(records)), Dependency.scope == RUNTIME_SCOPE)
                    .order_by(Dependency.version_id, Dependency.id)
                )
                for version_id, dep_name, requirements in (await session.execute(deps_stmt)).all():
                    records[version_id].dependencies.append(
                        DependencyEntry(name=dep_name, requirement=requirements)
                    )
        except SQLAlchemyError as e:
            raise PersistError("Dependency lookup failed") from e

        return list(records.values())
