"""SpecStore: transactional persistence for gems, versions and dependencies.

The store holds only a session factory. Every operation runs in its own
session, so nothing about an open connection outlives a call.

At most one version row per (package, number, platform) is guaranteed by the
unique constraint; inserts use ON CONFLICT DO NOTHING so concurrent writers,
in this process or another, turn into no-ops instead of duplicates.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gem_mirror.db.models import Dependency, Package, PackageVersion
from gem_mirror.errors import PersistError
from gem_mirror.specs import PackageSpec

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _insert_ignoring_conflict(session: AsyncSession, model: type, index_elements: list[str], **values):
    dialect = session.bind.dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise PersistError(f"Unsupported database dialect: {dialect}")
    table = model.__table__
    return insert(table).values(**values).on_conflict_do_nothing(index_elements=index_elements)


class SpecStore:
    """Existence checks, idempotent spec insertion and soft removal."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def exists(self, name: str, version: str, platform: str | None = None) -> bool:
        """True iff a version row matches name and number (and platform, when given)."""
        stmt = (
            select(PackageVersion.id)
            .join(Package, PackageVersion.package_id == Package.id)
            .where(Package.name == name, PackageVersion.number == version)
        )
        if platform is not None:
            stmt = stmt.where(PackageVersion.platform == platform)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt.limit(1))
                return result.first() is not None
        except SQLAlchemyError as e:
            raise PersistError(f"Existence check failed for {name}-{version}") from e

    async def upsert_spec(self, spec: PackageSpec | None) -> int | None:
        """Insert gem, version and known dependencies in one transaction.

        Returns the new version id, or None when the version row already
        existed (another writer got there first). Dependencies on gems not
        yet in the store are skipped.
        """
        if spec is None or not spec.name or not spec.version:
            raise PersistError("Failed to load spec")

        try:
            async with self._session_factory.begin() as session:
                package_id = await self._ensure_package(session, spec.name)

                stmt = _insert_ignoring_conflict(
                    session,
                    PackageVersion,
                    ["package_id", "number", "platform"],
                    package_id=package_id,
                    number=spec.version,
                    platform=spec.platform,
                    authors=spec.authors,
                    description=spec.description,
                    summary=spec.summary,
                    full_name=spec.full_name,
                    indexed=True,
                    prerelease=False,
                    latest=True,
                ).returning(PackageVersion.__table__.c.id)
                version_id = (await session.execute(stmt)).scalar_one_or_none()
                if version_id is None:
                    logger.info("Version %s already present, skipping insert", spec.full_name)
                    return None

                for dep in spec.dependencies:
                    target_id = await self._package_id(session, dep.name)
                    if target_id is None:
                        logger.debug("Dropping dependency %s of %s: gem not in store", dep.name, spec.full_name)
                        continue
                    session.add(Dependency(
                        version_id=version_id,
                        target_package_id=target_id,
                        requirements=dep.requirement,
                        scope=dep.scope,
                    ))
        except SQLAlchemyError as e:
            raise PersistError(f"Failed to persist {spec.full_name}") from e

        return version_id

    async def soft_remove(self, name: str, version: str, platform: str) -> bool:
        """Mark a version unindexed. Returns whether a row matched."""
        package_ids = select(Package.id).where(Package.name == name).scalar_subquery()
        stmt = (
            update(PackageVersion)
            .where(
                PackageVersion.package_id == package_ids,
                PackageVersion.number == version,
                PackageVersion.platform == platform,
            )
            .values(indexed=False)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._session_factory.begin() as session:
                result = await session.execute(stmt)
                return result.rowcount > 0
        except SQLAlchemyError as e:
            raise PersistError(f"Failed to remove {name}-{version}") from e

    async def _package_id(self, session: AsyncSession, name: str) -> int | None:
        result = await session.execute(select(Package.id).where(Package.name == name))
        return result.scalar_one_or_none()

    async def _ensure_package(self, session: AsyncSession, name: str) -> int:
        await session.execute(
            _insert_ignoring_conflict(session, Package, ["name"], name=name, downloads=0)
        )
        package_id = await self._package_id(session, name)
        if package_id is None:
            raise PersistError(f"Package {name} missing after insert")
        return package_id
