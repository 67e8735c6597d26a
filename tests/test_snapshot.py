"""Tests for dependency resolution and snapshot encodings."""

import json

import pytest

from gem_mirror.deps.marshal import Symbol, dumps
from gem_mirror.deps.resolver import DependencyEntry, SnapshotRecord, SQLDependencyResolver
from gem_mirror.deps.service import DependencySnapshotService, parse_gem_list
from gem_mirror.specs import DependencySpec, PackageSpec

RECORDS = [
    SnapshotRecord(
        name="foo",
        version="1.0.0",
        platform="ruby",
        dependencies=[DependencyEntry(name="bar", requirement=">= 2.0")],
    ),
]


class SyncResolver:
    def __init__(self, records):
        self.records = records
        self.requested = []

    def resolve(self, names):
        self.requested.append(list(names))
        return [r for r in self.records if r.name in names]


class AsyncResolver(SyncResolver):
    async def resolve(self, names):
        return super().resolve(names)


def test_parse_gem_list():
    assert parse_gem_list("rack, rails,,rack ") == ["rack", "rails"]
    assert parse_gem_list("") == []


class TestDependencySnapshotService:
    async def test_sync_resolver(self):
        resolver = SyncResolver(RECORDS)
        service = DependencySnapshotService(resolver)
        assert await service.snapshot_for(["foo", "foo", "missing"]) == RECORDS
        assert resolver.requested == [["foo", "missing"]]

    async def test_async_resolver(self):
        service = DependencySnapshotService(AsyncResolver(RECORDS))
        assert await service.snapshot_for(["foo"]) == RECORDS

    def test_json_encoding(self):
        assert json.loads(DependencySnapshotService.to_json(RECORDS)) == [
            {
                "name": "foo",
                "version": "1.0.0",
                "platform": "ruby",
                "dependencies": [{"name": "bar", "requirement": ">= 2.0"}],
            }
        ]

    def test_json_empty(self):
        assert DependencySnapshotService.to_json([]) == "[]"

    def test_marshal_encoding_matches_json_content(self):
        expected = dumps([{
            Symbol("name"): "foo",
            Symbol("number"): "1.0.0",
            Symbol("platform"): "ruby",
            Symbol("dependencies"): [["bar", ">= 2.0"]],
        }])
        assert DependencySnapshotService.to_marshal(RECORDS) == expected

    def test_marshal_empty(self):
        assert DependencySnapshotService.to_marshal([]) == b"\x04\x08[\x00"


@pytest.fixture
async def catalog(store):
    """bar 2.1.0 and foo 1.0.0 (runtime bar, development minitest), foo 0.9.0 yanked."""
    await store.upsert_spec(PackageSpec(name="bar", version="2.1.0"))
    await store.upsert_spec(PackageSpec(name="minitest", version="5.20.0"))
    await store.upsert_spec(PackageSpec(name="foo", version="0.9.0"))
    await store.upsert_spec(PackageSpec(name="foo", version="1.0.0", dependencies=[
        DependencySpec(name="bar", requirement=">= 2.0", scope="runtime"),
        DependencySpec(name="minitest", requirement="~> 5.0", scope="development"),
    ]))
    await store.soft_remove("foo", "0.9.0", "ruby")
    return store


class TestSQLDependencyResolver:
    async def test_runtime_dependencies_of_indexed_versions(self, catalog, session_factory):
        records = await SQLDependencyResolver(session_factory).resolve(["foo"])
        assert records == [
            SnapshotRecord(
                name="foo",
                version="1.0.0",
                platform="ruby",
                dependencies=[DependencyEntry(name="bar", requirement=">= 2.0")],
            )
        ]

    async def test_multiple_names_ordered_by_name(self, catalog, session_factory):
        records = await SQLDependencyResolver(session_factory).resolve(["foo", "bar"])
        assert [(r.name, r.version) for r in records] == [("bar", "2.1.0"), ("foo", "1.0.0")]
        assert records[0].dependencies == []

    async def test_unknown_and_empty(self, catalog, session_factory):
        resolver = SQLDependencyResolver(session_factory)
        assert await resolver.resolve(["nope"]) == []
        assert await resolver.resolve([]) == []

    async def test_through_service(self, catalog, session_factory):
        service = DependencySnapshotService(SQLDependencyResolver(session_factory))
        data = json.loads(service.to_json(await service.snapshot_for(["foo"])))
        assert data[0]["dependencies"] == [{"name": "bar", "requirement": ">= 2.0"}]
