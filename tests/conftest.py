"""Shared fixtures: temporary SQLite catalog, gem metadata and archive builders."""

from __future__ import annotations

import gzip
import io
import tarfile

import pytest

from gem_mirror.db.engine import create_engine, create_schema, get_session_factory
from gem_mirror.db.store import SpecStore
from gem_mirror.errors import FetchError
from gem_mirror.specs import full_name


def _requirement_yaml(constraints: list[tuple[str, str]], indent: str) -> str:
    lines = [f"{indent}requirements:"]
    for op, version in constraints:
        lines.append(f'{indent}- - "{op}"')
        lines.append(f"{indent}  - !ruby/object:Gem::Version")
        lines.append(f"{indent}    version: '{version}'")
    return "\n".join(lines)


def build_metadata(
    name: str = "foo",
    version: str = "1.0.0",
    platform: str = "ruby",
    dependencies: list[tuple[str, list[tuple[str, str]], str]] | None = None,
    summary: str = "Does foo things",
) -> bytes:
    """Render a gem metadata document the way RubyGems writes it."""
    dep_blocks = []
    for dep_name, constraints, dep_type in dependencies or []:
        dep_blocks.append(
            f"- !ruby/object:Gem::Dependency\n"
            f"  name: {dep_name}\n"
            f"  requirement: !ruby/object:Gem::Requirement\n"
            f"{_requirement_yaml(constraints, '    ')}\n"
            f"  type: :{dep_type}\n"
            f"  prerelease: false\n"
            f"  version_requirements: !ruby/object:Gem::Requirement\n"
            f"{_requirement_yaml(constraints, '    ')}"
        )
    deps_yaml = "dependencies:\n" + "\n".join(dep_blocks) if dep_blocks else "dependencies: []"

    doc = f"""--- !ruby/object:Gem::Specification
name: {name}
version: !ruby/object:Gem::Version
  version: {version}
platform: {platform}
authors:
- Jane Doe
- John Roe
autorequire:
bindir: bin
cert_chain: []
date: 2024-01-15 00:00:00.000000000 Z
{deps_yaml}
description: The {name} gem.
email:
executables: []
extensions: []
extra_rdoc_files: []
files:
- lib/{name}.rb
homepage: https://example.com/{name}
licenses:
- MIT
metadata: {{}}
post_install_message:
rdoc_options: []
require_paths:
- lib
required_ruby_version: !ruby/object:Gem::Requirement
{_requirement_yaml([(">=", "0")], "  ")}
required_rubygems_version: !ruby/object:Gem::Requirement
{_requirement_yaml([(">=", "0")], "  ")}
requirements: []
rubygems_version: 3.5.3
signing_key:
specification_version: 4
summary: {summary}
test_files: []
"""
    return doc.encode("utf-8")


def build_gem_archive(metadata: bytes | None, extra_members: dict[str, bytes] | None = None) -> bytes:
    """Pack a .gem: an uncompressed tar holding metadata.gz and friends."""
    members: dict[str, bytes] = {}
    if metadata is not None:
        members["metadata.gz"] = gzip.compress(metadata)
    members["data.tar.gz"] = gzip.compress(b"")
    members.update(extra_members or {})

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        for member_name, payload in members.items():
            info = tarfile.TarInfo(member_name)
            info.size = len(payload)
            tar.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


class FakeFetcher:
    """Serves metadata from memory, keyed by artifact full name."""

    def __init__(self, descriptors: dict[str, bytes] | None = None) -> None:
        self.descriptors = dict(descriptors or {})
        self.calls: list[str] = []
        self.failures: list[Exception] = []

    def add(self, metadata: bytes, name: str, version: str, platform: str = "ruby") -> None:
        self.descriptors[full_name(name, version, platform)] = metadata

    async def fetch(self, name: str, version: str, platform: str) -> bytes:
        key = full_name(name, version, platform)
        self.calls.append(key)
        if self.failures:
            raise self.failures.pop(0)
        if key not in self.descriptors:
            raise FetchError(f"GET {key}.gem returned 404")
        return self.descriptors[key]

    async def close(self) -> None:
        pass


@pytest.fixture
def make_metadata():
    return build_metadata


@pytest.fixture
def make_gem_archive():
    return build_gem_archive


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory(db_engine)


@pytest.fixture
def store(session_factory):
    return SpecStore(session_factory)
