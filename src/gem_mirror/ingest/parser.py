"""Descriptor parsing: gem metadata YAML into a PackageSpec.

Gem metadata is YAML carrying Ruby object tags
(``!ruby/object:Gem::Specification``, ``!ruby/object:Gem::Version`` ...).
The loader maps every such tag onto plain mappings, sequences and scalars, so
a descriptor can never construct arbitrary objects. The plain document is
then checked against ``schemas/gemspec.schema.json`` before any field is read.
"""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path

import jsonschema
import yaml

from gem_mirror.errors import ParseError
from gem_mirror.specs import RUBY_PLATFORM, DependencySpec, PackageSpec

SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "gemspec.schema.json"

DEFAULT_REQUIREMENT = ">= 0"


class DescriptorLoader(yaml.SafeLoader):
    """SafeLoader that treats Ruby-tagged nodes as untyped data."""


def _construct_ruby_node(loader: DescriptorLoader, tag_suffix: str, node: yaml.Node):
    if isinstance(node, yaml.MappingNode):
        return loader.construct_mapping(node, deep=True)
    if isinstance(node, yaml.SequenceNode):
        return loader.construct_sequence(node, deep=True)
    return loader.construct_scalar(node)


def _construct_binary(loader: DescriptorLoader, node: yaml.Node) -> str:
    raw = loader.construct_scalar(node)
    try:
        return base64.b64decode(raw).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError) as e:
        raise yaml.constructor.ConstructorError(None, None, f"invalid !binary scalar: {e}", node.start_mark)


DescriptorLoader.add_multi_constructor("!ruby/", _construct_ruby_node)
DescriptorLoader.add_constructor("!binary", _construct_binary)


def _load_schema() -> dict:
    with open(SCHEMA_PATH) as f:
        return json.load(f)


def _version_string(value) -> str:
    if isinstance(value, dict):
        value = value.get("version")
    if value is None:
        raise ParseError("Version is missing")
    return str(value).strip()


def _requirement_string(value) -> str:
    """Render a Gem::Requirement the way Ruby's #to_s does: ``op v, op v``."""
    if value is None:
        return DEFAULT_REQUIREMENT
    if isinstance(value, str):
        return value or DEFAULT_REQUIREMENT
    if not isinstance(value, dict):
        raise ParseError(f"Malformed requirement: {value!r}")
    pairs = value.get("requirements") or []
    if not isinstance(pairs, list):
        raise ParseError(f"Malformed requirement list: {pairs!r}")
    parts: list[str] = []
    for pair in pairs:
        if not isinstance(pair, list) or len(pair) != 2:
            raise ParseError(f"Malformed requirement entry: {pair!r}")
        op, version = pair
        parts.append(f"{op} {_version_string(version)}")
    return ", ".join(parts) or DEFAULT_REQUIREMENT


def _scope(value) -> str:
    if not value:
        return "runtime"
    return str(value).lstrip(":")


def _authors(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return ", ".join(a for a in value if a)


class DescriptorParser:
    """Parses raw descriptor bytes into a PackageSpec, raising ParseError."""

    def __init__(self, schema: dict | None = None) -> None:
        self._schema = schema or _load_schema()

    def load(self, data: bytes) -> dict:
        """Safe-load and schema-validate the document without interpreting it."""
        try:
            document = yaml.load(data, Loader=DescriptorLoader)
        except yaml.YAMLError as e:
            raise ParseError(f"Descriptor is not valid YAML: {e}") from e

        if not isinstance(document, dict):
            raise ParseError("Failed to load spec: descriptor is not a mapping")

        try:
            jsonschema.validate(instance=document, schema=self._schema)
        except jsonschema.ValidationError as e:
            raise ParseError(f"Descriptor {e.json_path}: {e.message}") from e
        return document

    def parse(self, data: bytes) -> PackageSpec:
        document = self.load(data)

        dependencies = [
            DependencySpec(
                name=dep["name"],
                requirement=_requirement_string(dep.get("requirement") or dep.get("version_requirements")),
                scope=_scope(dep.get("type")),
            )
            for dep in document["dependencies"]
        ]

        version = _version_string(document["version"])
        if not version:
            raise ParseError("Descriptor has an empty version")

        return PackageSpec(
            name=document["name"],
            version=version,
            platform=document.get("platform") or RUBY_PLATFORM,
            authors=_authors(document.get("authors")),
            description=document.get("description"),
            summary=document.get("summary"),
            dependencies=dependencies,
        )
