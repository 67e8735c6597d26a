"""Gem identifiers and parsed gem specifications."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from gem_mirror.errors import ValidationError

RUBY_PLATFORM = "ruby"

_NAME_RE = re.compile(r"^[A-Za-z0-9._-]+$")
_PLATFORM_RE = re.compile(r"^[A-Za-z0-9._-]+$")
# Gem::Version::ANCHORED_VERSION_PATTERN
_VERSION_RE = re.compile(r"^\s*[0-9]+(?:\.[0-9a-zA-Z]+)*(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?\s*$")


def full_name(name: str, version: str, platform: str = RUBY_PLATFORM) -> str:
    """Canonical artifact name, e.g. ``nokogiri-1.16.0-x86_64-linux``."""
    if platform and platform != RUBY_PLATFORM:
        return f"{name}-{version}-{platform}"
    return f"{name}-{version}"


@dataclass(frozen=True)
class GemIdentifier:
    """A validated (name, version, platform) triple from a webhook."""

    name: str
    version: str
    platform: str = RUBY_PLATFORM
    prerelease: bool = False

    @classmethod
    def build(cls, name: str, version: str, platform: str = RUBY_PLATFORM, prerelease: bool = False) -> GemIdentifier:
        """Validate raw fields, raising ValidationError on the first bad one."""
        if not isinstance(name, str) or not _NAME_RE.match(name):
            raise ValidationError("Invalid spec name given")
        if not isinstance(version, str) or not _VERSION_RE.match(version):
            raise ValidationError(f"Malformed version number string {version}")
        if not isinstance(platform, str) or not _PLATFORM_RE.match(platform):
            raise ValidationError("Invalid spec platform given")
        return cls(name=name, version=version.strip(), platform=platform, prerelease=bool(prerelease))

    @property
    def full_name(self) -> str:
        return full_name(self.name, self.version, self.platform)


@dataclass
class DependencySpec:
    name: str
    requirement: str = ">= 0"
    scope: str = "runtime"


@dataclass
class PackageSpec:
    """Structured view of a gem's metadata descriptor."""

    name: str
    version: str
    platform: str = RUBY_PLATFORM
    authors: str = ""
    description: str | None = None
    summary: str | None = None
    dependencies: list[DependencySpec] = field(default_factory=list)

    @property
    def full_name(self) -> str:
        return full_name(self.name, self.version, self.platform)
