"""Artifact fetching: download a .gem and pull out its metadata descriptor.

A .gem is a plain tar archive holding ``metadata.gz``, ``data.tar.gz`` and
``checksums.yaml.gz``. Only the metadata member is read; nothing is extracted
to disk by name, so hostile member paths never reach the filesystem.
"""

from __future__ import annotations

import asyncio
import gzip
import logging
import tarfile
import tempfile
import zlib
from pathlib import Path

import aiofiles
import httpx

from gem_mirror.errors import FetchError
from gem_mirror.specs import full_name as artifact_name

logger = logging.getLogger(__name__)

METADATA_MEMBER = "metadata.gz"


class ArtifactFetcher:
    """Retrieves gem archives from the origin. No retries; callers decide."""

    def __init__(
        self,
        base_url: str = "https://rubygems.org",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_metadata_bytes: int = 4 * 1024 * 1024,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_metadata_bytes = max_metadata_bytes
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def archive_url(self, name: str, version: str, platform: str) -> str:
        return f"{self.base_url}/downloads/{artifact_name(name, version, platform)}.gem"

    async def fetch(self, name: str, version: str, platform: str) -> bytes:
        """Download the archive and return the decompressed metadata bytes."""
        url = self.archive_url(name, version, platform)
        logger.info("Processing: %s", artifact_name(name, version, platform))

        with tempfile.TemporaryDirectory(prefix="gem-mirror-") as workdir:
            archive_path = Path(workdir) / "artifact.gem"
            await self._download(url, archive_path)
            return await asyncio.to_thread(self._read_metadata, archive_path)

    async def _download(self, url: str, dest: Path) -> None:
        try:
            async with self._client.stream("GET", url) as resp:
                if resp.status_code != 200:
                    raise FetchError(f"GET {url} returned {resp.status_code}")
                async with aiofiles.open(dest, "wb") as f:
                    async for chunk in resp.aiter_bytes():
                        await f.write(chunk)
        except httpx.HTTPError as e:
            raise FetchError(f"GET {url} failed: {e}") from e
        except OSError as e:
            raise FetchError(f"Could not write {dest.name}: {e}") from e

    def _read_metadata(self, archive_path: Path) -> bytes:
        try:
            with tarfile.open(archive_path, mode="r:") as tar:
                try:
                    member = tar.getmember(METADATA_MEMBER)
                except KeyError:
                    raise FetchError(f"{METADATA_MEMBER} missing from archive") from None
                fileobj = tar.extractfile(member)
                if fileobj is None:
                    raise FetchError(f"{METADATA_MEMBER} is not a regular file")
                with gzip.GzipFile(fileobj=fileobj) as gz:
                    data = gz.read(self.max_metadata_bytes + 1)
        except tarfile.TarError as e:
            raise FetchError(f"Unreadable gem archive: {e}") from e
        except (OSError, EOFError, zlib.error) as e:
            raise FetchError(f"Could not decompress {METADATA_MEMBER}: {e}") from e

        if len(data) > self.max_metadata_bytes:
            raise FetchError(f"{METADATA_MEMBER} exceeds {self.max_metadata_bytes} bytes")
        return data

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
