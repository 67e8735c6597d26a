"""Service configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration loaded from env vars or .env file."""

    # Stores
    database_url: str = "sqlite+aiosqlite:///gem_mirror.db"
    follower_database_url: str | None = None
    create_schema: bool = False

    # Webhook shared secret (exact match against the payload's rubygems_token)
    rubygems_token: str | None = None

    # Upstream origin
    upstream_url: str = "https://www.rubygems.org"
    download_url: str = "https://rubygems.org"
    fetch_timeout_seconds: float = 30.0
    max_metadata_bytes: int = 4 * 1024 * 1024

    # Background ingestion
    async_ingest: bool = False
    ingest_workers: int = 2
    ingest_max_attempts: int = 3
    ingest_max_tracked_jobs: int = 1000

    # Metrics sink credentials (consumed by external middleware)
    librato_metrics_user: str | None = None
    librato_metrics_token: str | None = None

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 8000

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

