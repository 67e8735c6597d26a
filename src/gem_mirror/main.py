"""Main application entry point."""

from __future__ import annotations

import logging

import uvicorn

from gem_mirror.api.app import create_app
from gem_mirror.config import Settings

settings = Settings()  # type: ignore[call-arg]  # pydantic-settings loads from env

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")

app = create_app(settings)


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
