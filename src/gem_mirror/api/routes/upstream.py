"""Passthrough redirects to the upstream gem origin."""
from __future__ import annotations

from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from gem_mirror.api.deps import get_settings
from gem_mirror.config import Settings

router = APIRouter(tags=["upstream"])


def _redirect(settings: Settings, path: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.upstream_url.rstrip('/')}{path}", status_code=302)


@router.get("/quick/Marshal.4.8/{gem_id}")
async def quick_marshal(gem_id: str, settings: Settings = Depends(get_settings)):
    return _redirect(settings, f"/quick/Marshal.4.8/{quote(gem_id)}")


@router.get("/fetch/actual/gem/{gem_id}")
async def fetch_gem(gem_id: str, settings: Settings = Depends(get_settings)):
    return _redirect(settings, f"/fetch/actual/gem/{quote(gem_id)}")


@router.get("/gems/{gem_id}")
async def gem_file(gem_id: str, settings: Settings = Depends(get_settings)):
    return _redirect(settings, f"/gems/{quote(gem_id)}")


@router.get("/specs.4.8.gz")
async def specs_index(settings: Settings = Depends(get_settings)):
    return _redirect(settings, "/specs.4.8.gz")
