"""Health and version endpoints."""

from typing import Any

from fastapi import APIRouter

from relaycode import __version__
from relaycode.web.core.config import API_PREFIX

router = APIRouter(tags=["meta"])


@router.get("/health")
async def health() -> dict[str, Any]:
    return {"status": "ok"}


@router.get(f"{API_PREFIX}/version")
async def version() -> dict[str, Any]:
    return {"name": "relaycode", "version": __version__}
