"""Health check endpoints for Kubernetes probes."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter
from fastapi.requests import Request

from scanner_operator.errors import StorageError

router = APIRouter()


@router.get("/healthz")
async def health() -> dict:
    """Liveness probe. Returns 200 if the process is running."""
    return {"status": "ok"}


@router.get("/readyz")
async def ready(request: Request) -> dict:
    """Readiness probe. Returns 200 if the database is reachable."""
    store = request.app.state.store
    ping = getattr(store, "ping", None)
    if ping is None:
        return {"status": "ready"}
    try:
        await asyncio.to_thread(ping)
        return {"status": "ready"}
    except StorageError as e:
        return {"status": "not ready", "error": str(e)}
