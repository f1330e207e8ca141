"""Static UI shell and assets."""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"

router = APIRouter()


@router.get("/", include_in_schema=False)
async def index() -> FileResponse:
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")


@router.get("/bundle.js", include_in_schema=False)
async def bundle() -> FileResponse:
    return FileResponse(STATIC_DIR / "bundle.js", media_type="text/javascript")


@router.get("/output.css", include_in_schema=False)
async def stylesheet() -> FileResponse:
    return FileResponse(STATIC_DIR / "output.css", media_type="text/css")
