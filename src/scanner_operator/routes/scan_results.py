"""Scan result endpoints used by scan jobs and the UI."""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Response
from fastapi.requests import Request

from scanner_operator.errors import NotFoundError, ReportValidationError, StorageError
from scanner_operator.models import ScanResultBody, raw_member, result_json, results_json

logger = logging.getLogger(__name__)

router = APIRouter()


def _json(content: str) -> Response:
    return Response(content=content, media_type="application/json")


@router.get("/scan-results", response_model=list[ScanResultBody])
async def list_scan_results(request: Request) -> Response:
    """All stored scan results, unordered."""
    store = request.app.state.store
    try:
        results = await asyncio.to_thread(store.list)
    except StorageError:
        logger.exception("Failed to list scan results")
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return _json(results_json(results))


@router.put("/scan-results", response_model=ScanResultBody)
async def put_scan_result(body: ScanResultBody, request: Request) -> Response:
    """Store a scan report and notify subscribers.

    Called by scan jobs once their report is ready. The report must be a
    CycloneDX BOM; anything else is rejected with 400 and neither stored
    nor broadcast. The report is stored as the exact text of the "report"
    member of the request body.
    """
    store = request.app.state.store
    hub = request.app.state.hub

    try:
        report = raw_member(await request.body(), "report")
    except ValueError as e:
        logger.error("Unreadable body for %s: %s", body.image_id, e)
        raise HTTPException(status_code=400, detail="Bad Request")
    if report is None:
        raise HTTPException(status_code=400, detail="Bad Request")

    try:
        result = await asyncio.to_thread(store.upsert, body.image_id, report)
    except ReportValidationError as e:
        logger.error("Rejected report for %s: %s", body.image_id, e)
        raise HTTPException(status_code=400, detail="Bad Request")
    except StorageError:
        logger.exception("Failed to store report for %s", body.image_id)
        raise HTTPException(status_code=500, detail="Internal Server Error")

    await hub.publish(result.image_id)
    logger.info("Broadcast new scan result for %s", result.image_id)

    return _json(result_json(result))


@router.get("/scan-results/{image_id:path}", response_model=ScanResultBody)
async def get_scan_result(image_id: str, request: Request) -> Response:
    """One scan result by image id."""
    store = request.app.state.store
    try:
        result = await asyncio.to_thread(store.get, image_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Not Found")
    except StorageError:
        logger.exception("Failed to get scan result for %s", image_id)
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return _json(result_json(result))


@router.delete("/scan-results/{image_id:path}", status_code=204)
async def delete_scan_result(image_id: str, request: Request) -> Response:
    """Delete a scan result. Deleting an unknown image id also returns 204."""
    store = request.app.state.store
    try:
        await asyncio.to_thread(store.delete, image_id)
    except StorageError:
        logger.exception("Failed to delete scan result for %s", image_id)
        raise HTTPException(status_code=500, detail="Internal Server Error")
    return Response(status_code=204)
