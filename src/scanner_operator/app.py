"""FastAPI application factory."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scanner_operator.config import Settings
from scanner_operator.hub import NotificationHub
from scanner_operator.metrics import observe_duration
from scanner_operator.routes import health, metrics, scan_results, static, subscribe
from scanner_operator.store import ResultStore


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle.

    Resolves the result store from the process runtime when none was
    injected, and stops the notification dispatcher on shutdown.
    """
    if app.state.store is None:
        from scanner_operator.runtime import get_runtime

        runtime = await asyncio.to_thread(get_runtime, app.state.settings)
        app.state.store = runtime.store

    yield

    await app.state.hub.close()


async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are a 400, not FastAPI's default 422."""
    return JSONResponse(
        status_code=400,
        content={"detail": "Bad Request", "errors": jsonable_encoder(exc.errors())},
    )


def create_app(
    settings: Settings | None = None,
    store: ResultStore | None = None,
    hub: NotificationHub | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing).
        store: Optional result store; defaults to the process runtime's.
        hub: Optional notification hub; a new one is created otherwise.

    Returns:
        Configured FastAPI app.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="scanner-operator",
        description="Container image vulnerability scan results",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.store = store
    app.state.hub = hub or NotificationHub(queue_size=settings.subscriber_queue_size)

    app.add_exception_handler(RequestValidationError, _bad_request)
    app.middleware("http")(observe_duration)

    # Routes
    app.include_router(health.router, tags=["health"])
    app.include_router(metrics.router, tags=["metrics"])
    app.include_router(scan_results.router, tags=["scan-results"])
    app.include_router(subscribe.router, tags=["subscribe"])
    app.include_router(static.router, tags=["ui"])

    return app
