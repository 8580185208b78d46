from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.adapters.api.controllers.bookings import router as bookings_router
from src.adapters.api.controllers.eta import router as eta_router
from src.adapters.api.controllers.live import router as live_router
from src.adapters.api.controllers.tracking import router as tracking_router
from src.adapters.api.dependencies import TrackingContainer, build_container
from src.domain.exceptions import (
    CapacityExceeded,
    InvalidInput,
    NotFound,
    TrackingError,
    UpstreamUnavailable,
)

_STATUS_BY_ERROR: tuple[tuple[type[TrackingError], int], ...] = (
    (InvalidInput, 400),
    (NotFound, 404),
    (CapacityExceeded, 409),
    (UpstreamUnavailable, 503),
)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    container: TrackingContainer = app.state.container
    feed_task = None
    if container.feed_ingestion is not None:
        feed_task = asyncio.create_task(container.feed_ingestion.run())
    try:
        yield
    finally:
        if feed_task is not None:
            feed_task.cancel()
            await asyncio.gather(feed_task, return_exceptions=True)
        await container.broadcaster.aclose()


def create_app(container: TrackingContainer | None = None) -> FastAPI:
    app = FastAPI(title="Transit Live", lifespan=_lifespan)
    app.state.container = container or build_container()

    app.include_router(tracking_router)
    app.include_router(eta_router)
    app.include_router(bookings_router)
    app.include_router(live_router)

    app.add_exception_handler(TrackingError, tracking_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


async def tracking_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status = 500
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status = code
            break
    if status >= 500:
        logging.getLogger("uvicorn.error").warning(
            "Upstream failure", extra={"path": str(request.url.path)}, exc_info=exc
        )
    kind = getattr(exc, "kind", "tracking_error")
    return JSONResponse(status_code=status, content={"error": kind, "detail": str(exc)})


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    detail = "; ".join(
        f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in errors
    )
    return JSONResponse(
        status_code=400,
        content={"error": InvalidInput.kind, "detail": detail or "Invalid request"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Ensure API errors are JSON so clients can display them."""

    logging.getLogger("uvicorn.error").exception(
        "Unhandled exception", extra={"path": str(request.url.path)}
    )

    reveal = (os.getenv("TRANSIT_REVEAL_ERRORS") or "").strip().lower() in {
        "1",
        "true",
        "yes",
        "on",
    }

    if reveal or isinstance(exc, (RuntimeError, ValueError)):
        detail = str(exc) or exc.__class__.__name__
    else:
        detail = "Internal Server Error"

    return JSONResponse(
        status_code=500, content={"error": "internal_error", "detail": detail}
    )


app = create_app()
