from __future__ import annotations

import contextlib
import logging
import time

from fastapi import FastAPI, Request

from ramptrack.api import api_router
from ramptrack.config import settings
from ramptrack.db import init_db
from ramptrack.services.container import build_services

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("ramptrack")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown lifecycle."""

    init_db()
    logger.info("Database initialized")

    app.state.services = build_services(settings)
    if not settings.opensky_client_id or not settings.opensky_client_secret:
        logger.warning("OpenSky credentials are missing; live fetches will fail over to cache")
    logger.info(
        "Cache coordinator ready for prefixes %s",
        ",".join(settings.allowed_callsign_prefixes),
    )

    try:
        yield
    finally:
        app.state.services.coordinator.reset()
        app.state.services.trails.clear()


app = FastAPI(title="RampTrack Backend", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log basic request information for observability."""

    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP %s %s -> %s (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(api_router)


@app.get("/", summary="Root")
def read_root() -> dict[str, str]:
    """Basic root endpoint for quick verification."""

    return {"message": "RampTrack backend is running"}
