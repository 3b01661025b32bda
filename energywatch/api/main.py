"""
FastAPI application entry point for the energywatch API.

Settings are loaded and validated at startup. USER_TOKENS are parsed into a
BearerAuth instance, the database engine and snapshot cache are created,
and the background ingestion scheduler is started; all of them are stored
on app.state for route handlers.

Errors are mapped to terse responses here: DeviceNotFoundError becomes a
404, storage failures (including any SQLAlchemyError) become a 500 with no
internal detail, after being logged with request context.

CHANGELOG:
- 2026-10-16: Include the calling user in storage failure logs
- 2026-10-15: Start/stop the ingestion scheduler in the lifespan
- 2026-10-14: Map storage failures to 500 and missing devices to 404
- 2026-10-13: Register data and devices routers
- 2026-10-11: Initial creation
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from energywatch.api.data import router as data_router
from energywatch.api.devices import router as devices_router
from energywatch.api.health import router as health_router
from energywatch.auth.bearer import BearerAuth, parse_user_tokens
from energywatch.cache.redis_client import SnapshotCache
from energywatch.config import Settings
from energywatch.db.session import dispose_engine, get_session_factory, init_engine
from energywatch.exceptions import DeviceNotFoundError, StorageFailureError
from energywatch.logging_config import configure_logging
from energywatch.services.scheduler import IngestionScheduler

logger = logging.getLogger(__name__)

_CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]


def _load_settings() -> Settings:
    """Load and validate settings at startup.

    Raises:
        RuntimeError: If a required setting is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as exc:
        fields = ", ".join(
            str(err["loc"][0]).upper() for err in exc.errors() if err["loc"]
        )
        raise RuntimeError(f"Invalid or missing configuration: {fields}") from exc


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire dependencies, run the scheduler.

    Startup:
        - Validates settings and parses USER_TOKENS.
        - Initialises the database engine and snapshot cache.
        - Starts the ingestion scheduler unless INGEST_ENABLED is false.

    Shutdown:
        - Stops the scheduler (waiting for an in-flight tick).
        - Disposes the database engine.
    """
    settings = _load_settings()
    app.state.settings = settings

    token_map = parse_user_tokens(settings.user_tokens)
    if not token_map:
        raise RuntimeError(
            "USER_TOKENS parsed but contains no valid token:user_id entries"
        )
    app.state.auth = BearerAuth(token_map)
    logger.info("Parsed %d user token(s) from USER_TOKENS", len(token_map))

    init_engine(settings.database_url)
    app.state.cache = SnapshotCache(settings.redis_url, settings.cache_ttl_s)

    scheduler: IngestionScheduler | None = None
    if settings.ingest_enabled:
        scheduler = IngestionScheduler(
            get_session_factory(),
            interval_s=settings.ingest_interval_s,
            energy_interval_h=settings.energy_interval_h,
            cache=app.state.cache,
        )
        scheduler.start()
    else:
        logger.info("Ingestion scheduler disabled (INGEST_ENABLED=false)")
    app.state.scheduler = scheduler

    logger.info("Settings validated, energywatch API ready")
    yield

    logger.info("energywatch API shutting down")
    if scheduler is not None:
        await scheduler.stop()
    await dispose_engine()


app = FastAPI(
    title="energywatch API",
    description="Telemetry ingestion and query API for simulated energy devices.",
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(health_router)
app.include_router(data_router)
app.include_router(devices_router)


@app.exception_handler(DeviceNotFoundError)
async def device_not_found_handler(
    request: Request, exc: DeviceNotFoundError
) -> JSONResponse:
    """Return 404 for devices that are missing or owned by someone else."""
    logger.info(
        "Device %s not found for %s %s",
        exc.device_id,
        request.method,
        request.url.path,
    )
    return JSONResponse(status_code=404, content={"detail": "Device not found"})


@app.exception_handler(StorageFailureError)
@app.exception_handler(SQLAlchemyError)
async def storage_failure_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log storage failures with context and return a generic 500."""
    logger.error(
        "Storage failure on %s %s (user=%s)",
        request.method,
        request.url.path,
        getattr(request.state, "user_id", None),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Server error"})


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}


def main() -> None:
    """Process entrypoint: JSON logging, then serve the app with uvicorn."""
    configure_logging()
    settings = _load_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
