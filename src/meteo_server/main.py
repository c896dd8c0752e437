"""
src/meteo_server/main.py

FastAPI entry point for the meteo server.

Features:
- Sensor ingestion with server-assigned UTC timestamps
- Recent history (trailing 30 days), overall or per location
- Current + rolling statistics per location
- Uniform JSON error body: {"error": "..."}
- One bounded connection pool per process, injected via app.state
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from meteo_server import crud
from meteo_server.db import Database, build_engine, ensure_tables_exist, get_db
from meteo_server.errors import ApiError, ConfigError, DatabaseError, error_response
from meteo_server.pidfile import remove_pid_file, write_pid_file
from meteo_server.schemas import LocationStatsResponse, Measurement, MeasurementRecord
from meteo_server.settings import Settings, get_settings


# -------------------------------------------------
# Logging configuration
# -------------------------------------------------
logger = logging.getLogger("meteo_server")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


# -------------------------------------------------
# Error handlers
# -------------------------------------------------
async def handle_api_error(_request: Request, exc: ApiError) -> JSONResponse:
    if isinstance(exc, DatabaseError):
        logger.error("%s", exc)
    return error_response(exc)


async def handle_validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed bodies before any handler runs."""
    problems = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request: " + "; ".join(problems)},
    )


# -------------------------------------------------
# Routes
# -------------------------------------------------
router = APIRouter()


@router.get("/", tags=["meta"])
def root():
    return {"status": "ok", "docs": "/docs"}


@router.get("/health", tags=["meta"])
def health():
    return {"status": "healthy"}


@router.post("/push-measures", response_model=Measurement, tags=["measurements"])
def push_measures(measurement: Measurement, db: Session = Depends(get_db)) -> Measurement:
    # any client-supplied timestamp is discarded
    stamped = measurement.model_copy(update={"timestamp": crud.utc_now()})
    return crud.add_measurement(db, stamped)


@router.get("/measurements", response_model=List[MeasurementRecord], tags=["measurements"])
def get_measurements(db: Session = Depends(get_db)) -> List[MeasurementRecord]:
    return crud.list_measurements(db)


@router.get(
    "/measurements/{location}",
    response_model=List[MeasurementRecord],
    tags=["measurements"],
)
def get_measurements_by_location(location: str, db: Session = Depends(get_db)) -> List[MeasurementRecord]:
    # free-form: unknown locations give an empty list, not an error
    return crud.list_measurements(db, location=location)


@router.get("/stats", response_model=List[LocationStatsResponse], tags=["stats"])
def get_stats(db: Session = Depends(get_db)) -> List[LocationStatsResponse]:
    return [s.to_response() for s in crud.get_location_stats(db)]


# -------------------------------------------------
# Application factory
# -------------------------------------------------
def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    if database is None:
        database = Database.from_engine(build_engine(settings.database_url, settings.pool_size))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("[startup] Ensuring measurements table exists...")
        ensure_tables_exist(database.engine)
        try:
            yield
        finally:
            logger.info("[shutdown] Releasing connection pool.")
            database.dispose()

    app = FastAPI(title="Meteo Server", version="0.1.0", lifespan=lifespan)
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ApiError, handle_api_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.include_router(router)
    return app


# -------------------------------------------------
# Process entry point
# -------------------------------------------------
def run() -> None:
    try:
        settings = get_settings()
    except ConfigError as exc:
        configure_logging()
        logger.error("%s", exc)
        raise SystemExit(1)

    configure_logging(settings.log_level)
    app = create_app(settings)

    if settings.pid_file:
        try:
            write_pid_file(settings.pid_file)
        except OSError as exc:
            logger.error("Could not create PID file %s: %s", settings.pid_file, exc)
            raise SystemExit(1)

    logger.info("Starting server at %s:%d", settings.host, settings.port)
    try:
        uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    finally:
        if settings.pid_file:
            remove_pid_file(settings.pid_file)


if __name__ == "__main__":
    run()
