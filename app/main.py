from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_scratch_sweep_settings, get_upload_settings
from db.repositories.storage import ScratchStorage
from db.session import Database

logger = logging.getLogger(__name__)


def _validate_env(*, require_database_url: bool = True) -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing variable so the operator can
    fix all problems in one restart cycle. Empty strings count as missing.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    if require_database_url:
        database_url = os.getenv("DATABASE_URL", "").strip()
        cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
        local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
        if not (database_url or cloud_database_url or local_database_url):
            errors.append(
                "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL "
                "or LOCAL_DATABASE_URL."
            )

    # --- Token verification ---------------------------------------------
    if not os.getenv("JWT_SECRET", "").strip():
        errors.append("JWT_SECRET is not set. Bearer tokens cannot be verified without it.")

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_schema(database: Database) -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate; a mismatch aborts startup.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base

    actual: set[str] = set(sa_inspect(database.engine).get_table_names())
    missing = set(Base.metadata.tables.keys()) - actual

    if missing:
        logger.critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------


def _error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _register_error_handlers(application: FastAPI) -> None:
    """Every failure leaves the API as ``{"error": <message>}``."""

    @application.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @application.exception_handler(RequestValidationError)
    async def _validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = first.get("msg", "Invalid request")
        return _error_response(
            status.HTTP_400_BAD_REQUEST,
            f"{location}: {message}" if location else message,
        )

    @application.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(
    *,
    database: Database | None = None,
    scratch_storage: ScratchStorage | None = None,
    enable_scheduler: bool | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    ``database`` and ``scratch_storage`` may be injected; otherwise they are
    built from the environment when the app starts.
    """

    _validate_env(require_database_url=database is None)
    _configure_logging()

    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        """Open the process-wide handles and start the scheduler; release them on exit."""
        db_handle = database or Database.from_env()
        if scratch_storage is not None:
            scratch = scratch_storage
        else:
            upload_settings = get_upload_settings()
            scratch = ScratchStorage(upload_settings.scratch_dir, chunk_bytes=upload_settings.chunk_bytes)

        db_handle.ping()
        logger.info("Database connectivity confirmed")
        _check_schema(db_handle)
        logger.info("Database schema validated")

        application.state.database = db_handle
        application.state.scratch_storage = scratch

        sweep_settings = get_scratch_sweep_settings()
        run_scheduler = sweep_settings.enabled if enable_scheduler is None else enable_scheduler
        scheduler = None
        if run_scheduler:
            from app.scheduler.jobs import build_scheduler

            scheduler = build_scheduler(scratch, sweep_settings)
            scheduler.start()
            logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=True)
                logger.info("Scheduler shut down")
            if database is None:
                db_handle.dispose()

    application = FastAPI(
        title="Dataset Exchange API",
        version="1.0.0",
        lifespan=_lifespan,
    )
    _register_error_handlers(application)

    from app.api.routers import dataset_router, user_router

    application.include_router(dataset_router)
    application.include_router(user_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
