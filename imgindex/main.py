"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from imgindex import __version__
from imgindex.api.health import router as health_router
from imgindex.api.images import router as images_router
from imgindex.api.scan import router as scan_router
from imgindex.bootstrap import IndexServices, open_index
from imgindex.config import Settings
from imgindex.exceptions import IndexWriteError
from imgindex.services.sync_engine import ScanMode

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)


def attach_services(app: FastAPI, services: IndexServices) -> None:
    """Expose the opened index services through app state."""
    app.state.index_services = services
    app.state.index_store = services.store
    app.state.pagination_service = services.pagination
    app.state.sync_engine = services.sync_engine


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.debug)
    logger.info("Starting image index (debug=%s)", settings.debug)

    try:
        services = await open_index(settings)
    except Exception as exc:
        logger.critical(
            "Failed to initialize index database: %s. Check database path and permissions.", exc
        )
        raise
    attach_services(app, services)

    if not settings.images_dir.is_dir():
        logger.warning("Image directory %s does not exist yet", settings.images_dir)

    if settings.scan_on_startup:
        services.sync_engine.trigger_scan(ScanMode.FULL)
    services.sync_engine.start_periodic(settings.scan_interval_seconds)

    yield

    try:
        await services.close()
    except Exception as exc:
        logger.error("Error during index shutdown: %s", exc, exc_info=True)

    logger.info("Image index stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="Image Index",
        description="Incremental image index with date-partitioned pagination",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=500)

    app.include_router(health_router)
    app.include_router(scan_router)
    app.include_router(images_router)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(IndexWriteError)
    async def index_write_error_handler(request: Request, exc: IndexWriteError) -> JSONResponse:
        logger.error(
            "IndexWriteError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Index temporarily unavailable"},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
        logger.error(
            "OperationalError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.error("ValueError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    return app


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "imgindex.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
