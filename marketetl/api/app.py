"""API application factory."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from marketetl.core.config import settings
from marketetl.core.exceptions import register_exception_handlers
from marketetl.core.logging import get_logger, request_id_var, setup_logging
from marketetl.database.connection import Database, close_database, init_database
from marketetl.schemas.common import ErrorResponse

from .routes import etl, health


logger = get_logger("api")


def _make_lifespan(database: Database | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the record store on startup, close it on shutdown."""
        setup_logging()

        try:
            handle = await init_database(database)
            await handle.create_schema()
        except Exception as e:
            logger.warning(f"Resource initialization failed (may be ok in tests): {e}")

        yield

        try:
            await close_database()
        except Exception as e:
            logger.warning(f"Resource cleanup failed: {e}")

    return lifespan


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests; the path only, never headers or query strings."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start_time
        path = request.url.path

        logger.info(
            f"{request.method} {path} -> {response.status_code} ({duration:.3f}s)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": int(duration * 1000),
            },
        )

        return response


def create_api_app(database: Database | None = None) -> FastAPI:
    """Create and configure the API application.

    Args:
        database: Record store handle to use instead of one built from settings
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Daily market data refresh queue",
        root_path=settings.root_path,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=_make_lifespan(database),
        responses={
            401: {"model": ErrorResponse, "description": "Unauthorized"},
            422: {"model": ErrorResponse, "description": "Validation Error"},
            500: {"model": ErrorResponse, "description": "Internal Server Error"},
        },
    )

    # Add middlewares (order matters - first added is outermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(etl.router, prefix="/etl", tags=["ETL"])

    return app
