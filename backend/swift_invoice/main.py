"""
Swift Invoice API: app factory, middleware, error envelope and route mounting.
"""

import json
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import Any, Dict, List

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import Counter as _PrcCounter, Gauge as _PrcGauge, Histogram as _PrcHistogram
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from . import __version__
from .config.database import async_database_health_check, check_async_database_connection
from .config.logging import bind_context, configure_logging
from .config.observability import setup_observability, trace_operation
from .routers.auth import router as auth_router
from .routers.invoices import router as invoice_router
from .routers.metrics import router as metrics_router
from .routers.system import router as system_router
from .utils.api_shapes import success
from .utils.errors import DomainError, ERROR_CODES, error_payload

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
SLOW_RESPONSE_MS = 1000
APP_START_TIME = datetime.now(UTC)

APP_REQUEST_COUNT = _PrcCounter(
    "app_requests_total",
    "Total HTTP requests processed",
    ["method", "path", "status"],
)
APP_REQUEST_LATENCY = _PrcHistogram(
    "app_request_duration_seconds",
    "Request latency in seconds",
    ["method", "path", "status"],
)
APP_UPTIME_SECONDS = _PrcGauge(
    "app_uptime_seconds",
    "Application uptime in seconds",
)


def _testing() -> bool:
    return os.getenv("TESTING", "false").lower() == "true"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request with an ID, time it and feed the Prometheus request metrics."""

    async def dispatch(self, request: Request, call_next):  # noqa: D401
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - started
        elapsed_ms = elapsed * 1000
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"

        # Route template, not the raw path, so invoice ids do not become labels
        route_path = getattr(request.scope.get("route"), "path", request.url.path)
        labels = (request.method, route_path, str(response.status_code))
        APP_REQUEST_COUNT.labels(*labels).inc()
        APP_REQUEST_LATENCY.labels(*labels).observe(elapsed)
        APP_UPTIME_SECONDS.set((datetime.now(UTC) - APP_START_TIME).total_seconds())

        if elapsed_ms > SLOW_RESPONSE_MS:
            bind_context(logger, request_id=request_id).warning(
                "Slow response: %.1fms for %s %s", elapsed_ms, request.method, request.url.path
            )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    configure_logging()
    setup_observability(os.getenv("ENVIRONMENT", "development"))
    logger.info("Swift Invoice API %s starting", __version__)

    # Test fixtures build the schema themselves
    if not _testing():
        if not await check_async_database_connection():
            logger.error("Invoice store unreachable at startup")
            raise RuntimeError("Database connection failed")
        logger.info("Invoice store reachable; schema is managed by Alembic")

    yield

    logger.info("Swift Invoice API stopping")


def create_application() -> FastAPI:
    """Build the FastAPI app with middleware, handlers and routers wired in."""
    application = FastAPI(
        title="Swift Invoice API",
        description="Invoice authoring, storage and PDF rendering",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url=f"{API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )
    setup_middleware(application)
    setup_exception_handlers(application)
    setup_routes(application)
    return application


def setup_middleware(app: FastAPI) -> None:
    origins = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        # The editor reads the PDF filename from Content-Disposition
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )
    app.add_middleware(RequestContextMiddleware)


def _json_safe(value: Any) -> Any:
    # JSONResponse refuses NaN/Infinity, which rejected inputs can carry
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError):
        return str(value)
    return value


def _validation_details(exc: RequestValidationError) -> List[Dict[str, Any]]:
    # Pydantic error contexts can hold the raised ValueError itself
    return [{key: _json_safe(val) for key, val in err.items()} for err in exc.errors()]


def _error_response(request: Request, status_code: int, code: str, message: Any,
                    details: Any = None, headers: Dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_payload(code, message, details, request.url.path),
        headers=headers,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Render every failure in the standard error envelope."""

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return _error_response(request, 422, ERROR_CODES["validation"],
                               "Request validation failed", _validation_details(exc))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        # Routers attach `code` via utils.errors.http_error
        return _error_response(request, exc.status_code, getattr(exc, "code", "HTTP_ERROR"),
                               exc.detail, headers=getattr(exc, "headers", None))

    @app.exception_handler(StarletteHTTPException)
    async def starlette_exception_handler(request: Request, exc: StarletteHTTPException):
        code = ERROR_CODES["not_found"] if exc.status_code == 404 else "HTTP_ERROR"
        return _error_response(request, exc.status_code, code, exc.detail)

    @app.exception_handler(DomainError)
    async def domain_exception_handler(request: Request, exc: DomainError):
        return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s: %s", request.url.path, exc, exc_info=True)
        return _error_response(request, 500, ERROR_CODES["internal"], "An unexpected error occurred")


def setup_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        """Liveness plus database connectivity, for load balancers."""
        with trace_operation("health_check"):
            db_health = await async_database_health_check()
        return {
            "status": db_health["status"],
            "version": __version__,
            "database": db_health,
            "timestamp": time.time(),
        }

    @app.get("/")
    async def root():
        return success({
            "message": "Swift Invoice API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        })

    app.include_router(auth_router, prefix=f"{API_PREFIX}/auth", tags=["Authentication"])
    app.include_router(invoice_router, prefix=f"{API_PREFIX}/invoices", tags=["Invoices"])
    app.include_router(system_router, prefix=f"{API_PREFIX}/system", tags=["System"])
    # Prometheus scrapes /metrics outside the API prefix
    app.include_router(metrics_router)


app = create_application()


__all__ = ["app", "create_application"]
