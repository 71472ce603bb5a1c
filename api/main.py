"""
api/main.py -- FastAPI application entry point for the DataVisualizer auth API.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan handles startup (store, service, refresh-token purge task) and
shutdown (cancel purge task, close DB connection) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.clock import utc_now
from auth.exceptions import AuthenticationError, AuthError, ConflictError, NotFoundError, ValidationError
from auth.service import AuthService
from auth.store import AuthStore
from core.config import Settings, get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("datavisualizer.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, settings: Settings) -> None:
    """Delete long-expired refresh tokens every refresh_token_purge_interval_hours.

    Only rows whose expires_at is more than refresh_token_retention_days in
    the past are removed, so a token that can still be redeemed is never
    touched. The purge runs in a worker thread because the store is blocking.
    CancelledError from task.cancel() during shutdown unwinds the loop.
    """
    while True:
        await asyncio.sleep(settings.refresh_token_purge_interval_hours * 60 * 60)
        cutoff = utc_now() - timedelta(days=settings.refresh_token_retention_days)
        try:
            removed = await asyncio.to_thread(app.state.auth_store.purge_refresh_tokens, cutoff)
        except Exception:
            logger.exception("Refresh token purge failed")
            continue
        logger.info("Purged %d expired refresh tokens", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown. The service is built once from the immutable Settings value.
    """
    logger.info("DataVisualizer auth API starting up")
    app.state.auth_store = AuthStore(_settings.database_url)
    app.state.auth_service = AuthService.from_settings(_settings, app.state.auth_store)
    app.state.token_issuer = app.state.auth_service.token_issuer
    logger.info("Auth store initialized")
    app.state.purge_task = asyncio.create_task(_purge_loop(app, _settings))

    yield

    app.state.purge_task.cancel()
    app.state.auth_store.close()
    logger.info("DataVisualizer auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="DataVisualizer Auth API",
    description="Registration, login, and refresh-token rotation for the DataVisualizer data API.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Only method, path, status and latency are logged -- request bodies
# carry passwords and tokens and are never written out.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

_AUTH_ERROR_STATUS: tuple[tuple[type[AuthError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (NotFoundError, 404),
    (ConflictError, 409),
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map AuthError subclasses to status codes.

    Only exc.error_code and exc.message reach the client. For authentication
    failures both are constant, whichever check failed.
    """
    status_code = next((code for cls, code in _AUTH_ERROR_STATUS if isinstance(exc, cls)), 400)
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.error_code, message=exc.message)).model_dump(),
    )
    if status_code == 401:
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body fails validation.

    exc.errors() echoes the submitted input, which may be a password, so only
    the error locations are reported.
    """
    locations = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=", ".join(locations) or None,
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    When detail is already a structured dict, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors, storage failures included.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database ping."""
    try:
        database = "ok" if request.app.state.auth_store.ping() else "error"
    except Exception:
        logger.exception("Health check database ping failed")
        database = "error"
    return HealthResponse(version=API_VERSION, components={"app": "ok", "database": database})
