"""
api/main.py -- FastAPI application entry point for AdminGate.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- one access-log line per request
  2. authorize_requests    -- setup-required / unauthorized gate for every
                              non-public path (auth.dependencies.authorize)
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the AuthService (loading the session file once) and logs the
configured state on startup.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.channel import router as channel_router
from auth.dependencies import Outcome, accepts_html, authorize, resolve_token
from auth.errors import (
    AuthenticationError,
    AuthError,
    ConflictError,
    NotConfiguredError,
    StorageError,
    ValidationError,
)
from auth.service import AuthService
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("admingate.api")

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the AuthService for the whole server lifetime.

    The session file is read exactly once, here. From then on the service's
    in-memory map is authoritative and the file is only written.
    """
    settings = get_settings()
    logger.info("AdminGate API starting up (data_dir=%s)", settings.data_dir)
    app.state.auth = AuthService(settings)
    logger.info("Setup %s", "done" if app.state.auth.is_configured() else "required")

    yield

    logger.info("AdminGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AdminGate API",
    description="Single-admin password gate with bounded, expiring bearer sessions.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(SlowAPIMiddleware)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Authorization middleware
#
# Every HTTP request passes through auth.dependencies.authorize(). Denials
# are content-negotiated: browsers asking for HTML are redirected to /setup
# or /login, everything else gets a structured 401. Websockets do not pass
# through here (see api/routes/v1/channel.py).
# ---------------------------------------------------------------------------

_DENIAL_MESSAGES = {
    Outcome.SETUP_REQUIRED: "Setup required.",
    Outcome.UNAUTHORIZED: "Authentication required.",
}


@app.middleware("http")
async def authorize_requests(request: Request, call_next):
    decision = authorize(
        request.app.state.auth,
        request.url.path,
        resolve_token(request),
        wants_html=accepts_html(request),
    )
    if decision.allowed:
        request.state.auth_token = decision.token
        return await call_next(request)
    if decision.redirect:
        return RedirectResponse(decision.redirect, status_code=302)
    return JSONResponse(
        status_code=401,
        content=ErrorResponse(
            error=ErrorDetail(code=decision.outcome.value, message=_DENIAL_MESSAGES[decision.outcome])
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered last so it is outermost and also times requests the
# authorization middleware turns away.
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
app.include_router(channel_router, prefix="/api/v1", tags=["Channel"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

_AUTH_ERROR_STATUS: dict[type[AuthError], int] = {
    ValidationError: 400,
    AuthenticationError: 401,
    ConflictError: 409,
    NotConfiguredError: 409,
    StorageError: 500,
}


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map the auth error taxonomy onto HTTP statuses.

    Storage failures are logged with their cause and reported to the client
    with a generic message only -- file paths and OS errors stay server-side.
    """
    status_code = next((s for cls, s in _AUTH_ERROR_STATUS.items() if isinstance(exc, cls)), 400)
    message = str(exc)
    if isinstance(exc, StorageError):
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
        message = "Could not persist authentication state."
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message)).model_dump(),
        headers={"Cache-Control": "no-store"},
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients exactly how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            error=ErrorDetail(
                code="rate_limited",
                message="Too many attempts, please try again later.",
                detail=str(exc),
            )
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
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
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
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
# regardless of router registration state. Public and never rate limited.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health(request: Request) -> HealthResponse:
    """Return API liveness, version and whether setup has been done."""
    configured = request.app.state.auth.is_configured()
    return HealthResponse(version=VERSION, setup="done" if configured else "required")
