"""
api/main.py -- FastAPI application entry point for SessionWard.

Run with:  uvicorn asgi:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- credentialed CORS for the configured frontend
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds every auth component once (stores, codec, validator,
coordinator, cookie transport, strategies) and stores it on app.state.
build_auth_state() does the wiring so tests can reuse it with their own
stores.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.users import router as users_router
from auth.cookies import CookieTransport
from auth.errors import Conflict, InvalidCredentials, Unauthorized
from auth.passwords import CredentialValidator
from auth.sessions import SessionCoordinator
from auth.store import RefreshTokenStore, UserStore
from auth.strategies import AccessTokenStrategy, RefreshCookieStrategy
from auth.tokens import TokenCodec
from core.config import Settings, get_settings

VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=getattr(logging, _settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessionward.api")

# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_auth_state(
    app: FastAPI,
    settings: Settings,
    user_store: UserStore,
    refresh_store: RefreshTokenStore,
) -> None:
    """Assemble the auth components by constructor injection onto app.state."""
    codec = TokenCodec(settings)
    transport = CookieTransport(settings, codec)
    app.state.settings = settings
    app.state.user_store = user_store
    app.state.refresh_store = refresh_store
    app.state.codec = codec
    app.state.transport = transport
    app.state.coordinator = SessionCoordinator(
        codec=codec,
        refresh_store=refresh_store,
        validator=CredentialValidator(user_store),
        user_store=user_store,
        reuse_revokes_all=settings.refresh_reuse_revokes_all,
    )
    app.state.access_strategy = AccessTokenStrategy(codec, user_store, transport)
    app.state.refresh_strategy = RefreshCookieStrategy(codec, refresh_store, user_store, transport)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the stores on startup and dispose of their engines on shutdown."""
    logger.info("SessionWard API starting up (environment=%s)", _settings.environment)
    build_auth_state(
        app,
        _settings,
        UserStore(_settings.database_url),
        RefreshTokenStore(_settings.database_url),
    )
    logger.info("Auth initialized")

    yield

    app.state.user_store.close()
    app.state.refresh_store.close()
    logger.info("SessionWard API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SessionWard API",
    description="Login, refresh-token rotation and revocation. Refresh tokens travel in HttpOnly cookies only.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,  # cookies must cross origins to the frontend
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
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

app.include_router(auth_router, tags=["Auth"])
app.include_router(users_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _envelope(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _envelope(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(InvalidCredentials)
async def invalid_credentials_handler(request: Request, exc: InvalidCredentials) -> JSONResponse:
    return _envelope(401, "invalid_credentials", "Invalid email or password.")


@app.exception_handler(Unauthorized)
async def unauthorized_handler(request: Request, exc: Unauthorized) -> JSONResponse:
    response = _envelope(401, "unauthorized", str(exc))
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(Conflict)
async def conflict_handler(request: Request, exc: Conflict) -> JSONResponse:
    return _envelope(409, "conflict", str(exc))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a {"code", "message"} dict as
    detail; use it directly rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=exc.headers,
        )
    response = _envelope(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors, including an unreachable database.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _envelope(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness plus a database round-trip check. No auth, no rate limit."""
    database = "ok"
    try:
        with request.app.state.refresh_store.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        database = "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
