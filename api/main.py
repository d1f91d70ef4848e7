"""
api/main.py -- FastAPI application entry point for passgate.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan handles startup (settings, user store, token service, mail probe
and dispatcher, revocation purge task) and shutdown (cancel purge task,
drain the mail queue, close the DB) symmetrically.
"""

from __future__ import annotations

import asyncio
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
from sqlalchemy.exc import SQLAlchemyError

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.exceptions import AuthError
from auth.passwords import PasswordHasher, PasswordPolicy
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import Settings, get_settings
from notify.dispatcher import NotificationDispatcher
from notify.transports import build_transport

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("passgate.api")

_PURGE_INTERVAL_SECONDS = 60 * 60

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Drop revocation rows for tokens that have expired anyway, hourly.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        try:
            await asyncio.to_thread(app.state.auth_service.purge_revocations, int(time.time()))
        except SQLAlchemyError:
            logger.exception("Revocation purge failed; retrying next cycle")


# ---------------------------------------------------------------------------
# Component wiring
# ---------------------------------------------------------------------------


def build_auth_service(settings: Settings, store: UserStore, notifier) -> AuthService:
    """Assemble AuthService from settings. The signing key is injected here, once."""
    tokens = TokenService(
        secret_key=settings.secret_key,
        lifetime_seconds=settings.token_expire_seconds,
        leeway_seconds=settings.token_leeway_seconds,
    )
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=tokens,
        notifier=notifier,
        policy=PasswordPolicy.from_settings(settings),
        app_name=settings.app_name,
    )


def build_dispatcher(settings: Settings, transport=None) -> NotificationDispatcher:
    return NotificationDispatcher(
        transport if transport is not None else build_transport(settings),
        queue_size=settings.mail_queue_size,
        max_attempts=settings.mail_max_attempts,
        backoff_seconds=settings.mail_retry_backoff_seconds,
        probe_timeout=settings.mail_probe_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Lifespan -- startup / shutdown
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Store first -- everything else depends on it.
      2. Mail probe -- bounded by MAIL_PROBE_TIMEOUT_SECONDS; a dead mail
         server is a warning, never a failed startup.
      3. Dispatcher worker, then AuthService, then the purge task.
    """
    settings = get_settings()
    logger.info("passgate API starting up")
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    logger.info("User store initialized")

    app.state.notifier = build_dispatcher(settings)
    await app.state.notifier.probe()
    app.state.notifier.start()

    app.state.auth_service = build_auth_service(settings, app.state.user_store, app.state.notifier)
    logger.info("Auth initialized (token lifetime %ds)", settings.token_expire_seconds)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    # Shutdown
    app.state.purge_task.cancel()
    await app.state.notifier.stop()
    app.state.user_store.close()
    logger.info("passgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

_settings = get_settings()

app = FastAPI(
    title="passgate API",
    description="Account registration, sign-in and session authorization.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() calls are applied outermost-first from the caller's
# perspective. Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render domain errors from their code / status_code / public_message.

    Only public_message reaches the client. For 5xx (CorruptCredential) the
    internal message was already logged by AuthService.
    """
    response = _error(exc.status_code, exc.code, exc.public_message)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or missing request fields are client input errors: 400 invalid_input."""
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) or "body" for err in exc.errors()})
    return _error(400, "invalid_input", "Request validation failed.", f"invalid fields: {', '.join(fields)}")


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Route handlers raise HTTPException with a dict detail. When detail is
    already structured, use it directly as the error field rather than
    stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))).model_dump(),
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors (store faults included).

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and a database check."""
    database = "ok"
    try:
        request.app.state.user_store.ping()
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        database = "error"
    mail = "ok" if request.app.state.notifier.running else "stopped"
    status = "healthy" if database == "ok" else "degraded"
    return HealthResponse(status=status, version=VERSION, components={"app": "ok", "database": database, "mail": mail})
