"""
api/main.py -- FastAPI application entry point for the CareShop API.

Exposes the auth/session core (register, login, sessions, handshake) and the
shop glue (inventory, cart, appointments) over HTTP for the browser client.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests               -- one log line per request, rejected ones too
  2. TrustedHostMiddleware      -- rejects requests with unexpected Host headers
  3. reject_disallowed_origins  -- 403 origin_rejected for origins OriginPolicy refuses
  4. PolicyCORSMiddleware       -- CORS headers and preflight for allowed origins
  5. SlowAPIMiddleware          -- enforces per-route rate limits from api.limiter

Starlette builds the stack so that the LAST middleware registered is the
OUTERMOST, so registrations below run innermost-first.

Lifespan handles startup (document store, auth services, handshake registry,
first-run admin) and shutdown (cancel handshake timers, close the store)
symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.origins import OriginPolicy, PolicyCORSMiddleware
from api.routes.auth import router as auth_router
from api.routes.handshake import router as handshake_router
from api.routes.shop import router as shop_router
from auth.credentials import hash_password, obfuscate_email
from auth.sessions import SessionManager
from auth.store import UserStore
from core.config import APP_VERSION, Settings, get_settings
from core.errors import OriginRejected, ServiceError, StorageIOError
from handshake.registry import HandshakeRegistry
from shop.store import ShopStore
from storage.documents import create_document_store

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("careshop.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# First-run bootstrap
# ---------------------------------------------------------------------------


def bootstrap_admin(user_store: UserStore, settings: Settings) -> None:
    """Seed one admin account when the users document is empty.

    Only runs when BOOTSTRAP_ADMIN_PASSWORD is set -- there is no default
    password. Registration can never create an admin, so without this (or
    `python main.py create-user --role admin`) a fresh install has none.
    """
    if user_store.has_users() or not settings.bootstrap_admin_password:
        return
    user = user_store.create_user(
        "Administrator",
        settings.bootstrap_admin_email,
        hash_password(settings.bootstrap_admin_password),
        "admin",
    )
    logger.info("Bootstrap admin created (%s)", obfuscate_email(user.email))


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Document store first -- every other service reads through it.
      2. UserStore, then SessionManager -- sessions resolve users.
      3. Handshake registry -- independent, in memory only.
      4. Bootstrap admin last -- needs the user store and hashing.
    """
    settings = get_settings()
    logger.info("CareShop API %s starting up", APP_VERSION)
    documents = create_document_store(settings.data_dir, settings.database_url)
    app.state.documents = documents
    app.state.user_store = UserStore(documents)
    app.state.session_manager = SessionManager(
        documents,
        app.state.user_store,
        lifetime_seconds=settings.session_lifetime_seconds,
    )
    app.state.shop_store = ShopStore(documents)
    app.state.handshake_registry = HandshakeRegistry(
        settings.server_name,
        APP_VERSION,
        settings.handshake_features,
        ttl_seconds=settings.handshake_ttl_seconds,
    )
    bootstrap_admin(app.state.user_store, settings)
    logger.info("Auth initialized (session lifetime %ds)", settings.session_lifetime_seconds)

    yield

    # Shutdown
    app.state.handshake_registry.close()
    documents.close()
    logger.info("CareShop API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="CareShop API",
    description="Accounts, sessions, client handshake, and the shop/appointments backend.",
    version=APP_VERSION,
    lifespan=lifespan,
)

origin_policy = OriginPolicy(_settings.cors_allowed_origins)

# ---------------------------------------------------------------------------
# Middleware stack (registered innermost-first, see module docstring)
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    PolicyCORSMiddleware,
    policy=origin_policy,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def reject_disallowed_origins(request: Request, call_next):
    """Answer requests from origins the policy refuses with 403.

    CORS headers alone only stop the browser from reading the response; the
    request would still reach the route. Rejecting here means a disallowed
    origin never triggers a side effect, preflight or not.
    """
    if not origin_policy.is_allowed(request.headers.get("origin")):
        return _error_response(OriginRejected.status_code, OriginRejected.code, OriginRejected.message)
    return await call_next(request)


app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Registered last, so it is outermost and sees every response, including
# the ones produced by host and origin rejection.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    # Path only: the query string may carry ?token=
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

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(handshake_router, prefix="/api", tags=["Handshake"])
app.include_router(shop_router, prefix="/api", tags=["Shop"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a domain error raised anywhere below the route layer.

    5xx errors (StorageIOError) are logged with their internal detail and
    traceback; the client only gets the class-level message.
    """
    if exc.status_code >= 500:
        logger.exception("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return _error_response(exc.status_code, exc.code, type(exc).message)
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    A plain def: SlowAPIMiddleware calls this handler directly and returns
    its result as the response.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    # Field locations and messages only; the raw input may contain a password.
    detail = "; ".join(f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors())
    return _error_response(422, "validation_error", "Request validation failed.", detail)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404, 405, ...)."""
    response = _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied -- health
# checks from load balancers and monitoring systems must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"], response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and storage reachability."""
    components = {"handshake": "ok"}
    try:
        request.app.state.documents.ping()
        components["storage"] = "ok"
    except StorageIOError as exc:
        logger.warning("Health check: storage unavailable (%s)", exc)
        components["storage"] = "unavailable"
    status = "healthy" if components["storage"] == "ok" else "degraded"
    return HealthResponse(status=status, version=APP_VERSION, components=components)
