"""
api/main.py -- FastAPI application entry point for GeoConnect.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. log_requests          -- one log line per request with latency

Lifespan builds every collaborator once (credential store, token service,
admin set, Elasticsearch post store, image store), attaches them to app.state,
and closes them on shutdown. Route handlers read them from request.app.state;
nothing is a module-level global.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from elasticsearch import Elasticsearch
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.posts import router as posts_router
from auth.policy import AdminSet
from auth.store import UserStore
from auth.tokens import TokenService
from core.config import get_settings
from core.errors import DependencyError, GeoConnectError
from posts.media import ImageStore
from posts.store import PostStore

VERSION = "0.3.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("geoconnect.api")

_settings = get_settings()

# The media directory must exist before StaticFiles is mounted below.
_media = ImageStore(_settings.media_dir, _settings.media_url_prefix, _settings.max_upload_bytes)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build collaborators on startup and release them on shutdown.

    Startup order:
      1. Credential store and token service -- auth must work before anything.
      2. Admin set -- read once from ADMIN_USERS, immutable afterwards.
      3. Post store -- ensure_index() failure is logged, not fatal: the API
         still serves signup/login while Elasticsearch is down, and post
         routes answer 503 until it comes back.
    """
    logger.info("GeoConnect API starting up")
    app.state.user_store = UserStore(_settings.database_url)
    app.state.tokens = TokenService(_settings.secret_key, _settings.token_expire_seconds)
    app.state.admins = AdminSet(_settings.admin_users_list)
    logger.info("Auth initialized (%d admin(s) configured)", len(app.state.admins))

    es = Elasticsearch(_settings.elasticsearch_url)
    app.state.post_store = PostStore(es, index=_settings.posts_index)
    try:
        app.state.post_store.ensure_index()
    except DependencyError:
        logger.warning("Elasticsearch unavailable at startup -- index is created on first use once it recovers")
    app.state.media = _media
    logger.info("Post store initialized (index=%s)", _settings.posts_index)

    yield

    app.state.post_store.close()
    app.state.user_store.close()
    logger.info("GeoConnect API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GeoConnect API",
    description="Geotagged posts with radius and bounding-box search.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts_list,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins_list,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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
# Routers and static media
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(posts_router, tags=["Posts"])
app.mount(_settings.media_url_prefix, StaticFiles(directory=_settings.media_dir), name="media")


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(GeoConnectError)
async def geoconnect_error_handler(request: Request, exc: GeoConnectError) -> JSONResponse:
    """Render domain errors.

    Dependency and internal failures are logged with the full chain and the
    client gets a generic message. 401 responses are marked no-store and carry
    a Bearer challenge.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
        if isinstance(exc, DependencyError):
            message = "A backing service is unavailable."
        else:
            message = "An unexpected error occurred."
        return _error_response(exc.status_code, exc.code, message)

    response = _error_response(exc.status_code, exc.code, exc.message)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
        response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query parameters are a 400, like any other bad input."""
    return _error_response(400, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Root and health
# ---------------------------------------------------------------------------


@app.get("/", include_in_schema=False)
async def root() -> PlainTextResponse:
    return PlainTextResponse("GeoConnect is running. POST /post or GET /search?lat=...&lon=...")


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Liveness plus a ping of each backing store. Never requires auth."""
    components = {
        "app": "ok",
        "database": "ok" if request.app.state.user_store.ping() else "error",
        "search": "ok" if request.app.state.post_store.ping() else "error",
    }
    return HealthResponse(version=VERSION, components=components)
