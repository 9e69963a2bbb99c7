"""
api/main.py -- FastAPI application entry point for the GeekCraft server.

Exposes account, session and game endpoints over HTTP plus the /ws game
socket. Every protected route and the WebSocket gate validate identity through
the single AuthService on app.state.

Run with:  python main.py
           uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. BodySizeLimitMiddleware -- 413 for bodies over Settings.max_body_bytes,
                                before routing or auth run
  2. log_requests            -- method, path, status, latency, client
  3. SlowAPIMiddleware       -- enforces per-route rate limits from api.limiter

Lifespan handles startup (store, auth service, world, background loops) and
shutdown (cancel loops, close store) symmetrically.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.middleware import BodySizeLimitMiddleware
from api.models import HealthResponse
from api.routes.auth import router as auth_router
from api.routes.game import router as game_router
from api.websocket import websocket_endpoint
from auth.errors import AuthError, StoreUnavailable, Unauthorized
from auth.factory import build_store
from auth.service import AuthService
from core.config import VERSION, get_settings
from game.submissions import SubmissionStore
from game.world import World

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("geekcraft.api")

settings = get_settings()
if settings.debug:
    logging.getLogger("geekcraft").setLevel(logging.DEBUG)

# ---------------------------------------------------------------------------
# Background tasks
# ---------------------------------------------------------------------------


async def _sweep_loop(app: FastAPI) -> None:
    """Remove expired sessions every Settings.session_sweep_seconds.

    Reads already ignore expired sessions, so the sweep only reclaims space.
    A store outage skips one round instead of killing the task.
    """
    while True:
        await asyncio.sleep(app.state.settings.session_sweep_seconds)
        try:
            await app.state.auth_service.purge_expired()
        except StoreUnavailable as exc:
            logger.warning("Session sweep skipped: %s", exc)


async def _tick_loop(app: FastAPI) -> None:
    """Advance the world tick at Settings.tick_interval_seconds."""
    interval = app.state.settings.tick_interval_seconds
    while True:
        await asyncio.sleep(interval)
        app.state.world.advance()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create shared state on startup and release it on shutdown.

    Startup order matters:
      1. Store first -- open() creates tables or indexes the service relies on.
      2. Auth service, world and submissions -- read by every route.
      3. Background loops last -- they reference the objects above.
    """
    logger.info("GeekCraft server %s starting up", VERSION)
    app.state.settings = settings
    store = build_store(settings)
    await store.open()
    app.state.store = store
    app.state.auth_service = AuthService(store)
    app.state.world = World()
    app.state.submissions = SubmissionStore()
    logger.info("Auth initialized (backend=%s)", store.backend_name)
    app.state.sweep_task = asyncio.create_task(_sweep_loop(app))
    app.state.tick_task = asyncio.create_task(_tick_loop(app))

    yield

    # Shutdown
    app.state.tick_task.cancel()
    app.state.sweep_task.cancel()
    await store.close()
    logger.info("GeekCraft server shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="GeekCraft Server",
    description="Accounts, sessions and the authenticated game edge for GeekCraft.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette makes the most recently added middleware the outermost, so the
# body-size guard is added last: it must run before anything reads the body.
# ---------------------------------------------------------------------------

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


app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(game_router, prefix="/api", tags=["Game"])
app.add_api_websocket_route("/ws", websocket_endpoint)

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns {"success": false, "message": ...} so clients parse
# failures the same way whatever the status code.
# ---------------------------------------------------------------------------


def _failure(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render domain errors with their own status and public message.

    StoreUnavailable carries backend detail for the log only; the client sees
    the generic message.
    """
    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s %s: %s", request.method, request.url.path, exc)
    response = JSONResponse(status_code=int(exc.status), content=exc.to_dict())
    if isinstance(exc, Unauthorized):
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _failure(429, "Too many requests")
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 when the body is not JSON or misses a field."""
    errors = exc.errors()
    detail = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body') or 'body'}: {err.get('msg')}"
        for err in errors
    )
    return _failure(422, f"Invalid request: {detail}" if detail else "Invalid request")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Covers framework errors such as 404 and 405."""
    response = _failure(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _failure(500, "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit and no auth: load balancers must be able to poll it.
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"], response_model=HealthResponse)
async def health(request: Request) -> JSONResponse:
    """Return liveness, version and credential store reachability."""
    store = request.app.state.store
    try:
        store_ok = await store.ping()
    except StoreUnavailable as exc:
        logger.warning("Health check: %s", exc)
        store_ok = False
    body = HealthResponse(
        status="healthy" if store_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "store": "ok" if store_ok else "error", "backend": store.backend_name},
    )
    return JSONResponse(status_code=200 if store_ok else 503, content=body.model_dump())
