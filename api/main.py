"""
api/main.py -- FastAPI application entry point for the ridehail auth service.

Run with:  uvicorn api.main:app --reload

create_app(settings) is the application factory. It is the only place the
signing secret and bcrypt work factor are read: the credential codec and
token service are built here, once, and stored on app.state. A missing or
short SECRET_KEY raises ConfigurationError from get_settings() before the
app object exists, so the process never starts half-configured.

Middleware stack (outermost to innermost; Starlette wraps the most recently
added middleware around the earlier ones):
  1. log_requests   -- one log line per request with latency
  2. CORSMiddleware -- adds CORS headers for allowed browser origins

Lifespan opens the database, builds the stores (actor directories and the
revocation store) and starts the revocation purge task; shutdown cancels
the task and disposes the engine.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api.errors import register_exception_handlers
from api.responses import ok
from api.routes.v1.captains import router as captains_router
from api.routes.v1.users import router as users_router
from auth.credentials import CredentialCodec
from auth.models import ActorKind
from auth.revocation import RevocationStore
from auth.store import ActorDirectory, make_engine
from auth.tokens import TokenService
from core.config import Settings, get_settings
from core.errors import ErrorKind, StructuredError

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("ridehail.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Physically delete expired revocation entries on a fixed interval.

    contains() already ignores expired rows, so this only bounds table size.
    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    interval = app.state.settings.revocation_purge_interval_seconds
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(app.state.revocations.purge_expired)
        except SQLAlchemyError:
            logger.exception("Revocation purge failed; retrying in %gs", interval)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open storage on startup and release it on shutdown."""
    settings: Settings = app.state.settings
    logger.info("Auth API starting up (debug=%s)", settings.debug)
    engine = make_engine(settings.database_url)
    app.state.engine = engine
    app.state.directories = {kind: ActorDirectory(kind, engine) for kind in ActorKind}
    app.state.revocations = RevocationStore(engine)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))
    logger.info("Storage initialized")

    yield

    app.state.purge_task.cancel()
    with suppress(asyncio.CancelledError):
        await app.state.purge_task
    engine.dispose()
    logger.info("Auth API shutdown complete")


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application around one Settings object."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Ridehail Auth API",
        description="User and captain registration, login, logout and profile.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.codec = CredentialCodec(rounds=settings.bcrypt_rounds)
    app.state.tokens = TokenService(settings.secret_key)
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

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

    register_exception_handlers(app)

    app.include_router(users_router, prefix="/api/v1", tags=["Users"])
    app.include_router(captains_router, prefix="/api/v1", tags=["Captains"])

    @app.get("/health", tags=["Health"])
    def health(request: Request) -> JSONResponse:
        """Liveness plus database connectivity. 503 if the database is unreachable."""
        try:
            request.app.state.directories[ActorKind.USER].ping()
        except SQLAlchemyError as exc:
            raise StructuredError(ErrorKind.UNAVAILABLE, "Database connection failed", reason=str(exc)) from exc
        return ok(
            {
                "uptime": round(time.monotonic() - request.app.state.started_at, 3),
                "message": "OK",
                "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                "database": "connected",
            },
            "Server is healthy",
        )

    return app


app = create_app()
