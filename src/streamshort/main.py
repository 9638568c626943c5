"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (database, Redis).
Middleware, CORS, exception handlers and routers all registered here.

Error rendering lives in one place: services raise StreamShortError
subclasses, and the handler below turns them into
{"detail": ..., "code": ...} with the right status. Database errors
and anything unexpected become a bare 500; the details go to the log,
never to the client.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from streamshort import __version__
from streamshort.api import api_router
from streamshort.config import settings
from streamshort.errors import AuthError, InternalError, StreamShortError

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: FastAPI lifespan replaces on_event("startup") / on_event("shutdown").
    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "streamshort.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from streamshort.db.redis_pool import close_redis, init_redis
    try:
        await init_redis()
        logger.info("streamshort.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("streamshort.redis_unavailable", error=str(e))
        # Redis is optional: without it there is no rate limiting

    yield

    logger.info("streamshort.shutdown")
    await close_redis()

    from streamshort.db.engine import engine
    await engine.dispose()


# ─── Exception handlers ──────────────────────────────────


async def handle_streamshort_error(request: Request, exc: StreamShortError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    if exc.status_code >= 500:
        logger.error("request.failed", code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
        headers=headers,
    )


def _internal_error() -> JSONResponse:
    err = InternalError()
    return JSONResponse(
        status_code=err.status_code,
        content={"detail": err.message, "code": err.code},
    )


async def handle_database_error(request: Request, exc: SQLAlchemyError):
    logger.exception("request.database_error", error_type=type(exc).__name__)
    return _internal_error()


async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("request.unhandled_error", error_type=type(exc).__name__)
    return _internal_error()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="StreamShort API",
        description="Phone OTP authentication, JWT sessions and creator content ownership",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from streamshort.middleware.rate_limit import RateLimitMiddleware
    from streamshort.middleware.request_id import RequestIdMiddleware
    from streamshort.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StreamShortError, handle_streamshort_error)
    app.add_exception_handler(SQLAlchemyError, handle_database_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: streamshort.main:app)
app = create_app()
