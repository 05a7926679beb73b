"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown: configure logging, wait for
the database, dispose the engine on the way out.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jwtauth import __version__
from jwtauth.api import api_router
from jwtauth.config import settings
from jwtauth.db.engine import engine, wait_for_database
from jwtauth.logging import configure_logging
from jwtauth.middleware.request_id import RequestIdMiddleware
from jwtauth.middleware.security import SecurityHeadersMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. A database that never comes up aborts startup with a
    StorageError instead of serving 500s.
    """
    configure_logging(settings.environment, settings.log_level)
    logger.info(
        "jwtauth.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    await wait_for_database(
        engine,
        attempts=settings.db_connect_attempts,
        delay=settings.db_connect_delay_seconds,
        timeout=settings.db_connect_timeout_seconds,
    )

    yield

    logger.info("jwtauth.shutdown")
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="jwt-auth",
        description="Access/refresh token issuance and rotation",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RequestId → Security → handler
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_origin_regex=settings.cors_origin_regex or None,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["Accept", "Authorization", "Content-Type", "X-CSRF-Token"],
        expose_headers=["Link", "X-Request-ID"],
        max_age=300,
    )

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: jwtauth.main:app)
app = create_app()
