"""
FastAPI application factory.

* Registers routes for rides, admin and the internal matching trigger.
* Starts / stops the background matching worker via lifespan events
  (disable with ``MATCHING_LOOP_ENABLED=false`` when an external poller
  drives ``/api/internal/matching``).
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, internal, rides
from src.config import settings
from src.infrastructure.redis_client import close_redis
from src.workers import matcher as _matcher

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the matching worker on startup; stop on shutdown."""
    if settings.matching_loop_enabled:
        await _matcher.start_matching_loop()
    yield
    if settings.matching_loop_enabled:
        await _matcher.stop_matching_loop()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Chair Dispatch API",
        description=(
            "Matches waiting rides with the nearest available chair and "
            "settles completed rides through an external payment gateway."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(internal.router, prefix="/api")

    return app
