"""
FastAPI application factory.

* Registers the parent, driver and admin routers under ``/api/v1``.
* Renders domain errors as ``{"detail", "code"}`` JSON with the mapped status.
* Applies rate-limiting middleware.
* Releases the DB engine and Redis pool on shutdown.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from glidee.api.middleware import domain_error_handler, limiter
from glidee.api.routes import admin, drivers, parents
from glidee.config import settings
from glidee.domain.errors import DomainError
from glidee.infrastructure.database import engine
from glidee.infrastructure.redis_client import close_redis

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Seat allocation guard: %s", settings.seat_lock.value)
    yield
    await engine.dispose()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Glidee School Transport API",
        description=(
            "Parents book bus seats for their students, drivers run trips "
            "and board passengers, admins manage routes and the fleet."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors -> HTTP
    app.add_exception_handler(DomainError, domain_error_handler)

    # Routers
    app.include_router(parents.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
