"""
FastAPI application factory.

* Registers routes for rides, bookings, reviews, users and admin.
* Releases the Redis pool and the DB engine via lifespan events.
* Applies rate-limiting and the JSON error envelope.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from src.api.errors import register_exception_handlers
from src.api.middleware import limiter
from src.api.routes import admin, bookings, reviews, rides, users
from src.infrastructure.database import engine
from src.infrastructure.redis_client import close_redis

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close shared connection pools on shutdown."""
    logger.info("Ride sharing API starting")
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Ride sharing API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Sharing Booking API",
        description=(
            "Drivers publish rides with a fixed number of seats; passengers "
            "book seats, drivers confirm them, and participants review each "
            "other afterwards.  Seat allocation stays correct under "
            "concurrent requests."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter; its 429 goes through the error envelope
    app.state.limiter = limiter

    register_exception_handlers(app)

    # Routers
    app.include_router(rides.router, prefix="/api/v1")
    app.include_router(rides.driver_router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(reviews.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(users.driver_router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
