"""
FastAPI application factory.

* Registers routes for bookings, dispatch and admin.
* Opens / closes the shared outbound HTTP client via lifespan events.
* Maps the dispatch error hierarchy to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from havenride.api.middleware import limiter
from havenride.api.routes import admin, bookings, dispatch
from havenride.config import settings
from havenride.domain.exceptions import (
    BookingNotFound,
    BookingValidationError,
    DispatchError,
    DriverNotFound,
    InvalidStateTransition,
    TransitionConflict,
)
from havenride.infrastructure.redis_client import close_redis

logging.basicConfig(level=logging.INFO)

_STATUS_CODES = (
    (BookingValidationError, 400),
    (BookingNotFound, 404),
    (DriverNotFound, 404),
    (TransitionConflict, 409),
    (InvalidStateTransition, 409),
)


async def _dispatch_error_handler(request: Request, exc: DispatchError) -> JSONResponse:
    status_code = next(
        (code for cls, code in _STATUS_CODES if isinstance(exc, cls)), 400
    )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the outbound HTTP client on startup; close it and Redis on shutdown."""
    app.state.http = httpx.AsyncClient(timeout=settings.side_effect_timeout_seconds)
    yield
    await app.state.http.aclose()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="HavenRide Dispatch API",
        description=(
            "Scores and assigns drivers to accessible ride bookings and "
            "drives each booking through its lifecycle: assignment, "
            "progress updates, completion and cancellation with refunds."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(DispatchError, _dispatch_error_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(dispatch.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
