# slotbook/main.py
"""
FastAPI application for slotbook.

Mounts the v1 routers under /api/v1 and the health/metrics endpoints at the
root. Domain exceptions that escape a route become JSON error responses.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .database import init_db
from .routes.v1 import alerts as alerts_v1
from .routes.v1 import availability as availability_v1
from .routes.v1 import block_bookings as block_bookings_v1
from .routes.v1 import bookings as bookings_v1
from .routes.v1 import health as health_v1
from .routes.v1 import members as members_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_TITLE = "slotbook API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(f"Starting {API_TITLE} ({settings.environment})")
    init_db()
    yield
    logger.info(f"Stopping {API_TITLE}")


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        http_exc = exc.to_http_exception()
        if http_exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.url.path}: {exc.message}", extra={"details": exc.details})
        return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(app)

    # Create API v1 router
    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(alerts_v1.router, prefix="/alerts")
    api_v1.include_router(availability_v1.router, prefix="/availability")
    api_v1.include_router(block_bookings_v1.router, prefix="/block-bookings")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(members_v1.router, prefix="/members")

    app.include_router(api_v1)
    app.include_router(health_v1.router)
    return app


app = create_app()
