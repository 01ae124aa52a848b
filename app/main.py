"""
FastAPI application for the slot booking service

Owner availability configuration, computed day views and the booking lifecycle
"""
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from contextlib import asynccontextmanager
from sqlalchemy.exc import OperationalError

from app.config.settings import get_settings
from app.core.exceptions import BookingServiceError, InternalError, StoreUnavailableError, ValidationError
from app.core.middleware import correlation_id_middleware, request_logging_middleware
from app.core.monitoring import health_router
from app.api.v1.router import api_v1_router
from app.utils.my_logging import setup_logging
from app.api.middleware.rate_limit_middleware import RateLimitMiddleware

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    setup_logging()
    logger.info(f"{settings.APP_NAME} starting up")

    routes = sorted(
        (route.path, ",".join(sorted(route.methods)))
        for route in app.routes
        if isinstance(route, APIRoute)
    )
    for path, methods in routes:
        logger.debug(f"  {methods:12} {path}")
    logger.info(f"Total routes registered: {len(routes)}")

    yield

    # Shutdown
    logger.info(f"{settings.APP_NAME} shutting down")


# ============================================================================
# Exception handlers
# ============================================================================

async def booking_service_error_handler(request: Request, exc: BookingServiceError):
    # Context goes to the log only; payloads carry the message and code
    log = logger.error if exc.status_code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error}: {exc.message} {exc.context}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
        message = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        message = "Invalid request"
    return await booking_service_error_handler(request, ValidationError(message))


async def operational_error_handler(request: Request, exc: OperationalError):
    logger.error(f"Database unavailable on {request.method} {request.url.path}: {exc.orig}")
    return await booking_service_error_handler(
        request,
        StoreUnavailableError("Service temporarily unavailable, please retry")
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    correlation_id = getattr(request.state, "correlation_id", None)
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path} (correlation_id={correlation_id})",
        exc_info=exc,
    )
    return await booking_service_error_handler(request, InternalError("Internal server error"))


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title=settings.APP_NAME,
        description="Time-slot availability and booking lifecycle for a single service provider",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_exception_handler(BookingServiceError, booking_service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(OperationalError, operational_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.add_middleware(RateLimitMiddleware, requests_per_second=settings.PUBLIC_RATE_LIMIT_PER_SECOND)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "PUT"],
        allow_headers=["*"],
    )

    # Add custom middleware
    app.middleware("http")(correlation_id_middleware)
    app.middleware("http")(request_logging_middleware)

    # Include routers
    app.include_router(health_router, prefix="/health", tags=["monitoring"])
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": "0.1.0",
            "status": "running",
            "endpoints": {
                "api": "/api/v1/",
                "health": "/health",
                "docs": "/docs" if settings.DEBUG else "disabled"
            }
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
