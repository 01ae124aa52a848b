# app/core/middleware.py
"""Custom middleware for request handling"""
import uuid
import time
import logging
from starlette.requests import Request

from app.utils.my_logging import correlation_id_var

logger = logging.getLogger(__name__)


async def correlation_id_middleware(request: Request, call_next):
    """Add correlation ID to all requests for tracing"""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = correlation_id
    token = correlation_id_var.set(correlation_id)

    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)

    response.headers["X-Correlation-ID"] = correlation_id
    return response


async def request_logging_middleware(request: Request, call_next):
    """Log method, path, status and duration; query strings may carry access tokens and are not logged"""
    start_time = time.perf_counter()

    response = await call_next(request)

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    logger.info(
        f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms} ms)",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "-"),
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
    )

    return response
