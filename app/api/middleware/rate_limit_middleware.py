# ===== app/api/middleware/rate_limit_middleware.py =====
from collections import deque
from typing import Deque, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
import time

WINDOW_SECONDS = 1.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-client-IP rate limiting for unauthenticated traffic: the public
    routes and booking creation without a bearer token.

    Sliding one-second window kept in process memory. Clients with no
    request inside the window are dropped, so memory follows the number
    of recently active IPs.
    """

    def __init__(self, app, requests_per_second: int = 10):
        super().__init__(app)
        self.requests_per_second = requests_per_second
        self.request_times: Dict[str, Deque[float]] = {}
        self.last_sweep = 0.0

    @staticmethod
    def is_limited_route(request: Request) -> bool:
        path = request.url.path
        if path.startswith("/api/v1/public/"):
            return True
        if path.rstrip("/") == "/api/v1/bookings" and request.method == "POST":
            return not request.headers.get("authorization")
        return False

    def sweep(self, now: float):
        """Forget every client whose newest request fell out of the window"""
        stale = [client_id for client_id, window in self.request_times.items()
                 if not window or now - window[-1] >= WINDOW_SECONDS]
        for client_id in stale:
            del self.request_times[client_id]
        self.last_sweep = now

    def allow(self, client_id: str, now: float) -> bool:
        """Record a request from client_id at now; False when over the limit"""
        if now - self.last_sweep >= WINDOW_SECONDS:
            self.sweep(now)

        window = self.request_times.get(client_id)
        if window is not None:
            # Remove old timestamps (older than 1 second)
            while window and now - window[0] >= WINDOW_SECONDS:
                window.popleft()
            if len(window) >= self.requests_per_second:
                return False
        else:
            window = self.request_times[client_id] = deque()

        window.append(now)
        return True

    async def dispatch(self, request: Request, call_next):
        if self.requests_per_second <= 0 or not self.is_limited_route(request):
            return await call_next(request)

        client_id = request.client.host if request.client else "unknown"
        if not self.allow(client_id, time.monotonic()):
            return JSONResponse(
                status_code=429,
                content={
                    "message": "Rate limit exceeded. Too many requests per second.",
                    "error": "rate_limited",
                },
                headers={"Retry-After": "1"}
            )

        return await call_next(request)
