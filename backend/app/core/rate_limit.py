"""
Rate limiting middleware for the WareFlow backend
Uses in-memory storage with a sliding window algorithm
"""
import time
import hashlib
from typing import Dict, Tuple
from collections import defaultdict

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.core.config import settings


class RateLimiter:
    """
    In-memory rate limiter using a sliding window.

    State is per process; several workers each keep their own counters.
    """

    def __init__(self, cleanup_interval: int = 60):
        # {identifier: [timestamp, ...]}
        self._requests: Dict[str, list] = defaultdict(list)
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval

    def _cleanup_old_entries(self, window_seconds: int, now: float):
        if now - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = now - window_seconds * 2
        for identifier in list(self._requests.keys()):
            self._requests[identifier] = [ts for ts in self._requests[identifier] if ts > cutoff]
            if not self._requests[identifier]:
                del self._requests[identifier]

        self._last_cleanup = now

    def is_allowed(
        self,
        identifier: str,
        max_requests: int,
        window_seconds: int = 60
    ) -> Tuple[bool, int, int]:
        """
        Check if a request is allowed under the rate limit.

        Returns:
            Tuple of (is_allowed, remaining_requests, retry_after_seconds)
        """
        now = time.time()
        self._cleanup_old_entries(window_seconds, now)

        window_start = now - window_seconds
        in_window = [ts for ts in self._requests[identifier] if ts > window_start]
        self._requests[identifier] = in_window

        if len(in_window) >= max_requests:
            retry_after = int(min(in_window) + window_seconds - now) + 1
            return False, 0, retry_after

        in_window.append(now)
        return True, max_requests - len(in_window), 0

    def reset(self):
        self._requests.clear()


rate_limiter = RateLimiter()

EXEMPT_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies a per-minute limit based on authentication status.

    - Bearer-authenticated callers: RATE_LIMIT_AUTHENTICATED req/min
    - Everyone else, per client IP: RATE_LIMIT_UNAUTHENTICATED req/min
    """

    def __init__(self, app, limiter: RateLimiter = None):
        super().__init__(app)
        self.limiter = limiter or rate_limiter

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        identifier, limit = self._get_identifier_and_limit(request)
        is_allowed, remaining, retry_after = self.limiter.is_allowed(identifier, limit, 60)

        if not is_allowed:
            # Returned rather than raised so it still passes through CORS
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "status": "error",
                    "error": "Rate limit exceeded. Please slow down.",
                    "code": "RATE_LIMITED",
                    "errors": [],
                },
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(retry_after),
                    "Retry-After": str(retry_after),
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _get_identifier_and_limit(self, request: Request) -> Tuple[str, int]:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token_hash = hashlib.sha256(auth_header.encode()).hexdigest()[:32]
            return f"jwt:{token_hash}", settings.RATE_LIMIT_AUTHENTICATED

        return f"ip:{self._get_client_ip(request)}", settings.RATE_LIMIT_UNAUTHENTICATED

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"
