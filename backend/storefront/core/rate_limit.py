"""
Rate limiting for the storefront API
Uses in-memory storage with sliding window algorithm
"""
import hashlib
import time
from collections import defaultdict
from typing import Dict, Tuple

from fastapi import HTTPException, Request, status
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from storefront.core.config import settings


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    State is per process; multiple workers each keep their own window.
    """

    def __init__(self, cleanup_interval: int = 60):
        # {identifier: [(timestamp, count), ...]}
        self._requests: Dict[str, list] = defaultdict(list)
        self._last_cleanup = time.time()
        self._cleanup_interval = cleanup_interval

    def _cleanup_old_entries(self, window_seconds: int = 60):
        """Remove entries older than twice the window"""
        now = time.time()

        if now - self._last_cleanup < self._cleanup_interval:
            return

        cutoff = now - window_seconds * 2

        for identifier in list(self._requests.keys()):
            self._requests[identifier] = [
                (ts, count) for ts, count in self._requests[identifier]
                if ts > cutoff
            ]
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
        self._cleanup_old_entries(window_seconds)

        now = time.time()
        window_start = now - window_seconds

        requests_in_window = [
            (ts, count) for ts, count in self._requests[identifier]
            if ts > window_start
        ]

        total_requests = sum(count for _, count in requests_in_window)

        if total_requests >= max_requests:
            if requests_in_window:
                oldest_timestamp = min(ts for ts, _ in requests_in_window)
                retry_after = int(oldest_timestamp + window_seconds - now) + 1
            else:
                retry_after = 1

            return False, 0, retry_after

        self._requests[identifier].append((now, 1))

        remaining = max_requests - total_requests - 1
        return True, remaining, 0

    def reset(self):
        self._requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


# Global limits per minute
RATE_LIMITS = {
    "authenticated": 1000,
    "unauthenticated": 300,
}

# Named endpoint limits: (max_requests, window_seconds)
ENDPOINT_LIMITS = {
    "checkout": (10, 60),
    "newsletter": (5, 60),
    "contact": (5, 60),
}

# Paths that are exempt from rate limiting
EXEMPT_PATHS = {
    "/",
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


def get_client_ip(request: Request) -> str:
    """
    Get the client IP, considering proxies

    X-Forwarded-For is only honoured when the direct peer is one of
    TRUSTED_PROXIES; the chain is then read from the right and the first
    untrusted hop is the client.
    """
    peer = request.client.host if request.client else None
    trusted = settings.get_trusted_proxies()

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for and peer in trusted:
        hops = [hop.strip() for hop in forwarded_for.split(",") if hop.strip()]
        for hop in reversed(hops):
            if hop not in trusted:
                return hop
        if hops:
            return hops[0]

    return peer or "unknown"


def _token_fingerprint(auth_header: str) -> str:
    return hashlib.sha256(auth_header.encode()).hexdigest()[:16]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware that applies global rate limits based on authentication status.

    Headers returned:
    - X-RateLimit-Limit: Maximum requests per window
    - X-RateLimit-Remaining: Remaining requests in current window
    - X-RateLimit-Reset: Seconds until the window resets (when limited)
    """

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            identifier = f"jwt:{_token_fingerprint(auth_header)}"
            limit = RATE_LIMITS["authenticated"]
        else:
            identifier = f"ip:{get_client_ip(request)}"
            limit = RATE_LIMITS["unauthenticated"]

        is_allowed, remaining, retry_after = rate_limiter.is_allowed(
            identifier=identifier,
            max_requests=limit,
            window_seconds=60
        )

        if not is_allowed:
            # JSONResponse instead of HTTPException so CORS middleware still applies
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Rate limit exceeded. Please slow down."},
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


def rate_limit(name: str):
    """
    Dependency factory for a named per-endpoint limit, keyed by client IP.

    Usage:
        @router.post("/checkout")
        async def checkout(_: None = Depends(rate_limit("checkout"))):
            ...
    """
    max_requests, window_seconds = ENDPOINT_LIMITS[name]

    async def checker(request: Request):
        identifier = f"endpoint:{name}:ip:{get_client_ip(request)}"
        is_allowed, _, retry_after = rate_limiter.is_allowed(
            identifier=identifier,
            max_requests=max_requests,
            window_seconds=window_seconds
        )

        if not is_allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many requests. Try again in {retry_after} seconds.",
                headers={
                    "X-RateLimit-Limit": str(max_requests),
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(retry_after),
                }
            )

    return checker
