"""
Rate Limiting Middleware

Fixed-window rate limiting in Redis, per client and route prefix.

ARCHITECTURE: One counter key per (route prefix, client, window).
INCR + EXPIRE on the first hit of each window. Fixed windows allow a burst
of up to 2x the limit across a window boundary, which is acceptable for
these limits.

PRODUCTION NOTES:
- Redis is a single point of failure; when it is unreachable we fail open
- The client identifier is the bearer token subject or the client IP
- X-Forwarded-For is only read when TRUSTED_PROXY_COUNT proxies sit in
  front of the app; each of them appends one entry on the right
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional, Tuple
import redis
import time
import logging
from zaltyko.config import get_settings
from zaltyko.core.security import decode_access_token
from zaltyko.utils.logging import log_security_event

logger = logging.getLogger(__name__)
settings = get_settings()


# Most specific prefix first
ROUTE_LIMITS: Tuple[Tuple[str, int], ...] = (
    ("/api/super-admin/users", 20),
    ("/api/super-admin", 50),
    ("/api/billing/checkout", 10),
    ("/api/invitations/complete", 10),
    ("/api/athletes", 100),
)


def get_route_limit(path: str) -> Tuple[str, int]:
    """(bucket prefix, requests per window) for a path."""
    for prefix, limit in ROUTE_LIMITS:
        if path.startswith(prefix):
            return prefix, limit
    return "default", settings.RATE_LIMIT_PER_MINUTE


class FixedWindowRateLimiter:
    """Fixed window counter on top of a redis client."""

    def __init__(self, client, window_seconds: int):
        self.client = client
        self.window_seconds = window_seconds

    def hit(self, identifier: str, bucket: str, limit: int, now: Optional[float] = None) -> Tuple[bool, int, int]:
        """
        Count one request.

        Returns: (allowed, remaining, reset_in_seconds)
        """
        now = now if now is not None else time.time()
        window_start = int(now // self.window_seconds) * self.window_seconds
        reset_in = max(1, int(window_start + self.window_seconds - now))
        key = f"rate_limit:{bucket}:{identifier}:{window_start}"

        count = self.client.incr(key)
        if count == 1:
            self.client.expire(key, self.window_seconds)

        remaining = max(0, limit - count)
        return count <= limit, remaining, reset_in


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-route fixed window limiter.

    Adds X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset to
    every limited response.
    """

    def __init__(self, app, redis_client=None, trusted_proxies: Optional[int] = None):
        super().__init__(app)
        self.trusted_proxies = settings.TRUSTED_PROXY_COUNT if trusted_proxies is None else trusted_proxies

        if redis_client is not None:
            self.redis_client = redis_client
            self.redis_available = True
        else:
            try:
                self.redis_client = redis.from_url(
                    settings.REDIS_URL,
                    decode_responses=True,
                    socket_connect_timeout=5
                )
                self.redis_client.ping()
                self.redis_available = True
                logger.info("Redis connection established for rate limiting")
            except (redis.ConnectionError, redis.TimeoutError) as e:
                logger.error(f"Redis connection failed: {e}")
                self.redis_available = False

        self.limiter = FixedWindowRateLimiter(
            self.redis_client if self.redis_available else None,
            settings.RATE_LIMIT_WINDOW_SECONDS,
        )

        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
            # Stripe retries on its own schedule; never throttle it
            "/api/billing/webhook",
        ]

    async def dispatch(self, request: Request, call_next):
        if any(request.url.path.startswith(path) for path in self.excluded_paths):
            return await call_next(request)

        # TRADEOFF: availability over strict limiting
        if not self.redis_available:
            return await call_next(request)

        bucket, limit = get_route_limit(request.url.path)
        identifier = self._get_client_identifier(request)

        try:
            allowed, remaining, reset_in = self.limiter.hit(identifier, bucket, limit)
        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return await call_next(request)

        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(reset_in),
        }

        if not allowed:
            log_security_event(
                "rate_limit_exceeded",
                {"client": identifier, "bucket": bucket, "path": request.url.path},
                logger
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "RATE_LIMIT_EXCEEDED",
                    "message": "Too many requests. Please try again later.",
                    "resetIn": reset_in,
                },
                headers={**headers, "Retry-After": str(reset_in)}
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def _get_client_identifier(self, request: Request) -> str:
        """
        Authenticated requests are limited per user, anonymous ones per IP.

        The token is only decoded here, not validated against the database.
        """
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            payload = decode_access_token(auth_header[len("Bearer "):])
            if payload and payload.get("sub"):
                return f"user:{payload['sub']}"

        return f"ip:{self._get_client_ip(request)}"

    def _get_client_ip(self, request: Request) -> str:
        """
        Peer address, or the entry our own proxies appended to X-Forwarded-For.

        SECURITY: Entries left of the trusted hops are client supplied and
        never used, otherwise a fresh header per request escapes the limit.
        """
        peer = request.client.host if request.client else "unknown"
        if self.trusted_proxies <= 0:
            return peer

        hops = [h.strip() for h in request.headers.get("X-Forwarded-For", "").split(",") if h.strip()]
        if len(hops) < self.trusted_proxies:
            return peer
        return hops[-self.trusted_proxies]
