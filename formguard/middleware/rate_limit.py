"""Rate limiting middleware for API protection."""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from formguard.core.request_utils import get_client_ip

logger = logging.getLogger(__name__)


@dataclass
class PathRateLimitConfig:
    """Limit for one path prefix: at most max_requests per window_seconds."""

    max_requests: int
    window_seconds: int
    message: str = "Too many requests, please try again later."


@dataclass
class RateLimitBucket:
    """Request timestamps for a single client+path combination."""

    requests: deque[float] = field(default_factory=deque)
    last_update: float = field(default_factory=time.monotonic)


DEFAULT_PATH_CONFIGS: dict[str, PathRateLimitConfig] = {
    "/api": PathRateLimitConfig(
        max_requests=100,
        window_seconds=15 * 60,
    ),
}


class RateLimiter:
    """In-memory sliding-window rate limiter with per-path configuration.

    Designed for single-instance deployments.
    """

    def __init__(self, path_configs: dict[str, PathRateLimitConfig] | None = None) -> None:
        self._buckets: dict[str, RateLimitBucket] = {}
        self._lock = asyncio.Lock()
        self._path_configs = dict(DEFAULT_PATH_CONFIGS if path_configs is None else path_configs)

    def get_config_for_path(self, path: str) -> tuple[str, PathRateLimitConfig] | None:
        """Get the (prefix, config) for a path, or None if the path is unlimited."""
        for prefix, config in self._path_configs.items():
            if path == prefix or path.startswith(prefix + "/"):
                return prefix, config
        return None

    async def check_rate_limit(
        self,
        client_ip: str,
        path: str,
    ) -> tuple[bool, dict[str, str]]:
        """Check if request is allowed.

        Returns:
            Tuple of (is_allowed, headers_dict)
        """
        match = self.get_config_for_path(path)
        if match is None:
            return True, {}
        prefix, config = match
        bucket_key = f"{client_ip}:{prefix}"

        async with self._lock:
            bucket = self._buckets.setdefault(bucket_key, RateLimitBucket())
            now = time.monotonic()
            bucket.last_update = now

            cutoff = now - config.window_seconds
            while bucket.requests and bucket.requests[0] <= cutoff:
                bucket.requests.popleft()

            remaining = config.max_requests - len(bucket.requests)
            headers = {
                "RateLimit-Limit": str(config.max_requests),
                "RateLimit-Remaining": str(max(0, remaining - 1)),
            }

            if remaining <= 0:
                reset_seconds = max(1, int(config.window_seconds - (now - bucket.requests[0])))
                headers["Retry-After"] = str(reset_seconds)
                headers["RateLimit-Reset"] = str(reset_seconds)
                return False, headers

            bucket.requests.append(now)
            return True, headers

    def message_for_path(self, path: str) -> str:
        match = self.get_config_for_path(path)
        return match[1].message if match else ""

    async def reset(self, client_ip: str | None = None) -> None:
        """Reset rate limit counters."""
        async with self._lock:
            if client_ip:
                for key in [k for k in self._buckets if k.startswith(f"{client_ip}:")]:
                    del self._buckets[key]
            else:
                self._buckets.clear()

    async def cleanup_inactive_buckets(self, inactive_seconds: int = 86400) -> int:
        """Remove buckets that have been inactive for the specified duration.

        Returns:
            Number of buckets removed
        """
        async with self._lock:
            cutoff = time.monotonic() - inactive_seconds
            keys_to_remove = [
                key for key, bucket in self._buckets.items() if bucket.last_update < cutoff
            ]
            for key in keys_to_remove:
                del self._buckets[key]

            if keys_to_remove:
                logger.info(f"Cleaned up {len(keys_to_remove)} inactive rate limit buckets")

            return len(keys_to_remove)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Per-IP, per-path-prefix rate limiting with standard RateLimit headers."""

    def __init__(
        self,
        app: ASGIApp,
        rate_limiter: RateLimiter,
        enabled: bool = True,
        trusted_proxies: set[str] | None = None,
    ) -> None:
        super().__init__(app)
        self.rate_limiter = rate_limiter
        self.enabled = enabled
        self.trusted_proxies = trusted_proxies

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.enabled:
            return await call_next(request)

        path = request.url.path
        client_ip = get_client_ip(request, self.trusted_proxies) or "unknown"
        is_allowed, headers = await self.rate_limiter.check_rate_limit(client_ip, path)

        if not is_allowed:
            logger.warning(f"Rate limit exceeded for {client_ip} on {path}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "status": 429,
                    "error": self.rate_limiter.message_for_path(path),
                },
                headers=headers,
            )

        response = await call_next(request)

        for key, value in headers.items():
            response.headers[key] = value

        return response


async def rate_limit_cleanup_loop(rate_limiter: RateLimiter, interval: float = 3600) -> None:
    """Periodic cleanup of inactive rate limit buckets to prevent memory leaks."""
    while True:
        try:
            await asyncio.sleep(interval)
            removed = await rate_limiter.cleanup_inactive_buckets(inactive_seconds=86400)
            if removed > 0:
                logger.debug(f"Rate limiter cleanup: removed {removed} inactive buckets")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Rate limiter cleanup error: {e}")
