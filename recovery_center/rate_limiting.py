"""Simple in-memory rate limiting for the recovery API."""

import time
from collections import defaultdict
from typing import Final

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from .logging_config import get_logger
from .request_utils import get_client_ip, is_api_request

logger: Final = get_logger(__name__)

RESTORE_PATH_SUFFIX: Final = "/recovery/restore"


class RateLimiter:
    """Simple in-memory rate limiter using sliding window approach.

    Each client IP has one window per limit type, so a burst of restores
    does not eat into the read budget of the same administrator.
    """

    def __init__(self):
        self._requests: dict[tuple[str, str], list[float]] = defaultdict(list)
        # Requests per minute
        self._limits: Final = {
            "general": 100,
            "write": 30,
            "restore": 10,
        }
        self._enabled: bool = True

    def disable(self) -> None:
        """Disable rate limiting (for testing)."""
        self._enabled = False

    def enable(self) -> None:
        self._enabled = True

    def reset(self) -> None:
        """Reset all rate limiting data."""
        self._requests.clear()

    def set_limits_for_testing(self, **limits: int) -> dict[str, int]:
        """Set rate limits for testing purposes. Returns original limits."""
        original = self._limits.copy()
        for limit_type, value in limits.items():
            if limit_type in self._limits:
                self._limits[limit_type] = value
        return original

    def restore_limits(self, original_limits: dict[str, int]) -> None:
        self._limits.update(original_limits)

    def get_request_count(self, ip: str, limit_type: str = "general") -> int:
        """Get current request count for an IP (for testing)."""
        key = (ip, limit_type)
        self._clean_old_requests(key)
        return len(self._requests[key])

    def add_request_timestamp(
        self, ip: str, timestamp: float, limit_type: str = "general"
    ) -> None:
        """Add a request timestamp for testing purposes."""
        self._requests[(ip, limit_type)].append(timestamp)

    def get_rate_limit_info(self, request: Request) -> tuple[int, int, int]:
        """Return (limit, remaining, reset_time) for the request's bucket."""
        client_ip = get_client_ip(request)
        limit, limit_type = self.limit_for(str(request.url.path), request.method)
        key = (client_ip, limit_type)

        self._clean_old_requests(key)
        remaining = max(0, limit - len(self._requests[key]))
        reset_time = int(time.time()) + 60

        return limit, remaining, reset_time

    def _clean_old_requests(
        self, key: tuple[str, str], window_seconds: int = 60
    ) -> None:
        cutoff_time = time.time() - window_seconds
        self._requests[key] = [
            timestamp for timestamp in self._requests[key] if timestamp > cutoff_time
        ]

    def limit_for(self, path: str, method: str) -> tuple[int, str]:
        """Determine the limit and its bucket name for a path and method."""
        if method in ["POST", "PUT", "DELETE", "PATCH"]:
            if path.rstrip("/").endswith(RESTORE_PATH_SUFFIX):
                return self._limits["restore"], "restore"
            return self._limits["write"], "write"

        return self._limits["general"], "general"

    def check_rate_limit(self, request: Request) -> None:
        """Record the request or raise 429 when its bucket is full."""
        if not self._enabled:
            return

        client_ip = get_client_ip(request)
        limit, limit_type = self.limit_for(str(request.url.path), request.method)
        key = (client_ip, limit_type)

        self._clean_old_requests(key)
        current_requests = len(self._requests[key])

        if current_requests >= limit:
            retry_after = 60
            logger.warning(
                "Rate limit exceeded",
                client_ip=client_ip,
                limit_type=limit_type,
                limit=limit,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "error": "Rate limit exceeded",
                    "limit": limit,
                    "limit_type": limit_type,
                    "retry_after": retry_after,
                    "current_requests": current_requests,
                },
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[key].append(time.time())


# Global rate limiter instance
rate_limiter = RateLimiter()


async def rate_limit_middleware(request: Request, call_next):
    """Rate limiting middleware for FastAPI."""
    if is_api_request(request):
        try:
            rate_limiter.check_rate_limit(request)
        except HTTPException as e:
            return JSONResponse(
                status_code=e.status_code,
                content=e.detail,
                headers=e.headers or {},
            )

    response = await call_next(request)

    if is_api_request(request):
        limit, remaining, reset_time = rate_limiter.get_rate_limit_info(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_time)

    return response
