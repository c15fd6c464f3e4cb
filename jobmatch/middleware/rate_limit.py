"""
Rate limiting middleware for analysis endpoints
"""
import time
from typing import Dict, Iterable, Optional
from collections import defaultdict, deque
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger
from jobmatch.core.exceptions import RateLimitError
from jobmatch.middleware.auth import extract_user_id

logger = get_logger(__name__)


class SlidingWindowLimiter:
    """Per-key sliding window of request timestamps, swept every cleanup_interval hits"""

    def __init__(self, limit: int, window_seconds: int, cleanup_interval: int = 1000):
        self.limit = limit
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        self.requests: Dict[str, deque] = defaultdict(deque)
        self._hits = 0

    def _prune(self, key: str, now: float) -> deque:
        timestamps = self.requests[key]
        cutoff_time = now - self.window_seconds
        while timestamps and timestamps[0] <= cutoff_time:
            timestamps.popleft()
        return timestamps

    def hit(self, key: str, now: Optional[float] = None):
        """
        Register one request for key.

        Raises:
            RateLimitError: If the key already used its quota in the window
        """
        now = time.time() if now is None else now
        self._hits += 1
        if self._hits % self.cleanup_interval == 0:
            self.cleanup(now)

        timestamps = self._prune(key, now)

        if len(timestamps) >= self.limit:
            raise RateLimitError(user_id=key, limit=self.limit, window=self.window_seconds)

        timestamps.append(now)

    def remaining(self, key: str, now: Optional[float] = None) -> int:
        now = time.time() if now is None else now
        return max(0, self.limit - len(self._prune(key, now)))

    def reset_at(self, key: str) -> int:
        """Timestamp when the oldest request in the window expires"""
        timestamps = self.requests[key]
        if not timestamps:
            return int(time.time())
        return int(timestamps[0] + self.window_seconds)

    def retry_after(self, key: str) -> int:
        timestamps = self.requests[key]
        if not timestamps:
            return 0
        return max(0, int(timestamps[0] + self.window_seconds - time.time()))

    def cleanup(self, now: Optional[float] = None):
        """Drop keys whose windows are empty"""
        now = time.time() if now is None else now
        for key in list(self.requests):
            if not self._prune(key, now):
                del self.requests[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Per-user sliding window rate limiting

    Only the configured paths are limited. Requests without a user id pass
    through so the auth dependency can reject them.
    """

    def __init__(
        self,
        app,
        requests_per_window: Optional[int] = None,
        window_seconds: Optional[int] = None,
        paths: Optional[Iterable[str]] = None
    ):
        super().__init__(app)
        self.limiter = SlidingWindowLimiter(
            limit=requests_per_window or settings.RATE_LIMIT_REQUESTS,
            window_seconds=window_seconds or settings.RATE_LIMIT_WINDOW
        )
        self.rate_limited_paths = set(paths or {f"{settings.API_V1_PREFIX}/analyze"})

        logger.info(
            "rate_limit_middleware_initialized",
            requests_per_window=self.limiter.limit,
            window_seconds=self.limiter.window_seconds,
            paths=sorted(self.rate_limited_paths)
        )

    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or request.url.path not in self.rate_limited_paths:
            return await call_next(request)

        user_id = extract_user_id(request)
        if not user_id:
            return await call_next(request)

        try:
            self.limiter.hit(user_id)
        except RateLimitError as e:
            retry_after = self.limiter.retry_after(user_id)

            logger.warning(
                "rate_limit_exceeded",
                user_id=user_id,
                path=request.url.path,
                limit=self.limiter.limit,
                window=self.limiter.window_seconds
            )

            return JSONResponse(
                status_code=429,
                content={
                    "detail": {
                        "error_code": e.error_code,
                        "message": e.message,
                        "details": {
                            "limit": self.limiter.limit,
                            "window_seconds": self.limiter.window_seconds,
                            "retry_after": retry_after
                        },
                        "request_id": getattr(request.state, 'request_id', None)
                    }
                },
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Limit": str(self.limiter.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(self.limiter.reset_at(user_id))
                }
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(self.limiter.limit)
        response.headers["X-RateLimit-Remaining"] = str(self.limiter.remaining(user_id))
        response.headers["X-RateLimit-Reset"] = str(self.limiter.reset_at(user_id))

        return response
