"""
Middleware package for identity, rate limiting and monitoring
"""

from .auth import get_current_user
from .rate_limit import RateLimitMiddleware, SlidingWindowLimiter
from .monitoring import MonitoringMiddleware

__all__ = [
    "get_current_user",
    "RateLimitMiddleware",
    "SlidingWindowLimiter",
    "MonitoringMiddleware"
]
