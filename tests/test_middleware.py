"""
Tests for rate limiting, monitoring and identity middleware
"""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from jobmatch.main import jobmatch_exception_handler
from jobmatch.middleware.auth import get_current_user
from jobmatch.middleware.monitoring import MonitoringMiddleware
from jobmatch.middleware.rate_limit import RateLimitMiddleware, SlidingWindowLimiter
from jobmatch.utils.metrics import MetricsCollector
from jobmatch.core.exceptions import JobMatchException, RateLimitError


def build_app(collector=None, limit=2):
    app = FastAPI()

    @app.post("/limited")
    async def limited(current_user: dict = Depends(get_current_user)):
        return current_user

    @app.get("/open")
    async def open_endpoint():
        return {"ok": True}

    @app.get("/items/{item_id}")
    async def get_item(item_id: int):
        return {"item_id": item_id}

    app.add_middleware(RateLimitMiddleware, requests_per_window=limit, window_seconds=60, paths=["/limited"])
    app.add_exception_handler(JobMatchException, jobmatch_exception_handler)
    app.add_middleware(MonitoringMiddleware, collector=collector or MetricsCollector())
    return app


class TestSlidingWindowLimiter:

    def test_allows_up_to_limit(self):
        limiter = SlidingWindowLimiter(limit=2, window_seconds=60)

        limiter.hit("user", now=100)
        limiter.hit("user", now=101)

        assert limiter.remaining("user", now=102) == 0
        with pytest.raises(RateLimitError) as exc_info:
            limiter.hit("user", now=102)

        assert exc_info.value.details["limit"] == 2
        assert exc_info.value.details["window"] == 60

    def test_window_slides(self):
        limiter = SlidingWindowLimiter(limit=1, window_seconds=60)

        limiter.hit("user", now=100)
        limiter.hit("user", now=161)

        assert limiter.remaining("user", now=161) == 0

    def test_keys_are_independent(self):
        limiter = SlidingWindowLimiter(limit=1, window_seconds=60)

        limiter.hit("a", now=100)
        limiter.hit("b", now=100)

        assert limiter.remaining("a", now=100) == 0

    def test_cleanup_drops_empty_windows(self):
        limiter = SlidingWindowLimiter(limit=1, window_seconds=1)
        limiter.hit("user", now=0)

        limiter.cleanup()

        assert "user" not in limiter.requests

    def test_hits_trigger_periodic_cleanup(self):
        limiter = SlidingWindowLimiter(limit=5, window_seconds=60, cleanup_interval=3)
        limiter.hit("a", now=0)
        limiter.hit("b", now=10)

        assert set(limiter.requests) == {"a", "b"}

        limiter.hit("c", now=100)

        assert set(limiter.requests) == {"c"}


class TestRateLimitMiddleware:
    """Test per-user limiting on configured paths"""

    def setup_method(self):
        self.client = TestClient(build_app(limit=2))

    def test_limit_exceeded_returns_429(self):
        headers = {"X-User-ID": "user-1"}

        assert self.client.post("/limited", headers=headers).status_code == 200
        assert self.client.post("/limited", headers=headers).status_code == 200
        response = self.client.post("/limited", headers=headers)

        assert response.status_code == 429
        detail = response.json()["detail"]
        assert detail["error_code"] == "RATE_LIMIT_ERROR"
        assert detail["details"]["limit"] == 2
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in response.headers

    def test_other_users_unaffected(self):
        for _ in range(3):
            self.client.post("/limited", headers={"X-User-ID": "user-1"})

        response = self.client.post("/limited", headers={"X-User-ID": "user-2"})

        assert response.status_code == 200
        assert response.headers["X-RateLimit-Remaining"] == "1"

    def test_unlisted_paths_not_limited(self):
        for _ in range(5):
            response = self.client.get("/open", headers={"X-User-ID": "user-1"})

        assert response.status_code == 200
        assert "X-RateLimit-Limit" not in response.headers

    def test_anonymous_requests_reach_auth(self):
        response = self.client.post("/limited")

        assert response.status_code == 401


class TestMonitoringMiddleware:

    def test_records_request_metrics(self):
        collector = MetricsCollector()
        client = TestClient(build_app(collector=collector))

        client.get("/open")
        client.post("/limited")

        assert collector.performance_metrics["GET /open"].request_count == 1
        assert collector.performance_metrics["POST /limited"].error_count == 1
        points = list(collector.metrics["http_errors_total"])
        assert points[0].labels["error_type"] == "http_401"

    def test_metrics_grouped_by_route_template(self):
        collector = MetricsCollector()
        client = TestClient(build_app(collector=collector))

        client.get("/items/1")
        client.get("/items/2")

        assert collector.performance_metrics["GET /items/{item_id}"].request_count == 2
        assert "GET /items/1" not in collector.performance_metrics

    def test_generates_request_id(self):
        client = TestClient(build_app())

        response = client.get("/open")

        assert len(response.headers["X-Request-ID"]) == 36


class TestAuthDependency:

    def test_user_id_returned(self):
        client = TestClient(build_app())

        response = client.post("/limited", headers={"X-User-ID": "  user-7 "})

        assert response.json() == {"user_id": "user-7"}

    def test_overlong_user_id_rejected(self):
        client = TestClient(build_app())

        response = client.post("/limited", headers={"X-User-ID": "x" * 200})

        assert response.status_code == 401

    def test_missing_user_id_error_detail(self):
        client = TestClient(build_app())

        response = client.post("/limited", headers={"X-Request-ID": "req-9"})

        assert response.status_code == 401
        assert response.json()["detail"] == {
            "error_code": "AUTHENTICATION_ERROR",
            "message": "Missing or invalid X-User-ID header",
            "details": {"header": "X-User-ID"},
            "request_id": "req-9",
        }
