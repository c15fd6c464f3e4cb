"""
Request tracing and latency metrics
"""
import time
import uuid
from typing import Callable, Optional
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from jobmatch.utils.logger import get_logger, set_request_context, clear_request_context
from jobmatch.utils.metrics import MetricsCollector, metrics_collector
from jobmatch.middleware.auth import extract_user_id

logger = get_logger(__name__)


def route_template(request: Request) -> str:
    """``/api/v1/analyses/{analysis_id}`` rather than the concrete path, once routing has run"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MonitoringMiddleware(BaseHTTPMiddleware):
    """
    Assigns a request id, binds the logging context and records latency
    per route.
    """

    def __init__(self, app, collector: Optional[MetricsCollector] = None, collect_detailed_metrics: bool = True):
        super().__init__(app)
        self.collector = collector or metrics_collector
        self.collect_detailed_metrics = collect_detailed_metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        set_request_context(request_id, extract_user_id(request))

        request_logger = logger.bind(method=request.method, path=request.url.path)
        request_logger.debug(
            "request_started",
            client_ip=request.client.host if request.client else "unknown"
        )

        start_time = time.time()
        response = None
        error_type = None

        try:
            response = await call_next(request)
            if response.status_code >= 400:
                error_type = f"http_{response.status_code}"
        except Exception as e:
            error_type = type(e).__name__
            request_logger.error("request_exception", exc_info=True, error=str(e), error_type=error_type)
            raise
        finally:
            duration = time.time() - start_time
            status_code = response.status_code if response else 500
            endpoint = f"{request.method} {route_template(request)}"

            await self._record_request_metrics(endpoint, duration, status_code, error_type)

            request_logger.info(
                "request_completed",
                endpoint=endpoint,
                status_code=status_code,
                duration=round(duration, 4),
                error_type=error_type
            )
            clear_request_context()

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        return response

    async def _record_request_metrics(
        self,
        endpoint: str,
        duration: float,
        status_code: int,
        error_type: Optional[str] = None
    ):
        await self.collector.record_request_latency(endpoint, duration, success=error_type is None)

        if not self.collect_detailed_metrics:
            return

        method, path = endpoint.split(" ", 1)
        await self.collector.record_metric(
            "http_requests_total",
            1,
            labels={"method": method, "endpoint": path, "status_code": str(status_code)}
        )
        if error_type:
            await self.collector.record_metric(
                "http_errors_total",
                1,
                labels={"endpoint": endpoint, "error_type": error_type}
            )
