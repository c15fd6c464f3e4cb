"""
In-process metrics collection for requests, pipeline stages and outbound calls
"""
import time
import asyncio
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from collections import defaultdict, deque
from datetime import datetime, timezone
from enum import Enum

from jobmatch.utils.logger import get_logger

logger = get_logger(__name__)


class MetricType(Enum):
    """Types of metrics that can be collected"""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


@dataclass
class MetricPoint:
    """Individual metric data point"""
    name: str
    value: float
    timestamp: datetime
    labels: Dict[str, str] = field(default_factory=dict)
    metric_type: MetricType = MetricType.GAUGE


@dataclass
class PerformanceMetrics:
    """Latency and error counts for one endpoint or operation"""
    request_count: int = 0
    error_count: int = 0
    total_latency: float = 0.0
    min_latency: float = float('inf')
    max_latency: float = 0.0
    p50_latency: float = 0.0
    p95_latency: float = 0.0

    def add_latency(self, latency: float):
        self.request_count += 1
        self.total_latency += latency
        self.min_latency = min(self.min_latency, latency)
        self.max_latency = max(self.max_latency, latency)

    def add_error(self):
        self.error_count += 1

    @property
    def average_latency(self) -> float:
        return self.total_latency / max(1, self.request_count)

    @property
    def error_rate(self) -> float:
        """Error rate as percentage"""
        return (self.error_count / max(1, self.request_count)) * 100


class MetricsCollector:
    """
    Collects request latency, pipeline stage timings and outbound call results.

    All public methods take the collector lock once; the private helpers
    assume it is already held.
    """

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self.metrics: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_history))
        self.performance_metrics: Dict[str, PerformanceMetrics] = defaultdict(PerformanceMetrics)
        self.latency_history: Dict[str, deque] = defaultdict(lambda: deque(maxlen=max_history))
        self._lock = asyncio.Lock()

    def _append(
        self,
        name: str,
        value: float,
        metric_type: MetricType,
        labels: Optional[Dict[str, str]] = None
    ):
        self.metrics[name].append(MetricPoint(
            name=name,
            value=value,
            timestamp=datetime.now(timezone.utc),
            labels=labels or {},
            metric_type=metric_type
        ))

    def _observe(self, key: str, latency: float, success: bool):
        perf_metrics = self.performance_metrics[key]
        perf_metrics.add_latency(latency)
        if not success:
            perf_metrics.add_error()

        history = self.latency_history[key]
        history.append(latency)
        sorted_latencies = sorted(history)
        count = len(sorted_latencies)
        perf_metrics.p50_latency = sorted_latencies[int(count * 0.5)]
        perf_metrics.p95_latency = sorted_latencies[min(count - 1, int(count * 0.95))]

    async def record_metric(
        self,
        name: str,
        value: float,
        metric_type: MetricType = MetricType.GAUGE,
        labels: Optional[Dict[str, str]] = None
    ):
        async with self._lock:
            self._append(name, value, metric_type, labels)

    async def record_request_latency(self, endpoint: str, latency: float, success: bool = True):
        """
        Record request latency and update performance metrics

        Args:
            endpoint: API endpoint name
            latency: Request latency in seconds
            success: Whether the request was successful
        """
        async with self._lock:
            self._observe(endpoint, latency, success)
            self._append(f"{endpoint}_latency", latency, MetricType.TIMER)
            self._append(
                f"{endpoint}_requests_total",
                self.performance_metrics[endpoint].request_count,
                MetricType.COUNTER
            )

    async def record_stage_time(self, stage: str, duration: float, success: bool = True):
        """Record duration of one analysis pipeline stage"""
        async with self._lock:
            self._observe(f"pipeline.{stage}", duration, success)
            self._append("pipeline_stage_time", duration, MetricType.TIMER, labels={"stage": stage})

        logger.debug("pipeline_stage_recorded", stage=stage, duration=duration, success=success)

    async def record_external_api_call(self, api_name: str, response_time: float, success: bool):
        async with self._lock:
            self._append(
                "external_api_response_time",
                response_time,
                MetricType.TIMER,
                labels={"api": api_name}
            )
            self._append(
                "external_api_calls_total",
                1,
                MetricType.COUNTER,
                labels={"api": api_name, "status": "success" if success else "error"}
            )

    async def get_metrics_summary(self) -> Dict[str, Any]:
        """
        Get metrics summary

        Returns:
            Per-endpoint performance figures plus the latest value of each metric
        """
        async with self._lock:
            summary = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "performance_metrics": {},
                "current_metrics": {},
            }

            for key, metrics in self.performance_metrics.items():
                summary["performance_metrics"][key] = {
                    "request_count": metrics.request_count,
                    "error_count": metrics.error_count,
                    "error_rate": metrics.error_rate,
                    "average_latency": metrics.average_latency,
                    "min_latency": metrics.min_latency if metrics.request_count else 0.0,
                    "max_latency": metrics.max_latency,
                    "p50_latency": metrics.p50_latency,
                    "p95_latency": metrics.p95_latency,
                }

            for metric_name, metric_points in self.metrics.items():
                if metric_points:
                    latest_point = metric_points[-1]
                    summary["current_metrics"][metric_name] = {
                        "value": latest_point.value,
                        "timestamp": latest_point.timestamp.isoformat(),
                        "labels": latest_point.labels
                    }

            return summary

    async def get_points(self, metric_name: str) -> List[MetricPoint]:
        async with self._lock:
            return list(self.metrics.get(metric_name, []))

    def reset(self):
        self.metrics.clear()
        self.performance_metrics.clear()
        self.latency_history.clear()


class StageTimer:
    """
    Async context manager timing a single pipeline stage.

    Failures are recorded and the exception is re-raised.
    """

    def __init__(self, metrics_collector: MetricsCollector, stage: str):
        self.metrics_collector = metrics_collector
        self.stage = stage
        self.start_time = None

    async def __aenter__(self):
        self.start_time = time.perf_counter()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        if exc_type is not None:
            logger.error(
                "pipeline_stage_failed",
                stage=self.stage,
                duration=duration,
                error=str(exc_val)
            )
        await self.metrics_collector.record_stage_time(self.stage, duration, exc_type is None)
        return False


# Global instance
metrics_collector = MetricsCollector()
