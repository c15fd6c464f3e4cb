"""
Client for the remote ATS scoring service with retry logic and circuit breaker
"""
import asyncio
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, List, Optional

import httpx

from jobmatch.config import settings
from jobmatch.utils.logger import get_logger
from jobmatch.utils.metrics import MetricsCollector, metrics_collector
from jobmatch.core.exceptions import ScoringServiceError, ScoringServiceUnavailableError

logger = get_logger(__name__)

SERVICE_NAME = "ats_scoring"


class CircuitBreakerState(Enum):
    """Circuit breaker states"""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration"""
    failure_threshold: int = 5
    recovery_timeout: int = 60  # seconds
    success_threshold: int = 2  # for half-open state


class CircuitBreaker:
    """Circuit breaker implementation for scoring service calls"""

    def __init__(self, config: CircuitBreakerConfig):
        self.config = config
        self.state = CircuitBreakerState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.last_failure_time = 0

    def can_execute(self) -> bool:
        """Check if request can be executed"""
        if self.state == CircuitBreakerState.CLOSED:
            return True
        elif self.state == CircuitBreakerState.OPEN:
            if time.time() - self.last_failure_time >= self.config.recovery_timeout:
                self.state = CircuitBreakerState.HALF_OPEN
                self.success_count = 0
                return True
            return False
        else:  # HALF_OPEN
            return True

    def record_success(self):
        """Record successful request"""
        if self.state == CircuitBreakerState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.config.success_threshold:
                self.state = CircuitBreakerState.CLOSED
                self.failure_count = 0
        elif self.state == CircuitBreakerState.CLOSED:
            self.failure_count = 0

    def record_failure(self):
        """Record failed request"""
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == CircuitBreakerState.HALF_OPEN:
            self.state = CircuitBreakerState.OPEN
        elif self.failure_count >= self.config.failure_threshold:
            self.state = CircuitBreakerState.OPEN


@dataclass
class RemoteScore:
    """Parsed response of the remote scoring service"""
    overall_score: float
    category_scores: Dict[str, Any] = field(default_factory=dict)
    keyword_analysis: List[Any] = field(default_factory=list)
    suggestions: List[Any] = field(default_factory=list)


def parse_score_response(payload: Any) -> RemoteScore:
    """
    Validate a scoring response body.

    Raises:
        ScoringServiceError: If overallScore is missing, not numeric or not finite
    """
    if not isinstance(payload, dict):
        raise ScoringServiceError(
            "Malformed scoring response: expected a JSON object",
            service_name=SERVICE_NAME,
            error_code="SCORING_RESPONSE_MALFORMED"
        )

    overall = payload.get("overallScore")
    if isinstance(overall, bool) or not isinstance(overall, (int, float)):
        raise ScoringServiceError(
            "Malformed scoring response: overallScore missing or not numeric",
            service_name=SERVICE_NAME,
            error_code="SCORING_RESPONSE_MALFORMED",
            details={"overall_score": repr(overall)}
        )

    try:
        overall_score = float(overall)
    except OverflowError:
        overall_score = math.inf

    if not math.isfinite(overall_score):
        raise ScoringServiceError(
            "Malformed scoring response: overallScore is not a finite number",
            service_name=SERVICE_NAME,
            error_code="SCORING_RESPONSE_MALFORMED",
            details={"overall_score": repr(overall)[:50]}
        )

    return RemoteScore(
        overall_score=overall_score,
        category_scores=payload.get("categoryScores") or {},
        keyword_analysis=payload.get("keywordAnalysis") or [],
        suggestions=payload.get("suggestions") or [],
    )


class ScoringClient:
    """HTTP client for the remote ATS scoring endpoint"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.base_url = settings.SCORING_SERVICE_URL if base_url is None else base_url
        self.api_key = settings.SCORING_SERVICE_API_KEY if api_key is None else api_key
        self.timeout = timeout or settings.SCORING_SERVICE_TIMEOUT
        self.max_retries = settings.SCORING_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = settings.SCORING_RETRY_BASE_DELAY if base_delay is None else base_delay
        self.transport = transport
        self.circuit_breaker = circuit_breaker or CircuitBreaker(CircuitBreakerConfig())
        self.metrics = metrics or metrics_collector

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, body: Dict[str, Any]) -> httpx.Response:
        started = time.time()
        response = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.base_url, json=body, headers=self._headers())
            return response
        finally:
            await self.metrics.record_external_api_call(
                SERVICE_NAME,
                time.time() - started,
                success=response is not None and response.status_code < 400
            )

    async def score(
        self,
        job_description: str,
        resume_content: str,
        mode: Optional[str] = None
    ) -> RemoteScore:
        """
        Request a score estimate with retry logic and exponential backoff.

        Args:
            job_description: Job posting text
            resume_content: Flattened profile text
            mode: Optional analysis mode forwarded to the service

        Returns:
            Parsed RemoteScore

        Raises:
            ScoringServiceUnavailableError: If disabled or the circuit is open
            ScoringServiceError: If every attempt fails or the body is malformed
        """
        if not self.enabled:
            raise ScoringServiceUnavailableError(SERVICE_NAME, "no scoring service URL configured")

        if not self.circuit_breaker.can_execute():
            raise ScoringServiceUnavailableError(SERVICE_NAME, "Circuit breaker is open")

        body: Dict[str, Any] = {
            "jobDescription": job_description,
            "resumeContent": resume_content,
        }
        if mode:
            body["mode"] = mode

        last_exception: Optional[Exception] = None
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                response = await self._post(body)

                if response.status_code >= 500:
                    raise ScoringServiceError(
                        f"Scoring service returned {response.status_code}",
                        service_name=SERVICE_NAME,
                        api_response_code=response.status_code
                    )
                if response.status_code >= 400:
                    # Client errors are not retried
                    self.circuit_breaker.record_failure()
                    raise ScoringServiceError(
                        f"Scoring service rejected request with {response.status_code}",
                        service_name=SERVICE_NAME,
                        api_response_code=response.status_code,
                        error_code="SCORING_REQUEST_REJECTED"
                    )

                try:
                    result = parse_score_response(response.json())
                except ValueError as e:
                    self.circuit_breaker.record_failure()
                    raise ScoringServiceError(
                        f"Malformed scoring response: {e}",
                        service_name=SERVICE_NAME,
                        error_code="SCORING_RESPONSE_MALFORMED"
                    )
                except ScoringServiceError:
                    self.circuit_breaker.record_failure()
                    raise

                self.circuit_breaker.record_success()

                logger.info(
                    "remote_score_received",
                    attempt=attempt + 1,
                    overall_score=result.overall_score
                )
                return result

            except ScoringServiceError as e:
                if e.error_code != "SCORING_SERVICE_ERROR":
                    raise
                last_exception = e
            except httpx.HTTPError as e:
                last_exception = e

            logger.warning(
                "remote_score_attempt_failed",
                attempt=attempt + 1,
                max_attempts=attempts,
                error=str(last_exception)
            )

            if attempt < attempts - 1:
                delay = self.base_delay * (2 ** attempt)
                await asyncio.sleep(delay)

        self.circuit_breaker.record_failure()
        raise ScoringServiceError(
            f"Scoring request failed after {attempts} attempts: {last_exception}",
            service_name=SERVICE_NAME,
            details={"attempts": attempts}
        )

    async def health_check(self) -> Dict[str, Any]:
        """Report configuration and circuit state without calling the service"""
        if not self.enabled:
            status = "disabled"
        elif self.circuit_breaker.state == CircuitBreakerState.OPEN:
            status = "degraded"
        else:
            status = "healthy"

        return {
            "status": status,
            "service": SERVICE_NAME,
            "enabled": self.enabled,
            "circuit_breaker_state": self.circuit_breaker.state.value,
            "failure_count": self.circuit_breaker.failure_count,
        }


# Global client instance
scoring_client = ScoringClient()
