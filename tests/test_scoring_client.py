"""
Unit tests for the remote ATS scoring client
"""
import json
import time
import pytest
import httpx
from unittest.mock import patch, AsyncMock

from jobmatch.services.scoring_client import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerState,
    ScoringClient,
    parse_score_response,
)
from jobmatch.services.scoring_service import ScoreCalculator
from jobmatch.utils.metrics import MetricsCollector
from jobmatch.models.entities import ScoreSource, SkillMatchResult, UserProfile
from jobmatch.core.exceptions import ScoringServiceError, ScoringServiceUnavailableError

SCORING_URL = "https://scoring.test/ats-expert"


class RecordingHandler:
    """MockTransport handler replaying queued responses and keeping requests"""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(handler, **kwargs) -> ScoringClient:
    return ScoringClient(
        base_url=SCORING_URL,
        api_key="test-key",
        max_retries=kwargs.pop("max_retries", 2),
        base_delay=1.0,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


def ok(payload) -> httpx.Response:
    return httpx.Response(200, json=payload)


def raw_json(body: str) -> httpx.Response:
    return httpx.Response(200, content=body.encode(), headers={"Content-Type": "application/json"})


# json.loads accepts all three
NON_FINITE_BODIES = [
    '{"overallScore": NaN}',
    '{"overallScore": Infinity}',
    '{"overallScore": 1' + '0' * 400 + '}',
]


class TestParseScoreResponse:

    def test_full_payload(self):
        result = parse_score_response({
            "overallScore": 64,
            "categoryScores": {"keywords": 50},
            "keywordAnalysis": [{"keyword": "python"}],
            "suggestions": ["Add metrics"]
        })

        assert result.overall_score == 64.0
        assert result.category_scores == {"keywords": 50}
        assert result.keyword_analysis == [{"keyword": "python"}]
        assert result.suggestions == ["Add metrics"]

    @pytest.mark.parametrize("payload", [
        [],
        {},
        {"overallScore": "high"},
        {"overallScore": True},
        {"overallScore": None},
    ])
    def test_malformed_payload(self, payload):
        with pytest.raises(ScoringServiceError) as exc_info:
            parse_score_response(payload)

        assert exc_info.value.error_code == "SCORING_RESPONSE_MALFORMED"


class TestScoringClient:
    """Test scoring requests against a mocked transport"""

    @pytest.mark.asyncio
    async def test_score_success(self):
        handler = RecordingHandler(ok({"overallScore": 42}))
        client = make_client(handler)

        result = await client.score("Python engineer", "Skills: Python", mode="comprehensive")

        assert result.overall_score == 42
        request = handler.requests[0]
        assert request.headers["Authorization"] == "Bearer test-key"
        assert json.loads(request.content) == {
            "jobDescription": "Python engineer",
            "resumeContent": "Skills: Python",
            "mode": "comprehensive"
        }
        assert client.circuit_breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_mode_omitted_when_not_given(self):
        handler = RecordingHandler(ok({"overallScore": 42}))

        await make_client(handler).score("jd", "resume")

        assert "mode" not in json.loads(handler.requests[0].content)

    @pytest.mark.asyncio
    async def test_retry_mechanism(self):
        """Server errors are retried with exponential backoff"""
        handler = RecordingHandler(
            httpx.Response(503),
            httpx.Response(502),
            ok({"overallScore": 30})
        )
        client = make_client(handler)

        with patch('asyncio.sleep', new_callable=AsyncMock) as mock_sleep:
            result = await client.score("jd", "resume")

        assert result.overall_score == 30
        assert len(handler.requests) == 3
        assert [call.args[0] for call in mock_sleep.call_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        handler = RecordingHandler(
            httpx.ConnectError("connection refused"),
            ok({"overallScore": 12})
        )

        with patch('asyncio.sleep', new_callable=AsyncMock):
            result = await make_client(handler).score("jd", "resume")

        assert result.overall_score == 12

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        handler = RecordingHandler(httpx.Response(500))
        client = make_client(handler)

        with patch('asyncio.sleep', new_callable=AsyncMock):
            with pytest.raises(ScoringServiceError) as exc_info:
                await client.score("jd", "resume")

        assert "failed after 3 attempts" in str(exc_info.value)
        assert exc_info.value.details["attempts"] == 3
        assert len(handler.requests) == 3
        assert client.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_outbound_calls_recorded(self):
        collector = MetricsCollector()
        handler = RecordingHandler(httpx.Response(503), ok({"overallScore": 30}))
        client = make_client(handler, metrics=collector)

        with patch('asyncio.sleep', new_callable=AsyncMock):
            await client.score("jd", "resume")

        calls = await collector.get_points("external_api_calls_total")
        assert [p.labels for p in calls] == [
            {"api": "ats_scoring", "status": "error"},
            {"api": "ats_scoring", "status": "success"},
        ]
        assert len(await collector.get_points("external_api_response_time")) == 2

    @pytest.mark.asyncio
    async def test_transport_error_recorded_as_failed_call(self):
        collector = MetricsCollector()
        client = make_client(RecordingHandler(httpx.ConnectError("refused")), max_retries=0, metrics=collector)

        with pytest.raises(ScoringServiceError):
            await client.score("jd", "resume")

        calls = await collector.get_points("external_api_calls_total")
        assert calls[0].labels["status"] == "error"

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        handler = RecordingHandler(httpx.Response(422, json={"error": "bad input"}))
        client = make_client(handler)

        with patch('asyncio.sleep', new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ScoringServiceError) as exc_info:
                await client.score("jd", "resume")

        assert exc_info.value.error_code == "SCORING_REQUEST_REJECTED"
        assert exc_info.value.details["api_response_code"] == 422
        assert len(handler.requests) == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_body_not_retried(self):
        handler = RecordingHandler(ok({"score": 10}))
        client = make_client(handler)

        with pytest.raises(ScoringServiceError) as exc_info:
            await client.score("jd", "resume")

        assert exc_info.value.error_code == "SCORING_RESPONSE_MALFORMED"
        assert len(handler.requests) == 1
        assert client.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw_body", NON_FINITE_BODIES)
    async def test_non_finite_score_rejected(self, raw_body):
        handler = RecordingHandler(raw_json(raw_body))
        client = make_client(handler)

        with pytest.raises(ScoringServiceError) as exc_info:
            await client.score("jd", "resume")

        assert exc_info.value.error_code == "SCORING_RESPONSE_MALFORMED"
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("raw_body", NON_FINITE_BODIES)
    async def test_non_finite_score_falls_back_to_heuristic(self, raw_body):
        calculator = ScoreCalculator(make_client(RecordingHandler(raw_json(raw_body))))

        score, source = await calculator.calculate_match_score(
            SkillMatchResult(matched=[], missing=["aws"], critical_missing=["aws"], matched_via_skills=[]),
            1,
            UserProfile(skills=["Python"]),
            "AWS is required."
        )

        assert score == 15
        assert source == ScoreSource.LENGTH_HEURISTIC

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        handler = RecordingHandler(httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(ScoringServiceError) as exc_info:
            await make_client(handler).score("jd", "resume")

        assert exc_info.value.error_code == "SCORING_RESPONSE_MALFORMED"

    @pytest.mark.asyncio
    async def test_disabled_client(self):
        client = ScoringClient(base_url="")

        with pytest.raises(ScoringServiceUnavailableError):
            await client.score("jd", "resume")

    @pytest.mark.asyncio
    async def test_circuit_breaker_open_blocks_requests(self):
        handler = RecordingHandler(ok({"overallScore": 42}))
        client = make_client(handler)
        client.circuit_breaker.state = CircuitBreakerState.OPEN
        client.circuit_breaker.last_failure_time = time.time()

        with pytest.raises(ScoringServiceUnavailableError) as exc_info:
            await client.score("jd", "resume")

        assert "Circuit breaker is open" in str(exc_info.value)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_health_check_states(self):
        assert (await ScoringClient(base_url="").health_check())["status"] == "disabled"

        client = make_client(RecordingHandler(ok({"overallScore": 1})))
        assert (await client.health_check())["status"] == "healthy"

        client.circuit_breaker.state = CircuitBreakerState.OPEN
        health = await client.health_check()
        assert health["status"] == "degraded"
        assert health["circuit_breaker_state"] == "open"


class TestCircuitBreaker:
    """Test circuit breaker functionality"""

    @pytest.fixture
    def circuit_breaker(self):
        config = CircuitBreakerConfig(failure_threshold=3, recovery_timeout=5)
        return CircuitBreaker(config)

    def test_initial_state_closed(self, circuit_breaker):
        assert circuit_breaker.state == CircuitBreakerState.CLOSED
        assert circuit_breaker.can_execute() is True

    def test_failure_threshold_opens_circuit(self, circuit_breaker):
        for _ in range(3):
            circuit_breaker.record_failure()

        assert circuit_breaker.state == CircuitBreakerState.OPEN
        assert circuit_breaker.can_execute() is False

    def test_recovery_timeout_enables_half_open(self, circuit_breaker):
        for _ in range(3):
            circuit_breaker.record_failure()

        circuit_breaker.last_failure_time = time.time() - 10

        assert circuit_breaker.can_execute() is True
        assert circuit_breaker.state == CircuitBreakerState.HALF_OPEN

    def test_half_open_success_closes_circuit(self, circuit_breaker):
        circuit_breaker.state = CircuitBreakerState.HALF_OPEN

        circuit_breaker.record_success()
        circuit_breaker.record_success()

        assert circuit_breaker.state == CircuitBreakerState.CLOSED
        assert circuit_breaker.failure_count == 0

    def test_half_open_failure_reopens_circuit(self, circuit_breaker):
        circuit_breaker.state = CircuitBreakerState.HALF_OPEN

        circuit_breaker.record_failure()

        assert circuit_breaker.state == CircuitBreakerState.OPEN
