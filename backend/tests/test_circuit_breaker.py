import asyncio
import pytest
from unittest.mock import AsyncMock
from exceptions import CircuitBreakerOpenException, QuotaExceededException, UpstreamException
from models.health import CircuitState
from utils.circuit_breaker import CircuitBreaker, is_breaker_failure


def server_error():
    return UpstreamException("federal", 503, "HTTP 503")


async def fail(breaker, exc=None):
    with pytest.raises(UpstreamException):
        await breaker.call(AsyncMock(side_effect=exc or server_error()))


@pytest.mark.asyncio
class TestCircuitBreaker:
    """Tests for the per-source breaker state machine."""

    async def test_opens_after_exactly_threshold_failures(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=3, recovery_timeout=30, clock=clock)

        await fail(breaker)
        await fail(breaker)
        assert breaker.state == CircuitState.CLOSED
        await fail(breaker)

        assert breaker.state == CircuitState.OPEN
        assert breaker.failure_count == 3

    async def test_open_circuit_short_circuits_without_calling(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=1, recovery_timeout=30, clock=clock)
        await fail(breaker)

        func = AsyncMock(return_value="ok")
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(func)
        func.assert_not_called()

    async def test_half_open_success_closes_and_resets(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=2, recovery_timeout=30, clock=clock)
        await fail(breaker)
        await fail(breaker)

        clock.advance(30)
        assert breaker.current_state() == CircuitState.HALF_OPEN
        result = await breaker.call(AsyncMock(return_value="ok"))

        assert result == "ok"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
        assert breaker.health.last_success_at == clock()

    async def test_half_open_failure_reopens_and_restarts_cooldown(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=1, recovery_timeout=30, clock=clock)
        await fail(breaker)

        clock.advance(31)
        await fail(breaker)
        assert breaker.state == CircuitState.OPEN
        assert breaker.health.opened_at == clock()

        clock.advance(29)
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(AsyncMock(return_value="ok"))

        clock.advance(1)
        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"

    async def test_half_open_admits_single_trial(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=1, recovery_timeout=30, clock=clock)
        await fail(breaker)
        clock.advance(30)

        gate = asyncio.Event()

        async def slow_trial():
            await gate.wait()
            return "recovered"

        trial = asyncio.ensure_future(breaker.call(slow_trial))
        await asyncio.sleep(0)

        concurrent = AsyncMock(return_value="ok")
        with pytest.raises(CircuitBreakerOpenException):
            await breaker.call(concurrent)
        concurrent.assert_not_called()

        gate.set()
        assert await trial == "recovered"
        assert breaker.state == CircuitState.CLOSED

    async def test_client_errors_do_not_count(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=2, clock=clock)

        for _ in range(5):
            await fail(breaker, UpstreamException("federal", 404, "HTTP 404"))

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    async def test_quota_denial_is_neutral(self, clock):
        breaker = CircuitBreaker("state", failure_threshold=1, clock=clock)

        with pytest.raises(QuotaExceededException):
            await breaker.call(AsyncMock(side_effect=QuotaExceededException("state")))

        assert breaker.state == CircuitState.CLOSED
        assert breaker.health.last_failure_at is None

    async def test_quota_denial_during_half_open_releases_trial(self, clock):
        breaker = CircuitBreaker("state", failure_threshold=1, recovery_timeout=10, clock=clock)
        await fail(breaker)
        clock.advance(10)

        with pytest.raises(QuotaExceededException):
            await breaker.call(AsyncMock(side_effect=QuotaExceededException("state")))

        assert breaker.state == CircuitState.HALF_OPEN
        assert await breaker.call(AsyncMock(return_value="ok")) == "ok"

    async def test_success_resets_consecutive_failures(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=3, clock=clock)
        await fail(breaker)
        await fail(breaker)
        await breaker.call(AsyncMock(return_value="ok"))
        await fail(breaker)
        await fail(breaker)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 2

    async def test_failures_outside_window_start_new_streak(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=3, failure_window=60, clock=clock)
        await fail(breaker)
        await fail(breaker)
        clock.advance(61)
        await fail(breaker)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1

    async def test_snapshot_reports_health(self, clock):
        breaker = CircuitBreaker("federal", failure_threshold=1, recovery_timeout=5, clock=clock)
        await fail(breaker)

        snapshot = breaker.snapshot()
        assert snapshot["source"] == "federal"
        assert snapshot["state"] == "open"
        assert snapshot["consecutive_failures"] == 1

        clock.advance(5)
        assert breaker.snapshot()["state"] == "half_open"


class TestFailureClassification:
    def test_classification(self):
        assert is_breaker_failure(UpstreamException("federal", None, "timeout"))
        assert is_breaker_failure(UpstreamException("federal", 500, "HTTP 500"))
        assert is_breaker_failure(UpstreamException("federal", 200, "schema validation failed"))
        assert is_breaker_failure(UpstreamException("federal", 429, "HTTP 429"))
        assert not is_breaker_failure(UpstreamException("federal", 400, "HTTP 400"))
        assert not is_breaker_failure(CircuitBreakerOpenException("federal", 5))
        assert is_breaker_failure(RuntimeError("boom"))
