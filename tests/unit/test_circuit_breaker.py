"""Unit tests for CircuitBreaker -- state machine, rate cap and fallback routing."""

from __future__ import annotations

import pytest

from docrag.models.resilience import CircuitState
from docrag.services.circuit_breaker import (
    CIRCUIT_OPEN_REASON,
    RATE_LIMIT_REASON,
    CircuitBreaker,
)
from docrag.utils.errors import EmbeddingError, ValidationError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Recorder:
    """Operation and fallback pair that remembers what ran."""

    def __init__(self) -> None:
        self.operation_calls = 0
        self.fallback_reasons: list[str] = []

    def succeed(self):
        async def operation() -> str:
            self.operation_calls += 1
            return "ok"

        return operation

    def fail(self, exc: Exception | None = None):
        async def operation() -> str:
            self.operation_calls += 1
            raise exc or EmbeddingError("provider down")

        return operation

    async def fallback(self, reason: str) -> str:
        self.fallback_reasons.append(reason)
        return "fallback"


def _breaker(clock: FakeClock, **kwargs) -> CircuitBreaker:
    kwargs.setdefault("failure_threshold", 3)
    kwargs.setdefault("success_threshold", 2)
    kwargs.setdefault("open_timeout", 60.0)
    return CircuitBreaker(clock=clock, **kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rec() -> Recorder:
    return Recorder()


# ---------------------------------------------------------------------------
# CLOSED
# ---------------------------------------------------------------------------


class TestClosed:
    @pytest.mark.asyncio
    async def test_success_returns_operation_result(self, clock, rec) -> None:
        breaker = _breaker(clock)

        assert await breaker.execute(rec.succeed(), rec.fallback) == "ok"
        assert rec.fallback_reasons == []
        assert breaker.state is CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_failure_routes_to_fallback_with_reason(self, clock, rec) -> None:
        breaker = _breaker(clock)

        result = await breaker.execute(rec.fail(), rec.fallback)

        assert result == "fallback"
        assert rec.fallback_reasons == ["provider down"]
        assert breaker.get_status().failure_count == 1
        assert breaker.get_status().last_failure_time is not None

    @pytest.mark.asyncio
    async def test_threshold_failures_open_circuit(self, clock, rec) -> None:
        breaker = _breaker(clock)
        for _ in range(3):
            await breaker.execute(rec.fail(), rec.fallback)

        assert breaker.state is CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_failures(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await breaker.execute(rec.fail(), rec.fallback)
        await breaker.execute(rec.fail(), rec.fallback)
        await breaker.execute(rec.succeed(), rec.fallback)
        await breaker.execute(rec.fail(), rec.fallback)

        assert breaker.state is CircuitState.CLOSED
        assert breaker.get_status().failure_count == 1

    @pytest.mark.asyncio
    async def test_validation_failures_do_not_count(self, clock, rec) -> None:
        breaker = _breaker(clock)
        for _ in range(5):
            await breaker.execute(rec.fail(ValidationError("blank")), rec.fallback)

        assert breaker.state is CircuitState.CLOSED
        assert breaker.get_status().failure_count == 0
        assert len(rec.fallback_reasons) == 5

    @pytest.mark.asyncio
    async def test_exception_without_message_uses_class_name(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await breaker.execute(rec.fail(RuntimeError()), rec.fallback)

        assert rec.fallback_reasons == ["RuntimeError"]


# ---------------------------------------------------------------------------
# OPEN / HALF_OPEN
# ---------------------------------------------------------------------------


class TestOpenAndHalfOpen:
    async def _trip(self, breaker: CircuitBreaker, rec: Recorder) -> None:
        for _ in range(3):
            await breaker.execute(rec.fail(), rec.fallback)
        rec.operation_calls = 0
        rec.fallback_reasons.clear()

    @pytest.mark.asyncio
    async def test_open_short_circuits_without_calling_operation(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await self._trip(breaker, rec)

        result = await breaker.execute(rec.succeed(), rec.fallback)

        assert result == "fallback"
        assert rec.operation_calls == 0
        assert rec.fallback_reasons == [CIRCUIT_OPEN_REASON]

    @pytest.mark.asyncio
    async def test_timeout_moves_to_half_open_and_allows_trial(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await self._trip(breaker, rec)
        clock.advance(61)

        assert await breaker.execute(rec.succeed(), rec.fallback) == "ok"
        assert breaker.state is CircuitState.HALF_OPEN
        assert breaker.get_status().success_count == 1

    @pytest.mark.asyncio
    async def test_half_open_closes_after_success_threshold(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await self._trip(breaker, rec)
        clock.advance(61)

        await breaker.execute(rec.succeed(), rec.fallback)
        await breaker.execute(rec.succeed(), rec.fallback)

        status = breaker.get_status()
        assert status.state is CircuitState.CLOSED
        assert status.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await self._trip(breaker, rec)
        clock.advance(61)

        await breaker.execute(rec.succeed(), rec.fallback)
        await breaker.execute(rec.fail(), rec.fallback)

        assert breaker.state is CircuitState.OPEN
        # The reopen restarts the timeout.
        clock.advance(30)
        await breaker.execute(rec.succeed(), rec.fallback)
        assert rec.fallback_reasons[-1] == CIRCUIT_OPEN_REASON

    @pytest.mark.asyncio
    async def test_still_open_before_timeout(self, clock, rec) -> None:
        breaker = _breaker(clock)
        await self._trip(breaker, rec)
        clock.advance(59)

        await breaker.execute(rec.succeed(), rec.fallback)
        assert breaker.state is CircuitState.OPEN


# ---------------------------------------------------------------------------
# Rate cap
# ---------------------------------------------------------------------------


class TestRateCap:
    @pytest.mark.asyncio
    async def test_calls_over_cap_go_to_fallback(self, clock, rec) -> None:
        breaker = _breaker(clock, max_requests_per_window=3, rate_window=60.0)
        results = [await breaker.execute(rec.succeed(), rec.fallback) for _ in range(5)]

        assert results == ["ok", "ok", "ok", "fallback", "fallback"]
        assert rec.fallback_reasons == [RATE_LIMIT_REASON, RATE_LIMIT_REASON]
        assert rec.operation_calls == 3

    @pytest.mark.asyncio
    async def test_rate_rejections_leave_counters_alone(self, clock, rec) -> None:
        breaker = _breaker(clock, max_requests_per_window=1)
        await breaker.execute(rec.fail(), rec.fallback)
        for _ in range(5):
            await breaker.execute(rec.fail(), rec.fallback)

        status = breaker.get_status()
        assert status.failure_count == 1
        assert status.state is CircuitState.CLOSED
        assert status.request_count == 1

    @pytest.mark.asyncio
    async def test_window_rolls_over(self, clock, rec) -> None:
        breaker = _breaker(clock, max_requests_per_window=2, rate_window=10.0)
        for _ in range(3):
            await breaker.execute(rec.succeed(), rec.fallback)
        clock.advance(10)

        assert await breaker.execute(rec.succeed(), rec.fallback) == "ok"
        assert breaker.get_status().request_count == 1


# ---------------------------------------------------------------------------
# Status / reset
# ---------------------------------------------------------------------------


class TestStatusAndReset:
    @pytest.mark.asyncio
    async def test_reset_forces_closed_with_zero_counters(self, clock, rec) -> None:
        breaker = _breaker(clock)
        for _ in range(3):
            await breaker.execute(rec.fail(), rec.fallback)

        breaker.reset()

        status = breaker.get_status()
        assert status.state is CircuitState.CLOSED
        assert status.failure_count == 0
        assert status.success_count == 0
        assert status.request_count == 0
        assert status.last_failure_time is None

    @pytest.mark.asyncio
    async def test_fallback_exception_propagates(self, clock) -> None:
        breaker = _breaker(clock)

        async def operation() -> str:
            raise EmbeddingError("down")

        async def fallback(reason: str) -> str:
            raise RuntimeError("fallback broke")

        with pytest.raises(RuntimeError, match="fallback broke"):
            await breaker.execute(operation, fallback)

    def test_from_settings(self, test_settings) -> None:
        breaker = CircuitBreaker.from_settings(test_settings)
        status = breaker.get_status()
        assert status.state is CircuitState.CLOSED
        assert status.request_count == 0
