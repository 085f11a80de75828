"""Circuit breaker with a request-rate cap, shared across all provider calls.

State machine::

    CLOSED --(failure_threshold consecutive failures)--> OPEN
    OPEN --(open_timeout elapsed since last failure)--> HALF_OPEN (trial call)
    HALF_OPEN --(any failure)--> OPEN
    HALF_OPEN --(success_threshold consecutive successes)--> CLOSED

Before any of that, every call is checked against a fixed-window rate cap
(``max_requests_per_window`` per ``rate_window`` seconds).  A call over the
cap goes to the fallback with reason ``"Rate limit exceeded"`` and leaves
the failure/success counters untouched.

Counters sit behind a ``threading.Lock`` that is only held for the few
arithmetic steps of each transition, never across the awaited operation,
so the breaker can be shared by the event loop and worker threads alike.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from docrag.config.settings import Settings
from docrag.models.resilience import CircuitBreakerStatus, CircuitState
from docrag.utils.errors import ErrorKind, classify_error

logger = structlog.get_logger(logger_name=__name__)

T = TypeVar("T")

RATE_LIMIT_REASON = "Rate limit exceeded"
CIRCUIT_OPEN_REASON = "Circuit breaker is open"


class CircuitBreaker:
    """Guards an operation and routes it to a fallback when it should not run.

    Parameters
    ----------
    failure_threshold:
        Consecutive failures that trip ``CLOSED`` to ``OPEN`` (default 5).
    success_threshold:
        Consecutive ``HALF_OPEN`` successes that close the circuit (default 3).
    open_timeout:
        Seconds after the last failure before an ``OPEN`` circuit allows a
        trial call (default 60).
    rate_window:
        Length of the rate-limit window in seconds (default 60).
    max_requests_per_window:
        Calls allowed per window (default 100).
    clock:
        Monotonic clock in seconds, injectable for tests.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        success_threshold: int = 3,
        open_timeout: float = 60.0,
        rate_window: float = 60.0,
        max_requests_per_window: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._failure_threshold = failure_threshold
        self._success_threshold = success_threshold
        self._open_timeout = open_timeout
        self._rate_window = rate_window
        self._max_requests = max_requests_per_window
        self._clock = clock

        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure: float | None = None
        self._last_failure_at: datetime | None = None
        self._request_count = 0
        self._window_start = clock()

    @classmethod
    def from_settings(cls, settings: Settings) -> CircuitBreaker:
        return cls(
            failure_threshold=settings.breaker_failure_threshold,
            success_threshold=settings.breaker_success_threshold,
            open_timeout=settings.breaker_open_timeout,
            rate_window=settings.breaker_rate_window,
            max_requests_per_window=settings.breaker_max_requests_per_window,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: Callable[[str], Awaitable[T]],
    ) -> T:
        """Run *operation*, or *fallback(reason)* if it must not or did not succeed.

        Exceptions from *operation* never propagate; the fallback's result
        is returned instead.  Exceptions from *fallback* do propagate.
        """
        if not self._admit_request():
            logger.warning("circuit_breaker_rate_limited", max_requests=self._max_requests)
            return await fallback(RATE_LIMIT_REASON)

        if not self._allow_call():
            logger.debug("circuit_breaker_short_circuit")
            return await fallback(CIRCUIT_OPEN_REASON)

        try:
            result = await operation()
        except Exception as exc:
            self._on_failure(exc)
            logger.warning(
                "circuit_breaker_operation_failed",
                error=str(exc),
                error_kind=classify_error(exc).value,
                state=self.state.value,
            )
            return await fallback(str(exc) or type(exc).__name__)

        self._on_success()
        return result

    def get_status(self) -> CircuitBreakerStatus:
        with self._lock:
            return CircuitBreakerStatus(
                state=self._state,
                failure_count=self._failure_count,
                success_count=self._success_count,
                last_failure_time=self._last_failure_at,
                request_count=self._request_count,
            )

    def reset(self) -> None:
        """Force ``CLOSED`` with zeroed counters (operator action)."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._failure_count = 0
            self._success_count = 0
            self._last_failure = None
            self._last_failure_at = None
            self._request_count = 0
            self._window_start = self._clock()
        logger.info("circuit_breaker_reset")

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _admit_request(self) -> bool:
        with self._lock:
            now = self._clock()
            if now - self._window_start >= self._rate_window:
                self._window_start = now
                self._request_count = 0
            if self._request_count >= self._max_requests:
                return False
            self._request_count += 1
            return True

    def _allow_call(self) -> bool:
        with self._lock:
            if self._state is not CircuitState.OPEN:
                return True
            if self._last_failure is None or self._clock() - self._last_failure >= self._open_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
                logger.info("circuit_breaker_half_open")
                return True
            return False

    def _on_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state is CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self._success_threshold:
                    self._state = CircuitState.CLOSED
                    self._success_count = 0
                    logger.info("circuit_breaker_closed")

    def _on_failure(self, exc: Exception) -> None:
        # Caller mistakes say nothing about the provider's health.
        if classify_error(exc) is ErrorKind.VALIDATION:
            return
        with self._lock:
            self._failure_count += 1
            self._success_count = 0
            self._last_failure = self._clock()
            self._last_failure_at = datetime.now(timezone.utc)
            if self._state is CircuitState.HALF_OPEN or self._failure_count >= self._failure_threshold:
                if self._state is not CircuitState.OPEN:
                    logger.warning(
                        "circuit_breaker_opened",
                        failure_count=self._failure_count,
                        from_state=self._state.value,
                    )
                self._state = CircuitState.OPEN
