"""Circuit breaker guarding calls to an unreliable dependency.

States:
    - CLOSED: calls pass through, outcomes recorded in a sliding window
    - OPEN: calls are rejected without running, the fallback runs instead
    - HALF_OPEN: a fixed number of trial calls decide whether to close again

One instance is shared by every concurrent invocation in the process. All
counters and transitions are updated under a single ``threading.Lock``; the
guarded operation and the fallback run outside the lock.
"""

import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from app.logging.logger import Log

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior.

    Attributes:
        failure_rate_threshold: Failure percentage (0-100) that opens the circuit
        window_size: Number of most recent outcomes kept in the sliding window
        minimum_calls: Outcomes required before the failure rate is evaluated;
            defaults to window_size
        open_duration_seconds: Cool-down before an open circuit admits trial calls
        half_open_max_calls: Trial calls admitted in half-open state
        excluded_exceptions: Exception types that are not recorded as failures
    """

    failure_rate_threshold: float = 50.0
    window_size: int = 10
    minimum_calls: int | None = None
    open_duration_seconds: float = 30.0
    half_open_max_calls: int = 3
    excluded_exceptions: tuple[type[Exception], ...] = ()

    def __post_init__(self) -> None:
        if not 0 < self.failure_rate_threshold <= 100:
            raise ValueError("failure_rate_threshold must be in (0, 100]")
        if self.window_size < 1:
            raise ValueError("window_size must be at least 1")
        if self.minimum_calls is not None and not 1 <= self.minimum_calls <= self.window_size:
            raise ValueError("minimum_calls must be between 1 and window_size")
        if self.open_duration_seconds < 0:
            raise ValueError("open_duration_seconds must not be negative")
        if self.half_open_max_calls < 1:
            raise ValueError("half_open_max_calls must be at least 1")

    @property
    def effective_minimum_calls(self) -> int:
        return self.minimum_calls if self.minimum_calls is not None else self.window_size


@dataclass
class CircuitBreakerMetrics:
    """Point-in-time snapshot of a circuit breaker."""

    name: str
    state: CircuitState
    window_failures: int = 0
    window_size: int = 0
    total_calls: int = 0
    rejected_calls: int = 0
    last_failure_time: datetime | None = None
    last_state_change: datetime | None = None

    @property
    def failure_rate(self) -> float:
        if self.window_size == 0:
            return 0.0
        return self.window_failures * 100.0 / self.window_size

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to dictionary for serialization."""
        return {
            "name": self.name,
            "state": self.state.value,
            "window_failures": self.window_failures,
            "window_size": self.window_size,
            "failure_rate": self.failure_rate,
            "total_calls": self.total_calls,
            "rejected_calls": self.rejected_calls,
            "last_failure_time": (
                self.last_failure_time.isoformat() if self.last_failure_time else None
            ),
            "last_state_change": (
                self.last_state_change.isoformat() if self.last_state_change else None
            ),
        }


class BreakerOpenError(Exception):
    """Handed to the fallback when a call is rejected without being attempted."""

    def __init__(self, name: str, state: CircuitState) -> None:
        self.name = name
        self.state = state
        super().__init__(
            f"Circuit breaker '{name}' is {state.value}; call not attempted"
        )


class CircuitBreaker:
    """Circuit breaker with an explicit operation/fallback wrapper.

    Usage:
        breaker = CircuitBreaker("ai-service", CircuitBreakerConfig())
        result = breaker.guard(
            lambda: client.enrich(request),
            lambda exc: build_basic_metadata(event),
        )
    """

    def __init__(self, name: str, config: CircuitBreakerConfig | None = None) -> None:
        self._name = name
        self._config = config or CircuitBreakerConfig()
        self._state = CircuitState.CLOSED
        self._window: deque[bool] = deque(maxlen=self._config.window_size)
        self._half_open_admitted = 0
        self._half_open_succeeded = 0
        # Bumped on every transition; outcomes from an older generation are dropped.
        self._generation = 0
        self._opened_at: float | None = None
        self._total_calls = 0
        self._rejected_calls = 0
        self._last_failure_time: datetime | None = None
        self._last_state_change: datetime | None = None
        self._lock = threading.Lock()

        Log.info(
            f"CircuitBreaker '{name}' initialized: "
            f"failure_rate_threshold={self._config.failure_rate_threshold}%, "
            f"window_size={self._config.window_size}, "
            f"open_duration={self._config.open_duration_seconds}s, "
            f"half_open_max_calls={self._config.half_open_max_calls}"
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    @property
    def state(self) -> CircuitState:
        with self._lock:
            return self._state

    def guard(
        self,
        operation: Callable[[], T],
        fallback: Callable[[Exception], T],
    ) -> T:
        """Run ``operation`` and return its result, or ``fallback(exc)`` on failure.

        When the circuit rejects the call, ``operation`` is never invoked and
        ``fallback`` receives a BreakerOpenError. Exceptions raised by the
        operation are recorded and handed to ``fallback``; none escape here.
        """
        generation = self._acquire_permission()
        if generation is None:
            return fallback(BreakerOpenError(self._name, self.state))

        try:
            result = operation()
        except Exception as exc:
            if isinstance(exc, self._config.excluded_exceptions):
                self._release_permission(generation)
            else:
                self._record_failure(exc, generation)
            return fallback(exc)

        self._record_success(generation)
        return result

    def metrics(self) -> CircuitBreakerMetrics:
        with self._lock:
            return CircuitBreakerMetrics(
                name=self._name,
                state=self._state,
                window_failures=sum(1 for ok in self._window if not ok),
                window_size=len(self._window),
                total_calls=self._total_calls,
                rejected_calls=self._rejected_calls,
                last_failure_time=self._last_failure_time,
                last_state_change=self._last_state_change,
            )

    def reset(self) -> None:
        """Manually return the circuit to CLOSED with an empty window."""
        with self._lock:
            self._transition_to_closed()
        Log.info(f"CircuitBreaker '{self._name}' manually reset to CLOSED")

    def force_open(self) -> None:
        """Manually open the circuit; the cool-down starts now."""
        with self._lock:
            self._transition_to_open()

    def _acquire_permission(self) -> int | None:
        """Admit a call and return the generation it belongs to, or None."""
        with self._lock:
            self._total_calls += 1

            if self._state == CircuitState.OPEN:
                if not self._cool_down_elapsed():
                    self._rejected_calls += 1
                    return None
                self._transition_to_half_open()

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_admitted >= self._config.half_open_max_calls:
                    self._rejected_calls += 1
                    return None
                self._half_open_admitted += 1

            return self._generation

    def _release_permission(self, generation: int) -> None:
        # An excluded exception neither counts for nor against recovery.
        with self._lock:
            if generation != self._generation:
                return
            if self._state == CircuitState.HALF_OPEN and self._half_open_admitted > 0:
                self._half_open_admitted -= 1

    def _record_success(self, generation: int) -> None:
        with self._lock:
            if self._is_stale(generation):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_succeeded += 1
                Log.debug(
                    f"CircuitBreaker '{self._name}' half-open success: "
                    f"{self._half_open_succeeded}/{self._config.half_open_max_calls}"
                )
                if self._half_open_succeeded >= self._config.half_open_max_calls:
                    self._transition_to_closed()
            elif self._state == CircuitState.CLOSED:
                self._window.append(True)

    def _record_failure(self, exc: Exception, generation: int) -> None:
        with self._lock:
            self._last_failure_time = datetime.now(UTC)
            if self._is_stale(generation):
                return
            if self._state == CircuitState.HALF_OPEN:
                Log.warning(f"CircuitBreaker '{self._name}' trial call failed: {exc}")
                self._transition_to_open()
                return
            if self._state != CircuitState.CLOSED:
                return

            self._window.append(False)
            failures = sum(1 for ok in self._window if not ok)
            Log.warning(
                f"CircuitBreaker '{self._name}' failure recorded "
                f"({failures}/{len(self._window)} in window): {exc}"
            )
            if self._failure_rate_exceeded(failures):
                self._transition_to_open()

    def _is_stale(self, generation: int) -> bool:
        if generation == self._generation:
            return False
        Log.debug(
            f"CircuitBreaker '{self._name}' ignored an outcome from generation "
            f"{generation} (now {self._generation})"
        )
        return True

    def _failure_rate_exceeded(self, failures: int) -> bool:
        calls = len(self._window)
        if calls < self._config.effective_minimum_calls:
            return False
        return failures * 100.0 / calls >= self._config.failure_rate_threshold

    def _cool_down_elapsed(self) -> bool:
        if self._opened_at is None:
            return True
        return time.monotonic() - self._opened_at >= self._config.open_duration_seconds

    def _transition_to_open(self) -> None:
        prev_state = self._state
        self._generation += 1
        self._state = CircuitState.OPEN
        self._opened_at = time.monotonic()
        self._half_open_admitted = 0
        self._half_open_succeeded = 0
        self._last_state_change = datetime.now(UTC)
        Log.warning(
            f"CircuitBreaker '{self._name}' transitioned {prev_state.value} -> OPEN "
            f"(cool-down {self._config.open_duration_seconds}s)"
        )

    def _transition_to_half_open(self) -> None:
        self._generation += 1
        self._state = CircuitState.HALF_OPEN
        self._half_open_admitted = 0
        self._half_open_succeeded = 0
        self._last_state_change = datetime.now(UTC)
        Log.info(
            f"CircuitBreaker '{self._name}' transitioned OPEN -> HALF_OPEN "
            f"(admitting {self._config.half_open_max_calls} trial calls)"
        )

    def _transition_to_closed(self) -> None:
        prev_state = self._state
        self._generation += 1
        self._state = CircuitState.CLOSED
        self._window.clear()
        self._opened_at = None
        self._half_open_admitted = 0
        self._half_open_succeeded = 0
        self._last_state_change = datetime.now(UTC)
        Log.info(
            f"CircuitBreaker '{self._name}' transitioned {prev_state.value} -> CLOSED"
        )
