import threading
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

from app.resilience.circuit_breaker import (
    BreakerOpenError,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
)


class Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def clock() -> Iterator[Clock]:
    fake = Clock()
    with patch("app.resilience.circuit_breaker.time.monotonic", fake):
        yield fake


def _breaker(**overrides: object) -> CircuitBreaker:
    config = {
        "failure_rate_threshold": 50.0,
        "window_size": 4,
        "minimum_calls": 4,
        "open_duration_seconds": 30.0,
        "half_open_max_calls": 2,
    }
    config.update(overrides)
    return CircuitBreaker("test", CircuitBreakerConfig(**config))


def _fail() -> str:
    raise RuntimeError("boom")


def _fallback(exc: Exception) -> str:
    return f"fallback:{type(exc).__name__}"


def _trip(breaker: CircuitBreaker, failures: int = 4) -> None:
    for _ in range(failures):
        breaker.guard(_fail, _fallback)


class TestConfigValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"failure_rate_threshold": 0},
            {"failure_rate_threshold": 101},
            {"window_size": 0},
            {"minimum_calls": 5, "window_size": 4},
            {"open_duration_seconds": -1},
            {"half_open_max_calls": 0},
        ],
    )
    def test_rejects_invalid_config(self, overrides: dict[str, object]) -> None:
        with pytest.raises(ValueError):
            CircuitBreakerConfig(**overrides)

    def test_minimum_calls_defaults_to_window_size(self) -> None:
        assert CircuitBreakerConfig(window_size=7).effective_minimum_calls == 7


class TestClosedState:
    def test_returns_operation_result(self, clock: Clock) -> None:
        breaker = _breaker()
        assert breaker.guard(lambda: "ok", _fallback) == "ok"
        assert breaker.state == CircuitState.CLOSED

    def test_failure_returns_fallback_result(self, clock: Clock) -> None:
        breaker = _breaker()
        assert breaker.guard(_fail, _fallback) == "fallback:RuntimeError"

    def test_fallback_receives_original_exception(self, clock: Clock) -> None:
        breaker = _breaker()
        received: list[Exception] = []
        breaker.guard(_fail, lambda exc: received.append(exc))
        assert isinstance(received[0], RuntimeError)
        assert str(received[0]) == "boom"

    def test_does_not_open_before_minimum_calls(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker, failures=3)
        assert breaker.state == CircuitState.CLOSED

    def test_opens_when_failure_rate_reaches_threshold(self, clock: Clock) -> None:
        breaker = _breaker()
        breaker.guard(lambda: "ok", _fallback)
        breaker.guard(lambda: "ok", _fallback)
        breaker.guard(_fail, _fallback)
        assert breaker.state == CircuitState.CLOSED
        breaker.guard(_fail, _fallback)
        assert breaker.state == CircuitState.OPEN

    def test_stays_closed_below_threshold(self, clock: Clock) -> None:
        breaker = _breaker(failure_rate_threshold=75.0)
        for op in (_fail, lambda: "ok", _fail, lambda: "ok", lambda: "ok"):
            breaker.guard(op, _fallback)
        assert breaker.state == CircuitState.CLOSED

    def test_window_slides(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker, failures=1)
        for _ in range(4):
            breaker.guard(lambda: "ok", _fallback)
        assert breaker.metrics().window_failures == 0


class TestOpenState:
    def test_skips_operation_and_uses_fallback(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        operation = MagicMock(return_value="ok")

        result = breaker.guard(operation, _fallback)

        assert result == "fallback:BreakerOpenError"
        operation.assert_not_called()

    def test_fallback_receives_breaker_open_error(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        received: list[Exception] = []
        breaker.guard(lambda: "ok", lambda exc: received.append(exc))
        assert isinstance(received[0], BreakerOpenError)
        assert received[0].state == CircuitState.OPEN

    def test_rejects_until_cool_down_elapses(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        operation = MagicMock(return_value="ok")

        clock.now += 29.9
        breaker.guard(operation, _fallback)

        operation.assert_not_called()
        assert breaker.state == CircuitState.OPEN
        assert breaker.metrics().rejected_calls == 1


class TestHalfOpenState:
    def test_moves_to_half_open_after_cool_down(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        clock.now += 30

        assert breaker.guard(lambda: "ok", _fallback) == "ok"
        assert breaker.state == CircuitState.HALF_OPEN

    def test_closes_after_all_trials_succeed(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        clock.now += 30

        breaker.guard(lambda: "ok", _fallback)
        breaker.guard(lambda: "ok", _fallback)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.metrics().window_size == 0

    def test_trial_failure_reopens(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        clock.now += 30

        breaker.guard(lambda: "ok", _fallback)
        breaker.guard(_fail, _fallback)

        assert breaker.state == CircuitState.OPEN
        operation = MagicMock(return_value="ok")
        breaker.guard(operation, _fallback)
        operation.assert_not_called()

    def test_admits_exactly_configured_trial_calls(self, clock: Clock) -> None:
        breaker = _breaker(half_open_max_calls=2)
        _trip(breaker)
        clock.now += 30
        attempts: list[str] = []

        def nested_trial() -> str:
            attempts.append("outer")

            def inner_trial() -> str:
                attempts.append("inner")
                # A third concurrent trial must be turned away.
                breaker.guard(lambda: attempts.append("third") or "ok", _fallback)
                return "ok"

            breaker.guard(inner_trial, _fallback)
            return "ok"

        breaker.guard(nested_trial, _fallback)

        assert attempts == ["outer", "inner"]
        assert breaker.state == CircuitState.CLOSED

    def test_cool_down_restarts_after_reopen(self, clock: Clock) -> None:
        breaker = _breaker()
        _trip(breaker)
        clock.now += 30
        breaker.guard(_fail, _fallback)

        clock.now += 10
        operation = MagicMock(return_value="ok")
        breaker.guard(operation, _fallback)
        operation.assert_not_called()

        clock.now += 20
        assert breaker.guard(operation, _fallback) == "ok"


class TestStaleOutcomes:
    def test_late_success_from_closed_is_not_a_trial(self, clock: Clock) -> None:
        breaker = _breaker(half_open_max_calls=2)

        def slow_call() -> str:
            # While this call is in flight the circuit opens, cools down and
            # admits one trial of the next generation.
            _trip(breaker)
            clock.now += 30
            breaker.guard(lambda: "trial", _fallback)
            assert breaker.state == CircuitState.HALF_OPEN
            return "late"

        assert breaker.guard(slow_call, _fallback) == "late"

        assert breaker.state == CircuitState.HALF_OPEN

    def test_late_failure_from_closed_does_not_reopen(self, clock: Clock) -> None:
        breaker = _breaker(half_open_max_calls=2)

        def slow_call() -> str:
            _trip(breaker)
            clock.now += 30
            breaker.guard(lambda: "trial", _fallback)
            raise RuntimeError("late")

        assert breaker.guard(slow_call, _fallback) == "fallback:RuntimeError"

        assert breaker.state == CircuitState.HALF_OPEN
        assert breaker.guard(lambda: "trial", _fallback) == "trial"
        assert breaker.state == CircuitState.CLOSED

    def test_late_outcome_from_previous_trial_round_is_ignored(self, clock: Clock) -> None:
        breaker = _breaker(half_open_max_calls=2)
        _trip(breaker)
        clock.now += 30

        def slow_trial() -> str:
            # A sibling trial fails and reopens the circuit; after the next
            # cool-down a fresh round of trials begins.
            breaker.guard(_fail, _fallback)
            assert breaker.state == CircuitState.OPEN
            clock.now += 30
            breaker.guard(lambda: "trial", _fallback)
            return "late"

        breaker.guard(slow_trial, _fallback)

        assert breaker.state == CircuitState.HALF_OPEN

    def test_late_success_after_reset_does_not_fill_window(self, clock: Clock) -> None:
        breaker = _breaker()

        def slow_call() -> str:
            breaker.reset()
            return "late"

        breaker.guard(slow_call, _fallback)

        assert breaker.metrics().window_size == 0


class TestExcludedExceptions:
    def test_excluded_exception_not_counted(self, clock: Clock) -> None:
        breaker = _breaker(excluded_exceptions=(KeyError,))

        def raise_key_error() -> str:
            raise KeyError("missing")

        for _ in range(6):
            assert breaker.guard(raise_key_error, _fallback) == "fallback:KeyError"

        assert breaker.state == CircuitState.CLOSED
        assert breaker.metrics().window_size == 0


class TestMetricsAndControls:
    def test_metrics_snapshot(self, clock: Clock) -> None:
        breaker = _breaker()
        breaker.guard(lambda: "ok", _fallback)
        breaker.guard(_fail, _fallback)

        data = breaker.metrics().to_dict()

        assert data["name"] == "test"
        assert data["state"] == "closed"
        assert data["window_failures"] == 1
        assert data["window_size"] == 2
        assert data["failure_rate"] == 50.0
        assert data["total_calls"] == 2
        assert data["rejected_calls"] == 0
        assert data["last_failure_time"] is not None

    def test_force_open_and_reset(self, clock: Clock) -> None:
        breaker = _breaker()
        breaker.force_open()
        assert breaker.state == CircuitState.OPEN

        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.guard(lambda: "ok", _fallback) == "ok"


class TestConcurrency:
    def test_counts_every_call_under_contention(self) -> None:
        breaker = CircuitBreaker(
            "threads",
            CircuitBreakerConfig(failure_rate_threshold=100.0, window_size=1000),
        )
        start = threading.Barrier(8)

        def hammer() -> None:
            start.wait()
            for _ in range(250):
                breaker.guard(lambda: "ok", _fallback)

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        metrics = breaker.metrics()
        assert metrics.total_calls == 2000
        assert metrics.window_size == 1000
        assert metrics.state == CircuitState.CLOSED

    def test_failures_under_contention_open_once(self) -> None:
        config = CircuitBreakerConfig(
            failure_rate_threshold=50.0,
            window_size=4,
            open_duration_seconds=3600.0,
            half_open_max_calls=2,
        )
        breaker = CircuitBreaker("threads", config)
        start = threading.Barrier(8)
        attempts = []
        attempts_lock = threading.Lock()

        def failing() -> str:
            with attempts_lock:
                attempts.append(1)
            raise RuntimeError("down")

        def hammer() -> None:
            start.wait()
            for _ in range(50):
                breaker.guard(failing, _fallback)

        threads = [threading.Thread(target=hammer) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        metrics = breaker.metrics()
        assert metrics.state == CircuitState.OPEN
        assert metrics.total_calls == 400
        assert len(attempts) + metrics.rejected_calls == 400
        # Only calls admitted before the circuit opened ever ran.
        assert len(attempts) <= config.window_size + len(threads)
