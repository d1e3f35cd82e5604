"""
Tests for timeout, retry and circuit breaker wrapping

A FakeClock stands in for time.monotonic and a recording sleep replaces
time.sleep, so nothing here waits.
"""

import pytest
from sqlalchemy.exc import OperationalError

from golf_scheduler.config import SchedulerSettings
from golf_scheduler.errors import (
    CircuitBreakerOpenError,
    ConcurrencyError,
    NotFoundError,
    ScheduleTimeoutError,
)
from golf_scheduler.services.reliability import (
    CLOSED,
    HALF_OPEN,
    OPEN,
    CircuitBreakerRegistry,
    Deadline,
    ReliabilityWrapper,
    RetryPolicy,
    ScheduleOperationOptions,
)


class FakeClock:
    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def wrapper(clock, sleeps):
    settings = SchedulerSettings(retry_attempts=3, retry_delay_ms=100, retry_backoff=2.0)
    breakers = CircuitBreakerRegistry.from_settings(settings, clock=clock)
    return ReliabilityWrapper(breakers, settings=settings, clock=clock, sleep=sleeps.append)


def _failing(error):
    calls = []

    def fn(deadline):
        calls.append(deadline)
        raise error

    return fn, calls


# ============================================================================
# Deadline
# ============================================================================


def test_deadline_expires_after_timeout(clock):
    deadline = Deadline(500, clock=clock)

    deadline.check("generating")
    clock.advance(0.5)

    assert deadline.expired()
    with pytest.raises(ScheduleTimeoutError, match="during generating"):
        deadline.check("generating")


def test_unbounded_deadline_never_expires():
    deadline = Deadline.unbounded()

    assert not deadline.expired()
    assert deadline.remaining() is None
    deadline.check()


# ============================================================================
# Retry
# ============================================================================


def test_retry_policy_backoff():
    policy = RetryPolicy(max_attempts=4, delay_ms=100, backoff=2.0)

    assert [policy.delay_for(n) for n in (1, 2, 3)] == [0.1, 0.2, 0.4]
    assert RetryPolicy(delay_ms=250, backoff=1.0).delay_for(3) == 0.25


def test_retryable_error_is_retried_until_success(wrapper, sleeps):
    attempts = []

    def flaky(deadline):
        attempts.append(deadline)
        if len(attempts) < 3:
            raise ConcurrencyError("week locked")
        return "done"

    assert wrapper.call("regenerate_schedule:1", flaky) == "done"
    assert len(attempts) == 3
    assert sleeps == [0.1, 0.2]


def test_operational_errors_are_retryable(wrapper):
    fn, calls = _failing(OperationalError("SELECT 1", {}, Exception("database is locked")))

    with pytest.raises(OperationalError):
        wrapper.call("regenerate_schedule:1", fn)

    assert len(calls) == 3


def test_non_retryable_error_fails_fast(wrapper, sleeps):
    fn, calls = _failing(NotFoundError("Week 1 not found"))

    with pytest.raises(NotFoundError):
        wrapper.call("regenerate_schedule:1", fn)

    assert len(calls) == 1
    assert sleeps == []


def test_options_override_attempts_and_delay(wrapper, sleeps):
    fn, calls = _failing(ScheduleTimeoutError("too slow"))
    options = ScheduleOperationOptions(retryAttempts=2, retryDelayMs=0)

    with pytest.raises(ScheduleTimeoutError):
        wrapper.call("regenerate_schedule:1", fn, options)

    assert len(calls) == 2
    assert sleeps == []


def test_options_accept_snake_case_names():
    options = ScheduleOperationOptions(retry_attempts=5, enable_circuit_breaker=False, timeout=100)

    assert options.retry_attempts == 5
    assert options.enable_circuit_breaker is False
    assert options.timeout == 100


def test_each_attempt_gets_the_configured_timeout(wrapper, clock):
    seen = []

    def fn(deadline):
        seen.append(deadline.remaining())
        return True

    wrapper.call("create_weekly_schedule:1", fn, ScheduleOperationOptions(timeout=2000))

    assert seen == [2.0]


# ============================================================================
# Circuit breaker
# ============================================================================


def test_breaker_opens_after_threshold_without_invoking_operation(wrapper):
    fn, calls = _failing(NotFoundError("missing"))

    for _ in range(5):
        with pytest.raises(NotFoundError):
            wrapper.call("regenerate_schedule:1", fn)

    with pytest.raises(CircuitBreakerOpenError) as exc_info:
        wrapper.call("regenerate_schedule:1", fn)

    assert len(calls) == 5
    assert exc_info.value.op_key == "regenerate_schedule:1"
    assert exc_info.value.retry_after_seconds == 30.0
    assert wrapper.breakers.status("regenerate_schedule:1")["state"] == OPEN


def test_breaker_keys_are_independent(wrapper):
    fn, _ = _failing(NotFoundError("missing"))
    for _ in range(5):
        with pytest.raises(NotFoundError):
            wrapper.call("regenerate_schedule:1", fn)

    assert wrapper.call("regenerate_schedule:2", lambda deadline: "ok") == "ok"


def test_failures_outside_window_do_not_trip(wrapper, clock):
    fn, calls = _failing(NotFoundError("missing"))

    for _ in range(4):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn)
    clock.advance(61)
    with pytest.raises(NotFoundError):
        wrapper.call("op", fn)

    assert wrapper.breakers.status("op")["state"] == CLOSED
    assert len(calls) == 5


def test_success_resets_consecutive_failures(wrapper):
    fn, _ = _failing(NotFoundError("missing"))

    for _ in range(4):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn)
    wrapper.call("op", lambda deadline: "ok")
    with pytest.raises(NotFoundError):
        wrapper.call("op", fn)

    assert wrapper.breakers.status("op")["recent_failures"] == 1


def test_half_open_trial_closes_breaker_on_success(wrapper, clock):
    fn, _ = _failing(NotFoundError("missing"))
    for _ in range(5):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn)

    clock.advance(30)

    assert wrapper.call("op", lambda deadline: "recovered") == "recovered"
    assert wrapper.breakers.status("op")["state"] == CLOSED


def test_half_open_trial_failure_reopens_breaker(wrapper, clock):
    fn, calls = _failing(NotFoundError("missing"))
    for _ in range(5):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn)

    clock.advance(30)
    with pytest.raises(NotFoundError):
        wrapper.call("op", fn)

    assert len(calls) == 6
    with pytest.raises(CircuitBreakerOpenError):
        wrapper.call("op", fn)


def test_half_open_admits_one_trial_at_a_time(clock):
    registry = CircuitBreakerRegistry(failure_threshold=1, cooldown_seconds=10, clock=clock)
    registry.record_failure("op")
    clock.advance(10)

    registry.before_call("op")

    assert registry.get("op").state == HALF_OPEN
    with pytest.raises(CircuitBreakerOpenError):
        registry.before_call("op")


def test_reset_closes_open_breaker(wrapper):
    fn, _ = _failing(NotFoundError("missing"))
    for _ in range(5):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn)

    assert wrapper.breakers.reset("op") == ["op"]
    assert wrapper.call("op", lambda deadline: "ok") == "ok"


def test_reset_all_breakers(wrapper):
    wrapper.call("a", lambda deadline: 1)
    wrapper.call("b", lambda deadline: 2)

    assert wrapper.breakers.reset() == ["a", "b"]


def test_disabled_breaker_never_rejects(wrapper):
    fn, calls = _failing(NotFoundError("missing"))
    options = ScheduleOperationOptions(enable_circuit_breaker=False)

    for _ in range(7):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn, options)

    assert len(calls) == 7


def test_non_retryable_failures_can_be_ignored_by_breaker(clock, sleeps):
    settings = SchedulerSettings(breaker_count_non_retryable=False, retry_delay_ms=0)
    wrapper = ReliabilityWrapper(
        CircuitBreakerRegistry.from_settings(settings, clock=clock), settings=settings, clock=clock, sleep=sleeps.append
    )
    fn, calls = _failing(NotFoundError("missing"))

    for _ in range(6):
        with pytest.raises(NotFoundError):
            wrapper.call("op", fn)

    assert len(calls) == 6
    assert wrapper.breakers.status("op")["state"] == CLOSED


def test_status_of_unknown_key_does_not_register_breaker(wrapper):
    status = wrapper.breakers.status("never-called")

    assert status["state"] == CLOSED
    assert status["recent_failures"] == 0
    assert wrapper.breakers.reset() == []
