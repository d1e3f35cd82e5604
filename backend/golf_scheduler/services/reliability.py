"""
Reliability Wrapper

Explicit higher-order wrapping of scheduling entry points:

    wrapper.call("regenerate_schedule:12", lambda deadline: ..., options)

Each call gets
- a Deadline (cooperative timeout checked between steps by the operation)
- bounded retry with fixed or exponential backoff, for retryable errors only
- a per-operation-key circuit breaker

Clock and sleep are injected so tests never wait.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import OperationalError

from golf_scheduler.config import SchedulerSettings
from golf_scheduler.errors import CircuitBreakerOpenError, ConcurrencyError, ScheduleTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (ConcurrencyError, ScheduleTimeoutError, OperationalError)

CLOSED = "closed"
OPEN = "open"
HALF_OPEN = "half_open"


class ScheduleOperationOptions(BaseModel):
    """Per-call options; unset values fall back to SchedulerSettings."""

    model_config = ConfigDict(populate_by_name=True)

    timeout: Optional[int] = Field(default=None, ge=0, description="Timeout in milliseconds")
    retry_attempts: Optional[int] = Field(default=None, ge=1, alias="retryAttempts")
    retry_delay_ms: Optional[int] = Field(default=None, ge=0, alias="retryDelayMs")
    validate_preconditions: bool = Field(default=True, alias="validatePreconditions")
    enable_circuit_breaker: bool = Field(default=True, alias="enableCircuitBreaker")


# ============================================================================
# Deadline
# ============================================================================


class Deadline:
    """Cooperative timeout: operations call check() between steps."""

    def __init__(self, timeout_ms: Optional[int] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.timeout_ms = timeout_ms
        self.started_at = clock()
        self.expires_at = self.started_at + timeout_ms / 1000.0 if timeout_ms else None

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    def check(self, step: str = "") -> None:
        if self.expired():
            where = f" during {step}" if step else ""
            raise ScheduleTimeoutError(f"Operation timed out after {self.timeout_ms}ms{where}")


# ============================================================================
# Retry policy
# ============================================================================


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_ms: int = 1000
    backoff: float = 2.0

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (1-based)."""
        factor = self.backoff ** (attempt - 1) if self.backoff and self.backoff > 1 else 1.0
        return self.delay_ms * factor / 1000.0


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, RETRYABLE_ERRORS)


# ============================================================================
# Circuit breaker
# ============================================================================


@dataclass
class CircuitBreaker:
    op_key: str
    failure_threshold: int = 5
    window_seconds: float = 60.0
    cooldown_seconds: float = 30.0
    state: str = CLOSED
    failures: List[float] = field(default_factory=list)
    opened_at: Optional[float] = None
    trial_in_flight: bool = False
    total_failures: int = 0
    total_successes: int = 0

    def _prune(self, now: float) -> None:
        self.failures = [t for t in self.failures if now - t < self.window_seconds]

    def before_call(self, now: float) -> None:
        """
        Admit or reject a call.

        Raises:
            CircuitBreakerOpenError: Breaker is open, or a half-open trial
                call is already running
        """
        if self.state == OPEN:
            elapsed = now - self.opened_at if self.opened_at is not None else self.cooldown_seconds
            if elapsed < self.cooldown_seconds:
                raise CircuitBreakerOpenError(
                    f"Circuit breaker open for {self.op_key}",
                    op_key=self.op_key,
                    retry_after_seconds=round(self.cooldown_seconds - elapsed, 3),
                )
            self.state = HALF_OPEN
            self.trial_in_flight = False
            logger.info("Circuit breaker for %s is half-open", self.op_key)

        if self.state == HALF_OPEN:
            if self.trial_in_flight:
                raise CircuitBreakerOpenError(
                    f"Circuit breaker half-open for {self.op_key}; trial call in progress",
                    op_key=self.op_key,
                )
            self.trial_in_flight = True

    def record_success(self) -> None:
        if self.state != CLOSED:
            logger.info("Circuit breaker for %s closed", self.op_key)
        self.state = CLOSED
        self.failures = []
        self.opened_at = None
        self.trial_in_flight = False
        self.total_successes += 1

    def record_failure(self, now: float) -> None:
        self.total_failures += 1
        self.trial_in_flight = False

        if self.state == HALF_OPEN:
            self._trip(now)
            return

        self._prune(now)
        self.failures.append(now)
        if len(self.failures) >= self.failure_threshold:
            self._trip(now)

    def release_trial(self) -> None:
        """Outcome not counted either way; let the next call be the trial."""
        self.trial_in_flight = False

    def _trip(self, now: float) -> None:
        self.state = OPEN
        self.opened_at = now
        logger.warning(
            "Circuit breaker for %s opened after %d consecutive failures", self.op_key, len(self.failures)
        )

    def reset(self) -> None:
        self.state = CLOSED
        self.failures = []
        self.opened_at = None
        self.trial_in_flight = False

    def status(self, now: float) -> dict:
        self._prune(now)
        return {
            "op_key": self.op_key,
            "state": self.state,
            "recent_failures": len(self.failures),
            "failure_threshold": self.failure_threshold,
            "retry_after_seconds": (
                round(max(0.0, self.cooldown_seconds - (now - self.opened_at)), 3)
                if self.state == OPEN and self.opened_at is not None
                else 0.0
            ),
            "total_failures": self.total_failures,
            "total_successes": self.total_successes,
        }


class CircuitBreakerRegistry:
    """Per-operation-key breakers. One registry per application instance."""

    def __init__(
        self,
        failure_threshold: int = 5,
        window_seconds: float = 60.0,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = failure_threshold
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: SchedulerSettings, clock: Callable[[], float] = time.monotonic):
        return cls(
            failure_threshold=settings.breaker_failure_threshold,
            window_seconds=settings.breaker_window_seconds,
            cooldown_seconds=settings.breaker_cooldown_seconds,
            clock=clock,
        )

    def _new_breaker(self, op_key: str) -> CircuitBreaker:
        return CircuitBreaker(
            op_key=op_key,
            failure_threshold=self.failure_threshold,
            window_seconds=self.window_seconds,
            cooldown_seconds=self.cooldown_seconds,
        )

    def get(self, op_key: str) -> CircuitBreaker:
        with self._lock:
            breaker = self._breakers.get(op_key)
            if breaker is None:
                breaker = self._new_breaker(op_key)
                self._breakers[op_key] = breaker
            return breaker

    def before_call(self, op_key: str) -> None:
        breaker = self.get(op_key)
        with self._lock:
            breaker.before_call(self.clock())

    def record_success(self, op_key: str) -> None:
        breaker = self.get(op_key)
        with self._lock:
            breaker.record_success()

    def record_failure(self, op_key: str) -> None:
        breaker = self.get(op_key)
        with self._lock:
            breaker.record_failure(self.clock())

    def release_trial(self, op_key: str) -> None:
        breaker = self.get(op_key)
        with self._lock:
            breaker.release_trial()

    def status(self, op_key: str) -> dict:
        """Status of a breaker; keys never called report a fresh closed breaker and are not registered."""
        with self._lock:
            breaker = self._breakers.get(op_key) or self._new_breaker(op_key)
            return breaker.status(self.clock())

    def reset(self, op_key: Optional[str] = None) -> List[str]:
        """Reset one breaker, or all of them when ``op_key`` is None."""
        with self._lock:
            if op_key is None:
                keys = sorted(self._breakers)
            else:
                keys = [op_key] if op_key in self._breakers else []
            for key in keys:
                self._breakers[key].reset()
        if keys:
            logger.info("Reset circuit breakers: %s", ", ".join(keys))
        return keys


# ============================================================================
# Wrapper
# ============================================================================


class ReliabilityWrapper:
    def __init__(
        self,
        breakers: CircuitBreakerRegistry,
        settings: Optional[SchedulerSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.breakers = breakers
        self.settings = settings or SchedulerSettings()
        self.clock = clock
        self.sleep = sleep

    def policy_for(self, options: ScheduleOperationOptions) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=options.retry_attempts or self.settings.retry_attempts,
            delay_ms=options.retry_delay_ms if options.retry_delay_ms is not None else self.settings.retry_delay_ms,
            backoff=self.settings.retry_backoff,
        )

    def call(
        self,
        op_key: str,
        fn: Callable[[Deadline], T],
        options: Optional[ScheduleOperationOptions] = None,
    ) -> T:
        """
        Run ``fn`` under timeout, retry and circuit-breaker protection.

        Args:
            op_key: Breaker key, e.g. "regenerate_schedule:12"
            fn: Operation; receives the Deadline for the current attempt
            options: Per-call overrides

        Raises:
            CircuitBreakerOpenError: Breaker rejected the call (fn not invoked)
            Whatever ``fn`` raised on its final attempt
        """
        options = options or ScheduleOperationOptions()
        policy = self.policy_for(options)
        timeout_ms = options.timeout if options.timeout is not None else self.settings.timeout_ms
        use_breaker = options.enable_circuit_breaker

        attempt = 0
        while True:
            attempt += 1
            if use_breaker:
                self.breakers.before_call(op_key)

            deadline = Deadline(timeout_ms, clock=self.clock)
            try:
                result = fn(deadline)
            except Exception as e:
                retryable = is_retryable(e)
                if use_breaker:
                    if retryable or self.settings.breaker_count_non_retryable:
                        self.breakers.record_failure(op_key)
                    else:
                        self.breakers.release_trial(op_key)

                if not retryable or attempt >= policy.max_attempts:
                    if retryable:
                        logger.error("%s failed after %d attempts: %s", op_key, attempt, e)
                    raise

                delay = policy.delay_for(attempt)
                logger.warning(
                    "Attempt %d/%d of %s failed (%s), retrying in %.3fs",
                    attempt,
                    policy.max_attempts,
                    op_key,
                    e,
                    delay,
                )
                if delay > 0:
                    self.sleep(delay)
                continue

            if use_breaker:
                self.breakers.record_success(op_key)
            return result
