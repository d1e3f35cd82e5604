"""
Scheduler settings read from the environment.

Values come from process environment variables (optionally loaded from a
.env file). Every setting has a default so the engine runs unconfigured.
"""

import os
from dataclasses import dataclass, field
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class SchedulerSettings:
    lock_ttl_seconds: int = 30
    timeout_ms: int = 30000
    retry_attempts: int = 3
    retry_delay_ms: int = 1000
    retry_backoff: float = 2.0
    breaker_failure_threshold: int = 5
    breaker_window_seconds: float = 60.0
    breaker_cooldown_seconds: float = 30.0
    breaker_count_non_retryable: bool = True
    backup_max_per_week: int = 5
    backup_retention_days: int = 30
    parallel_assign_threshold: int = 48
    cors_origins: List[str] = field(default_factory=list)

    @classmethod
    def from_env(cls) -> "SchedulerSettings":
        return cls(
            lock_ttl_seconds=_env_int("SCHEDULE_LOCK_TTL_SECONDS", 30),
            timeout_ms=_env_int("SCHEDULE_TIMEOUT_MS", 30000),
            retry_attempts=_env_int("SCHEDULE_RETRY_ATTEMPTS", 3),
            retry_delay_ms=_env_int("SCHEDULE_RETRY_DELAY_MS", 1000),
            retry_backoff=_env_float("SCHEDULE_RETRY_BACKOFF", 2.0),
            breaker_failure_threshold=_env_int("BREAKER_FAILURE_THRESHOLD", 5),
            breaker_window_seconds=_env_float("BREAKER_WINDOW_SECONDS", 60.0),
            breaker_cooldown_seconds=_env_float("BREAKER_COOLDOWN_SECONDS", 30.0),
            breaker_count_non_retryable=os.getenv("BREAKER_COUNT_NON_RETRYABLE", "true").lower()
            in ("true", "1", "yes"),
            backup_max_per_week=_env_int("BACKUP_MAX_PER_WEEK", 5),
            backup_retention_days=_env_int("BACKUP_RETENTION_DAYS", 30),
            parallel_assign_threshold=_env_int("PARALLEL_ASSIGN_THRESHOLD", 48),
            cors_origins=_env_list("CORS_ORIGINS"),
        )
