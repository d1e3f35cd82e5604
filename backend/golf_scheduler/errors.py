"""
Scheduling error taxonomy.

Every error carries a stable ``category`` and a human-readable message so
route handlers and the reliability wrapper can classify failures without
string matching.
"""

from typing import List, Optional


class SchedulingError(Exception):
    """Base exception for scheduling errors"""

    category = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"category": self.category, "message": self.message}


class NotFoundError(SchedulingError):
    """Week, player, schedule or foursome does not exist"""

    category = "not_found"


class InsufficientResourcesError(SchedulingError):
    """Too few available players to build a viable schedule"""

    category = "insufficient_resources"

    def __init__(self, message: str, available_count: int = 0, minimum_required: int = 4):
        super().__init__(message)
        self.available_count = available_count
        self.minimum_required = minimum_required


class ScheduleValidationError(SchedulingError):
    """One or more constraint violations, all itemized"""

    category = "validation"

    def __init__(self, message: str, errors: Optional[List[str]] = None, warnings: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])
        self.warnings = list(warnings or [])

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["errors"] = self.errors
        result["warnings"] = self.warnings
        return result


class AlreadyExistsError(SchedulingError):
    category = "already_exists"


class ConcurrencyError(SchedulingError):
    """The week is locked by another operation"""

    category = "concurrency"


class ScheduleTimeoutError(SchedulingError):
    category = "timeout"


class CircuitBreakerOpenError(SchedulingError):
    category = "circuit_breaker_open"

    def __init__(self, message: str, op_key: str, retry_after_seconds: float = 0.0):
        super().__init__(message)
        self.op_key = op_key
        self.retry_after_seconds = retry_after_seconds


class BackupRestoreError(SchedulingError):
    """
    Restoring a backup failed while handling another failure.

    The original failure is kept on ``original_error`` and is also the
    ``__cause__`` of this exception; the restore failure itself is kept on
    ``restore_error``.
    """

    category = "backup_restore_failure"

    def __init__(self, message: str, original_error: BaseException, restore_error: BaseException):
        super().__init__(message)
        self.original_error = original_error
        self.restore_error = restore_error

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["original_error"] = str(self.original_error)
        result["restore_error"] = str(self.restore_error)
        return result
