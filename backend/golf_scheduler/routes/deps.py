"""
Shared route dependencies and error mapping.
"""

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from golf_scheduler.database import get_session
from golf_scheduler.errors import SchedulingError
from golf_scheduler.services.scheduling_service import SchedulingService

HTTP_STATUS_BY_CATEGORY = {
    "not_found": 404,
    "already_exists": 409,
    "concurrency": 409,
    "validation": 422,
    "insufficient_resources": 422,
    "timeout": 504,
    "circuit_breaker_open": 503,
    "backup_restore_failure": 500,
    "internal": 500,
}


def get_scheduling_service(request: Request, session: Session = Depends(get_session)) -> SchedulingService:
    """One service per request over the application's shared status store and breakers."""
    state = request.app.state
    return SchedulingService(
        session,
        status_store=state.status_store,
        breakers=state.breakers,
        settings=state.settings,
    )


def to_http_exception(error: SchedulingError) -> HTTPException:
    status_code = HTTP_STATUS_BY_CATEGORY.get(error.category, 500)
    headers = None
    retry_after = getattr(error, "retry_after_seconds", None)
    if error.category == "circuit_breaker_open" and retry_after:
        headers = {"Retry-After": str(max(1, int(round(retry_after))))}
    return HTTPException(status_code=status_code, detail=error.to_dict(), headers=headers)
