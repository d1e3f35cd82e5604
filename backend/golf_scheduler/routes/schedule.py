from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from golf_scheduler.errors import SchedulingError
from golf_scheduler.routes.deps import get_scheduling_service, to_http_exception
from golf_scheduler.services.reliability import ScheduleOperationOptions
from golf_scheduler.services.schedule_editor import ScheduleEditOperation
from golf_scheduler.services.scheduling_service import SchedulingService
from golf_scheduler.utils.conflict_report import ConflictReport
from golf_scheduler.utils.schedule_values import schedule_to_payload

router = APIRouter()


class EditRequest(BaseModel):
    operation: ScheduleEditOperation
    commit: bool = True


class ValidateRequest(BaseModel):
    # {"morning": [{"id", "position", "player_ids"}], "afternoon": [...]}
    time_slots: Dict[Literal["morning", "afternoon"], List[dict]]


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]


class AvailabilityRequest(BaseModel):
    # None removes the entry (no availability data)
    status: Optional[Literal["available", "unavailable"]] = None


class RegenerationAllowedResponse(BaseModel):
    week_id: int
    allowed: bool
    reasons: List[str]


@router.post("/weeks/{week_id}/schedule", status_code=201)
def create_schedule(
    week_id: int,
    options: Optional[ScheduleOperationOptions] = None,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Generate the first schedule for a week"""
    try:
        return service.create_weekly_schedule(week_id, options).to_dict()
    except SchedulingError as e:
        raise to_http_exception(e)


@router.get("/weeks/{week_id}/schedule")
def get_schedule(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        return schedule_to_payload(service.get_schedule(week_id))
    except SchedulingError as e:
        raise to_http_exception(e)


@router.delete("/weeks/{week_id}/schedule")
def delete_schedule(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        return {"week_id": week_id, "deleted": service.delete_schedule(week_id)}
    except SchedulingError as e:
        raise to_http_exception(e)


@router.post("/weeks/{week_id}/schedule/regenerate")
def regenerate_schedule(
    week_id: int,
    options: Optional[ScheduleOperationOptions] = None,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """
    Replace a week's schedule with a newly generated one.

    The current schedule is backed up first and restored if regeneration fails.
    """
    try:
        return service.regenerate_schedule(week_id, options).to_dict()
    except SchedulingError as e:
        raise to_http_exception(e)


@router.post("/weeks/{week_id}/schedule/edits")
def apply_edit(
    week_id: int,
    request: EditRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Apply one manual edit (move, swap, add, remove); rejected in full if any rule is violated"""
    try:
        return service.apply_edit(week_id, request.operation, commit=request.commit).to_dict()
    except SchedulingError as e:
        raise to_http_exception(e)


@router.post("/weeks/{week_id}/schedule/validate", response_model=ValidationResponse)
def validate_schedule(
    week_id: int,
    request: ValidateRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Validate a proposed schedule without saving it"""
    try:
        result = service.validate_time_slots(week_id, request.time_slots)
    except SchedulingError as e:
        raise to_http_exception(e)
    return ValidationResponse(is_valid=result.is_valid, errors=result.errors, warnings=result.warnings)


@router.get("/weeks/{week_id}/schedule/conflicts", response_model=ConflictReport)
def get_conflict_report(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    try:
        return service.conflict_report(week_id)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.put("/weeks/{week_id}/availability/{player_id}")
def update_availability(
    week_id: int,
    player_id: int,
    request: AvailabilityRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.update_availability(week_id, player_id, request.status)
    except SchedulingError as e:
        raise to_http_exception(e)


@router.get("/weeks/{week_id}/regeneration-status")
def get_regeneration_status(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    return service.get_regeneration_status(week_id).to_dict()


@router.delete("/weeks/{week_id}/regeneration-status")
def clear_regeneration_status(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    return {"week_id": week_id, "cleared": service.clear_regeneration_status(week_id)}


@router.get("/weeks/{week_id}/regeneration-allowed", response_model=RegenerationAllowedResponse)
def is_regeneration_allowed(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    result = service.is_regeneration_allowed(week_id)
    return RegenerationAllowedResponse(week_id=week_id, allowed=result.is_valid, reasons=result.errors)


@router.delete("/weeks/{week_id}/schedule/lock")
def force_release_lock(week_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    """Operator escape hatch: drop a stuck lock"""
    return {"week_id": week_id, "released": service.force_release_lock(week_id)}
