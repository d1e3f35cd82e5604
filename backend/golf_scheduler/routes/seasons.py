from fastapi import APIRouter, Depends

from golf_scheduler.errors import SchedulingError
from golf_scheduler.routes.deps import get_scheduling_service, to_http_exception
from golf_scheduler.services.scheduling_service import SchedulingService
from golf_scheduler.utils.schedule_values import schedule_to_payload

router = APIRouter()


@router.get("/seasons/{season_id}/schedules")
def get_schedule_history(season_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    """All committed schedules of a season, in week order"""
    try:
        return [schedule_to_payload(s) for s in service.schedule_history(season_id)]
    except SchedulingError as e:
        raise to_http_exception(e)


@router.get("/seasons/{season_id}/pairings/metrics")
def get_pairing_metrics(season_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    metrics = service.pairing_metrics(season_id)
    return {"season_id": season_id, **metrics.to_dict()}


@router.delete("/seasons/{season_id}/pairings")
def reset_pairing_history(season_id: int, service: SchedulingService = Depends(get_scheduling_service)):
    return {"season_id": season_id, "removed": service.reset_pairing_history(season_id)}
