from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from golf_scheduler.routes.deps import get_scheduling_service
from golf_scheduler.services.scheduling_service import SchedulingService

router = APIRouter()


class ResetRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    op_key: Optional[str] = Field(default=None, alias="opKey")


@router.get("/circuit-breakers/{op_key}")
def get_circuit_breaker_status(op_key: str, service: SchedulingService = Depends(get_scheduling_service)):
    return service.circuit_breaker_status(op_key)


@router.post("/circuit-breakers/reset")
def reset_circuit_breakers(
    request: Optional[ResetRequest] = None,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Reset one breaker, or every breaker when no op_key is given"""
    op_key = request.op_key if request else None
    return {"reset": service.reset_circuit_breaker(op_key)}
