"""
Public plan catalog endpoint.
"""
from typing import List
from fastapi import APIRouter, Depends

from ...core.container import Services
from ...core.dependencies import get_services
from ...schemas.subscription import PlanResponse

router = APIRouter(prefix="/plans", tags=["plans"])


@router.get("", response_model=List[PlanResponse])
async def list_plans(services: Services = Depends(get_services)):
    """
    List available plans and their limits.
    No authentication required. A limit of -1 means unlimited.
    """
    return [PlanResponse.from_plan(plan) for plan in services.catalog.plans()]
