"""
Administrative endpoints: expired-subscription sweeps and audited plan changes.

All routes require the X-Admin-Token header.
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query

from ...core.container import Services
from ...core.dependencies import get_services, require_admin
from ...schemas.subscription import (
    AdminResetResponse,
    AssignPlanRequest,
    Subscription,
    SweepResult,
)

router = APIRouter(prefix="/admin", tags=["admin"])
logger = logging.getLogger(__name__)


@router.post("/sweep-expired", response_model=SweepResult)
async def sweep_expired(
    now: Optional[datetime] = Query(None, description="Reference time, defaults to the current time"),
    actor: str = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Move cancelled subscriptions whose period has ended to the free plan."""
    logger.info(f"Sweep requested by {actor}")
    return await services.reconciler.sweep(now)


@router.post("/reset-all-to-free", response_model=AdminResetResponse)
async def reset_all_to_free(
    actor: str = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Move every user on a paid plan back to the free plan."""
    user_ids = await services.admin.reset_all_to_free(actor)
    return AdminResetResponse(affected_users=len(user_ids), user_ids=user_ids)


@router.post("/plan", response_model=Subscription)
async def assign_plan(
    request: AssignPlanRequest,
    actor: str = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Manually assign a plan to a user."""
    return await services.admin.assign_plan(actor, request.user_id, request.plan_id, request.billing)
