"""
Subscription and entitlement endpoints for the signed-in user.
"""
import logging
from enum import Enum
from typing import Optional, Union
from fastapi import APIRouter, Depends, Query

from ...core.container import Services
from ...core.dependencies import get_current_user, get_optional_current_user, get_services
from ...core.errors import InvalidInput, Unauthenticated
from ...schemas.auth import UserResponse
from ...schemas.subscription import (
    ChangePlanRequest,
    EntitlementDecision,
    PlanResponse,
    RecordUsageRequest,
    SiteDecision,
    Subscription,
    SubscriptionDetailsResponse,
    UsageEvent,
    UsageSummary,
)

router = APIRouter(prefix="/subscription", tags=["subscription"])
logger = logging.getLogger(__name__)


class EntitlementAction(str, Enum):
    AUDIT = "audit"
    SITE = "site"


@router.get("/entitlement", response_model=Union[EntitlementDecision, SiteDecision])
async def get_entitlement(
    action: EntitlementAction = Query(EntitlementAction.AUDIT, description="Action to check"),
    resource: Optional[str] = Query(None, description="Audited page URL"),
    user: Optional[UserResponse] = Depends(get_optional_current_user),
    services: Services = Depends(get_services),
):
    """
    Check whether the caller may perform an action.

    - audit: requires authentication, counts audits in the plan's rolling window
    - site: anonymous callers get an advisory answer for the free plan
    """
    if action == EntitlementAction.SITE:
        return await services.entitlements.can_add_site(user.id if user else None)

    if user is None:
        raise Unauthenticated()
    return await services.entitlements.can_perform_audit(user.id, resource)


@router.get("/site-limits/page", response_model=SiteDecision)
async def check_page_limit(
    site_id: str = Query(..., description="Site the page would be added to"),
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Check whether another page can be added to a site."""
    return await services.entitlements.can_add_page(user.id, site_id)


@router.get("", response_model=SubscriptionDetailsResponse)
async def get_subscription(
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Get the caller's effective subscription and plan."""
    subscription = await services.subscriptions.get_effective(user.id)
    plan = services.entitlements.resolve_plan(subscription)
    return SubscriptionDetailsResponse(
        subscription=subscription,
        plan=PlanResponse.from_plan(plan),
        access_until=subscription.current_period_end if subscription.is_cancelled else None,
    )


@router.post("/plan", response_model=Subscription)
async def change_plan(
    request: ChangePlanRequest,
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Self-service plan change.

    Only the free plan can be selected here; paid plans are assigned when the
    payment provider reports a completed payment.
    """
    if request.plan_id != services.catalog.free_plan_id:
        raise InvalidInput(
            "Paid plans are activated by completing checkout",
            details={"plan_id": request.plan_id},
        )
    return await services.subscriptions.set_plan(user.id, request.plan_id)


@router.post("/cancel", response_model=Subscription)
async def cancel_subscription(
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Cancel the caller's subscription. Access continues until the period end."""
    return await services.subscriptions.cancel(user.id)


@router.post("/reactivate", response_model=Subscription)
async def reactivate_subscription(
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Undo a cancellation before the period ends."""
    return await services.subscriptions.reactivate(user.id)


@router.get("/usage", response_model=UsageSummary)
async def get_usage(
    limit: int = Query(20, ge=1, le=100, description="Number of recent audits to include"),
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """Current plan, audit quota and recent audits."""
    return await services.entitlements.usage_summary(user.id, recent_limit=limit)


@router.post("/usage", response_model=UsageEvent, status_code=201)
async def record_usage(
    request: RecordUsageRequest,
    user: UserResponse = Depends(get_current_user),
    services: Services = Depends(get_services),
):
    """
    Record a completed audit.

    Call after the audit has run. A 503 means the audit was not recorded.
    """
    return await services.entitlements.record_audit(user.id, request.url)
