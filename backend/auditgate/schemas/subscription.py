"""
Pydantic schemas for subscriptions, usage events and entitlement decisions.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..core.plans import Plan
from ..core.validation import parse_timestamp


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""
    ACTIVE = "active"
    CANCELLED = "cancelled"


class BillingRefs(BaseModel):
    """Opaque references handed over by the payment provider."""
    stripe_customer_id: Optional[str] = Field(None, description="Stripe customer reference")
    stripe_subscription_id: Optional[str] = Field(None, description="Stripe subscription or payment reference")
    current_period_end: Optional[datetime] = Field(None, description="End of the paid period, if known")


class Subscription(BaseModel):
    """A row of user_subscriptions (or the virtual free default)."""
    id: Optional[str] = Field(None, description="Row id - None for the virtual free subscription")
    user_id: str
    plan_id: str
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    persisted: bool = Field(True, description="False when no row exists and the free default is returned")

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Subscription":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row["user_id"]),
            plan_id=row["plan_id"],
            status=row.get("status") or SubscriptionStatus.ACTIVE,
            stripe_customer_id=row.get("stripe_customer_id"),
            stripe_subscription_id=row.get("stripe_subscription_id"),
            current_period_start=parse_timestamp(row.get("current_period_start")),
            current_period_end=parse_timestamp(row.get("current_period_end")),
            created_at=parse_timestamp(row.get("created_at")),
            updated_at=parse_timestamp(row.get("updated_at")),
        )

    @property
    def is_cancelled(self) -> bool:
        return self.status == SubscriptionStatus.CANCELLED


class UsageEvent(BaseModel):
    """One consumed audit in the append-only ledger."""
    id: Optional[str] = None
    user_id: str
    created_at: datetime
    url: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "UsageEvent":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row["user_id"]),
            created_at=parse_timestamp(row["created_at"]),
            url=row.get("url"),
        )


class EntitlementDecision(BaseModel):
    """Permit/deny decision for one audit."""
    permitted: bool
    remaining: int = Field(..., description="Audits left in the current window, -1 when unlimited")
    unlimited: bool = False
    reason: Optional[str] = None
    plan_id: str
    used: Optional[int] = Field(None, description="Audits counted in the window (None when not counted)")
    limit: int
    window_seconds: int
    window_start: Optional[datetime] = None
    resource: Optional[str] = Field(None, description="Audited page URL the per-page limit was checked for")
    resource_used: Optional[int] = Field(None, description="Audits of this page counted in the window")
    resource_limit: Optional[int] = Field(None, description="Per-page audit limit, None when the plan has none")


class SiteDecision(BaseModel):
    """Permit/deny decision for adding a site or a page."""
    permitted: bool
    remaining: int
    unlimited: bool = False
    reason: Optional[str] = None
    plan_id: str
    current_count: int
    limit: int
    advisory: bool = Field(False, description="True when the caller is unauthenticated and the count is assumed")


class UsageSummary(BaseModel):
    """Current plan, quota and recent audits for a user."""
    user_id: str
    plan_id: str
    plan_name: str
    subscription: Subscription
    audits: EntitlementDecision
    recent_events: List[UsageEvent] = []


class SweepResult(BaseModel):
    """Outcome of a lifecycle sweep."""
    processed: int
    user_ids: List[str] = []
    swept_at: datetime


class PlanLimitsResponse(BaseModel):
    max_sites: int
    max_pages_per_site: int
    max_audits_per_window: int
    window_seconds: int
    max_audits_per_resource_per_window: Optional[int] = None


class PlanResponse(BaseModel):
    """Public view of a catalog entry."""
    id: str
    name: str
    price: float
    description: str
    features: List[str]
    limits: PlanLimitsResponse

    @classmethod
    def from_plan(cls, plan: Plan) -> "PlanResponse":
        return cls(
            id=plan.id,
            name=plan.name,
            price=plan.price,
            description=plan.description,
            features=list(plan.features),
            limits=PlanLimitsResponse(
                max_sites=plan.limits.max_sites,
                max_pages_per_site=plan.limits.max_pages_per_site,
                max_audits_per_window=plan.limits.max_audits_per_window,
                window_seconds=plan.limits.window_seconds,
                max_audits_per_resource_per_window=plan.limits.max_audits_per_resource_per_window,
            ),
        )


class SubscriptionDetailsResponse(BaseModel):
    """Effective subscription plus its plan."""
    subscription: Subscription
    plan: PlanResponse
    access_until: Optional[datetime] = None


class ChangePlanRequest(BaseModel):
    """Self-service plan change."""
    plan_id: str = Field(..., description="Target plan id")


class AssignPlanRequest(BaseModel):
    """Admin plan assignment."""
    user_id: str
    plan_id: str
    billing: BillingRefs = BillingRefs()


class RecordUsageRequest(BaseModel):
    """Record one completed audit."""
    url: Optional[str] = Field(None, description="Audited page URL")


class AdminResetResponse(BaseModel):
    affected_users: int
    user_ids: List[str] = []
