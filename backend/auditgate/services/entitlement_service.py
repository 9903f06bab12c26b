"""
Entitlement evaluator.

Decides whether a user may run another audit, add a site or add a page,
given their effective subscription, the plan catalog and the usage ledger.

The audit check is a count-then-permit sequence and is not isolated against
concurrent requests for the same user: two requests arriving at limit - 1
may both be permitted. Callers record the audit only after it has run.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..core.errors import UnknownPlan
from ..core.plans import UNLIMITED, Plan, PlanCatalog, is_unlimited
from ..core.validation import ensure_site_id, ensure_user_id, utcnow
from ..schemas.subscription import (
    EntitlementDecision,
    SiteDecision,
    Subscription,
    UsageEvent,
    UsageSummary,
)
from .site_service import SiteService
from .subscription_service import SubscriptionService
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class EntitlementService:
    """Evaluates plan limits against current usage."""

    def __init__(
        self,
        subscriptions: SubscriptionService,
        ledger: UsageLedger,
        sites: SiteService,
        catalog: PlanCatalog,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.subscriptions = subscriptions
        self.ledger = ledger
        self.sites = sites
        self.catalog = catalog
        self.clock = clock

    def resolve_plan(self, subscription: Subscription) -> Plan:
        try:
            return self.catalog.lookup(subscription.plan_id)
        except UnknownPlan:
            logger.error(
                f"DATA INTEGRITY: subscription {subscription.id} for user {subscription.user_id} "
                f"references plan '{subscription.plan_id}' which is missing from the plan catalog"
            )
            raise

    async def _plan_for(self, user_id: str):
        subscription = await self.subscriptions.get_effective(user_id)
        return subscription, self.resolve_plan(subscription)

    async def can_perform_audit(self, user_id: str, resource: Optional[str] = None) -> EntitlementDecision:
        """
        Check if the user can perform an audit now.

        Args:
            user_id: The user's UUID
            resource: Optional audited page URL, checked against the plan's per-page limit

        Returns:
            EntitlementDecision with permitted flag, remaining quota and reason
        """
        user_id = ensure_user_id(user_id)
        subscription, plan = await self._plan_for(user_id)
        limit = plan.limits.max_audits_per_window
        window_seconds = plan.limits.window_seconds

        if is_unlimited(limit):
            logger.debug(f"User {user_id} on plan {plan.id} has unlimited audits")
            return EntitlementDecision(
                permitted=True,
                remaining=UNLIMITED,
                unlimited=True,
                plan_id=plan.id,
                limit=UNLIMITED,
                window_seconds=window_seconds,
            )

        # Rolling window, recomputed on every check
        window_start = self.clock() - timedelta(seconds=window_seconds)
        used = await self.ledger.count_since(user_id, window_start)

        permitted = used < limit
        remaining = max(0, limit - used)
        reason = None
        if not permitted:
            reason = (
                f"You have reached your limit of {plan.describe_window()}. "
                f"Please wait before running another audit."
            )

        # Per-page limit, same window, only when the caller names the page
        resource_limit = plan.limits.max_audits_per_resource_per_window
        resource_used = None
        if resource and resource_limit is not None and not is_unlimited(resource_limit):
            resource_used = await self.ledger.count_since(user_id, window_start, resource)
            remaining = min(remaining, max(0, resource_limit - resource_used))
            if resource_used >= resource_limit:
                permitted = False
                reason = (
                    f"You have reached your limit of {plan.describe_resource_window()}. "
                    f"You can audit other pages or wait before auditing this one again."
                )
        else:
            resource_limit = None

        logger.info(
            f"Audit check for user {user_id} ({resource or 'no url'}): plan={plan.id} used={used} "
            f"limit={limit} page_used={resource_used} page_limit={resource_limit} permitted={permitted}"
        )
        return EntitlementDecision(
            permitted=permitted,
            remaining=remaining,
            reason=reason,
            plan_id=plan.id,
            used=used,
            limit=limit,
            window_seconds=window_seconds,
            window_start=window_start,
            resource=resource,
            resource_used=resource_used,
            resource_limit=resource_limit,
        )

    async def record_audit(
        self,
        user_id: str,
        resource: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> UsageEvent:
        """Record a completed audit in the ledger."""
        return await self.ledger.record(user_id, timestamp or self.clock(), resource)

    def _count_decision(
        self,
        plan: Plan,
        current_count: int,
        limit: int,
        noun: str,
        advisory: bool = False,
    ) -> SiteDecision:
        if is_unlimited(limit):
            return SiteDecision(
                permitted=True,
                remaining=UNLIMITED,
                unlimited=True,
                plan_id=plan.id,
                current_count=current_count,
                limit=UNLIMITED,
                advisory=advisory,
            )

        permitted = current_count < limit
        reason = None
        if not permitted:
            label = noun if limit == 1 else f"{noun}s"
            reason = f"You have reached your limit of {limit} {label} on the {plan.name}."
        return SiteDecision(
            permitted=permitted,
            remaining=max(0, limit - current_count),
            reason=reason,
            plan_id=plan.id,
            current_count=current_count,
            limit=limit,
            advisory=advisory,
        )

    async def can_add_site(self, user_id: Optional[str]) -> SiteDecision:
        """
        Check if the user can add another site.

        Unauthenticated callers (user_id None) are evaluated against the free
        plan with zero existing sites. The result is advisory until the caller
        authenticates.
        """
        if user_id is None:
            plan = self.catalog.free_plan
            return self._count_decision(plan, 0, plan.limits.max_sites, "site", advisory=True)

        user_id = ensure_user_id(user_id)
        _, plan = await self._plan_for(user_id)
        if is_unlimited(plan.limits.max_sites):
            return self._count_decision(plan, 0, UNLIMITED, "site")

        current = await self.sites.count_sites(user_id)
        return self._count_decision(plan, current, plan.limits.max_sites, "site")

    async def can_add_page(self, user_id: str, site_id: str) -> SiteDecision:
        """Check if the user can add another page to one of their sites."""
        user_id = ensure_user_id(user_id)
        site_id = ensure_site_id(site_id)
        _, plan = await self._plan_for(user_id)
        limit = plan.limits.max_pages_per_site
        if is_unlimited(limit):
            return self._count_decision(plan, 0, UNLIMITED, "page")

        current = await self.sites.count_pages(user_id, site_id)
        decision = self._count_decision(plan, current, limit, "page")
        if not decision.permitted:
            decision.reason = f"You can only add {limit} pages per site on the {plan.name}."
        return decision

    async def usage_summary(self, user_id: str, recent_limit: int = 20) -> UsageSummary:
        """Plan, current audit quota and most recent audits for a user."""
        user_id = ensure_user_id(user_id)
        subscription, plan = await self._plan_for(user_id)
        decision = await self.can_perform_audit(user_id)
        events = await self.ledger.recent(user_id, limit=recent_limit)
        return UsageSummary(
            user_id=user_id,
            plan_id=plan.id,
            plan_name=plan.name,
            subscription=subscription,
            audits=decision,
            recent_events=events,
        )
