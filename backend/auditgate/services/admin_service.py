"""
Administrative subscription operations.

Every mutation goes through SubscriptionService.set_plan and is written to
the audit log with the acting admin.
"""
import logging
from typing import List, Optional

from ..core.validation import ensure_user_id
from ..schemas.subscription import BillingRefs, Subscription
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("auditgate.admin.audit")


class AdminService:
    """Audited admin operations on subscriptions."""

    def __init__(self, subscriptions: SubscriptionService):
        self.subscriptions = subscriptions

    async def assign_plan(
        self,
        actor: str,
        user_id: str,
        plan_id: str,
        billing: Optional[BillingRefs] = None,
    ) -> Subscription:
        """Manually assign a plan to one user."""
        user_id = ensure_user_id(user_id)
        before = await self.subscriptions.get_effective(user_id)
        subscription = await self.subscriptions.set_plan(user_id, plan_id, billing)
        audit_logger.warning(
            f"ADMIN {actor}: assign_plan user={user_id} {before.plan_id} -> {subscription.plan_id}"
        )
        return subscription

    async def reset_all_to_free(self, actor: str) -> List[str]:
        """
        Move every user whose effective plan is not free to the free plan.

        Returns:
            User ids that were changed
        """
        free_plan_id = self.subscriptions.catalog.free_plan_id
        candidates = await self.subscriptions.list_users_not_on_plan(free_plan_id)
        logger.info(f"Reset to free: {len(candidates)} users have non-free subscription rows")

        changed = []
        for user_id in candidates:
            current = await self.subscriptions.get_effective(user_id)
            # Older rows may be paid while the effective one is already free
            if current.plan_id == free_plan_id:
                continue
            await self.subscriptions.set_plan(user_id, free_plan_id)
            audit_logger.warning(
                f"ADMIN {actor}: reset_all_to_free user={user_id} {current.plan_id} -> {free_plan_id}"
            )
            changed.append(user_id)

        logger.info(f"Reset to free complete: {len(changed)} users changed")
        return changed
