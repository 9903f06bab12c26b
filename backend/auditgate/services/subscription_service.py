"""
Subscription state service.

Handles:
- Resolving the effective subscription (most recently created row, or a
  virtual free subscription for users without rows)
- Plan assignment as an idempotent upsert of the effective row
- Cancellation and reactivation
- Queries used by the lifecycle reconciler and admin operations
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from ..core.errors import InvalidInput, NoActiveSubscription, NoCancelledSubscription
from ..core.plans import PlanCatalog
from ..core.validation import ensure_plan_id, ensure_user_id, to_timestamp, utcnow
from ..schemas.subscription import BillingRefs, Subscription, SubscriptionStatus
from .record_store import RecordStore

logger = logging.getLogger(__name__)

SUBSCRIPTIONS_TABLE = "user_subscriptions"


class SubscriptionService:
    """Service for reading and mutating user subscriptions."""

    def __init__(
        self,
        store: RecordStore,
        catalog: PlanCatalog,
        clock: Callable[[], datetime] = utcnow,
        billing_period: timedelta = timedelta(days=30),
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.billing_period = billing_period

    def _free_default(self, user_id: str) -> Subscription:
        return Subscription(
            id=None,
            user_id=user_id,
            plan_id=self.catalog.free_plan_id,
            status=SubscriptionStatus.ACTIVE,
            persisted=False,
        )

    async def _latest_row(self, user_id: str) -> Optional[Subscription]:
        rows = self.store.select(
            SUBSCRIPTIONS_TABLE,
            eq={"user_id": user_id},
            order_by="created_at",
            desc=True,
            limit=1,
        )
        if not rows:
            return None
        return Subscription.from_row(rows[0])

    async def get_effective(self, user_id: str) -> Subscription:
        """
        Get the user's effective subscription.

        The most recently *created* row wins, regardless of status or update
        time. Users without any row get a virtual free subscription that is
        not persisted.
        """
        user_id = ensure_user_id(user_id)
        subscription = await self._latest_row(user_id)
        if subscription is None:
            logger.debug(f"No subscription rows for user {user_id} - using free plan")
            return self._free_default(user_id)
        return subscription

    async def set_plan(
        self,
        user_id: str,
        plan_id: str,
        billing: Optional[BillingRefs] = None,
    ) -> Subscription:
        """
        Assign a plan to a user.

        Creates the subscription row if the user has none, otherwise updates
        the effective row in place. Paid plans are accepted as facts from the
        payment provider; payment is not verified here.

        Args:
            user_id: The user's UUID
            plan_id: Catalog plan id
            billing: Optional customer / subscription references and period end

        Returns:
            The stored subscription
        """
        user_id = ensure_user_id(user_id)
        plan_id = ensure_plan_id(plan_id)
        if not self.catalog.contains(plan_id):
            raise InvalidInput(f"Unknown plan: {plan_id}", details={"plan_id": plan_id})

        billing = billing or BillingRefs()
        now = self.clock()
        plan = self.catalog.lookup(plan_id)

        period_end = billing.current_period_end
        if period_end is None and not plan.is_free:
            period_end = now + self.billing_period

        values = {
            "plan_id": plan_id,
            "status": SubscriptionStatus.ACTIVE.value,
            "current_period_start": to_timestamp(now),
            "current_period_end": to_timestamp(period_end) if period_end else None,
            "updated_at": to_timestamp(now),
        }
        # Keep existing billing references unless new ones are supplied
        if billing.stripe_customer_id is not None:
            values["stripe_customer_id"] = billing.stripe_customer_id
        if billing.stripe_subscription_id is not None:
            values["stripe_subscription_id"] = billing.stripe_subscription_id

        existing = await self._latest_row(user_id)
        if existing is not None:
            rows = self.store.update(SUBSCRIPTIONS_TABLE, values, eq={"id": existing.id})
            if rows:
                logger.info(f"Updated subscription {existing.id} for user {user_id}: {existing.plan_id} -> {plan_id}")
                return Subscription.from_row(rows[0])
            logger.warning(f"Subscription {existing.id} for user {user_id} vanished during update - inserting")

        row = self.store.insert(SUBSCRIPTIONS_TABLE, {
            "user_id": user_id,
            "created_at": to_timestamp(now),
            **values,
        })
        logger.info(f"Created subscription for user {user_id} on plan {plan_id}")
        return Subscription.from_row(row)

    async def cancel(self, user_id: str, period_end: Optional[datetime] = None) -> Subscription:
        """
        Cancel the effective subscription.

        Access continues until the period end, which is preserved unless the
        payment provider supplies a new one.
        """
        user_id = ensure_user_id(user_id)
        current = await self.get_effective(user_id)
        if not current.persisted or current.status != SubscriptionStatus.ACTIVE:
            raise NoActiveSubscription(details={"user_id": user_id})

        values = {
            "status": SubscriptionStatus.CANCELLED.value,
            "updated_at": to_timestamp(self.clock()),
        }
        if period_end is not None:
            values["current_period_end"] = to_timestamp(period_end)

        rows = self.store.update(
            SUBSCRIPTIONS_TABLE,
            values,
            eq={"id": current.id, "status": SubscriptionStatus.ACTIVE.value},
        )
        if not rows:
            raise NoActiveSubscription(details={"user_id": user_id})

        cancelled = Subscription.from_row(rows[0])
        logger.info(f"Cancelled subscription {cancelled.id} for user {user_id}, access until {cancelled.current_period_end}")
        return cancelled

    async def reactivate(self, user_id: str) -> Subscription:
        """
        Reactivate a cancelled subscription.

        Plan id and period end are left untouched.

        Raises:
            NoCancelledSubscription: if the effective subscription is not cancelled
        """
        user_id = ensure_user_id(user_id)
        current = await self.get_effective(user_id)
        if not current.persisted or not current.is_cancelled:
            raise NoCancelledSubscription(details={"user_id": user_id, "status": current.status.value})

        # Conditional on status so a concurrent sweep or reactivation wins cleanly
        rows = self.store.update(
            SUBSCRIPTIONS_TABLE,
            {
                "status": SubscriptionStatus.ACTIVE.value,
                "updated_at": to_timestamp(self.clock()),
            },
            eq={"id": current.id, "status": SubscriptionStatus.CANCELLED.value},
        )
        if not rows:
            raise NoCancelledSubscription(details={"user_id": user_id})

        reactivated = Subscription.from_row(rows[0])
        logger.info(f"Reactivated subscription {reactivated.id} for user {user_id} on plan {reactivated.plan_id}")
        return reactivated

    async def end_period(self, user_id: str, period_end: datetime) -> Optional[Subscription]:
        """
        Bring forward the period end of a cancelled subscription.

        Used when the payment provider ends a subscription earlier than the
        stored period end. Returns None when there is nothing to shorten.
        """
        user_id = ensure_user_id(user_id)
        current = await self.get_effective(user_id)
        if not current.persisted or not current.is_cancelled:
            return None
        if current.current_period_end is not None and current.current_period_end <= period_end:
            return None

        rows = self.store.update(
            SUBSCRIPTIONS_TABLE,
            {
                "current_period_end": to_timestamp(period_end),
                "updated_at": to_timestamp(self.clock()),
            },
            eq={"id": current.id, "status": SubscriptionStatus.CANCELLED.value},
        )
        if not rows:
            return None
        logger.info(f"Period of cancelled subscription {current.id} for user {user_id} now ends {period_end.isoformat()}")
        return Subscription.from_row(rows[0])

    async def list_expired_cancelled(self, now: datetime) -> List[Subscription]:
        """Cancelled subscriptions whose period ended before now."""
        rows = self.store.select(
            SUBSCRIPTIONS_TABLE,
            eq={"status": SubscriptionStatus.CANCELLED.value},
            lt={"current_period_end": to_timestamp(now)},
        )
        return [Subscription.from_row(row) for row in rows]

    async def demote_expired(self, subscription_id: str, now: datetime) -> Optional[Subscription]:
        """
        Move one expired cancellation to the free plan.

        The update re-checks the cancelled+expired predicate, so a row that
        was reactivated since it was read is left alone and None is returned.
        """
        rows = self.store.update(
            SUBSCRIPTIONS_TABLE,
            {
                "plan_id": self.catalog.free_plan_id,
                "status": SubscriptionStatus.ACTIVE.value,
                "updated_at": to_timestamp(now),
            },
            eq={"id": subscription_id, "status": SubscriptionStatus.CANCELLED.value},
            lt={"current_period_end": to_timestamp(now)},
        )
        if not rows:
            return None
        return Subscription.from_row(rows[0])

    async def list_users_not_on_plan(self, plan_id: str) -> List[str]:
        """Distinct user ids having at least one row on a plan other than plan_id."""
        rows = self.store.select(
            SUBSCRIPTIONS_TABLE,
            columns="user_id",
            neq={"plan_id": plan_id},
        )
        seen = []
        for row in rows:
            user_id = str(row["user_id"])
            if user_id not in seen:
                seen.append(user_id)
        return seen
