"""
Subscription lifecycle reconciler.

Triggered externally (cron or the admin sweep endpoint) to move cancelled
subscriptions whose paid period has ended back to the free plan.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from ..core.validation import ensure_aware, utcnow
from ..schemas.subscription import SweepResult
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class LifecycleReconciler:
    """
    Demotes expired cancellations to the free plan.

    Safe to run concurrently with itself and with cancel / reactivate: every
    demotion is a conditional update on the cancelled+expired predicate, and
    only rows actually changed are counted. A row reactivated between the
    read and the write is skipped.
    """

    def __init__(self, subscriptions: SubscriptionService, clock: Callable[[], datetime] = utcnow):
        self.subscriptions = subscriptions
        self.clock = clock

    async def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """
        Execute one sweep.

        Args:
            now: Reference time, defaults to the service clock

        Returns:
            Number of subscriptions demoted and their user ids
        """
        now = ensure_aware(now) if now else self.clock()
        logger.info(f"Starting expired subscription sweep at {now.isoformat()}")

        candidates = await self.subscriptions.list_expired_cancelled(now)
        logger.info(f"Found {len(candidates)} expired cancelled subscriptions")

        user_ids = []
        for subscription in candidates:
            demoted = await self.subscriptions.demote_expired(subscription.id, now)
            if demoted is None:
                logger.info(f"Subscription {subscription.id} changed since it was read - skipped")
                continue
            logger.info(
                f"Moved user {demoted.user_id} from {subscription.plan_id} to {demoted.plan_id} "
                f"(period ended {subscription.current_period_end})"
            )
            user_ids.append(demoted.user_id)

        logger.info(f"Sweep complete: {len(user_ids)} subscriptions moved to the free plan")
        return SweepResult(processed=len(user_ids), user_ids=user_ids, swept_at=now)
