"""
Translates verified Stripe webhook events into subscription state changes.

Signature verification happens in the API layer; this service only sees
events that Stripe has signed. Payment is taken as a fact: a completed
checkout or payment naming a plan assigns that plan.
"""
import logging
from typing import Any, Dict

from ..core.errors import InvalidInput, NoActiveSubscription
from ..core.validation import parse_timestamp
from ..schemas.billing import WebhookResponse
from ..schemas.subscription import BillingRefs
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

PAYMENT_EVENTS = ("checkout.session.completed", "payment_intent.succeeded")


def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.get("metadata") or {}


def _period_end(obj: Dict[str, Any]):
    """Stripe moved current_period_end onto subscription items in newer API versions."""
    value = obj.get("current_period_end")
    if value is None:
        items = (obj.get("items") or {}).get("data") or []
        if items:
            value = items[0].get("current_period_end")
    return parse_timestamp(value)


class BillingService:
    """Applies payment provider events through the subscription contract."""

    def __init__(self, subscriptions: SubscriptionService):
        self.subscriptions = subscriptions

    async def handle_event(self, event: Dict[str, Any]) -> WebhookResponse:
        """
        Handle one Stripe event.

        Raises:
            InvalidInput: if a handled event lacks the user / plan metadata
        """
        event_type = event["type"]
        obj = event["data"]["object"]
        logger.info(f"🔔 Stripe event {event.get('id')} ({event_type})")

        if event_type in PAYMENT_EVENTS:
            return await self._handle_payment(obj)
        if event_type == "customer.subscription.updated":
            return await self._handle_subscription_updated(obj)
        if event_type == "customer.subscription.deleted":
            return await self._handle_subscription_deleted(obj)

        return WebhookResponse(
            status="ignored",
            message=f"Unhandled event type: {event_type}",
        )

    def _require_user(self, obj: Dict[str, Any]) -> str:
        metadata = _metadata(obj)
        # Payment intents created by the pricing page carry camelCase userId
        user_id = metadata.get("user_id") or metadata.get("userId") or obj.get("client_reference_id")
        if not user_id:
            raise InvalidInput("No user_id in event metadata")
        return user_id

    async def _handle_payment(self, obj: Dict[str, Any]) -> WebhookResponse:
        user_id = self._require_user(obj)
        plan_id = _metadata(obj).get("plan")
        if not plan_id:
            raise InvalidInput("No plan in event metadata", details={"user_id": user_id})

        subscription_ref = obj.get("subscription") or obj.get("payment_intent") or obj.get("id")
        subscription = await self.subscriptions.set_plan(
            user_id,
            plan_id,
            BillingRefs(
                stripe_customer_id=obj.get("customer"),
                stripe_subscription_id=subscription_ref,
            ),
        )
        logger.info(f"Payment applied: user {user_id} now on plan {subscription.plan_id}")
        return WebhookResponse(
            status="success",
            message=f"User {user_id} moved to {subscription.plan_id}",
            user_id=subscription.user_id,
            plan_id=subscription.plan_id,
        )

    async def _handle_subscription_updated(self, obj: Dict[str, Any]) -> WebhookResponse:
        user_id = self._require_user(obj)
        period_end = _period_end(obj)

        if obj.get("cancel_at_period_end"):
            subscription = await self._cancel_quietly(user_id, period_end)
            return WebhookResponse(
                status="success" if subscription else "ignored",
                message=f"Subscription for user {user_id} cancelled at period end",
                user_id=user_id,
                plan_id=subscription.plan_id if subscription else None,
            )

        plan_id = _metadata(obj).get("plan")
        if not plan_id:
            return WebhookResponse(
                status="ignored",
                message="Subscription update without plan metadata",
                user_id=user_id,
            )

        subscription = await self.subscriptions.set_plan(
            user_id,
            plan_id,
            BillingRefs(
                stripe_customer_id=obj.get("customer"),
                stripe_subscription_id=obj.get("id"),
                current_period_end=period_end,
            ),
        )
        return WebhookResponse(
            status="success",
            message=f"Subscription for user {user_id} updated to {subscription.plan_id}",
            user_id=user_id,
            plan_id=subscription.plan_id,
        )

    async def _handle_subscription_deleted(self, obj: Dict[str, Any]) -> WebhookResponse:
        user_id = self._require_user(obj)
        # The subscription has already ended, so the next sweep demotes the user
        ended_at = parse_timestamp(obj.get("ended_at") or obj.get("canceled_at"))
        subscription = await self._cancel_quietly(user_id, ended_at)
        if subscription is None and ended_at is not None:
            # Already cancelled at period end, but Stripe ended it early
            subscription = await self.subscriptions.end_period(user_id, ended_at)
        return WebhookResponse(
            status="success" if subscription else "ignored",
            message=f"Subscription for user {user_id} cancelled",
            user_id=user_id,
            plan_id=subscription.plan_id if subscription else None,
        )

    async def _cancel_quietly(self, user_id: str, period_end):
        # Stripe retries and reorders events; an already-cancelled row is fine
        try:
            return await self.subscriptions.cancel(user_id, period_end=period_end)
        except NoActiveSubscription:
            logger.info(f"No active subscription to cancel for user {user_id} - event ignored")
            return None
