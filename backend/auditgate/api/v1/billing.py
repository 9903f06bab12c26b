"""
Stripe webhook endpoint.

Checkout and payment intents are created elsewhere; this service only
consumes the resulting lifecycle events.
"""
import logging
import stripe
from fastapi import APIRouter, HTTPException, Request, Depends, Header, status
from typing import Optional

from ...core.config import Settings
from ...core.container import Services
from ...core.dependencies import get_services, get_settings
from ...schemas.billing import WebhookResponse

router = APIRouter(prefix="/billing", tags=["billing"])
logger = logging.getLogger(__name__)


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    settings: Settings = Depends(get_settings),
    services: Services = Depends(get_services),
):
    """
    Handle Stripe webhook events.

    Store failures surface as 503 so Stripe retries the delivery.
    """
    if not settings.stripe_webhook_secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured - refusing unsigned webhooks")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook secret not configured",
        )

    if not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature",
        )

    try:
        payload = await request.body()
        event = stripe.Webhook.construct_event(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret,
        )
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )
    except stripe.SignatureVerificationError:
        logger.warning("❌ Stripe webhook signature verification failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    return await services.billing.handle_event(event)
