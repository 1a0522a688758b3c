"""
Webhooks Router

Handles Stripe webhook events for subscription lifecycle management.
This is the source of truth for keeping local subscription state in sync with Stripe.

Events handled:
- customer.subscription.created - Subscription created
- customer.subscription.updated - Subscription changed (upgrade/downgrade/renewal)
- customer.subscription.deleted - Subscription canceled/expired
- invoice.payment_succeeded - Payment successful
- invoice.payment_failed - Payment failed

Processing failures return 500 so Stripe redelivers the event. Handlers are
idempotent, so redelivery is safe.
"""

import os
import logging

import stripe
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from neuroleaf.database import get_db
from neuroleaf.services.stripe_service import StripeGateway, get_stripe_gateway, process_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway)
):
    """
    Handle Stripe webhook events.

    Webhook signature is verified to ensure requests are from Stripe.
    Events are processed to keep local subscription state in sync.
    """
    webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    if not os.getenv("STRIPE_SECRET_KEY") or not webhook_secret:
        logger.error("Stripe webhook received but Stripe is not configured")
        return _error(500, "Stripe is not configured")

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        return _error(400, "Missing Stripe signature")

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
    except ValueError:
        return _error(400, "Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("Stripe webhook signature verification failed")
        return _error(400, "Invalid signature")

    event_type = event["type"]
    logger.info("Processing Stripe webhook: event_type=%s", event_type)

    try:
        process_event(db, event, gateway)
    except Exception as e:
        logger.error("Webhook processing error for event_type=%s: %s", event_type, e, exc_info=True)
        return _error(500, "Webhook processing failed")

    return {"received": True}
