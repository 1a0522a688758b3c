"""
Payments Router

Handles Stripe billing endpoints:
- Create checkout sessions for the Pro subscription
- Create customer portal sessions for subscription management
- Cancel / reactivate a subscription at period end
- Get billing status

SECURITY: All endpoints act on the authenticated account only.
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field

from neuroleaf.database import get_db
from neuroleaf.models.models import Account
from neuroleaf.dependencies.auth import get_current_account
from neuroleaf.services.stripe_service import (
    BillingConfigurationError,
    BillingError,
    StripeGateway,
    cancel_subscription,
    create_checkout_session,
    create_portal_session,
    get_billing_status,
    get_stripe_gateway,
    reactivate_subscription,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/billing", tags=["billing"])


# Request/Response models
class CheckoutRequest(BaseModel):
    billing_cycle: str = Field("monthly", pattern="^(monthly|yearly)$")


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class PortalResponse(BaseModel):
    portal_url: str


class BillingStatusResponse(BaseModel):
    tier: str
    status: Optional[str]
    expires_at: Optional[str]
    subscription_id: Optional[str]


def _billing_http_error(e: Exception) -> HTTPException:
    if isinstance(e, BillingConfigurationError):
        logger.error("Billing misconfigured: %s", e)
        return HTTPException(status_code=500, detail=str(e))
    if isinstance(e, BillingError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error("Stripe API error: %s", e)
    return HTTPException(status_code=502, detail="Payment provider error. Please try again.")


@router.post("/checkout", response_model=CheckoutResponse)
def create_checkout(
    request: CheckoutRequest,
    current_account: Account = Depends(get_current_account),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    db: Session = Depends(get_db)
):
    """
    Create a Stripe Checkout session for the Pro plan.
    Returns a URL to redirect the user to Stripe's hosted checkout page.
    """
    if current_account.subscription_tier in ("pro", "premium") and current_account.subscription_status == "active":
        raise HTTPException(status_code=400, detail="Already subscribed to a paid plan")

    try:
        return create_checkout_session(db, current_account.id, gateway, request.billing_cycle)
    except (BillingConfigurationError, BillingError, stripe.StripeError) as e:
        raise _billing_http_error(e)


@router.post("/portal", response_model=PortalResponse)
def create_portal(
    current_account: Account = Depends(get_current_account),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    db: Session = Depends(get_db)
):
    """Open the Stripe Customer Portal to manage payment method and subscription."""
    try:
        return create_portal_session(db, current_account.id, gateway)
    except (BillingConfigurationError, BillingError, stripe.StripeError) as e:
        raise _billing_http_error(e)


@router.post("/cancel")
def cancel(
    current_account: Account = Depends(get_current_account),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    db: Session = Depends(get_db)
):
    """Cancel at the end of the current billing period."""
    try:
        account = cancel_subscription(db, current_account.id, gateway)
    except (BillingConfigurationError, BillingError, stripe.StripeError) as e:
        raise _billing_http_error(e)

    return {
        "success": True,
        "expires_at": account.subscription_expires_at.isoformat() if account.subscription_expires_at else None,
    }


@router.post("/reactivate")
def reactivate(
    current_account: Account = Depends(get_current_account),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    db: Session = Depends(get_db)
):
    try:
        return reactivate_subscription(db, current_account.id, gateway)
    except (BillingConfigurationError, BillingError, stripe.StripeError) as e:
        raise _billing_http_error(e)


@router.get("/status", response_model=BillingStatusResponse)
def billing_status(
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Current tier and Stripe subscription state."""
    return get_billing_status(db, current_account.id)
