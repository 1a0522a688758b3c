"""
Stripe Service

Handles Stripe API interactions for billing:
- Checkout and customer portal sessions
- Subscription cancellation and reactivation
- Account reconciliation from webhook events

Webhook handlers write absolute values (tier, status, expiry) onto the
account, so a replayed event leaves the account exactly as one delivery did.
"""

import os
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from neuroleaf.models.models import Account
from neuroleaf.services.subscription import apply_tier, get_account

logger = logging.getLogger(__name__)


class BillingConfigurationError(Exception):
    """Stripe is not configured (missing key, secret or price id)."""


class BillingError(Exception):
    """A billing action cannot be performed for this account."""


def load_price_ids() -> Dict[str, Dict[str, Optional[str]]]:
    """Price ID mapping from environment, keyed by tier then billing cycle."""
    return {
        "pro": {
            "monthly": os.getenv("STRIPE_PRO_MONTHLY_PRICE_ID"),
            "yearly": os.getenv("STRIPE_PRO_YEARLY_PRICE_ID"),
            "legacy": os.getenv("STRIPE_PRICE_ID"),
        },
    }


PRICE_IDS = load_price_ids()


def get_frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:3000")


def get_price_id(tier: str, billing_cycle: str) -> Optional[str]:
    """Get Stripe price ID for a tier and billing cycle."""
    return PRICE_IDS.get(tier, {}).get(billing_cycle)


def get_tier_from_price_id(price_id: Optional[str]) -> str:
    """
    Reverse lookup: get tier from price ID.
    Unknown or missing price IDs map to "free".
    """
    if not price_id:
        return "free"
    for tier, cycles in PRICE_IDS.items():
        if price_id in [pid for pid in cycles.values() if pid]:
            return tier
    return "free"


class StripeGateway:
    """
    The Stripe calls billing needs, behind one object so webhook
    reconciliation can run against a fake in tests.

    The secret key is read on each call, not at construction.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    def _configure(self) -> None:
        api_key = self._api_key or os.getenv("STRIPE_SECRET_KEY")
        if not api_key:
            raise BillingConfigurationError("STRIPE_SECRET_KEY environment variable is not set")
        stripe.api_key = api_key

    def get_customer_email(self, customer_id: str) -> Optional[str]:
        """Email on the Stripe customer, None when deleted or missing."""
        self._configure()
        customer = stripe.Customer.retrieve(customer_id)
        if customer.get("deleted"):
            logger.error("Stripe customer is deleted: %s", customer_id)
            return None
        return customer.get("email")

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        self._configure()
        return stripe.Subscription.retrieve(subscription_id)

    def create_customer(self, email: str, account_id: str) -> str:
        self._configure()
        customer = stripe.Customer.create(
            email=email,
            metadata={
                "account_id": account_id,
                "platform": "neuroleaf"
            }
        )
        return customer.id

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        account_id: str,
        success_url: str,
        cancel_url: str
    ) -> Dict[str, Any]:
        self._configure()
        return stripe.checkout.Session.create(
            customer=customer_id,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{
                "price": price_id,
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            subscription_data={
                "metadata": {
                    "account_id": account_id,
                }
            },
            allow_promotion_codes=True,
        )

    def create_portal_session(self, customer_id: str, return_url: str) -> Dict[str, Any]:
        self._configure()
        return stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=return_url,
        )

    def set_cancel_at_period_end(self, subscription_id: str, cancel: bool) -> Dict[str, Any]:
        self._configure()
        return stripe.Subscription.modify(subscription_id, cancel_at_period_end=cancel)


def get_stripe_gateway() -> StripeGateway:
    """FastAPI dependency for the live gateway."""
    return StripeGateway()


def _commit(db: Session) -> None:
    """Commit, rolling back before re-raising so the caller sees the failure."""
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def _period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    """
    current_period_end as a naive UTC datetime.
    Newer API versions only carry it on the subscription items.
    """
    period_end = subscription.get("current_period_end")
    if period_end is None:
        items = _subscription_items(subscription)
        if items:
            period_end = items[0].get("current_period_end")
    if period_end is None:
        return None
    return datetime.utcfromtimestamp(period_end)


def _subscription_items(subscription: Dict[str, Any]) -> List[Dict[str, Any]]:
    items = subscription.get("items")
    if not items:
        return []
    return items.get("data") or []


def _invoice_subscription_id(invoice: Dict[str, Any]) -> Optional[str]:
    """Subscription id of an invoice, top-level or under parent.subscription_details."""
    if invoice.get("subscription"):
        return invoice["subscription"]
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription")


def _first_price_id(subscription: Dict[str, Any]) -> Optional[str]:
    items = _subscription_items(subscription)
    if not items:
        return None
    price = items[0].get("price") or {}
    return price.get("id")


# =============================================================================
# ACCOUNT RESOLUTION
# =============================================================================

def get_account_by_customer_id(db: Session, customer_id: Optional[str]) -> Optional[Account]:
    if not customer_id:
        return None
    return db.query(Account).filter(Account.stripe_customer_id == customer_id).first()


def find_or_link_account(
    db: Session,
    gateway: StripeGateway,
    customer_id: str
) -> Optional[Account]:
    """
    Resolve the account for a Stripe customer.

    Looks up by stored stripe_customer_id first. When that misses, fetches the
    customer's email from Stripe, matches an account by email and stores the
    customer id on it, so later events resolve directly.
    """
    account = get_account_by_customer_id(db, customer_id)
    if account:
        return account

    logger.info("No account for Stripe customer %s, trying to link by email", customer_id)

    try:
        email = gateway.get_customer_email(customer_id)
    except stripe.StripeError as e:
        logger.error("Error retrieving Stripe customer %s: %s", customer_id, e)
        return None

    if not email:
        logger.error("Stripe customer %s has no usable email", customer_id)
        return None

    account = db.query(Account).filter(Account.email == email).first()
    if not account:
        logger.error("No account found with email %s for customer %s", email, customer_id)
        return None

    account.stripe_customer_id = customer_id
    _commit(db)
    logger.info("Linked account %s to Stripe customer %s", account.id, customer_id)
    return account


# =============================================================================
# WEBHOOK HANDLERS
# =============================================================================

def handle_subscription_change(
    db: Session,
    subscription: Dict[str, Any],
    gateway: StripeGateway
) -> Optional[Account]:
    """customer.subscription.created / customer.subscription.updated"""
    customer_id = subscription.get("customer")
    account = find_or_link_account(db, gateway, customer_id)

    if not account:
        logger.error(
            "Could not find or link account for customer %s (subscription=%s status=%s price=%s)",
            customer_id, subscription.get("id"), subscription.get("status"), _first_price_id(subscription)
        )
        return None

    price_id = _first_price_id(subscription)
    tier = get_tier_from_price_id(price_id)

    apply_tier(account, tier)
    account.stripe_subscription_id = subscription.get("id")
    account.subscription_status = subscription.get("status")
    account.subscription_expires_at = _period_end(subscription)
    _commit(db)

    logger.info(
        "Updated subscription for account %s: price=%s tier=%s status=%s",
        account.id, price_id, tier, account.subscription_status
    )
    return account


def handle_subscription_deleted(db: Session, subscription: Dict[str, Any]) -> Optional[Account]:
    """customer.subscription.deleted: downgrade to free. No email recovery."""
    customer_id = subscription.get("customer")
    account = get_account_by_customer_id(db, customer_id)

    if not account:
        logger.error("Could not find account for customer %s", customer_id)
        return None

    apply_tier(account, "free")
    account.stripe_subscription_id = None
    account.subscription_status = "canceled"
    account.subscription_expires_at = None
    _commit(db)

    logger.info("Canceled subscription for account %s", account.id)
    return account


def handle_invoice_payment_succeeded(
    db: Session,
    invoice: Dict[str, Any],
    gateway: StripeGateway
) -> Optional[Account]:
    """
    invoice.payment_succeeded: mark active, then re-sync the tier from the
    invoice's subscription since the first invoice can arrive before the
    subscription event.
    """
    customer_id = invoice.get("customer")
    account = get_account_by_customer_id(db, customer_id)

    if not account:
        logger.error("Could not find account for customer %s", customer_id)
    else:
        account.subscription_status = "active"
        _commit(db)
        logger.info("Payment succeeded for account %s", account.id)

    subscription_id = _invoice_subscription_id(invoice)
    if subscription_id:
        subscription = gateway.retrieve_subscription(subscription_id)
        return handle_subscription_change(db, subscription, gateway)

    return account


def handle_invoice_payment_failed(db: Session, invoice: Dict[str, Any]) -> Optional[Account]:
    """invoice.payment_failed: mark past_due, tier unchanged."""
    customer_id = invoice.get("customer")
    account = get_account_by_customer_id(db, customer_id)

    if not account:
        logger.error("Could not find account for customer %s", customer_id)
        return None

    account.subscription_status = "past_due"
    _commit(db)

    logger.info("Payment failed for account %s", account.id)
    return account


def process_event(db: Session, event: Dict[str, Any], gateway: StripeGateway) -> Optional[Account]:
    """Dispatch a verified Stripe event to its handler."""
    event_type = event.get("type")
    data_object = event.get("data", {}).get("object", {})

    logger.info("Processing webhook event: %s (%s)", event_type, event.get("id"))

    if event_type in ("customer.subscription.created", "customer.subscription.updated"):
        return handle_subscription_change(db, data_object, gateway)
    elif event_type == "customer.subscription.deleted":
        return handle_subscription_deleted(db, data_object)
    elif event_type == "invoice.payment_succeeded":
        return handle_invoice_payment_succeeded(db, data_object, gateway)
    elif event_type == "invoice.payment_failed":
        return handle_invoice_payment_failed(db, data_object)
    else:
        logger.info("Unhandled event type: %s", event_type)
        return None


# =============================================================================
# BILLING ACTIONS
# =============================================================================

def get_or_create_customer(db: Session, account: Account, gateway: StripeGateway) -> str:
    """
    Get existing Stripe customer or create a new one.
    Returns the Stripe customer ID.
    """
    if account.stripe_customer_id:
        return account.stripe_customer_id

    customer_id = gateway.create_customer(account.email, account.id)
    account.stripe_customer_id = customer_id
    _commit(db)

    return customer_id


def create_checkout_session(
    db: Session,
    account_id: str,
    gateway: StripeGateway,
    billing_cycle: str = "monthly"
) -> Dict[str, Any]:
    """
    Create a Stripe Checkout session for the Pro plan.
    Returns dict with checkout_url and session_id.
    """
    price_id = get_price_id("pro", billing_cycle) or get_price_id("pro", "legacy")
    if not price_id:
        raise BillingConfigurationError(f"No Stripe price configured for pro/{billing_cycle}")

    account = get_account(db, account_id)
    customer_id = get_or_create_customer(db, account, gateway)
    frontend_url = get_frontend_url()

    session = gateway.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        account_id=account.id,
        success_url=f"{frontend_url}/billing/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{frontend_url}/pricing",
    )

    return {
        "checkout_url": session["url"],
        "session_id": session["id"],
    }


def create_portal_session(db: Session, account_id: str, gateway: StripeGateway) -> Dict[str, Any]:
    """
    Create a Stripe Customer Portal session.
    Allows users to manage subscription, update payment method, etc.
    """
    account = get_account(db, account_id)

    if not account.stripe_customer_id:
        raise BillingError("No Stripe customer found. Please contact support.")
    if account.subscription_tier == "free":
        raise BillingError("No active subscription to manage")

    session = gateway.create_portal_session(
        customer_id=account.stripe_customer_id,
        return_url=f"{get_frontend_url()}/home/billing",
    )

    return {
        "portal_url": session["url"],
    }


def cancel_subscription(db: Session, account_id: str, gateway: StripeGateway) -> Account:
    """
    Cancel at period end. The tier stays paid until Stripe sends
    customer.subscription.deleted.
    """
    account = get_account(db, account_id)

    if account.subscription_tier == "free":
        raise BillingError("No active subscription to cancel")

    if not account.stripe_subscription_id:
        # Paid tier without a Stripe subscription, e.g. a manual upgrade
        logger.warning("Account %s is %s but has no Stripe subscription id", account.id, account.subscription_tier)
        apply_tier(account, "free")
        account.subscription_status = "canceled"
        account.subscription_expires_at = None
        _commit(db)
        return account

    subscription = gateway.set_cancel_at_period_end(account.stripe_subscription_id, True)
    account.subscription_status = "canceled"
    account.subscription_expires_at = _period_end(subscription)
    _commit(db)

    logger.info("Scheduled cancellation for account %s", account.id)
    return account


def reactivate_subscription(db: Session, account_id: str, gateway: StripeGateway) -> Dict[str, Any]:
    """Undo a pending cancel-at-period-end."""
    account = get_account(db, account_id)

    if account.subscription_tier == "free":
        raise BillingError("No subscription to reactivate")
    if not account.stripe_subscription_id:
        raise BillingError("No Stripe subscription found")

    subscription = gateway.retrieve_subscription(account.stripe_subscription_id)

    if subscription.get("status") == "canceled":
        return {
            "success": False,
            "type": "expired",
            "message": "Subscription has expired. Please create a new subscription."
        }
    if not subscription.get("cancel_at_period_end"):
        return {"success": False, "type": "already_active", "message": "Subscription is already active."}

    subscription = gateway.set_cancel_at_period_end(account.stripe_subscription_id, False)
    account.subscription_status = "active"
    account.subscription_expires_at = _period_end(subscription)
    _commit(db)

    logger.info("Reactivated subscription for account %s", account.id)
    return {"success": True, "type": "reactivated", "message": None}


def get_billing_status(db: Session, account_id: str) -> Dict[str, Any]:
    account = get_account(db, account_id)
    return {
        "tier": account.subscription_tier or "free",
        "status": account.subscription_status,
        "expires_at": account.subscription_expires_at.isoformat() if account.subscription_expires_at else None,
        "subscription_id": account.stripe_subscription_id,
    }
