"""
Subscription Service

Tier catalog for the Neuroleaf monetization model.
A tier name maps to a fixed set of resource limits; -1 means unlimited.
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from neuroleaf.models.models import Account


UNLIMITED = -1
DEFAULT_TIER = "free"


class AccountNotFoundError(Exception):
    """Raised when an account id does not resolve to a stored account."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


@dataclass(frozen=True)
class TierLimits:
    deck_limit: int
    flashcard_limit_per_deck: int
    ai_generations_per_month: int
    test_sessions_per_month: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# =============================================================================
# TIER CONFIGURATION
# =============================================================================

TIER_LIMITS: Dict[str, TierLimits] = {
    "free": TierLimits(
        deck_limit=3,
        flashcard_limit_per_deck=50,
        ai_generations_per_month=10,
        test_sessions_per_month=5,
    ),
    "pro": TierLimits(
        deck_limit=UNLIMITED,
        flashcard_limit_per_deck=UNLIMITED,
        ai_generations_per_month=UNLIMITED,
        test_sessions_per_month=UNLIMITED,
    ),
    # Legacy paid tier, billed accounts from before the Pro rename
    "premium": TierLimits(
        deck_limit=UNLIMITED,
        flashcard_limit_per_deck=UNLIMITED,
        ai_generations_per_month=UNLIMITED,
        test_sessions_per_month=UNLIMITED,
    ),
}

TIER_DISPLAY = {
    "free": {
        "name": "Free",
        "description": "Perfect for getting started",
        "price_monthly": 0,
        "features": [
            "Up to 3 decks",
            "50 cards per deck",
            "10 AI generations per month",
            "5 test sessions per month",
            "Study progress tracking",
        ],
    },
    "pro": {
        "name": "Pro",
        "description": "For serious learners",
        "price_monthly": 9.99,
        "features": [
            "Unlimited decks",
            "Unlimited cards per deck",
            "Unlimited AI generations",
            "AI test mode",
            "Study analytics",
        ],
    },
    "premium": {
        "name": "Premium",
        "description": "Legacy plan with unlimited access",
        "price_monthly": None,
        "features": [
            "Everything in Pro",
        ],
    },
}


def get_tier_limits(tier: Optional[str]) -> TierLimits:
    """Get limits for a tier. Unknown tiers get the free tier's limits."""
    return TIER_LIMITS.get(tier or DEFAULT_TIER, TIER_LIMITS[DEFAULT_TIER])


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def is_paid_tier(tier: Optional[str]) -> bool:
    return tier in ("pro", "premium")


# =============================================================================
# ACCOUNT LOOKUP
# =============================================================================

def get_account(db: Session, account_id: str) -> Account:
    """Load an account or raise AccountNotFoundError."""
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise AccountNotFoundError(account_id)
    return account


def get_account_tier(db: Session, account_id: str) -> str:
    return get_account(db, account_id).subscription_tier or DEFAULT_TIER


def apply_tier(account: Account, tier: str) -> None:
    """Set the tier and the per-account limit columns that mirror it."""
    limits = get_tier_limits(tier)
    account.subscription_tier = tier
    account.deck_limit = limits.deck_limit
    account.flashcard_limit_per_deck = limits.flashcard_limit_per_deck


# =============================================================================
# PLANS
# =============================================================================

def get_available_plans() -> List[Dict[str, Any]]:
    """Get list of publicly offered subscription plans."""
    plans = []
    for tier in ("free", "pro"):
        display = TIER_DISPLAY[tier]
        plans.append({
            "tier": tier,
            "name": display["name"],
            "description": display["description"],
            "price_monthly": display["price_monthly"],
            "features": display["features"],
            "limits": get_tier_limits(tier).to_dict(),
            "popular": tier == "pro",
        })
    return plans
