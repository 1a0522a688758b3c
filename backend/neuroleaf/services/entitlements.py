"""
Entitlement Service

Decides whether an account may perform a quota-limited action right now.

Limits come from the tier catalog keyed by the account's subscription tier,
current counts from the usage counters. A denial is a normal result value
carrying a human-readable reason; only a missing account is an error.

Downgraded accounts keep all their decks, but when they own more decks than
their tier allows only the oldest N stay accessible.
"""

import enum
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from neuroleaf.models.models import Deck, Flashcard
from neuroleaf.services.subscription import (
    UNLIMITED,
    get_account,
    get_tier_limits,
    is_paid_tier,
    is_unlimited,
)
from neuroleaf.services.usage import Resource, count_usage, count_decks

logger = logging.getLogger(__name__)


class Action(str, enum.Enum):
    CREATE_DECK = "create_deck"
    CREATE_FLASHCARDS = "create_flashcards"
    GENERATE_AI = "generate_ai"
    START_TEST = "start_test"


# action -> (counted resource, tier limit attribute)
ACTION_RESOURCES = {
    Action.CREATE_DECK: (Resource.DECK, "deck_limit"),
    Action.CREATE_FLASHCARDS: (Resource.FLASHCARD_IN_DECK, "flashcard_limit_per_deck"),
    Action.GENERATE_AI: (Resource.AI_GENERATION_THIS_MONTH, "ai_generations_per_month"),
    Action.START_TEST: (Resource.TEST_SESSION_THIS_MONTH, "test_sessions_per_month"),
}


@dataclass
class EntitlementResult:
    allowed: bool
    limit: int
    current: int
    max_allowed: int
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DeckAccess:
    can_access: bool
    reason: Optional[str] = None


class QuotaExceededError(Exception):
    """A create call refused because its entitlement check denied it."""

    def __init__(self, result: EntitlementResult):
        self.result = result
        super().__init__(result.reason or "Quota exceeded")


def _denial_reason(action: Action, current: int, limit: int, remaining: int) -> str:
    if action == Action.CREATE_DECK:
        return (
            f"Deck limit reached ({current}/{limit} decks used). "
            "Upgrade to Pro for unlimited decks."
        )
    if action == Action.CREATE_FLASHCARDS:
        return (
            f"Card limit reached. You can create {remaining} more cards "
            f"({current}/{limit} used)."
        )
    if action == Action.GENERATE_AI:
        return (
            f"Monthly AI generation limit reached ({current}/{limit} used). "
            "Upgrade to Pro for unlimited AI generations."
        )
    return (
        f"Monthly test session limit reached ({current}/{limit} used). "
        "Upgrade to Pro for unlimited tests."
    )


def can_perform(
    db: Session,
    account_id: str,
    action: Action,
    requested_quantity: int = 1,
    deck_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> EntitlementResult:
    """
    Check whether `account_id` may perform `action` for `requested_quantity` units.

    Allowed iff the tier limit is unlimited or current + requested <= limit.
    `max_allowed` is the remaining quota (-1 when unlimited), which is the
    largest quantity the caller could still request.

    Raises AccountNotFoundError when the account does not exist.
    """
    if requested_quantity < 1:
        raise ValueError("requested_quantity must be at least 1")
    action = Action(action)
    if action == Action.CREATE_FLASHCARDS and deck_id is None:
        raise ValueError("deck_id is required for create_flashcards")

    now = now or datetime.utcnow()
    account = get_account(db, account_id)
    resource, limit_attr = ACTION_RESOURCES[action]
    limit = getattr(get_tier_limits(account.subscription_tier), limit_attr)

    current = count_usage(db, account_id, resource, now, deck_id=deck_id)

    if is_unlimited(limit):
        return EntitlementResult(allowed=True, limit=UNLIMITED, current=current, max_allowed=UNLIMITED)

    remaining = max(0, limit - current)
    if current + requested_quantity <= limit:
        return EntitlementResult(allowed=True, limit=limit, current=current, max_allowed=remaining)

    logger.info(
        "Entitlement denied: account=%s action=%s current=%d requested=%d limit=%d",
        account_id, action.value, current, requested_quantity, limit
    )
    return EntitlementResult(
        allowed=False,
        limit=limit,
        current=current,
        max_allowed=remaining,
        reason=_denial_reason(action, current, limit, remaining)
    )


# =============================================================================
# DECK ACCESSIBILITY AFTER DOWNGRADE
# =============================================================================

def get_accessible_deck_ids(db: Session, account_id: str) -> Optional[List[str]]:
    """
    Ids of the decks an over-limit account may still open.

    Returns None when every deck is accessible (unlimited tier or within the
    limit). Otherwise returns the N oldest decks by creation time, ties
    broken by id, where N is the tier's deck limit.
    """
    account = get_account(db, account_id)
    deck_limit = get_tier_limits(account.subscription_tier).deck_limit

    if is_unlimited(deck_limit):
        return None
    if count_decks(db, account_id) <= deck_limit:
        return None

    oldest = db.query(Deck.id).filter(
        Deck.account_id == account_id
    ).order_by(
        Deck.created_at.asc(), Deck.id.asc()
    ).limit(deck_limit).all()

    return [row.id for row in oldest]


def can_access_deck(db: Session, account_id: str, deck_id: str) -> DeckAccess:
    accessible_ids = get_accessible_deck_ids(db, account_id)

    if accessible_ids is None or deck_id in accessible_ids:
        return DeckAccess(can_access=True)

    return DeckAccess(
        can_access=False,
        reason=(
            f"Deck access limited to your {len(accessible_ids)} oldest decks. "
            "Upgrade to access all decks."
        )
    )


# =============================================================================
# SUMMARIES
# =============================================================================

def get_subscription_info(db: Session, account_id: str) -> Dict[str, Any]:
    """Tier, limits and deck headroom for the subscription UI."""
    account = get_account(db, account_id)
    limits = get_tier_limits(account.subscription_tier)
    deck_count = count_decks(db, account_id)
    deck_limit = limits.deck_limit

    return {
        "tier": account.subscription_tier,
        "deck_limit": deck_limit,
        "flashcard_limit_per_deck": limits.flashcard_limit_per_deck,
        "current_deck_count": deck_count,
        "can_create_deck": is_unlimited(deck_limit) or deck_count < deck_limit,
        "remaining_decks": UNLIMITED if is_unlimited(deck_limit) else max(0, deck_limit - deck_count),
        "accessible_deck_ids": get_accessible_deck_ids(db, account_id),
        "subscription_status": account.subscription_status,
        "subscription_expires_at": account.subscription_expires_at.isoformat() if account.subscription_expires_at else None,
    }


def get_upgrade_suggestion(
    db: Session,
    account_id: str,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """Tell a free account which of its limits makes upgrading worthwhile."""
    now = now or datetime.utcnow()
    account = get_account(db, account_id)

    if is_paid_tier(account.subscription_tier):
        return {"should_upgrade": False, "suggested_plan": None, "reason": "Already on highest plan"}

    limits = get_tier_limits(account.subscription_tier)

    if count_decks(db, account_id) >= limits.deck_limit:
        return {
            "should_upgrade": True,
            "suggested_plan": "pro",
            "reason": "You've reached your deck limit. Upgrade for unlimited decks!"
        }

    max_cards_in_deck = db.query(func.count(Flashcard.id)).join(
        Deck, Flashcard.deck_id == Deck.id
    ).filter(
        Deck.account_id == account_id
    ).group_by(Flashcard.deck_id).order_by(func.count(Flashcard.id).desc()).limit(1).scalar() or 0

    if max_cards_in_deck >= limits.flashcard_limit_per_deck:
        return {
            "should_upgrade": True,
            "suggested_plan": "pro",
            "reason": "You've reached the card limit per deck. Upgrade for unlimited cards!"
        }

    if count_usage(db, account_id, Resource.AI_GENERATION_THIS_MONTH, now) >= limits.ai_generations_per_month:
        return {
            "should_upgrade": True,
            "suggested_plan": "pro",
            "reason": "You've used all your AI generations this month. Upgrade for unlimited AI!"
        }

    if count_usage(db, account_id, Resource.TEST_SESSION_THIS_MONTH, now) >= limits.test_sessions_per_month:
        return {
            "should_upgrade": True,
            "suggested_plan": "pro",
            "reason": "Unlock unlimited AI-powered tests with detailed feedback!"
        }

    return {"should_upgrade": False, "suggested_plan": None, "reason": "Current plan meets your needs"}