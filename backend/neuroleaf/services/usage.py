"""
Usage Service

Read-only counters for the quota-limited resources, plus the AI generation
log writer. Monthly counters take an explicit `now` so the window boundary is
decided by the caller, never by a wall-clock read inside the query.
"""

import enum
import logging
from datetime import datetime
from typing import Dict, Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from neuroleaf.models.models import Deck, Flashcard, AIGeneration, TestSession
from neuroleaf.services.subscription import get_account, get_tier_limits

logger = logging.getLogger(__name__)


class Resource(str, enum.Enum):
    DECK = "deck"
    FLASHCARD_IN_DECK = "flashcard_in_deck"
    AI_GENERATION_THIS_MONTH = "ai_generation_this_month"
    TEST_SESSION_THIS_MONTH = "test_session_this_month"


def start_of_month(now: datetime) -> datetime:
    """First instant of the calendar month containing `now`."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def count_decks(db: Session, account_id: str) -> int:
    return db.query(func.count(Deck.id)).filter(
        Deck.account_id == account_id
    ).scalar() or 0


def count_flashcards_in_deck(db: Session, deck_id: str) -> int:
    return db.query(func.count(Flashcard.id)).filter(
        Flashcard.deck_id == deck_id
    ).scalar() or 0


def count_ai_generations_this_month(db: Session, account_id: str, now: datetime) -> int:
    return db.query(func.count(AIGeneration.id)).filter(
        AIGeneration.account_id == account_id,
        AIGeneration.created_at >= start_of_month(now)
    ).scalar() or 0


def count_test_sessions_this_month(db: Session, account_id: str, now: datetime) -> int:
    return db.query(func.count(TestSession.id)).filter(
        TestSession.account_id == account_id,
        TestSession.created_at >= start_of_month(now)
    ).scalar() or 0


def count_usage(
    db: Session,
    account_id: str,
    resource: Resource,
    now: datetime,
    deck_id: Optional[str] = None
) -> int:
    """Current count of a resource for an account."""
    if resource == Resource.DECK:
        return count_decks(db, account_id)
    if resource == Resource.FLASHCARD_IN_DECK:
        if deck_id is None:
            raise ValueError("deck_id is required to count flashcards")
        return count_flashcards_in_deck(db, deck_id)
    if resource == Resource.AI_GENERATION_THIS_MONTH:
        return count_ai_generations_this_month(db, account_id, now)
    if resource == Resource.TEST_SESSION_THIS_MONTH:
        return count_test_sessions_this_month(db, account_id, now)
    raise ValueError(f"Unknown resource: {resource}")


def record_ai_generation(
    db: Session,
    account_id: str,
    generation_type: str,
    deck_id: Optional[str] = None,
    flashcard_id: Optional[str] = None,
    model_used: Optional[str] = None,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    now: Optional[datetime] = None
) -> AIGeneration:
    """Append an AI generation log entry."""
    record = AIGeneration(
        account_id=account_id,
        generation_type=generation_type,
        deck_id=deck_id,
        flashcard_id=flashcard_id,
        model_used=model_used,
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        created_at=now or datetime.utcnow()
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(
        "Recorded AI generation type=%s account=%s model=%s tokens=%d",
        generation_type, account_id, model_used, prompt_tokens + completion_tokens
    )
    return record


def get_current_usage(db: Session, account_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Tier, limits and account-level usage for the usage dashboard."""
    now = now or datetime.utcnow()
    account = get_account(db, account_id)
    limits = get_tier_limits(account.subscription_tier)

    return {
        "tier": account.subscription_tier,
        "limits": limits.to_dict(),
        "usage": {
            "decks": count_decks(db, account_id),
            "ai_generations": count_ai_generations_this_month(db, account_id, now),
            "test_sessions": count_test_sessions_this_month(db, account_id, now),
        },
        "period_start": start_of_month(now).isoformat(),
    }
