"""
Deck Service

CRUD for decks, gated by the create_deck entitlement and the
oldest-N-decks accessibility rule for downgraded accounts.
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from neuroleaf.models.models import (
    AIGeneration,
    Deck,
    Flashcard,
    PerformanceAnalytics,
    TestResponse,
    TestSession,
)
from neuroleaf.services.entitlements import (
    Action,
    QuotaExceededError,
    can_perform,
    get_accessible_deck_ids,
)

logger = logging.getLogger(__name__)


class DeckNotFoundError(Exception):
    def __init__(self, deck_id: str):
        self.deck_id = deck_id
        super().__init__(f"Deck {deck_id} not found")


class DeckAccessDeniedError(Exception):
    """The deck exists but is frozen by the account's deck limit."""

    def __init__(self, deck_id: str, reason: str):
        self.deck_id = deck_id
        self.reason = reason
        super().__init__(reason)


SORT_COLUMNS = {
    "name": Deck.name,
    "created_at": Deck.created_at,
    "updated_at": Deck.updated_at,
}


def _owned_deck(db: Session, account_id: str, deck_id: str) -> Deck:
    deck = db.query(Deck).filter(
        Deck.id == deck_id,
        Deck.account_id == account_id
    ).first()
    if not deck:
        raise DeckNotFoundError(deck_id)
    return deck


def deck_to_dict(deck: Deck, total_cards: int, is_accessible: bool = True) -> Dict[str, Any]:
    return {
        "id": deck.id,
        "account_id": deck.account_id,
        "name": deck.name,
        "description": deck.description,
        "visibility": deck.visibility,
        "tags": deck.tags or [],
        "total_cards": total_cards,
        "is_accessible": is_accessible,
        "created_at": deck.created_at,
        "updated_at": deck.updated_at,
    }


def create_deck(
    db: Session,
    account_id: str,
    name: str,
    description: Optional[str] = None,
    visibility: str = "private",
    tags: Optional[List[str]] = None,
    now: Optional[datetime] = None
) -> Deck:
    """Create a deck if the account's tier allows another one."""
    now = now or datetime.utcnow()
    result = can_perform(db, account_id, Action.CREATE_DECK, now=now)
    if not result.allowed:
        raise QuotaExceededError(result)

    deck = Deck(
        account_id=account_id,
        name=name,
        description=description,
        visibility=visibility,
        tags=tags or [],
        created_at=now,
        updated_at=now,
    )
    db.add(deck)
    db.commit()
    db.refresh(deck)

    logger.info("Created deck %s for account %s", deck.id, account_id)
    return deck


def get_deck(db: Session, account_id: str, deck_id: str) -> Deck:
    """
    Load an owned deck for reading.

    Raises DeckNotFoundError when missing or owned by someone else, and
    DeckAccessDeniedError when the deck is beyond the account's oldest-N set.
    """
    deck = _owned_deck(db, account_id, deck_id)

    accessible_ids = get_accessible_deck_ids(db, account_id)
    if accessible_ids is not None and deck.id not in accessible_ids:
        raise DeckAccessDeniedError(
            deck.id,
            f"Deck access limited to your {len(accessible_ids)} oldest decks. "
            "Upgrade to access all decks."
        )
    return deck


def list_decks(
    db: Session,
    account_id: str,
    search: Optional[str] = None,
    visibility: Optional[str] = None,
    sort_by: str = "updated_at",
    sort_order: str = "desc",
    limit: int = 20,
    offset: int = 0
) -> Dict[str, Any]:
    """An account's decks with card counts and per-deck accessibility."""
    query = db.query(Deck).filter(Deck.account_id == account_id)

    if visibility:
        query = query.filter(Deck.visibility == visibility)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Deck.name.ilike(pattern), Deck.description.ilike(pattern)))

    total = query.count()

    column = SORT_COLUMNS.get(sort_by, Deck.updated_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    decks = query.order_by(ordering, Deck.id.asc()).offset(offset).limit(limit).all()

    card_counts = dict(
        db.query(Flashcard.deck_id, func.count(Flashcard.id)).filter(
            Flashcard.deck_id.in_([d.id for d in decks])
        ).group_by(Flashcard.deck_id).all()
    ) if decks else {}

    accessible_ids = get_accessible_deck_ids(db, account_id)

    return {
        "decks": [
            deck_to_dict(
                deck,
                card_counts.get(deck.id, 0),
                accessible_ids is None or deck.id in accessible_ids
            )
            for deck in decks
        ],
        "total": total,
        "has_more": offset + len(decks) < total,
    }


def count_cards(db: Session, deck_id: str) -> int:
    return db.query(func.count(Flashcard.id)).filter(Flashcard.deck_id == deck_id).scalar() or 0


def update_deck(db: Session, account_id: str, deck_id: str, updates: Dict[str, Any]) -> Deck:
    deck = get_deck(db, account_id, deck_id)

    for field in ("name", "description", "visibility", "tags"):
        if field in updates and updates[field] is not None:
            setattr(deck, field, updates[field])

    db.commit()
    db.refresh(deck)
    return deck


def delete_deck(db: Session, account_id: str, deck_id: str) -> None:
    """
    Delete a deck with its cards and test history.
    Inaccessible decks can still be deleted so an account can get back under its limit.
    """
    deck = _owned_deck(db, account_id, deck_id)

    flashcard_ids = [row.id for row in db.query(Flashcard.id).filter(Flashcard.deck_id == deck.id).all()]
    session_ids = [row.id for row in db.query(TestSession.id).filter(TestSession.deck_id == deck.id).all()]

    if session_ids:
        db.query(TestResponse).filter(
            TestResponse.test_session_id.in_(session_ids)
        ).delete(synchronize_session=False)
        db.query(TestSession).filter(TestSession.id.in_(session_ids)).delete(synchronize_session=False)

    if flashcard_ids:
        db.query(PerformanceAnalytics).filter(
            PerformanceAnalytics.flashcard_id.in_(flashcard_ids)
        ).delete(synchronize_session=False)
        db.query(TestResponse).filter(
            TestResponse.flashcard_id.in_(flashcard_ids)
        ).update({TestResponse.flashcard_id: None}, synchronize_session=False)
        db.query(AIGeneration).filter(
            AIGeneration.flashcard_id.in_(flashcard_ids)
        ).update({AIGeneration.flashcard_id: None}, synchronize_session=False)

    # Generation history is kept for the monthly count
    db.query(AIGeneration).filter(
        AIGeneration.deck_id == deck.id
    ).update({AIGeneration.deck_id: None}, synchronize_session=False)

    db.delete(deck)
    db.commit()

    logger.info("Deleted deck %s for account %s", deck_id, account_id)
