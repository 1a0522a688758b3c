"""
Flashcard Service

CRUD for flashcards inside an accessible deck. Creation is gated by the
create_flashcards entitlement for the whole batch at once.
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from neuroleaf.models.models import Flashcard, PerformanceAnalytics, TestResponse, AIGeneration
from neuroleaf.services.deck_service import get_deck
from neuroleaf.services.entitlements import Action, QuotaExceededError, can_perform

logger = logging.getLogger(__name__)


class FlashcardNotFoundError(Exception):
    def __init__(self, flashcard_id: str):
        self.flashcard_id = flashcard_id
        super().__init__(f"Flashcard {flashcard_id} not found")


SORT_COLUMNS = {
    "position": Flashcard.position,
    "created_at": Flashcard.created_at,
    "updated_at": Flashcard.updated_at,
    "difficulty": Flashcard.difficulty,
}


def _next_position(db: Session, deck_id: str) -> int:
    max_position = db.query(func.max(Flashcard.position)).filter(
        Flashcard.deck_id == deck_id
    ).scalar()
    return 0 if max_position is None else max_position + 1


def bulk_create_flashcards(
    db: Session,
    account_id: str,
    deck_id: str,
    cards: List[Dict[str, Any]],
    ai_generated: bool = False,
    now: Optional[datetime] = None
) -> List[Flashcard]:
    """
    Create several cards in one deck.

    The entitlement is checked once for len(cards); a denial creates nothing.
    Cards without an explicit position are appended after the current last one.
    """
    if not cards:
        return []

    now = now or datetime.utcnow()
    deck = get_deck(db, account_id, deck_id)

    result = can_perform(
        db, account_id, Action.CREATE_FLASHCARDS,
        requested_quantity=len(cards), deck_id=deck.id, now=now
    )
    if not result.allowed:
        raise QuotaExceededError(result)

    position = _next_position(db, deck.id)
    created = []
    for card in cards:
        explicit_position = card.get("position")
        flashcard = Flashcard(
            deck_id=deck.id,
            front_content=card["front_content"],
            back_content=card["back_content"],
            difficulty=card.get("difficulty") or "medium",
            tags=card.get("tags") or [],
            position=explicit_position if explicit_position is not None else position,
            ai_generated=ai_generated,
            created_at=now,
            updated_at=now,
        )
        if explicit_position is None:
            position += 1
        db.add(flashcard)
        created.append(flashcard)

    db.commit()
    for flashcard in created:
        db.refresh(flashcard)

    logger.info("Created %d flashcards in deck %s", len(created), deck.id)
    return created


def create_flashcard(
    db: Session,
    account_id: str,
    deck_id: str,
    card: Dict[str, Any],
    now: Optional[datetime] = None
) -> Flashcard:
    return bulk_create_flashcards(db, account_id, deck_id, [card], now=now)[0]


def list_flashcards(
    db: Session,
    account_id: str,
    deck_id: str,
    search: Optional[str] = None,
    difficulty: Optional[str] = None,
    sort_by: str = "position",
    sort_order: str = "asc",
    limit: int = 100,
    offset: int = 0
) -> Dict[str, Any]:
    deck = get_deck(db, account_id, deck_id)
    query = db.query(Flashcard).filter(Flashcard.deck_id == deck.id)

    if difficulty:
        query = query.filter(Flashcard.difficulty == difficulty)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Flashcard.front_content.ilike(pattern),
            Flashcard.back_content.ilike(pattern)
        ))

    total = query.count()
    column = SORT_COLUMNS.get(sort_by, Flashcard.position)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    flashcards = query.order_by(ordering, Flashcard.id.asc()).offset(offset).limit(limit).all()

    return {
        "flashcards": flashcards,
        "total": total,
        "has_more": offset + len(flashcards) < total,
    }


def get_flashcard(db: Session, account_id: str, deck_id: str, flashcard_id: str) -> Flashcard:
    deck = get_deck(db, account_id, deck_id)
    flashcard = db.query(Flashcard).filter(
        Flashcard.id == flashcard_id,
        Flashcard.deck_id == deck.id
    ).first()
    if not flashcard:
        raise FlashcardNotFoundError(flashcard_id)
    return flashcard


def update_flashcard(
    db: Session,
    account_id: str,
    deck_id: str,
    flashcard_id: str,
    updates: Dict[str, Any]
) -> Flashcard:
    flashcard = get_flashcard(db, account_id, deck_id, flashcard_id)

    for field in ("front_content", "back_content", "difficulty", "tags", "position"):
        if field in updates and updates[field] is not None:
            setattr(flashcard, field, updates[field])

    db.commit()
    db.refresh(flashcard)
    return flashcard


def delete_flashcard(db: Session, account_id: str, deck_id: str, flashcard_id: str) -> None:
    flashcard = get_flashcard(db, account_id, deck_id, flashcard_id)

    db.query(PerformanceAnalytics).filter(
        PerformanceAnalytics.flashcard_id == flashcard.id
    ).delete(synchronize_session=False)
    db.query(TestResponse).filter(
        TestResponse.flashcard_id == flashcard.id
    ).update({TestResponse.flashcard_id: None}, synchronize_session=False)
    db.query(AIGeneration).filter(
        AIGeneration.flashcard_id == flashcard.id
    ).update({AIGeneration.flashcard_id: None}, synchronize_session=False)

    db.delete(flashcard)
    db.commit()
