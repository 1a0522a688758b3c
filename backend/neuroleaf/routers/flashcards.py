"""
Flashcards Router

Cards within a deck, including AI generation from study material. Creation
is gated by the tier's per-deck card limit; generation also counts against
the monthly AI quota.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from neuroleaf.database import get_db
from neuroleaf.models.models import Account
from neuroleaf.dependencies.auth import get_current_account
from neuroleaf.schemas.decks import (
    FlashcardBulkCreate,
    FlashcardCreate,
    FlashcardGenerateRequest,
    FlashcardResponse,
    FlashcardUpdate,
)
from neuroleaf.services.deck_service import DeckAccessDeniedError, DeckNotFoundError
from neuroleaf.services.entitlements import QuotaExceededError
from neuroleaf.services.flashcard_generator import AIGenerationError, generate_flashcards
from neuroleaf.services.flashcard_service import (
    FlashcardNotFoundError,
    bulk_create_flashcards,
    create_flashcard,
    delete_flashcard,
    get_flashcard,
    list_flashcards,
    update_flashcard,
)
from neuroleaf.utils.openai_client import AIConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/decks/{deck_id}/flashcards", tags=["flashcards"])


def _not_found_or_denied(e: Exception) -> HTTPException:
    if isinstance(e, DeckAccessDeniedError):
        return HTTPException(status_code=403, detail=e.reason)
    if isinstance(e, FlashcardNotFoundError):
        return HTTPException(status_code=404, detail="Flashcard not found")
    return HTTPException(status_code=404, detail="Deck not found")


@router.get("")
def get_flashcards(
    deck_id: str,
    search: Optional[str] = None,
    difficulty: Optional[str] = Query(None, pattern="^(easy|medium|hard)$"),
    sort_by: str = Query("position", pattern="^(position|created_at|updated_at)$"),
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        result = list_flashcards(
            db, current_account.id, deck_id,
            search=search, difficulty=difficulty,
            sort_by=sort_by, sort_order=sort_order,
            limit=limit, offset=offset,
        )
    except (DeckNotFoundError, DeckAccessDeniedError) as e:
        raise _not_found_or_denied(e)

    return {
        "flashcards": [FlashcardResponse.model_validate(f) for f in result["flashcards"]],
        "total": result["total"],
        "has_more": result["has_more"],
    }


@router.post("", response_model=FlashcardResponse, status_code=201)
def create(
    deck_id: str,
    request: FlashcardCreate,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        return create_flashcard(db, current_account.id, deck_id, request.model_dump(mode="json"))
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail=e.result.reason)
    except (DeckNotFoundError, DeckAccessDeniedError) as e:
        raise _not_found_or_denied(e)


@router.post("/bulk", response_model=List[FlashcardResponse], status_code=201)
def create_bulk(
    deck_id: str,
    request: FlashcardBulkCreate,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """All-or-nothing: the whole batch is refused when it would exceed the card limit."""
    cards = [card.model_dump(mode="json") for card in request.flashcards]
    try:
        return bulk_create_flashcards(db, current_account.id, deck_id, cards)
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail=e.result.reason)
    except (DeckNotFoundError, DeckAccessDeniedError) as e:
        raise _not_found_or_denied(e)


@router.post("/generate", status_code=201)
def generate(
    deck_id: str,
    request: FlashcardGenerateRequest,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Generate cards from study material with AI and add them to the deck."""
    try:
        result = generate_flashcards(
            db,
            current_account.id,
            deck_id,
            request.content,
            number_of_cards=request.number_of_cards,
            difficulty=request.difficulty.value if request.difficulty else None,
            subject=request.subject,
        )
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail=e.result.reason)
    except (DeckNotFoundError, DeckAccessDeniedError) as e:
        raise _not_found_or_denied(e)
    except AIGenerationError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except AIConfigurationError as e:
        logger.error("AI misconfigured: %s", e)
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "flashcards": [FlashcardResponse.model_validate(f) for f in result["flashcards"]],
        "tokens_used": result["tokens_used"],
        "model": result["model"],
    }


@router.get("/{flashcard_id}", response_model=FlashcardResponse)
def get_one(
    deck_id: str,
    flashcard_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        return get_flashcard(db, current_account.id, deck_id, flashcard_id)
    except (DeckNotFoundError, DeckAccessDeniedError, FlashcardNotFoundError) as e:
        raise _not_found_or_denied(e)


@router.patch("/{flashcard_id}", response_model=FlashcardResponse)
def update(
    deck_id: str,
    flashcard_id: str,
    request: FlashcardUpdate,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        return update_flashcard(
            db, current_account.id, deck_id, flashcard_id,
            request.model_dump(mode="json", exclude_unset=True)
        )
    except (DeckNotFoundError, DeckAccessDeniedError, FlashcardNotFoundError) as e:
        raise _not_found_or_denied(e)


@router.delete("/{flashcard_id}", status_code=204)
def delete(
    deck_id: str,
    flashcard_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        delete_flashcard(db, current_account.id, deck_id, flashcard_id)
    except (DeckNotFoundError, DeckAccessDeniedError, FlashcardNotFoundError) as e:
        raise _not_found_or_denied(e)
