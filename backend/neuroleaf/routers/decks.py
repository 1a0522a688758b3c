"""
Decks Router

CRUD for an account's flashcard decks. Creation is gated by the tier's deck
limit; decks beyond the limit after a downgrade stay listed but read-only
(they can still be deleted).
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from neuroleaf.database import get_db
from neuroleaf.models.models import Account
from neuroleaf.dependencies.auth import get_current_account
from neuroleaf.schemas.decks import DeckCreate, DeckResponse, DeckUpdate
from neuroleaf.services.deck_service import (
    DeckAccessDeniedError,
    DeckNotFoundError,
    count_cards,
    create_deck,
    deck_to_dict,
    delete_deck,
    get_deck,
    list_decks,
    update_deck,
)
from neuroleaf.services.entitlements import QuotaExceededError

router = APIRouter(prefix="/api/decks", tags=["decks"])


@router.get("")
def get_decks(
    search: Optional[str] = None,
    visibility: Optional[str] = None,
    sort_by: str = Query("updated_at", pattern="^(created_at|updated_at|name)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """List decks with card counts. Each deck carries an is_accessible flag."""
    return list_decks(
        db,
        current_account.id,
        search=search,
        visibility=visibility,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=DeckResponse, status_code=201)
def create(
    request: DeckCreate,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    data = request.model_dump(mode="json")
    try:
        deck = create_deck(
            db,
            current_account.id,
            name=data["name"],
            description=data["description"],
            visibility=data["visibility"],
            tags=data["tags"],
        )
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail=e.result.reason)

    return deck_to_dict(deck, 0)


@router.get("/{deck_id}", response_model=DeckResponse)
def get_one(
    deck_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        deck = get_deck(db, current_account.id, deck_id)
    except DeckNotFoundError:
        raise HTTPException(status_code=404, detail="Deck not found")
    except DeckAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=e.reason)

    return deck_to_dict(deck, count_cards(db, deck.id))


@router.patch("/{deck_id}", response_model=DeckResponse)
def update(
    deck_id: str,
    request: DeckUpdate,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        deck = update_deck(db, current_account.id, deck_id, request.model_dump(mode="json", exclude_unset=True))
    except DeckNotFoundError:
        raise HTTPException(status_code=404, detail="Deck not found")
    except DeckAccessDeniedError as e:
        raise HTTPException(status_code=403, detail=e.reason)

    return deck_to_dict(deck, count_cards(db, deck.id))


@router.delete("/{deck_id}", status_code=204)
def delete(
    deck_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        delete_deck(db, current_account.id, deck_id)
    except DeckNotFoundError:
        raise HTTPException(status_code=404, detail="Deck not found")
