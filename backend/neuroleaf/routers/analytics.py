from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from neuroleaf.database import get_db
from neuroleaf.models.models import Account, TestSession
from neuroleaf.dependencies.auth import get_current_account
from neuroleaf.services.deck_service import DeckAccessDeniedError, DeckNotFoundError, get_deck
from neuroleaf.services.performance_analytics import (
    analytics_to_dict,
    get_deck_mastery_summary,
    get_performance_analytics,
)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/performance")
def get_performance(
    deck_id: Optional[str] = None,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Per-flashcard mastery for the account, weakest cards first.
    Optionally filtered to one deck.
    """
    rows = get_performance_analytics(db, current_account.id, deck_id)

    completed = db.query(
        func.count(TestSession.id),
        func.avg(TestSession.average_score),
        func.sum(TestSession.time_spent_seconds)
    ).filter(
        TestSession.account_id == current_account.id,
        TestSession.status == "completed"
    )
    if deck_id:
        completed = completed.filter(TestSession.deck_id == deck_id)
    total_sessions, average_score, time_spent = completed.one()

    return {
        "flashcards": [analytics_to_dict(r) for r in rows],
        "total_sessions": total_sessions or 0,
        "average_score": round(average_score, 1) if average_score is not None else None,
        "total_time_spent_minutes": round((time_spent or 0) / 60),
        "cards_mastered": sum(1 for r in rows if r.is_mastered),
    }


@router.get("/decks/{deck_id}/mastery")
def get_deck_mastery(
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

    return get_deck_mastery_summary(db, current_account.id, deck.id)
