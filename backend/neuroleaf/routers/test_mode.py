"""
Test Mode Router

AI-powered testing over a deck:
- POST /api/tests                         start a session (monthly test quota)
- POST /api/tests/decks/{deck_id}/questions  generate questions (monthly AI quota)
- POST /api/tests/{session_id}/responses  submit and grade one answer
- POST /api/tests/{session_id}/complete   comprehensive grading with feedback hierarchy
- POST /api/tests/{session_id}/abandon
- GET  /api/tests/history
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from neuroleaf.database import get_db
from neuroleaf.models.models import Account
from neuroleaf.dependencies.auth import get_current_account
from neuroleaf.schemas.test_mode import (
    CompleteTestResults,
    GenerateQuestionsRequest,
    StartTestRequest,
    SubmitResponseRequest,
)
from neuroleaf.services.deck_service import DeckAccessDeniedError, DeckNotFoundError
from neuroleaf.services.entitlements import QuotaExceededError
from neuroleaf.services.flashcard_service import FlashcardNotFoundError
from neuroleaf.services.test_session import (
    EmptyDeckError,
    TestSessionClosedError,
    TestSessionNotFoundError,
    abandon_test_session,
    complete_test_session,
    generate_questions_for_deck,
    get_test_history,
    get_test_session,
    response_to_dict,
    session_to_dict,
    start_test_session,
    submit_test_response,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tests", tags=["test-mode"])


def _deck_error(e: Exception) -> HTTPException:
    if isinstance(e, DeckAccessDeniedError):
        return HTTPException(status_code=403, detail=e.reason)
    return HTTPException(status_code=404, detail="Deck not found")


@router.post("", status_code=201)
def start(
    request: StartTestRequest,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        session = start_test_session(
            db,
            current_account.id,
            request.deck_id,
            test_mode=request.test_mode.value,
            total_questions=request.total_questions,
        )
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail=e.result.reason)
    except (DeckNotFoundError, DeckAccessDeniedError) as e:
        raise _deck_error(e)

    return session_to_dict(session)


@router.get("/history")
def history(
    deck_id: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    return {"sessions": get_test_history(db, current_account.id, limit=limit, deck_id=deck_id)}


@router.post("/decks/{deck_id}/questions")
def generate_questions(
    deck_id: str,
    request: GenerateQuestionsRequest,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """
    Generate test questions from the deck's flashcards.

    Falls back to templated open-ended questions when the AI service fails.
    """
    try:
        return generate_questions_for_deck(
            db,
            current_account.id,
            deck_id,
            question_count=request.question_count,
            difficulty=request.difficulty,
            distribution=request.distribution,
        )
    except QuotaExceededError as e:
        raise HTTPException(status_code=403, detail=e.result.reason)
    except (DeckNotFoundError, DeckAccessDeniedError) as e:
        raise _deck_error(e)
    except EmptyDeckError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{session_id}")
def get_session(
    session_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        session = get_test_session(db, current_account.id, session_id)
    except TestSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Test session not found")

    return {
        **session_to_dict(session),
        "responses": [response_to_dict(r) for r in session.responses],
    }


@router.post("/{session_id}/responses", status_code=201)
def submit_response(
    session_id: str,
    request: SubmitResponseRequest,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    """Grade one answer. Objective questions are graded instantly, others by AI."""
    try:
        return submit_test_response(
            db,
            current_account.id,
            session_id,
            question_text=request.question_text,
            user_response=request.user_response,
            question_type=request.question_type.value,
            question_data=request.question_data,
            expected_answer=request.expected_answer,
            flashcard_id=request.flashcard_id,
            response_time_seconds=request.response_time_seconds,
        )
    except TestSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Test session not found")
    except FlashcardNotFoundError:
        raise HTTPException(status_code=404, detail="Flashcard not found in this deck")
    except TestSessionClosedError as e:
        raise HTTPException(status_code=409, detail=f"Test session is {e.status}")


@router.post("/{session_id}/complete", response_model=CompleteTestResults)
def complete(
    session_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        return complete_test_session(db, current_account.id, session_id)
    except TestSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Test session not found")
    except TestSessionClosedError as e:
        raise HTTPException(status_code=409, detail=f"Test session is {e.status}")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/{session_id}/abandon")
def abandon(
    session_id: str,
    current_account: Account = Depends(get_current_account),
    db: Session = Depends(get_db)
):
    try:
        session = abandon_test_session(db, current_account.id, session_id)
    except TestSessionNotFoundError:
        raise HTTPException(status_code=404, detail="Test session not found")
    except TestSessionClosedError as e:
        raise HTTPException(status_code=409, detail=f"Test session is {e.status}")

    return session_to_dict(session)
