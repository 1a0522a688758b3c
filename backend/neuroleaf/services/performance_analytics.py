"""
Performance Analytics Service

Per-flashcard mastery tracking. Analytics rows are recomputed from the full
response history every time a response is stored, so the result never
depends on the order in which responses arrived.
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from neuroleaf.models.models import Flashcard, PerformanceAnalytics, TestResponse, TestSession

logger = logging.getLogger(__name__)

CORRECT_SCORE_THRESHOLD = 80
MASTERED_LEVEL = 80


def compute_mastery_level(total_attempts: int, average_score: Optional[float]) -> int:
    """
    Mastery level 0-100 from attempt count and average score.

    Full mastery needs at least 3 attempts and strong mastery at least 2, so
    a single lucky answer never counts as mastered.
    """
    if total_attempts == 0 or average_score is None:
        return 0
    if average_score >= 90 and total_attempts >= 3:
        return 100
    if average_score >= 80 and total_attempts >= 2:
        return 80
    if average_score >= 70:
        return 60
    if average_score >= 60:
        return 40
    if average_score >= 50:
        return 20
    return 0


def _account_responses_for_card(db: Session, account_id: str, flashcard_id: str) -> List[TestResponse]:
    return db.query(TestResponse).join(
        TestSession, TestResponse.test_session_id == TestSession.id
    ).filter(
        TestSession.account_id == account_id,
        TestResponse.flashcard_id == flashcard_id
    ).order_by(TestResponse.created_at, TestResponse.id).all()


def recompute_performance_analytics(
    db: Session,
    account_id: str,
    flashcard_id: str,
    now: Optional[datetime] = None
) -> Optional[PerformanceAnalytics]:
    """
    Upsert the analytics row for (account, flashcard) from every stored response.

    Returns None when the account has never answered a question on the card.
    The caller owns the commit.
    """
    now = now or datetime.utcnow()
    responses = _account_responses_for_card(db, account_id, flashcard_id)
    if not responses:
        return None

    scores = [r.ai_score for r in responses]
    total = len(scores)
    average = sum(scores) / total
    mastery = compute_mastery_level(total, average)

    analytics = db.query(PerformanceAnalytics).filter(
        PerformanceAnalytics.account_id == account_id,
        PerformanceAnalytics.flashcard_id == flashcard_id
    ).first()
    if analytics is None:
        analytics = PerformanceAnalytics(account_id=account_id, flashcard_id=flashcard_id)
        db.add(analytics)

    analytics.total_attempts = total
    analytics.correct_attempts = sum(1 for s in scores if s >= CORRECT_SCORE_THRESHOLD)
    analytics.average_score = round(average, 2)
    analytics.best_score = max(scores)
    analytics.latest_score = scores[-1]
    was_mastered = bool(analytics.is_mastered)
    analytics.mastery_level = mastery
    analytics.is_mastered = mastery >= MASTERED_LEVEL
    # Stamped on each transition into mastery, kept while below it
    if analytics.is_mastered and not was_mastered:
        analytics.mastered_at = now
    analytics.first_attempt_at = responses[0].created_at
    analytics.last_attempt_at = responses[-1].created_at
    analytics.updated_at = now

    db.flush()
    return analytics


def analytics_to_dict(analytics: PerformanceAnalytics) -> Dict[str, Any]:
    flashcard = analytics.flashcard
    return {
        "flashcard_id": analytics.flashcard_id,
        "front_content": flashcard.front_content if flashcard else None,
        "deck_id": flashcard.deck_id if flashcard else None,
        "total_attempts": analytics.total_attempts,
        "correct_attempts": analytics.correct_attempts,
        "average_score": analytics.average_score,
        "best_score": analytics.best_score,
        "latest_score": analytics.latest_score,
        "mastery_level": analytics.mastery_level,
        "is_mastered": analytics.is_mastered,
        "mastered_at": analytics.mastered_at.isoformat() if analytics.mastered_at else None,
        "last_attempt_at": analytics.last_attempt_at.isoformat() if analytics.last_attempt_at else None,
    }


def get_performance_analytics(
    db: Session,
    account_id: str,
    deck_id: Optional[str] = None
) -> List[PerformanceAnalytics]:
    """Weakest cards first."""
    query = db.query(PerformanceAnalytics).filter(PerformanceAnalytics.account_id == account_id)
    if deck_id:
        query = query.join(Flashcard, PerformanceAnalytics.flashcard_id == Flashcard.id).filter(
            Flashcard.deck_id == deck_id
        )
    return query.order_by(PerformanceAnalytics.mastery_level.asc(), PerformanceAnalytics.id).all()


def get_deck_mastery_summary(db: Session, account_id: str, deck_id: str) -> Dict[str, Any]:
    total_cards = db.query(func.count(Flashcard.id)).filter(Flashcard.deck_id == deck_id).scalar() or 0
    rows = get_performance_analytics(db, account_id, deck_id)

    studied = len(rows)
    mastered = sum(1 for r in rows if r.is_mastered)
    # Unstudied cards count as mastery 0
    average_mastery = round(sum(r.mastery_level for r in rows) / total_cards, 1) if total_cards else 0.0

    return {
        "deck_id": deck_id,
        "total_cards": total_cards,
        "cards_studied": studied,
        "cards_mastered": mastered,
        "average_mastery": average_mastery,
        "mastery_percentage": round(mastered / total_cards * 100, 1) if total_cards else 0.0,
        "weakest_cards": [analytics_to_dict(r) for r in rows[:5] if not r.is_mastered],
    }
