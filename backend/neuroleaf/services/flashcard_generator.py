"""
AI Flashcard Generator

Turns study material into flashcards with one model call, then stores the
cards in the target deck and logs the generation against the monthly quota.
"""

import re
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from sqlalchemy.orm import Session

from neuroleaf.schemas.decks import MAX_GENERATION_CONTENT_CHARS
from neuroleaf.services.deck_service import get_deck
from neuroleaf.services.entitlements import Action, QuotaExceededError, can_perform
from neuroleaf.services.flashcard_service import bulk_create_flashcards
from neuroleaf.services.usage import record_ai_generation
from neuroleaf.utils.json_parsing import extract_json_array
from neuroleaf.utils.openai_client import AIConfigurationError, generate_text

logger = logging.getLogger(__name__)

VALID_DIFFICULTIES = ("easy", "medium", "hard")

# Fronts that quiz the document rather than the subject
META_QUESTION_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r"\btable of contents\b",
        r"\bpage \d+\b",
        r"\blearning objectives?\b",
        r"\bwhat (?:is|does) (?:this|the) (?:document|chapter|section|text)\b",
        r"\bwhat topics? (?:are|is) covered\b",
        r"\bcourse outline\b",
    )
]

_QA_PATTERN = re.compile(
    r"(?:^|\n)\s*(?:Q|Question|Front)\s*[:.]\s*(.+?)\s*\n\s*(?:A|Answer|Back)\s*[:.]\s*(.+?)(?=\n\s*(?:Q|Question|Front)\s*[:.]|\Z)",
    re.IGNORECASE | re.DOTALL
)


class AIGenerationError(Exception):
    """The model call failed or produced nothing usable."""


def build_flashcard_prompt(
    content: str,
    number_of_cards: int,
    difficulty: Optional[str] = None,
    subject: Optional[str] = None
) -> str:
    difficulty_line = f"Target difficulty: {difficulty}.\n" if difficulty else ""
    subject_line = f"Subject: {subject}.\n" if subject else ""

    return f"""You are an expert educator creating high-quality flashcards for optimal learning. Create exactly {number_of_cards} flashcards from the provided educational content.
{subject_line}{difficulty_line}
CONTENT TO ANALYZE:
{content[:MAX_GENERATION_CONTENT_CHARS]}

CRITICAL: AVOID META-QUESTIONS
Never create flashcards about document structure, navigation, page numbers,
tables of contents, learning objectives or course outlines.

Only create flashcards about the educational content itself: facts,
definitions, formulas, processes, examples, dates and cause-and-effect
relationships. Each card tests exactly one idea. Answers are concise and
self-contained.

Respond with ONLY a JSON array in this format:
[{{"q": "question", "a": "answer", "difficulty": "easy|medium|hard"}}]"""


def _is_meta_question(front: str) -> bool:
    return any(pattern.search(front) for pattern in META_QUESTION_PATTERNS)


def parse_flashcards(text: str, default_difficulty: str = "medium") -> List[Dict[str, Any]]:
    """Cards from model output: a JSON array first, then Q:/A: pairs."""
    cards = []

    items = extract_json_array(text)
    if items:
        for item in items:
            if not isinstance(item, dict):
                continue
            front = str(item.get("q") or item.get("question") or item.get("front") or "").strip()
            back = str(item.get("a") or item.get("answer") or item.get("back") or "").strip()
            difficulty = item.get("difficulty")
            cards.append({
                "front_content": front,
                "back_content": back,
                "difficulty": difficulty if difficulty in VALID_DIFFICULTIES else default_difficulty,
                "tags": [],
            })
    else:
        for match in _QA_PATTERN.finditer(text or ""):
            cards.append({
                "front_content": match.group(1).strip(),
                "back_content": match.group(2).strip(),
                "difficulty": default_difficulty,
                "tags": [],
            })

    return [
        card for card in cards
        if card["front_content"] and card["back_content"] and not _is_meta_question(card["front_content"])
    ]


def generate_flashcards(
    db: Session,
    account_id: str,
    deck_id: str,
    content: str,
    number_of_cards: int = 5,
    difficulty: Optional[str] = None,
    subject: Optional[str] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Generate and store AI flashcards in a deck.

    Both the monthly AI quota and the deck's card quota are checked before
    the model is called. Raises QuotaExceededError on either denial and
    AIGenerationError when the model fails or returns no usable cards.
    AIConfigurationError propagates unchanged.
    """
    now = now or datetime.utcnow()
    deck = get_deck(db, account_id, deck_id)

    ai_check = can_perform(db, account_id, Action.GENERATE_AI, now=now)
    if not ai_check.allowed:
        raise QuotaExceededError(ai_check)

    card_check = can_perform(
        db, account_id, Action.CREATE_FLASHCARDS,
        requested_quantity=number_of_cards, deck_id=deck.id, now=now
    )
    if not card_check.allowed:
        raise QuotaExceededError(card_check)

    prompt = build_flashcard_prompt(content, number_of_cards, difficulty, subject)
    try:
        response = generate_text(prompt, temperature=0.4, max_tokens=2000)
    except AIConfigurationError:
        raise
    except Exception as e:
        logger.error("Flashcard generation failed for deck %s: %s", deck.id, e)
        raise AIGenerationError("AI service is unavailable. Please try again.") from e

    cards = parse_flashcards(response.text, difficulty or "medium")[:number_of_cards]
    if not cards:
        logger.warning("Model returned no usable flashcards for deck %s", deck.id)
        raise AIGenerationError("No flashcards could be generated from this content.")

    created = bulk_create_flashcards(db, account_id, deck.id, cards, ai_generated=True, now=now)
    record_ai_generation(
        db,
        account_id,
        "flashcards",
        deck_id=deck.id,
        model_used=response.model,
        prompt_tokens=response.prompt_tokens,
        completion_tokens=response.completion_tokens,
        now=now,
    )

    return {
        "flashcards": created,
        "tokens_used": response.total_tokens,
        "model": response.model,
    }
