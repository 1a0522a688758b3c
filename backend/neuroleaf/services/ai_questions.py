"""
AI Question Generation Service

Builds test questions from a deck's flashcards. The requested distribution
says how many of each question type to ask for. Every returned item is
validated against its type's schema and dropped when invalid. When the
model call fails, templated open-ended questions are built from the cards.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from neuroleaf.schemas.test_mode import (
    AIQuestion,
    MultipleChoiceQuestion,
    OpenEndedQuestion,
    QuestionDistribution,
    TrueFalseQuestion,
)
from neuroleaf.utils.json_parsing import extract_json_object
from neuroleaf.utils.openai_client import generate_text

logger = logging.getLogger(__name__)

QUESTION_MODELS = {
    "multiple_choice": MultipleChoiceQuestion,
    "true_false": TrueFalseQuestion,
    "open_ended": OpenEndedQuestion,
}

DIFFICULTY_INSTRUCTIONS = {
    "easy": "Focus on recall and basic understanding. Ask straightforward questions about the main concepts.",
    "medium": "Focus on comprehension and application. Ask questions that require understanding relationships between concepts.",
    "hard": "Focus on analysis and synthesis. Ask questions that require critical thinking, comparison, and deeper analysis.",
}

FALLBACK_TEMPLATES = [
    "Explain the concept of {front} in your own words.",
    "How does {front} relate to other concepts you've learned?",
    "What would happen if {front} was different? Explain your reasoning.",
    "Compare and contrast {front} with similar concepts.",
    "Provide an example of {front} and explain why it fits.",
    "What are the key characteristics of {front}?",
    "Describe a real-world application of {front}.",
    "What questions would you ask to better understand {front}?",
]

MAX_CARDS_IN_PROMPT = 50


@dataclass
class QuestionBatch:
    questions: List[AIQuestion]
    model: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0
    used_fallback: bool = False
    dropped: int = 0
    errors: List[str] = field(default_factory=list)


def resolve_distribution(question_count: int, distribution: Optional[QuestionDistribution]) -> QuestionDistribution:
    """The requested distribution, or all open-ended when none or empty."""
    if distribution is None or distribution.total == 0:
        return QuestionDistribution(open_ended=question_count)
    return distribution


def build_question_prompt(
    flashcards: List[Dict[str, Any]],
    distribution: QuestionDistribution,
    difficulty: str = "medium"
) -> str:
    card_lines = "\n\n".join(
        f"{i + 1}. [id={card['id']}] Q: {card['front_content']}\n   A: {card['back_content']}"
        for i, card in enumerate(flashcards[:MAX_CARDS_IN_PROMPT])
    )

    return f"""You are an expert educator creating {difficulty} level test questions from flashcard content.

FLASHCARD CONTENT:
{card_lines}

INSTRUCTIONS:
- Generate exactly {distribution.multiple_choice} multiple_choice, {distribution.true_false} true_false and {distribution.open_ended} open_ended questions
- {DIFFICULTY_INSTRUCTIONS.get(difficulty, DIFFICULTY_INSTRUCTIONS["medium"])}
- Questions should encourage critical thinking, not just memorization
- Each question should be clear and specific
- Set "flashcard_id" to the id of the flashcard each question is based on

DIFFICULTY LEVEL: {difficulty.upper()}

Respond in the following JSON format:
{{
  "questions": [
    {{"type": "multiple_choice", "question": "...", "options": ["A", "B", "C", "D"], "correct_answer": <0-3>, "explanation": "...", "difficulty": "{difficulty}", "flashcard_id": "..."}},
    {{"type": "true_false", "question": "...", "statement": "...", "correct_answer": <true|false>, "explanation": "...", "difficulty": "{difficulty}", "flashcard_id": "..."}},
    {{"type": "open_ended", "question": "...", "suggested_answer": "...", "difficulty": "{difficulty}", "flashcard_id": "..."}}
  ]
}}"""


def validate_question(item: Dict[str, Any], known_card_ids: set) -> Optional[AIQuestion]:
    """Validate one raw item against its type's schema, or None."""
    question_type = item.get("type") or "open_ended"
    model = QUESTION_MODELS.get(question_type)
    if model is None:
        return None
    try:
        question = model(**{**item, "type": question_type})
    except ValidationError as e:
        logger.debug("Dropping invalid %s question: %s", question_type, e.errors()[:1])
        return None
    if question.flashcard_id and question.flashcard_id not in known_card_ids:
        question = question.model_copy(update={"flashcard_id": None})
    return question


def _extract_questions_from_text(text: str, count: int) -> List[AIQuestion]:
    questions = []
    for line in (text or "").splitlines():
        line = line.strip()
        if len(questions) >= count:
            break
        if re.match(r"^\d+\.", line) or "?" in line:
            clean = re.sub(r"^\d+\.\s*", "", line).strip()
            if len(clean) > 10:
                questions.append(OpenEndedQuestion(question=clean, difficulty="medium"))
    return questions


def parse_questions(
    text: str,
    distribution: QuestionDistribution,
    known_card_ids: set
) -> List[AIQuestion]:
    """Valid questions from model output, capped per type at the distribution."""
    parsed = extract_json_object(text)
    raw_items = parsed.get("questions") if parsed else None
    if not isinstance(raw_items, list):
        return _extract_questions_from_text(text, distribution.total)

    remaining = {
        "multiple_choice": distribution.multiple_choice,
        "true_false": distribution.true_false,
        "open_ended": distribution.open_ended,
    }
    questions = []
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        question = validate_question(item, known_card_ids)
        if question is None or remaining[question.type] <= 0:
            continue
        remaining[question.type] -= 1
        questions.append(question)
    return questions


def fallback_questions(flashcards: List[Dict[str, Any]], count: int) -> List[AIQuestion]:
    """Templated open-ended questions, cycling cards first then templates."""
    if not flashcards:
        return []

    questions = []
    limit = min(count, len(flashcards) * len(FALLBACK_TEMPLATES))
    for i in range(limit):
        card = flashcards[i % len(flashcards)]
        template = FALLBACK_TEMPLATES[(i // len(flashcards)) % len(FALLBACK_TEMPLATES)]
        questions.append(OpenEndedQuestion(
            question=template.format(front=card["front_content"]),
            suggested_answer=f"Consider the definition: {card['back_content']}",
            difficulty="medium",
            flashcard_id=card["id"],
        ))
    return questions


def generate_questions(
    flashcards: List[Dict[str, Any]],
    question_count: int,
    difficulty: Optional[str] = None,
    distribution: Optional[QuestionDistribution] = None
) -> QuestionBatch:
    """Generate up to `question_count` questions from flashcard dicts (id, front_content, back_content)."""
    difficulty = difficulty or "medium"
    distribution = resolve_distribution(question_count, distribution)
    prompt = build_question_prompt(flashcards, distribution, difficulty)

    try:
        response = generate_text(prompt, temperature=0.7, max_tokens=4000)
    except Exception as e:
        logger.error("AI question generation error, using templates: %s", e)
        return QuestionBatch(
            questions=fallback_questions(flashcards, distribution.total),
            used_fallback=True,
            errors=[str(e)],
        )

    known_ids = {card["id"] for card in flashcards}
    questions = parse_questions(response.text, distribution, known_ids)

    return QuestionBatch(
        questions=questions,
        model=response.model,
        prompt_tokens=response.prompt_tokens,
        completion_tokens=response.completion_tokens,
        dropped=max(0, distribution.total - len(questions)),
    )
