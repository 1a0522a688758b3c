"""
Objective Grading Service

Instant grading for multiple choice and true/false answers without a model
call. Scores are all-or-nothing: 100 or 0.
"""

from typing import Any, Dict, List, Optional

from neuroleaf.schemas.test_mode import GradingResult

OBJECTIVE_MODEL = "objective_grading_v1"

TRUE_ANSWERS = {"true", "t", "1", "yes", "y"}
FALSE_ANSWERS = {"false", "f", "0", "no", "n"}


def _parse_choice_index(user_answer: str) -> Optional[int]:
    """Letter (A-Z) or numeric index; None when neither."""
    answer = user_answer.strip()
    if len(answer) == 1 and "A" <= answer <= "Z":
        return ord(answer) - ord("A")
    try:
        return int(answer)
    except ValueError:
        return None


def grade_multiple_choice(
    user_answer: str,
    correct_answer: int,
    options: Optional[List[str]] = None,
    explanation: Optional[str] = None
) -> GradingResult:
    options = options or []
    user_index = _parse_choice_index(user_answer)

    if user_index is None or user_index < 0:
        return GradingResult(
            score=0,
            feedback="Invalid answer format. Please select a valid option.",
            is_correct=False,
            model_used=OBJECTIVE_MODEL
        )

    is_correct = user_index == correct_answer
    correct_option = options[correct_answer] if 0 <= correct_answer < len(options) else f"Option {correct_answer + 1}"
    user_option = options[user_index] if user_index < len(options) else f"Option {user_index + 1}"

    if is_correct:
        feedback = f'Correct! You selected "{user_option}".'
    else:
        feedback = f'Incorrect. You selected "{user_option}" but the correct answer is "{correct_option}".'
    if explanation:
        feedback += f" {explanation}"

    return GradingResult(
        score=100 if is_correct else 0,
        feedback=feedback,
        is_correct=is_correct,
        model_used=OBJECTIVE_MODEL
    )


def grade_true_false(
    user_answer: str,
    correct_answer: bool,
    explanation: Optional[str] = None
) -> GradingResult:
    normalized = user_answer.lower().strip()

    if normalized in TRUE_ANSWERS:
        user_value = True
    elif normalized in FALSE_ANSWERS:
        user_value = False
    else:
        return GradingResult(
            score=0,
            feedback="Invalid answer format. Please answer with 'true' or 'false'.",
            is_correct=False,
            model_used=OBJECTIVE_MODEL
        )

    is_correct = user_value == correct_answer
    correct_text = "true" if correct_answer else "false"

    if is_correct:
        feedback = f"Correct! The statement is {correct_text}."
    else:
        feedback = f"Incorrect. The statement is {correct_text}, not {'true' if user_value else 'false'}."
    if explanation:
        feedback += f" {explanation}"

    return GradingResult(
        score=100 if is_correct else 0,
        feedback=feedback,
        is_correct=is_correct,
        model_used=OBJECTIVE_MODEL
    )


def can_grade_objectively(question_type: Optional[str], question_data: Optional[Dict[str, Any]]) -> bool:
    """True when the stored question carries a usable correct answer."""
    if not question_data:
        return False
    correct = question_data.get("correct_answer")
    if question_type == "multiple_choice":
        return isinstance(correct, int) and not isinstance(correct, bool)
    if question_type == "true_false":
        return isinstance(correct, bool)
    return False


def grade_objective_question(
    question_type: str,
    user_answer: str,
    question_data: Dict[str, Any]
) -> GradingResult:
    if question_type == "multiple_choice":
        return grade_multiple_choice(
            user_answer,
            question_data["correct_answer"],
            options=question_data.get("options"),
            explanation=question_data.get("explanation")
        )
    if question_type == "true_false":
        return grade_true_false(
            user_answer,
            question_data["correct_answer"],
            explanation=question_data.get("explanation")
        )
    raise ValueError(f"Unsupported question type for objective grading: {question_type}")


def summarize_objective_results(results: List[GradingResult]) -> Dict[str, Any]:
    total = len(results)
    correct = sum(1 for r in results if r.is_correct)
    return {
        "correct_count": correct,
        "total_count": total,
        "percentage": round(correct / total * 100) if total else 0,
        "average_score": round(sum(r.score for r in results) / total) if total else 0,
    }
