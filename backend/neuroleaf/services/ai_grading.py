"""
AI Grading Service

Grades open-ended answers with the model and builds the layered feedback
shown after a test.

Model output is parsed defensively: a JSON object first, then a
`score: N` pattern, else a score of 0. Scores are clamped to 0-100. When
the model call itself fails, answers are graded by word overlap with the
expected answer instead.
"""

import re
import random
import logging
from typing import Any, List, Optional

from neuroleaf.schemas.test_mode import (
    CompleteTestResults,
    ComprehensiveGrading,
    FeedbackAtGlance,
    FeedbackHierarchy,
    FeedbackPrimary,
    FeedbackTopics,
    GradingResult,
    GrowthPlan,
    OverallTestAnalysis,
    QuickStats,
    TopicPerformance,
)
from neuroleaf.utils.json_parsing import extract_json_object
from neuroleaf.utils.openai_client import generate_text

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "fallback"
FALLBACK_CORRECT_SIMILARITY = 0.6
PERFORMANCE_LEVELS = ("excellent", "good", "fair", "poor")

_SCORE_RE = re.compile(r"score[\"':\s]*(\d+)", re.IGNORECASE)

CELEBRATION_MESSAGES = {
    "A": ["Outstanding work!", "Exceptional performance!", "Excellence achieved!"],
    "B": ["Great job!", "Well done!", "Strong performance!"],
    "C": ["Good effort!", "You're learning!", "Keep improving!"],
    "D": ["Nice try!", "Growing stronger!", "Learning in progress!"],
    "F": ["Ready to improve!", "Every expert was once a beginner!", "Learning journey continues!"],
}


def clamp_score(value: Any) -> float:
    try:
        score = float(value or 0)
    except (TypeError, ValueError):
        score = 0.0
    return max(0.0, min(100.0, score))


def _performance_for(score: float) -> str:
    if score >= 80:
        return "good"
    if score >= 60:
        return "fair"
    return "poor"


# =============================================================================
# PROMPTS
# =============================================================================

def build_grading_prompt(
    question: str,
    user_response: str,
    expected_answer: Optional[str] = None,
    context: Optional[str] = None
) -> str:
    expected = f"EXPECTED ANSWER: {expected_answer}\n" if expected_answer else ""
    context_line = f"CONTEXT: {context}\n" if context else ""

    return f"""You are an expert tutor grading a student's response. Provide a score from 0-100 and constructive feedback.

QUESTION: {question}

{expected}
STUDENT'S RESPONSE: {user_response}

{context_line}
Please respond in the following JSON format:
{{
  "score": <number 0-100>,
  "feedback": "<constructive feedback explaining the score and how to improve>",
  "is_correct": <boolean>
}}

Grading Criteria:
- 90-100: Excellent understanding, complete and accurate
- 80-89: Good understanding, mostly correct with minor issues
- 70-79: Fair understanding, correct main points but missing details
- 60-69: Basic understanding, some correct elements but significant gaps
- 50-59: Limited understanding, major misconceptions
- 0-49: Incorrect or no meaningful understanding

Provide specific, actionable feedback that helps the student improve their understanding."""


def build_comprehensive_grading_prompt(
    question: str,
    user_response: str,
    expected_answer: Optional[str] = None,
    context: Optional[str] = None
) -> str:
    expected = f"EXPECTED RESPONSE: {expected_answer}\n" if expected_answer else ""
    context_line = f"CONTEXT: {context}\n" if context else ""

    return f"""You are an expert educator providing focused, learner-friendly assessment feedback.

QUESTION: {question}
{expected}STUDENT'S ANSWER: {user_response}
{context_line}
Focus on the 3 most important insights. Evaluate accuracy and depth, cover at
most 2-3 main topics, and give exactly 3 actionable improvement suggestions.
Lead with what the student did well.

OUTPUT FORMAT (JSON):
{{
  "score": <0-100>,
  "feedback": "<concise, encouraging explanation of performance>",
  "is_correct": <boolean>,
  "topic_analysis": [
    {{
      "topic": "<main concept>",
      "performance": "<excellent|good|fair|poor>",
      "understanding_level": <0-100>,
      "specific_gaps": ["<most important gap>"],
      "strengths": ["<key strength>"]
    }}
  ],
  "improvement_suggestions": ["<tip 1>", "<tip 2>", "<tip 3>"],
  "reasoning_chain": ["Assessment: <reasoning>", "Key insight: <takeaway>", "Next step: <action>"],
  "confidence_level": <0-100>
}}

GRADING SCALE:
90-100: Excellent mastery | 80-89: Good understanding | 70-79: Fair grasp
60-69: Basic knowledge | 50-59: Limited understanding | 0-49: Needs review"""


# =============================================================================
# PARSING
# =============================================================================

def parse_grading_response(text: str, model_used: str) -> GradingResult:
    parsed = extract_json_object(text)
    if parsed is not None:
        return GradingResult(
            score=clamp_score(parsed.get("score")),
            feedback=parsed.get("feedback") or "No feedback provided.",
            is_correct=bool(parsed.get("is_correct")),
            model_used=model_used
        )

    match = _SCORE_RE.search(text or "")
    score = clamp_score(match.group(1)) if match else 0.0
    return GradingResult(
        score=score,
        feedback=text if text else "Unable to process response.",
        is_correct=score >= 70,
        model_used=model_used
    )


def _parse_topics(raw_topics: Any, score: float) -> List[TopicPerformance]:
    if not isinstance(raw_topics, list) or not raw_topics:
        return [TopicPerformance(
            topic="General Knowledge",
            performance=_performance_for(score),
            understanding_level=score,
            specific_gaps=["Analysis unavailable"],
            strengths=["Shows understanding"] if score >= 70 else [],
        )]

    topics = []
    for item in raw_topics:
        if not isinstance(item, dict):
            continue
        performance = item.get("performance")
        topics.append(TopicPerformance(
            topic=item.get("topic") or "Unknown Topic",
            performance=performance if performance in PERFORMANCE_LEVELS else "fair",
            understanding_level=clamp_score(item.get("understanding_level")),
            specific_gaps=[str(g) for g in item.get("specific_gaps") or [] if g],
            strengths=[str(s) for s in item.get("strengths") or [] if s],
        ))
    return topics


def parse_comprehensive_response(text: str, model_used: str) -> ComprehensiveGrading:
    parsed = extract_json_object(text)
    if parsed is None:
        match = _SCORE_RE.search(text or "")
        score = clamp_score(match.group(1)) if match else 0.0
        return ComprehensiveGrading(
            score=score,
            feedback=text if text else "Unable to process comprehensive response.",
            is_correct=score >= 70,
            model_used=model_used,
            topic_analysis=_parse_topics(None, score),
            improvement_suggestions=["Review the material thoroughly", "Practice similar questions"],
            reasoning_chain=["Fallback analysis due to parsing error"],
            confidence_level=30,
        )

    score = clamp_score(parsed.get("score"))
    suggestions = parsed.get("improvement_suggestions")
    reasoning = parsed.get("reasoning_chain")
    return ComprehensiveGrading(
        score=score,
        feedback=parsed.get("feedback") or "Comprehensive feedback unavailable.",
        is_correct=bool(parsed.get("is_correct")),
        model_used=model_used,
        topic_analysis=_parse_topics(parsed.get("topic_analysis"), score),
        improvement_suggestions=[str(s) for s in suggestions] if isinstance(suggestions, list) else ["Review the material and practice more"],
        reasoning_chain=[str(r) for r in reasoning] if isinstance(reasoning, list) else ["Basic analysis performed"],
        confidence_level=clamp_score(parsed.get("confidence_level") or 50),
    )


# =============================================================================
# FALLBACK
# =============================================================================

def word_similarity(text1: str, text2: str) -> float:
    """Jaccard similarity of the whitespace-separated word sets."""
    words1 = set(text1.split())
    words2 = set(text2.split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def fallback_grading(expected_answer: Optional[str], user_response: Optional[str]) -> GradingResult:
    if not user_response or not user_response.strip():
        return GradingResult(score=0, feedback="No response provided.", is_correct=False, model_used=FALLBACK_MODEL)

    if not expected_answer:
        return GradingResult(
            score=50,
            feedback="Response recorded. Unable to grade automatically without expected answer.",
            is_correct=False,
            model_used=FALLBACK_MODEL
        )

    similarity = word_similarity(expected_answer.lower(), user_response.lower())
    is_correct = similarity > FALLBACK_CORRECT_SIMILARITY

    return GradingResult(
        score=round(similarity * 100),
        feedback=(
            "Your response shows good understanding of the concept."
            if is_correct else
            "Your response needs improvement. Review the material and try to be more specific."
        ),
        is_correct=is_correct,
        model_used=FALLBACK_MODEL
    )


# =============================================================================
# GRADING
# =============================================================================

def grade_response(
    question: str,
    user_response: str,
    expected_answer: Optional[str] = None,
    context: Optional[str] = None
) -> GradingResult:
    """Grade one open-ended answer. Falls back to word overlap when the model call fails."""
    prompt = build_grading_prompt(question, user_response, expected_answer, context)
    try:
        response = generate_text(prompt, temperature=0.2, max_tokens=800)
    except Exception as e:
        logger.error("AI grading error, using fallback: %s", e)
        return fallback_grading(expected_answer, user_response)

    return parse_grading_response(response.text, response.model)


def grade_response_comprehensive(
    question: str,
    user_response: str,
    expected_answer: Optional[str] = None,
    context: Optional[str] = None
) -> ComprehensiveGrading:
    """Grade with topic analysis. On model failure, wraps the basic grade."""
    prompt = build_comprehensive_grading_prompt(question, user_response, expected_answer, context)
    try:
        response = generate_text(prompt, temperature=0.2, max_tokens=1500)
    except Exception as e:
        logger.error("Comprehensive AI grading error, using basic grading: %s", e)
        basic = grade_response(question, user_response, expected_answer, context)
        return ComprehensiveGrading(
            **basic.model_dump(),
            topic_analysis=[TopicPerformance(
                topic="General Knowledge",
                performance=_performance_for(basic.score),
                understanding_level=basic.score,
                specific_gaps=["Unable to analyze due to AI service error"],
                strengths=["Shows basic understanding"] if basic.score >= 70 else [],
            )],
            improvement_suggestions=["Review the material and try again"],
            reasoning_chain=["Fallback analysis due to service error"],
            confidence_level=50,
        )

    return parse_comprehensive_response(response.text, response.model)


# =============================================================================
# PROGRESSIVE DISCLOSURE
# =============================================================================

def extract_key_insight(analysis: OverallTestAnalysis) -> str:
    percentage = analysis.overall_percentage
    weakness = analysis.weaknesses_summary[0] if analysis.weaknesses_summary else None
    strength = analysis.strengths_summary[0] if analysis.strengths_summary else None

    if percentage >= 90:
        return "Excellent mastery demonstrated across all areas!"
    if percentage >= 80:
        return f"Strong performance with room to excel in {weakness or 'advanced topics'}"
    if percentage >= 70:
        return f"Good foundation established. Focus on {weakness or 'key concepts'}"
    if percentage >= 60:
        return f"Basic understanding shown. Strengthen {weakness or 'fundamental concepts'}"
    return f"Great effort! Build confidence with {strength or 'consistent practice'}"


def create_celebration_message(analysis: OverallTestAnalysis) -> str:
    messages = CELEBRATION_MESSAGES.get(analysis.overall_grade, CELEBRATION_MESSAGES["C"])
    return random.choice(messages)


def create_topic_summary(topics: List[TopicPerformance]) -> str:
    if not topics:
        return "Assessment completed successfully."

    excellent = sum(1 for t in topics if t.performance == "excellent")
    good = sum(1 for t in topics if t.performance == "good")
    needs_work = sum(1 for t in topics if t.performance in ("fair", "poor"))

    if excellent > good + needs_work:
        suffix = f" Focus on {needs_work} topics for improvement." if needs_work else ""
        return f"Excellent understanding in {excellent} areas.{suffix}"
    if good > 0:
        suffix = f" {needs_work} areas need attention." if needs_work else ""
        return f"Good grasp of {good} concepts.{suffix}"
    return f"{len(topics)} topics reviewed. Focus on strengthening fundamental understanding."


def to_progressive_disclosure(results: CompleteTestResults) -> CompleteTestResults:
    """Attach the layered feedback hierarchy to complete test results."""
    analysis = results.overall_analysis
    questions = results.individual_questions

    hierarchy = FeedbackHierarchy(
        primary=FeedbackPrimary(
            grade=analysis.overall_grade,
            percentage=analysis.overall_percentage,
            key_insight=extract_key_insight(analysis),
            celebration_message=create_celebration_message(analysis),
        ),
        at_glance=FeedbackAtGlance(
            performance_summary=analysis.grade_explanation,
            primary_strength=analysis.strengths_summary[0] if analysis.strengths_summary else "Completed the assessment",
            primary_improvement=analysis.weaknesses_summary[0] if analysis.weaknesses_summary else "Continue practicing",
            quick_stats=QuickStats(
                strong_answers=sum(1 for q in questions if q.individual_score >= 80),
                total_questions=len(questions),
                confidence_level=analysis.confidence_assessment,
            ),
        ),
        topics=FeedbackTopics(
            main_topics=analysis.topic_breakdown[:5],
            topic_summary=create_topic_summary(analysis.topic_breakdown),
        ),
        growth_plan=GrowthPlan(
            priority_areas=analysis.priority_study_areas[:3],
            action_steps=analysis.improvement_recommendations[:4],
            study_tips=analysis.study_plan_suggestions[:3],
        ),
        question_details=questions,
    )

    return results.model_copy(update={"feedback_hierarchy": hierarchy})
