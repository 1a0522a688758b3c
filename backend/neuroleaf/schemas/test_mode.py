"""
Test Mode Schemas for Neuroleaf

Pydantic models for AI test mode:
- Generated question types (multiple choice, true/false, open-ended)
- Grading results for single answers and whole tests
- Progressive-disclosure feedback hierarchy shown after a test
"""

from enum import Enum
from typing import Optional, List, Dict, Any, Literal, Union

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================

class QuestionType(str, Enum):
    OPEN_ENDED = "open_ended"
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"


class TestMode(str, Enum):
    __test__ = False

    FLASHCARD = "flashcard"
    AI_QUESTIONS = "ai_questions"


class TestSessionStatus(str, Enum):
    __test__ = False

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


Grade = Literal["A", "B", "C", "D", "F"]
Performance = Literal["excellent", "good", "fair", "poor"]


# =============================================================================
# QUESTIONS
# =============================================================================

class MultipleChoiceQuestion(BaseModel):
    type: Literal["multiple_choice"] = "multiple_choice"
    question: str = Field(..., min_length=1)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    options: List[str] = Field(..., min_length=4, max_length=4)
    correct_answer: int = Field(..., ge=0, le=3)
    explanation: str = ""
    flashcard_id: Optional[str] = None


class TrueFalseQuestion(BaseModel):
    type: Literal["true_false"] = "true_false"
    question: str = Field(..., min_length=1)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    statement: str = Field(..., min_length=1)
    correct_answer: bool
    explanation: str = ""
    flashcard_id: Optional[str] = None


class OpenEndedQuestion(BaseModel):
    type: Literal["open_ended"] = "open_ended"
    question: str = Field(..., min_length=1)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    suggested_answer: Optional[str] = None
    flashcard_id: Optional[str] = None


AIQuestion = Union[MultipleChoiceQuestion, TrueFalseQuestion, OpenEndedQuestion]


class QuestionDistribution(BaseModel):
    multiple_choice: int = Field(0, ge=0)
    true_false: int = Field(0, ge=0)
    open_ended: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return self.multiple_choice + self.true_false + self.open_ended


# =============================================================================
# REQUESTS
# =============================================================================

class StartTestRequest(BaseModel):
    deck_id: str
    test_mode: TestMode = TestMode.FLASHCARD
    total_questions: int = Field(..., ge=1, le=100)


class GenerateQuestionsRequest(BaseModel):
    question_count: int = Field(10, ge=1, le=50)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    distribution: Optional[QuestionDistribution] = None


class SubmitResponseRequest(BaseModel):
    flashcard_id: Optional[str] = None
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType = QuestionType.OPEN_ENDED
    question_data: Optional[Dict[str, Any]] = None
    expected_answer: Optional[str] = None
    user_response: str = Field(..., min_length=1)
    response_time_seconds: Optional[int] = Field(None, ge=0)


# =============================================================================
# GRADING
# =============================================================================

class GradingResult(BaseModel):
    score: float = Field(..., ge=0, le=100)
    feedback: str
    is_correct: bool
    model_used: str


class TopicPerformance(BaseModel):
    topic: str
    performance: Performance
    understanding_level: float = Field(..., ge=0, le=100)
    specific_gaps: List[str] = []
    strengths: List[str] = []


class ComprehensiveGrading(GradingResult):
    topic_analysis: List[TopicPerformance] = []
    improvement_suggestions: List[str] = []
    reasoning_chain: List[str] = []
    confidence_level: float = Field(0, ge=0, le=100)


class OverallTestAnalysis(BaseModel):
    overall_grade: Grade
    overall_percentage: float = Field(..., ge=0, le=100)
    grade_explanation: str
    topic_breakdown: List[TopicPerformance] = []
    strengths_summary: List[str] = []
    weaknesses_summary: List[str] = []
    priority_study_areas: List[str] = []
    improvement_recommendations: List[str] = []
    study_plan_suggestions: List[str] = []
    confidence_assessment: float = Field(..., ge=0, le=100)


class QuestionAnalysis(BaseModel):
    question_id: str
    question_text: str
    user_answer: str
    expected_answer: Optional[str] = None
    individual_score: float = Field(..., ge=0, le=100)
    individual_grade: Grade
    detailed_feedback: str
    topic_areas: List[str] = []
    specific_mistakes: List[str] = []
    what_went_well: List[str] = []
    improvement_tips: List[str] = []
    confidence_level: float = Field(..., ge=0, le=100)


# =============================================================================
# PROGRESSIVE DISCLOSURE
# =============================================================================

class FeedbackPrimary(BaseModel):
    """Hero section, always visible."""
    grade: Grade
    percentage: float = Field(..., ge=0, le=100)
    key_insight: str
    celebration_message: str


class QuickStats(BaseModel):
    strong_answers: int
    total_questions: int
    confidence_level: float = Field(..., ge=0, le=100)


class FeedbackAtGlance(BaseModel):
    performance_summary: str
    primary_strength: str
    primary_improvement: str
    quick_stats: QuickStats


class FeedbackTopics(BaseModel):
    main_topics: List[TopicPerformance] = Field(default_factory=list, max_length=5)
    topic_summary: str


class GrowthPlan(BaseModel):
    priority_areas: List[str] = Field(default_factory=list, max_length=3)
    action_steps: List[str] = Field(default_factory=list, max_length=4)
    study_tips: List[str] = Field(default_factory=list, max_length=3)


class FeedbackHierarchy(BaseModel):
    primary: FeedbackPrimary
    at_glance: FeedbackAtGlance
    topics: FeedbackTopics
    growth_plan: GrowthPlan
    question_details: List[QuestionAnalysis] = []


class CompleteTestResults(BaseModel):
    overall_analysis: OverallTestAnalysis
    individual_questions: List[QuestionAnalysis]
    time_spent_minutes: float
    completion_date: str
    test_session_id: str
    feedback_hierarchy: Optional[FeedbackHierarchy] = None

    @field_validator("time_spent_minutes")
    @classmethod
    def non_negative_time(cls, v):
        if v < 0:
            raise ValueError("time_spent_minutes cannot be negative")
        return v
