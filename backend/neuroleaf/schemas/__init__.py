"""
Neuroleaf Schemas Package

Pydantic models for request/response validation and data structures.
"""

from neuroleaf.schemas.decks import (
    # Enums
    DeckVisibility,
    Difficulty,

    # Decks
    DeckCreate,
    DeckUpdate,
    DeckResponse,

    # Flashcards
    FlashcardCreate,
    FlashcardBulkCreate,
    FlashcardUpdate,
    FlashcardResponse,
    FlashcardGenerateRequest,
)

from neuroleaf.schemas.test_mode import (
    # Enums
    QuestionType,
    TestMode,
    TestSessionStatus,

    # Questions
    MultipleChoiceQuestion,
    TrueFalseQuestion,
    OpenEndedQuestion,
    AIQuestion,
    QuestionDistribution,

    # Requests
    StartTestRequest,
    GenerateQuestionsRequest,
    SubmitResponseRequest,

    # Grading
    GradingResult,
    TopicPerformance,
    ComprehensiveGrading,
    OverallTestAnalysis,
    QuestionAnalysis,
    FeedbackHierarchy,
    CompleteTestResults,
)

__all__ = [
    # Enums
    "DeckVisibility",
    "Difficulty",
    "QuestionType",
    "TestMode",
    "TestSessionStatus",

    # Decks and flashcards
    "DeckCreate",
    "DeckUpdate",
    "DeckResponse",
    "FlashcardCreate",
    "FlashcardBulkCreate",
    "FlashcardUpdate",
    "FlashcardResponse",
    "FlashcardGenerateRequest",

    # Questions
    "MultipleChoiceQuestion",
    "TrueFalseQuestion",
    "OpenEndedQuestion",
    "AIQuestion",
    "QuestionDistribution",

    # Requests
    "StartTestRequest",
    "GenerateQuestionsRequest",
    "SubmitResponseRequest",

    # Grading
    "GradingResult",
    "TopicPerformance",
    "ComprehensiveGrading",
    "OverallTestAnalysis",
    "QuestionAnalysis",
    "FeedbackHierarchy",
    "CompleteTestResults",
]
