"""
Mock infrastructure for Neuroleaf testing.
Provides deterministic mocks for OpenAI and Stripe.
"""

from .openai_mocks import (
    MOCK_FLASHCARDS,
    MOCK_QUESTIONS,
    MOCK_GRADING,
    MOCK_COMPREHENSIVE_GRADING,
    MockOpenAIClient,
    MockChatCompletion,
)
from .stripe_mocks import FakeGateway, make_event, make_subscription

__all__ = [
    "MOCK_FLASHCARDS",
    "MOCK_QUESTIONS",
    "MOCK_GRADING",
    "MOCK_COMPREHENSIVE_GRADING",
    "MockOpenAIClient",
    "MockChatCompletion",
    "FakeGateway",
    "make_event",
    "make_subscription",
]
