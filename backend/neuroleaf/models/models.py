from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, JSON, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from neuroleaf.database import Base

def generate_uuid():
    return str(uuid.uuid4())


class Account(Base):
    """
    A subscriber. Created at signup on the free tier; billing webhooks
    mutate the subscription columns. Never hard-deleted by this service.
    """
    __tablename__ = "accounts"

    id = Column(String, primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)

    # Subscription tier: "free", "pro", legacy "premium"
    subscription_tier = Column(String, nullable=False, default="free", index=True)
    deck_limit = Column(Integer, nullable=False, default=3)  # -1 = unlimited
    flashcard_limit_per_deck = Column(Integer, nullable=False, default=50)  # -1 = unlimited

    # Stripe billing
    stripe_customer_id = Column(String, nullable=True, index=True)
    stripe_subscription_id = Column(String, nullable=True, index=True)
    subscription_status = Column(String, nullable=True)  # "active", "past_due", "canceled", ...
    subscription_expires_at = Column(DateTime, nullable=True, index=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    decks = relationship("Deck", back_populates="account")


class Deck(Base):
    __tablename__ = "decks"

    id = Column(String, primary_key=True, default=generate_uuid)
    account_id = Column(String, ForeignKey("accounts.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    visibility = Column(String, nullable=False, default="private")  # "private", "public", "shared"
    tags = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    account = relationship("Account", back_populates="decks")
    flashcards = relationship("Flashcard", back_populates="deck", cascade="all, delete-orphan")


class Flashcard(Base):
    __tablename__ = "flashcards"

    id = Column(String, primary_key=True, default=generate_uuid)
    deck_id = Column(String, ForeignKey("decks.id"), nullable=False, index=True)
    front_content = Column(Text, nullable=False)
    back_content = Column(Text, nullable=False)
    difficulty = Column(String, nullable=False, default="medium")  # "easy", "medium", "hard"
    tags = Column(JSON, nullable=False, default=list)
    position = Column(Integer, nullable=False, default=0)
    ai_generated = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    deck = relationship("Deck", back_populates="flashcards")


class AIGeneration(Base):
    """
    Append-only log of AI content generation calls.
    Only ever counted within the current calendar month.
    """
    __tablename__ = "ai_generations"

    id = Column(String, primary_key=True, default=generate_uuid)
    account_id = Column(String, ForeignKey("accounts.id"), nullable=False, index=True)
    generation_type = Column(String, nullable=False)  # "flashcards", "test_questions", ...
    deck_id = Column(String, ForeignKey("decks.id"), nullable=True)
    flashcard_id = Column(String, ForeignKey("flashcards.id"), nullable=True)
    model_used = Column(String, nullable=True)
    prompt_tokens = Column(Integer, default=0)
    completion_tokens = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class TestSession(Base):
    """One AI-graded test attempt over a deck."""
    __tablename__ = "test_sessions"
    __test__ = False  # keep pytest from collecting the model

    id = Column(String, primary_key=True, default=generate_uuid)
    account_id = Column(String, ForeignKey("accounts.id"), nullable=False, index=True)
    deck_id = Column(String, ForeignKey("decks.id"), nullable=False, index=True)

    test_mode = Column(String, nullable=False, default="flashcard")  # "flashcard", "ai_questions"
    total_questions = Column(Integer, nullable=False, default=0)
    questions_completed = Column(Integer, default=0)

    average_score = Column(Float, nullable=True)
    time_spent_seconds = Column(Integer, default=0)

    status = Column(String, nullable=False, default="active", index=True)  # "active", "completed", "abandoned"
    started_at = Column(DateTime, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    deck = relationship("Deck")
    responses = relationship("TestResponse", back_populates="session", order_by="TestResponse.created_at")


class TestResponse(Base):
    """One graded answer within a test session."""
    __tablename__ = "test_responses"
    __test__ = False

    id = Column(String, primary_key=True, default=generate_uuid)
    test_session_id = Column(String, ForeignKey("test_sessions.id"), nullable=False, index=True)
    flashcard_id = Column(String, ForeignKey("flashcards.id"), nullable=True, index=True)

    question_text = Column(Text, nullable=False)
    question_type = Column(String, nullable=False, default="open_ended")  # "open_ended", "multiple_choice", "true_false"
    question_data = Column(JSON, nullable=True)  # MCQ options, T/F statement, correct answer
    expected_answer = Column(Text, nullable=True)
    user_response = Column(Text, nullable=False)

    ai_score = Column(Float, nullable=False)  # 0-100
    ai_feedback = Column(Text, nullable=False)
    ai_model_used = Column(String, nullable=True)

    response_time_seconds = Column(Integer, nullable=True)
    is_correct = Column(Boolean, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    session = relationship("TestSession", back_populates="responses")


class PerformanceAnalytics(Base):
    """
    Per (account, flashcard) mastery tracking.
    Fully recomputed from the response history whenever a response is recorded.
    """
    __tablename__ = "performance_analytics"
    __table_args__ = (
        UniqueConstraint("account_id", "flashcard_id", name="uq_performance_account_flashcard"),
    )

    id = Column(String, primary_key=True, default=generate_uuid)
    account_id = Column(String, ForeignKey("accounts.id"), nullable=False, index=True)
    flashcard_id = Column(String, ForeignKey("flashcards.id"), nullable=False, index=True)

    total_attempts = Column(Integer, default=0)
    correct_attempts = Column(Integer, default=0)
    average_score = Column(Float, nullable=True)
    best_score = Column(Float, nullable=True)
    latest_score = Column(Float, nullable=True)

    mastery_level = Column(Integer, default=0, index=True)  # 0-100
    is_mastered = Column(Boolean, default=False)
    mastered_at = Column(DateTime, nullable=True)

    first_attempt_at = Column(DateTime, nullable=True)
    last_attempt_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    flashcard = relationship("Flashcard")
