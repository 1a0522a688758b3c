"""
Deck and flashcard schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field

# Longest study material a single generation call accepts
MAX_GENERATION_CONTENT_CHARS = 20000


class DeckVisibility(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"
    SHARED = "shared"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# =============================================================================
# DECKS
# =============================================================================

class DeckCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    visibility: DeckVisibility = DeckVisibility.PRIVATE
    tags: List[str] = Field(default_factory=list, max_length=10)


class DeckUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    visibility: Optional[DeckVisibility] = None
    tags: Optional[List[str]] = Field(None, max_length=10)


class DeckResponse(BaseModel):
    id: str
    account_id: str
    name: str
    description: Optional[str] = None
    visibility: DeckVisibility
    tags: List[str] = []
    total_cards: int = 0
    is_accessible: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None


# =============================================================================
# FLASHCARDS
# =============================================================================

class FlashcardCreate(BaseModel):
    front_content: str = Field(..., min_length=1, max_length=5000)
    back_content: str = Field(..., min_length=1, max_length=5000)
    difficulty: Difficulty = Difficulty.MEDIUM
    tags: List[str] = Field(default_factory=list, max_length=20)
    position: Optional[int] = Field(None, ge=0)


class FlashcardBulkCreate(BaseModel):
    flashcards: List[FlashcardCreate] = Field(..., min_length=1, max_length=1000)


class FlashcardUpdate(BaseModel):
    front_content: Optional[str] = Field(None, min_length=1, max_length=5000)
    back_content: Optional[str] = Field(None, min_length=1, max_length=5000)
    difficulty: Optional[Difficulty] = None
    tags: Optional[List[str]] = Field(None, max_length=20)
    position: Optional[int] = Field(None, ge=0)


class FlashcardResponse(BaseModel):
    id: str
    deck_id: str
    front_content: str
    back_content: str
    difficulty: Difficulty
    tags: List[str] = []
    position: int
    ai_generated: bool = False
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FlashcardGenerateRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_GENERATION_CONTENT_CHARS)
    number_of_cards: int = Field(5, ge=1, le=5)
    difficulty: Optional[Difficulty] = None
    subject: Optional[str] = Field(None, max_length=100)
