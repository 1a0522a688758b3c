"""
Pytest configuration and fixtures for Neuroleaf backend tests.

Provides:
- Test database setup/teardown
- FastAPI test client with auth and Stripe overrides
- Account, deck and flashcard fixtures
- OpenAI mock for AI tests
"""

import pytest
import os
from typing import Callable, Generator, List
from datetime import datetime
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test_neuroleaf.db"
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_not_real"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["STRIPE_PRO_MONTHLY_PRICE_ID"] = "price_pro_monthly"
os.environ["STRIPE_PRO_YEARLY_PRICE_ID"] = "price_pro_yearly"
os.environ["STRIPE_PRICE_ID"] = "price_legacy"

from neuroleaf.main import app
from neuroleaf.database import Base, get_db
from neuroleaf.dependencies.auth import get_current_account
from neuroleaf.models.models import Account, Deck, Flashcard
from neuroleaf.services.stripe_service import get_stripe_gateway
from neuroleaf.services.subscription import apply_tier

from mocks import FakeGateway, MockOpenAIClient


# Test database setup
TEST_DATABASE_URL = "sqlite:///./test_neuroleaf.db"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database tables once per test session"""
    Base.metadata.create_all(bind=test_engine)
    yield
    # Cleanup after all tests
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()
    if os.path.exists("./test_neuroleaf.db"):
        os.remove("./test_neuroleaf.db")


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Provide a database session for each test, with rollback after"""
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


# =========================================================================
# Account Fixtures
# =========================================================================

@pytest.fixture
def make_account(db: Session) -> Callable[..., Account]:
    """Factory for accounts on a given tier"""
    counter = {"n": 0}

    def _make(tier: str = "free", email: str = None, account_id: str = None, **fields) -> Account:
        counter["n"] += 1
        account = Account(
            id=account_id or f"account-{counter['n']}",
            email=email or f"user{counter['n']}@neuroleaf.test",
            name="Test User",
            **fields
        )
        apply_tier(account, tier)
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def test_account(make_account) -> Account:
    return make_account("free", email="test@neuroleaf.test", account_id="test-account-123")


@pytest.fixture
def pro_account(make_account) -> Account:
    return make_account("pro", email="pro@neuroleaf.test", account_id="pro-account-456")


# =========================================================================
# Deck Fixtures
# =========================================================================

@pytest.fixture
def make_deck(db: Session) -> Callable[..., Deck]:
    def _make(account: Account, name: str = "Biology", created_at: datetime = None, cards: int = 0) -> Deck:
        created_at = created_at or datetime.utcnow()
        deck = Deck(
            account_id=account.id,
            name=name,
            description=f"{name} deck",
            visibility="private",
            tags=[],
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(deck)
        db.flush()
        for i in range(cards):
            db.add(Flashcard(
                deck_id=deck.id,
                front_content=f"Question {i}",
                back_content=f"Answer {i}",
                difficulty="medium",
                tags=[],
                position=i,
            ))
        db.commit()
        db.refresh(deck)
        return deck

    return _make


@pytest.fixture
def test_deck(make_deck, test_account) -> Deck:
    return make_deck(test_account, "Cell Biology", cards=3)


@pytest.fixture
def deck_cards(db: Session, test_deck: Deck) -> List[Flashcard]:
    return db.query(Flashcard).filter(Flashcard.deck_id == test_deck.id).order_by(Flashcard.position).all()


# =========================================================================
# Client Fixtures
# =========================================================================

@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="function")
def client(db: Session, test_account: Account, fake_gateway: FakeGateway) -> Generator[TestClient, None, None]:
    """
    FastAPI test client signed in as test_account, with the database and
    Stripe gateway overridden.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_account] = lambda: test_account
    app.dependency_overrides[get_stripe_gateway] = lambda: fake_gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: TestClient) -> Callable[[Account], None]:
    """Switch the signed-in account for subsequent requests"""
    def _login(account: Account) -> None:
        app.dependency_overrides[get_current_account] = lambda: account

    return _login


# =========================================================================
# Mock Fixtures
# =========================================================================

@pytest.fixture
def mock_openai() -> Generator[MockOpenAIClient, None, None]:
    """Mock OpenAI API calls for testing without API costs"""
    import neuroleaf.utils.openai_client as openai_module

    # Reset the cached client
    openai_module._client = None

    mock_instance = MockOpenAIClient()

    # Patch the _client directly to bypass the get_openai_client function
    with patch.object(openai_module, '_client', mock_instance):
        with patch.object(openai_module, 'get_openai_client', return_value=mock_instance):
            yield mock_instance

    # Reset after test to avoid affecting other tests
    openai_module._client = None


@pytest.fixture
def failing_openai(mock_openai: MockOpenAIClient) -> MockOpenAIClient:
    """OpenAI mock whose every call raises"""
    mock_openai.fail_with(RuntimeError("AI service unavailable"))
    return mock_openai
