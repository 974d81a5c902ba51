"""
Pytest configuration and fixtures for testing.
"""

import os

# Point settings at an in-memory database before the app modules load
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ANTHROPIC_API_KEY"] = "test-key"

import json
import pytest
from typing import Any, Callable, Dict, Generator, List
from unittest.mock import AsyncMock, Mock
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from app.agents.sentiment_classifier import SentimentClassifierAgent
from app.db.database import Base, engine, get_db, init_db
from app.main import app
from app.routers.deps import get_classifier_agent
from app.schemas.sentiment import ClassificationResult


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """Create a fresh schema and database session for each test."""
    init_db()
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_claude_response(text: str) -> Mock:
    """Build a Claude messages response carrying a single text block."""
    response = Mock()
    response.content = [Mock(text=text)]
    response.usage.input_tokens = 120
    response.usage.output_tokens = 80
    return response


@pytest.fixture
def mock_anthropic_client() -> Mock:
    """Mock async Anthropic client; messages.create is awaitable."""
    mock_client = Mock()
    mock_client.messages.create = AsyncMock(return_value=make_claude_response("[]"))
    return mock_client


@pytest.fixture
def oracle_reply(mock_anthropic_client: Mock) -> Callable[[Any], None]:
    """Set what the mocked oracle answers; lists are wrapped in prose like a real reply."""
    def _set(reply: Any) -> None:
        if isinstance(reply, str):
            text = reply
        else:
            text = "Here is the analysis:\n```json\n" + json.dumps(reply) + "\n```"
        mock_anthropic_client.messages.create.return_value = make_claude_response(text)
    return _set


@pytest.fixture
def classifier_agent(mock_anthropic_client: Mock) -> SentimentClassifierAgent:
    """Classifier wired to the mocked client with predictable ids."""
    counter = iter(range(1, 10_000))
    return SentimentClassifierAgent(client=mock_anthropic_client,
                                    id_factory=lambda: f"generated-{next(counter)}")


@pytest.fixture(scope="function")
def client(test_db: Session, classifier_agent: SentimentClassifierAgent) -> Generator[TestClient, None, None]:
    """Create test client with database and oracle overrides."""
    def override_get_db() -> Generator[Session, None, None]:
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_classifier_agent] = lambda: classifier_agent
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_results() -> List[ClassificationResult]:
    """A small classified batch covering all three sentiments."""
    return [
        ClassificationResult(id="r1", text="I love this phone!", sentiment="positive",
                             confidence=0.95, keywords=["love", "phone"],
                             explanation="Strong positive language."),
        ClassificationResult(id="r2", text="Worst service ever.", sentiment="negative",
                             confidence=0.9, keywords=["worst", "service"],
                             explanation="Clear complaint."),
        ClassificationResult(id="r3", text="The meeting is at 3pm.", sentiment="neutral",
                             confidence=0.7, keywords=[],
                             explanation="Factual statement."),
    ]


@pytest.fixture
def sample_oracle_entries() -> List[Dict[str, Any]]:
    """Oracle entries matching three submitted texts."""
    return [
        {"index": 1, "sentiment": "positive", "confidence": 0.92,
         "keywords": ["love", "amazing"], "explanation": "Enthusiastic tone."},
        {"index": 2, "sentiment": "negative", "confidence": 0.88,
         "keywords": ["terrible"], "explanation": "Complaint about service."},
        {"index": 3, "sentiment": "neutral", "confidence": 0.6,
         "keywords": [], "explanation": "Plain statement."},
    ]
