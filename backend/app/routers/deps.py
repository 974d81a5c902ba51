"""
Shared FastAPI dependencies for the sentiment and history routers.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from app.agents.sentiment_classifier import SentimentClassifierAgent
from app.services.sentiment_service import SentimentService
from app.services.session_store import SessionRegistry
from app.utils.logger import get_correlation_id


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    Resolve the calling user from the X-User-ID header.

    The header is set by the authentication proxy in front of the API.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail={
            "error": {
                "code": "UNAUTHENTICATED",
                "message": "Must be logged in to access history",
                "correlation_id": get_correlation_id()
            }
        })
    return x_user_id.strip()


def get_session_registry(request: Request) -> SessionRegistry:
    """The registry created at startup and held on application state."""
    return request.app.state.session_registry


def get_classifier_agent(request: Request) -> SentimentClassifierAgent:
    """Build the classifier on first use and keep it on application state."""
    agent = getattr(request.app.state, "classifier_agent", None)
    if agent is None:
        agent = SentimentClassifierAgent()
        request.app.state.classifier_agent = agent
    return agent


def get_sentiment_service(
    registry: SessionRegistry = Depends(get_session_registry),
    agent: SentimentClassifierAgent = Depends(get_classifier_agent),
) -> SentimentService:
    return SentimentService(registry, agent)
