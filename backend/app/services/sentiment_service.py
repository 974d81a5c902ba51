"""
Service layer for sentiment analysis.
Runs the extract -> build batch -> classify -> store pipeline for one session.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.agents.sentiment_classifier import SentimentClassifierAgent
from app.config import get_settings
from app.schemas.sentiment import ClassificationResult, TextItem
from app.services.batch_builder import build_batch
from app.services.session_store import SessionRegistry
from app.utils.file_handler import TextExtractor, TruncatedWarning
from app.utils.logger import get_logger

logger = get_logger(__name__)
settings = get_settings()

SAMPLE_TEXTS = [
    "Just got my new iPhone and I'm absolutely loving it! Best purchase ever! 📱✨",
    "This customer service is terrible. Waited 2 hours and still no response. Never buying again.",
    "The weather today is pretty average, nothing special really.",
    "OMG just saw the new Marvel movie and it was AMAZING!!! 🎬🍿",
    "Another Monday, another boring meeting that could've been an email 😴",
]


@dataclass(frozen=True)
class BatchOutcome:
    """Results of one classified batch, plus any truncation advisory."""
    results: List[ClassificationResult]
    source_type: str
    warning: Optional[TruncatedWarning] = None


class SentimentService:
    """
    Service class for classifying batches on behalf of a session.

    The session's stored results change only when a batch completes; any
    failure leaves them as they were.
    """

    def __init__(self, registry: SessionRegistry, agent: SentimentClassifierAgent) -> None:
        self.registry = registry
        self.agent = agent
        self.parser = TextExtractor()

    async def analyze_texts(self, session_id: str, items: Sequence[TextItem],
                            source_type: str = "text",
                            warning: Optional[TruncatedWarning] = None) -> BatchOutcome:
        """
        Classify a batch and make it the session's current results.

        Raises:
            EmptyBatchError, BatchTooLargeError: Before any oracle call
            BatchInProgressError: If the session is already classifying
            RateLimitedError, QuotaExhaustedError, OracleUnavailableError
        """
        batch = build_batch(items, settings.max_batch_size)

        async with self.registry.batch_guard(session_id) as store:
            results = await self.agent.process(batch)
            store.replace(results)

        logger.info("Session results replaced", session_id=session_id,
                    results_count=len(results), source_type=source_type)
        return BatchOutcome(results=results, source_type=source_type, warning=warning)

    async def analyze_pasted(self, session_id: str, content: str) -> BatchOutcome:
        """Split pasted text into lines (first 50 kept) and classify them."""
        extraction = self.parser.extract_pasted(content, settings.max_batch_size)
        items = [TextItem(text=text) for text in extraction.texts]
        return await self.analyze_texts(session_id, items, extraction.source_type, extraction.warning)
