"""
AI agent for classifying the sentiment of short social media texts.
Sends one numbered batch to Claude and reconciles its JSON answer onto the input.
"""

import json
from typing import Callable, List, Optional

from anthropic import AsyncAnthropic

from app.agents.base_agent import BaseAgent, OracleUnavailableError
from app.schemas.sentiment import ClassificationResult
from app.services.batch_builder import SentimentBatch
from app.services.reconciler import OracleResponseError, extract_json_array, new_result_id, reconcile
from app.utils.logger import get_logger

logger = get_logger(__name__)


class SentimentClassifierAgent(BaseAgent):
    """
    AI agent that labels each text in a batch as positive, negative or neutral.

    Along with the label it asks for a confidence between 0.5 and 1.0, the
    keywords driving the sentiment and a one or two sentence explanation.
    """

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        id_factory: Callable[[], str] = new_result_id,
    ) -> None:
        super().__init__(client)
        self.id_factory = id_factory

    async def process(self, batch: SentimentBatch) -> List[ClassificationResult]:
        """
        Classify every text in the batch.

        Args:
            batch: Validated batch of 1-50 texts

        Returns:
            One ClassificationResult per text, in batch order

        Raises:
            RateLimitedError, QuotaExhaustedError: Passed through from the call
            OracleUnavailableError: If the call fails or the reply has no JSON array
        """
        payload = batch.to_payload()
        logger.info(f"[{self.agent_name}] Starting sentiment classification",
                    batch_size=len(batch),
                    payload_bytes=len(json.dumps(payload, ensure_ascii=False).encode("utf-8")),
                    caller_ids=sum(1 for item in payload["texts"] if "id" in item))

        raw_response = await self._call_claude(
            self._build_classification_prompt(batch),
            self._build_system_prompt(),
        )

        try:
            entries = extract_json_array(raw_response)
        except OracleResponseError as e:
            logger.error(f"[{self.agent_name}] Failed to parse sentiment analysis",
                         response_preview=self._truncate_for_log(raw_response))
            raise OracleUnavailableError(f"Failed to parse sentiment analysis: {str(e)}")

        results = reconcile(batch.items, entries, self.id_factory)

        logger.info(f"[{self.agent_name}] Successfully analyzed {len(results)} texts",
                    oracle_entries=len(entries))
        return results

    def _build_system_prompt(self) -> str:
        """Build the system prompt for Claude."""
        return """You are a sentiment analysis expert specializing in social media content. Analyze the sentiment of each text and provide structured results.

For each text, determine:
1. sentiment: "positive", "negative", or "neutral"
2. confidence: A number between 0.5 and 1.0 representing how confident you are
3. keywords: 2-5 key words or phrases that drive the sentiment
4. explanation: A brief (1-2 sentence) explanation of why this sentiment was assigned

Consider context, sarcasm, emojis, and social media language patterns."""

    def _build_classification_prompt(self, batch: SentimentBatch) -> str:
        """
        Build the prompt listing the numbered texts.

        Args:
            batch: The batch to classify

        Returns:
            Formatted prompt string
        """
        numbered = "\n\n".join(batch.numbered_lines())

        return f"""Analyze the sentiment of these {len(batch)} social media texts:

{numbered}

Respond with a JSON array of results in this exact format:
[
  {{
    "index": 1,
    "sentiment": "positive",
    "confidence": 0.92,
    "keywords": ["amazing", "love", "excited"],
    "explanation": "Strong positive language with excitement indicators."
  }}
]"""
